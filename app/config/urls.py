"""
URL configuration del proyecto: admin y API JSON de inventario, ventas y finanzas.
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # API
    path(
        "api/inventario/",
        include(("inventory.api_urls", "inventory_api"), namespace="inventory_api"),
    ),
    path(
        "api/ventas/",
        include(("sales.api_urls", "sales_api"), namespace="sales_api"),
    ),
    path(
        "api/finanzas/",
        include(("finance.api_urls", "finance_api"), namespace="finance_api"),
    ),
]

# Los estáticos del admin los sirve Whitenoise (ver STORAGES en settings).
