from django.urls import path

from . import api_views


app_name = "sales_api"

urlpatterns = [
    path("", api_views.api_ventas, name="ventas"),
    path("conciliar", api_views.api_conciliar, name="conciliar"),
]
