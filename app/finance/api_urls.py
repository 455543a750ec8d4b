from django.urls import path

from . import api_views


app_name = "finance_api"

urlpatterns = [
    path(
        "ventas/<uuid:venta_id>/progreso",
        api_views.api_venta_progreso,
        name="venta_progreso",
    ),
    path(
        "pagos",
        api_views.api_pago_create,
        name="pago_crear",
    ),
]
