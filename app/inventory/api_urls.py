from django.urls import path

from . import api_views


app_name = "inventory_api"

urlpatterns = [
    path(
        "desarrollos/<int:desarrollo_id>/resumen",
        api_views.api_desarrollo_resumen,
        name="desarrollo_resumen",
    ),
    path(
        "prototipos/<int:prototipo_id>/resumen",
        api_views.api_prototipo_resumen,
        name="prototipo_resumen",
    ),
    path(
        "prototipos/<int:prototipo_id>/unidades",
        api_views.api_unidades,
        name="unidades",
    ),
    path(
        "prototipos/<int:prototipo_id>/unidades/estado",
        api_views.api_unidades_estado,
        name="unidades_estado",
    ),
    path(
        "prototipos/<int:prototipo_id>/unidades/generar",
        api_views.api_unidades_generar,
        name="unidades_generar",
    ),
    path(
        "prototipos/<int:prototipo_id>/unidades/<int:unidad_id>",
        api_views.api_unidad_detail,
        name="unidad_detail",
    ),
]
