from django.http import JsonResponse
from django.shortcuts import aget_object_or_404, get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.api import check_user, json_error, parse_body, validation_error

from .forms import GenerarUnidadesForm
from .models import Desarrollo, Prototipo, Unidad
from .mutations import DESCARTADA, registry
from .status import desarrollo_summary, prototipo_summary


ERROR_STATUS = {
    "invalid": 400,
    "not_found": 404,
    "protected": 409,
    "conflict": 409,
}


def _resultado_response(resultado, success_status=200):
    if resultado.estado == DESCARTADA:
        return json_error(
            "La operación fue reemplazada por una solicitud más reciente.",
            status=409,
            code="superseded",
        )
    if not resultado.ok:
        return json_error(
            resultado.error,
            status=ERROR_STATUS.get(resultado.codigo, 500),
            code=resultado.codigo or "store_error",
            detalles=resultado.detalles,
        )
    return JsonResponse(
        {"recurso_id": resultado.recurso_id, "unidad": resultado.unidad},
        status=success_status,
    )


@require_http_methods(["GET"])
def api_desarrollo_resumen(request, desarrollo_id):
    error = check_user(request.user)
    if error:
        return error
    desarrollo = get_object_or_404(Desarrollo, pk=desarrollo_id)
    resumen = desarrollo_summary(desarrollo)
    return JsonResponse(
        {
            "id": desarrollo.pk,
            "nombre": desarrollo.nombre,
            "ubicacion": desarrollo.ubicacion,
            "amenidades": desarrollo.amenidades_list,
            **resumen.as_dict(),
        }
    )


@require_http_methods(["GET"])
def api_prototipo_resumen(request, prototipo_id):
    error = check_user(request.user)
    if error:
        return error
    prototipo = get_object_or_404(Prototipo, pk=prototipo_id)
    conteo = prototipo_summary(prototipo)
    return JsonResponse(
        {
            "id": prototipo.pk,
            "nombre": prototipo.nombre,
            "precio": str(prototipo.precio),
            "disponibilidad": conteo.display,
            **conteo.as_dict(),
        }
    )


@csrf_exempt
@require_http_methods(["GET", "POST"])
async def api_unidades(request, prototipo_id):
    user = await request.auser()
    error = check_user(user, staff=request.method == "POST")
    if error:
        return error
    prototipo = await aget_object_or_404(Prototipo, pk=prototipo_id)
    serializer = registry.for_prototipo(prototipo.pk)

    if request.method == "GET":
        unidades = [u.as_dict() async for u in Unidad.objects.filter(prototipo=prototipo).order_by("numero")]
        return JsonResponse({"unidades": unidades, "ocupado": serializer.is_busy})

    try:
        data = parse_body(request)
    except ValueError:
        return json_error("JSON inválido", code="invalid_json")
    resultado = await serializer.create_unit(data)
    return _resultado_response(resultado, success_status=201)


@csrf_exempt
@require_http_methods(["POST", "PATCH", "DELETE"])
async def api_unidad_detail(request, prototipo_id, unidad_id):
    user = await request.auser()
    error = check_user(user, staff=True)
    if error:
        return error
    prototipo = await aget_object_or_404(Prototipo, pk=prototipo_id)
    serializer = registry.for_prototipo(prototipo.pk)

    if request.method == "DELETE":
        resultado = await serializer.delete_unit(unidad_id)
        return _resultado_response(resultado)

    try:
        patch = parse_body(request)
    except ValueError:
        return json_error("JSON inválido", code="invalid_json")
    resultado = await serializer.update_unit(unidad_id, patch)
    return _resultado_response(resultado)


@require_http_methods(["GET"])
async def api_unidades_estado(request, prototipo_id):
    user = await request.auser()
    error = check_user(user)
    if error:
        return error
    prototipo = await aget_object_or_404(Prototipo, pk=prototipo_id)
    serializer = registry.for_prototipo(prototipo.pk)
    estado = await serializer.estado(refrescar=request.GET.get("refrescar") == "1")
    return JsonResponse(estado)


@csrf_exempt
@require_http_methods(["POST"])
async def api_unidades_generar(request, prototipo_id):
    user = await request.auser()
    error = check_user(user, staff=True)
    if error:
        return error
    prototipo = await aget_object_or_404(Prototipo, pk=prototipo_id)

    try:
        data = parse_body(request)
    except ValueError:
        return json_error("JSON inválido", code="invalid_json")
    form = GenerarUnidadesForm(data)
    if not form.is_valid():
        return validation_error(form)

    serializer = registry.for_prototipo(prototipo.pk)
    resultado = await serializer.generate_units(form.cleaned_data["cantidad"], form.cleaned_data["prefijo"])
    if not resultado.ok:
        return _resultado_response(resultado)
    return JsonResponse(
        {"generadas": len(resultado.unidades), "unidades": resultado.unidades},
        status=201,
    )
