import logging

from django.db import DatabaseError, transaction
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.api import check_user, json_error, parse_body, validation_error
from finance.ledger import compute_progress_batch

from .forms import AbrirVentaForm, CompradorForm, FiltroVentasForm
from .models import Venta
from .reconciliation import reconcile_ventas
from .services import VentaActivaError, abrir_venta

logger = logging.getLogger(__name__)


def _venta_to_item(venta, progreso):
    unidad = venta.unidad
    prototipo = unidad.prototipo
    return {
        "id": str(venta.pk),
        "estado": venta.estado,
        "precio_total": str(venta.precio_total),
        "es_fraccional": venta.es_fraccional,
        "fecha_creacion": venta.fecha_creacion.isoformat(),
        "unidad_id": unidad.pk,
        "unidad_numero": unidad.numero,
        "prototipo_nombre": prototipo.nombre,
        "desarrollo_nombre": prototipo.desarrollo.nombre,
        "compradores": [c.nombre for c in venta.compradores.all()],
        "monto_pagado": str(progreso.monto_pagado) if progreso else None,
        "progreso": progreso.progreso if progreso else None,
    }


def _list_ventas(request):
    form = FiltroVentasForm(request.GET)
    if not form.is_valid():
        return validation_error(form, "Filtro inválido")

    ventas_qs = Venta.objects.select_related("unidad__prototipo__desarrollo").prefetch_related("compradores")
    if form.cleaned_data["estado"]:
        ventas_qs = ventas_qs.filter(estado=form.cleaned_data["estado"])
    ventas = list(ventas_qs)

    # Solo lectura: el listado nunca completa ventas, eso es de la conciliación.
    try:
        progresos = compute_progress_batch(ventas)
    except DatabaseError:
        logger.exception("No se pudo calcular el avance de pagos del listado de ventas")
        progresos = {}

    return JsonResponse({"ventas": [_venta_to_item(v, progresos.get(v.pk)) for v in ventas]})


def _abrir_venta(request):
    try:
        data = parse_body(request)
    except ValueError:
        return json_error("JSON inválido", code="invalid_json")

    form = AbrirVentaForm(data)
    if not form.is_valid():
        return validation_error(form)

    compradores_data = data.get("compradores") or []
    if not isinstance(compradores_data, list):
        return json_error("compradores debe ser una lista", code="invalid")

    comprador_forms = [CompradorForm(item if isinstance(item, dict) else {}) for item in compradores_data]
    for comprador_form in comprador_forms:
        if not comprador_form.is_valid():
            return validation_error(comprador_form, "Comprador inválido")

    # Un mismo comprador no puede participar dos veces en la venta.
    documentos = [f.cleaned_data["documento"] for f in comprador_forms if f.cleaned_data.get("documento")]
    repetidos = sorted({d for d in documentos if documentos.count(d) > 1})
    if repetidos:
        return json_error(
            "Comprador repetido en la venta",
            code="invalid",
            detalles={"compradores": [f"El documento {d} aparece más de una vez." for d in repetidos]},
        )

    try:
        with transaction.atomic():
            compradores = [(f.save(), f.cleaned_data.get("porcentaje")) for f in comprador_forms]
            venta = abrir_venta(
                form.cleaned_data["unidad"],
                precio_total=form.cleaned_data["precio_total"],
                compradores=compradores,
                es_fraccional=form.cleaned_data["es_fraccional"],
            )
    except VentaActivaError as exc:
        return json_error(str(exc), status=409, code="venta_activa")

    return JsonResponse(
        {
            "id": str(venta.pk),
            "estado": venta.estado,
            "unidad_id": venta.unidad_id,
            "precio_total": str(venta.precio_total),
            "es_fraccional": venta.es_fraccional,
        },
        status=201,
    )


@csrf_exempt
@require_http_methods(["GET", "POST"])
def api_ventas(request):
    error = check_user(request.user, staff=request.method == "POST")
    if error:
        return error
    if request.method == "GET":
        return _list_ventas(request)
    return _abrir_venta(request)


@csrf_exempt
@require_http_methods(["POST"])
def api_conciliar(request):
    error = check_user(request.user, staff=True)
    if error:
        return error
    resultado = reconcile_ventas()
    return JsonResponse(resultado.as_dict())
