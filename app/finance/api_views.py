from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.api import check_user, json_error, parse_body, validation_error
from sales.models import Venta

from .forms import PagoForm
from .ledger import compute_progress


def _pago_to_item(pago):
    return {
        "id": pago.pk,
        "comprador_venta_id": pago.comprador_venta_id,
        "venta_id": str(pago.venta_id),
        "monto": str(pago.monto),
        "estado": pago.estado,
        "fecha_pago": pago.fecha_pago.isoformat() if pago.fecha_pago else None,
    }


@require_http_methods(["GET"])
def api_venta_progreso(request, venta_id):
    error = check_user(request.user)
    if error:
        return error
    venta = get_object_or_404(Venta, pk=venta_id)
    progreso = compute_progress(venta)
    return JsonResponse({**progreso.as_dict(), "estado": venta.estado, "precio_total": str(venta.precio_total)})


@csrf_exempt
@require_http_methods(["POST"])
def api_pago_create(request):
    """Registra un pago. La conciliación de la venta corre al confirmar la transacción."""
    error = check_user(request.user, staff=True)
    if error:
        return error
    try:
        data = parse_body(request)
    except ValueError:
        return json_error("JSON inválido", code="invalid_json")

    form = PagoForm(data)
    if not form.is_valid():
        return validation_error(form)
    pago = form.save()
    return JsonResponse(_pago_to_item(pago), status=201)
