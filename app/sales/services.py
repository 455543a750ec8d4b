import logging
from decimal import Decimal

from django.db import transaction

from inventory.models import Unidad

from .models import CompradorVenta, Venta, VentaLog

logger = logging.getLogger(__name__)

ESTADOS_ACTIVOS = (Venta.Estado.EN_PROCESO, Venta.Estado.COMPLETADA)


class VentaActivaError(Exception):
    """La unidad ya tiene una venta en proceso o completada."""


def venta_activa(unidad_id):
    return Venta.objects.filter(unidad_id=unidad_id, estado__in=ESTADOS_ACTIVOS).first()


@transaction.atomic
def abrir_venta(unidad, precio_total=None, compradores=(), es_fraccional=None):
    """Crea la venta en proceso de una unidad y la marca con anticipo.

    La venta y el cambio de estado de la unidad se escriben en la misma
    transacción. ``compradores`` acepta instancias de Comprador o pares
    ``(comprador, porcentaje)``.
    """
    unidad = Unidad.objects.select_for_update().get(pk=unidad.pk)
    if venta_activa(unidad.pk) is not None:
        raise VentaActivaError(f"La unidad {unidad.numero} ya tiene una venta activa.")
    if unidad.estado == Unidad.Estado.VENDIDO:
        raise VentaActivaError(f"La unidad {unidad.numero} ya está vendida.")

    if precio_total is None:
        precio_total = unidad.precio_venta
        if precio_total is None:
            precio_total = unidad.prototipo.precio

    participaciones = []
    for item in compradores:
        if isinstance(item, (tuple, list)):
            participaciones.append((item[0], item[1]))
        else:
            participaciones.append((item, None))
    if es_fraccional is None:
        es_fraccional = len(participaciones) > 1

    venta = Venta.objects.create(
        unidad=unidad,
        precio_total=precio_total,
        es_fraccional=es_fraccional,
    )
    for comprador, porcentaje in participaciones:
        if porcentaje is None:
            porcentaje = Decimal("100") / len(participaciones)
        CompradorVenta.objects.create(
            venta=venta,
            comprador=comprador,
            porcentaje=Decimal(str(porcentaje)).quantize(Decimal("0.01")),
        )

    if unidad.estado != Unidad.Estado.CON_ANTICIPO:
        unidad.estado = Unidad.Estado.CON_ANTICIPO
        unidad.save(update_fields=["estado"])

    VentaLog.objects.create(
        venta=venta,
        action=VentaLog.Action.CREATED,
        message=f"Venta abierta para la unidad {unidad.numero}.",
        metadata={"unidad_id": unidad.pk, "compradores": len(participaciones)},
    )
    logger.info("Venta %s abierta para la unidad %s", venta.pk, unidad.pk)
    return venta
