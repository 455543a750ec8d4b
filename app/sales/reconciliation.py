"""
Conciliación de ventas contra los pagos registrados.

Una venta en proceso que alcanza el 100% de pagos registrados pasa a
``completada`` y su unidad a ``vendido``. La transición se escribe como un
compare-and-swap sobre el estado de la venta, de modo que dos pasadas
concurrentes no la aplican dos veces.
"""
import logging
from dataclasses import dataclass, field

from django.db import DatabaseError, transaction
from django.utils import timezone

from finance.ledger import compute_progress, compute_progress_batch
from inventory.models import Unidad

from .models import Venta, VentaLog

logger = logging.getLogger(__name__)


@dataclass
class ResultadoConciliacion:
    evaluadas: int = 0
    completadas: list = field(default_factory=list)
    unidades_reparadas: list = field(default_factory=list)
    errores: list = field(default_factory=list)

    @property
    def sin_cambios(self):
        return not self.completadas and not self.unidades_reparadas

    def as_dict(self):
        return {
            "evaluadas": self.evaluadas,
            "completadas": [str(pk) for pk in self.completadas],
            "unidades_reparadas": self.unidades_reparadas,
            "errores": self.errores,
        }


def should_complete(venta, progreso) -> bool:
    return progreso.progreso >= 100 and venta.estado == Venta.Estado.EN_PROCESO


def complete_sale(venta, progreso=None) -> bool:
    """Marca la venta como completada y su unidad como vendida.

    Devuelve False si la venta ya no estaba en proceso (otra pasada ganó).
    """
    now = timezone.now()
    with transaction.atomic():
        updated = Venta.objects.filter(pk=venta.pk, estado=Venta.Estado.EN_PROCESO).update(
            estado=Venta.Estado.COMPLETADA,
            fecha_actualizacion=now,
        )
        if not updated:
            return False

        metadata = {}
        if progreso is not None:
            metadata = {"progreso": progreso.progreso, "monto_pagado": str(progreso.monto_pagado)}
        VentaLog.objects.create(
            venta_id=venta.pk,
            action=VentaLog.Action.COMPLETED,
            message="Venta completada por pago total.",
            metadata=metadata,
        )
        if venta.unidad_id and (
            Unidad.objects.filter(pk=venta.unidad_id)
            .exclude(estado=Unidad.Estado.VENDIDO)
            .update(estado=Unidad.Estado.VENDIDO)
        ):
            VentaLog.objects.create(
                venta_id=venta.pk,
                action=VentaLog.Action.UNIT_SOLD,
                message="Unidad marcada como vendida.",
                metadata={"unidad_id": venta.unidad_id},
            )

    venta.estado = Venta.Estado.COMPLETADA
    venta.fecha_actualizacion = now
    logger.info("Venta %s completada; unidad %s vendida", venta.pk, venta.unidad_id)
    return True


def _repair_units(resultado, queryset):
    # Ventas completadas cuya unidad quedó sin marcar (escritura parcial previa).
    pendientes = (
        queryset.filter(estado=Venta.Estado.COMPLETADA)
        .exclude(unidad__estado=Unidad.Estado.VENDIDO)
        .values_list("pk", "unidad_id")
    )
    for venta_id, unidad_id in pendientes:
        try:
            with transaction.atomic():
                updated = Unidad.objects.filter(pk=unidad_id).exclude(
                    estado=Unidad.Estado.VENDIDO
                ).update(estado=Unidad.Estado.VENDIDO)
                if updated:
                    VentaLog.objects.create(
                        venta_id=venta_id,
                        action=VentaLog.Action.REPAIRED,
                        message="Unidad marcada como vendida en conciliación.",
                        metadata={"unidad_id": unidad_id},
                    )
        except DatabaseError as exc:
            logger.exception("No se pudo reparar la unidad %s de la venta %s", unidad_id, venta_id)
            resultado.errores.append({"venta_id": str(venta_id), "error": str(exc)})
            continue
        if updated:
            logger.warning("Unidad %s reparada a vendido (venta %s)", unidad_id, venta_id)
            resultado.unidades_reparadas.append(unidad_id)


def reconcile_ventas(queryset=None) -> ResultadoConciliacion:
    """Pasada de conciliación sobre las ventas en proceso.

    Ejecutarla dos veces seguidas sobre los mismos datos no produce
    escrituras en la segunda.
    """
    resultado = ResultadoConciliacion()
    if queryset is None:
        queryset = Venta.objects.all()

    try:
        ventas = list(queryset.filter(estado=Venta.Estado.EN_PROCESO))
        progresos = compute_progress_batch(ventas)
    except DatabaseError as exc:
        logger.exception("Conciliación abortada: no se pudieron leer ventas o pagos")
        resultado.errores.append({"venta_id": None, "error": str(exc)})
        return resultado

    resultado.evaluadas = len(ventas)
    for venta in ventas:
        progreso = progresos[venta.pk]
        if not should_complete(venta, progreso):
            continue
        try:
            if complete_sale(venta, progreso):
                resultado.completadas.append(venta.pk)
        except DatabaseError as exc:
            logger.exception("No se pudo completar la venta %s", venta.pk)
            resultado.errores.append({"venta_id": str(venta.pk), "error": str(exc)})

    _repair_units(resultado, queryset)

    if not resultado.sin_cambios:
        logger.info(
            "Conciliación: %s evaluadas, %s completadas, %s unidades reparadas",
            resultado.evaluadas,
            len(resultado.completadas),
            len(resultado.unidades_reparadas),
        )
    return resultado


def reconcile_venta(venta_id) -> bool:
    venta = Venta.objects.filter(pk=venta_id).first()
    if venta is None:
        return False
    progreso = compute_progress(venta)
    if not should_complete(venta, progreso):
        return False
    return complete_sale(venta, progreso)
