"""
Conteo de unidades por estado y etiqueta de estado comercial de un desarrollo.

``count_by_status`` es una función pura sobre unidades ya consultadas; las
funciones ``*_summary`` hacen la consulta del alcance (prototipo o
desarrollo) y degradan a un conteo aproximado si la base de datos falla.
"""
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.db import DatabaseError, transaction
from django.db.models import Sum

from .models import Desarrollo, Prototipo, Unidad

logger = logging.getLogger(__name__)

ETIQUETA_EN_VENTA = "En venta"
ETIQUETA_PRE_VENTA = "Pre-venta"
ETIQUETA_VENDIDO = "Vendido"


@dataclass(frozen=True)
class ConteoUnidades:
    disponibles: int = 0
    vendidas: int = 0
    con_anticipo: int = 0
    total: int = 0
    # True cuando ``total`` viene del campo denormalizado y no de las filas.
    estimado: bool = False

    @property
    def porcentaje_vendido(self) -> int:
        if self.total <= 0:
            return 0
        ratio = Decimal(self.vendidas + self.con_anticipo) / Decimal(self.total) * 100
        return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @property
    def display(self) -> str:
        return f"{self.disponibles}/{self.total}"

    def as_dict(self):
        return {
            "disponibles": self.disponibles,
            "vendidas": self.vendidas,
            "con_anticipo": self.con_anticipo,
            "total": self.total,
            "estimado": self.estimado,
            "porcentaje_vendido": self.porcentaje_vendido,
        }


@dataclass(frozen=True)
class ResumenDesarrollo:
    conteo: ConteoUnidades
    etiqueta: str
    prototipos: int

    def as_dict(self):
        return {
            **self.conteo.as_dict(),
            "etiqueta": self.etiqueta,
            "prototipos": self.prototipos,
        }


def _estado_of(item):
    if item is None or isinstance(item, str):
        return item
    if isinstance(item, Mapping):
        return item.get("estado")
    return getattr(item, "estado", None)


def count_by_status(unidades, fallback_total=0) -> ConteoUnidades:
    """
    Particiona las unidades por ``estado``.

    ``unidades`` puede contener instancias de Unidad, dicts con ``estado`` o
    directamente los valores de estado. Un estado desconocido o nulo solo
    suma al total. Si no hay unidades y ``fallback_total`` es positivo, el
    total se toma de ahí y el conteo queda marcado como estimado.
    """
    disponibles = vendidas = con_anticipo = total = 0
    for item in unidades:
        total += 1
        estado = _estado_of(item)
        if estado == Unidad.Estado.DISPONIBLE:
            disponibles += 1
        elif estado == Unidad.Estado.VENDIDO:
            vendidas += 1
        elif estado == Unidad.Estado.CON_ANTICIPO:
            con_anticipo += 1

    if total == 0 and fallback_total and fallback_total > 0:
        return ConteoUnidades(total=fallback_total, estimado=True)

    return ConteoUnidades(
        disponibles=disponibles,
        vendidas=vendidas,
        con_anticipo=con_anticipo,
        total=total,
    )


def desarrollo_label(has_vendido, con_anticipo, disponibles, total) -> str:
    """Etiqueta comercial del desarrollo; la primera regla que aplica gana."""
    if has_vendido:
        return ETIQUETA_EN_VENTA
    if con_anticipo > 0:
        return ETIQUETA_PRE_VENTA
    if disponibles == 0 and total > 0:
        return ETIQUETA_VENDIDO
    return ETIQUETA_PRE_VENTA


def label_for(conteo: ConteoUnidades) -> str:
    # Un total estimado no representa filas reales: no puede declarar "Vendido".
    total = 0 if conteo.estimado else conteo.total
    return desarrollo_label(conteo.vendidas > 0, conteo.con_anticipo, conteo.disponibles, total)


def prototipo_summary(prototipo: Prototipo) -> ConteoUnidades:
    try:
        estados = list(
            Unidad.objects.filter(prototipo_id=prototipo.pk).values_list("estado", flat=True)
        )
    except DatabaseError:
        logger.exception("No se pudieron contar las unidades del prototipo %s", prototipo.pk)
        estados = []
    return count_by_status(estados, fallback_total=prototipo.total_unidades)


def desarrollo_summary(desarrollo: Desarrollo) -> ResumenDesarrollo:
    prototipo_ids = []
    estados = []
    try:
        prototipo_ids = list(desarrollo.prototipos.values_list("id", flat=True))
        if prototipo_ids:
            estados = list(
                Unidad.objects.filter(prototipo_id__in=prototipo_ids).values_list("estado", flat=True)
            )
    except DatabaseError:
        logger.exception("No se pudieron contar las unidades del desarrollo %s", desarrollo.pk)
        estados = []

    conteo = count_by_status(estados, fallback_total=desarrollo.total_unidades)
    return ResumenDesarrollo(conteo=conteo, etiqueta=label_for(conteo), prototipos=len(prototipo_ids))


def sync_total_unidades(prototipo_id):
    """Actualiza los totales denormalizados del prototipo y su desarrollo."""
    with transaction.atomic():
        total = Unidad.objects.filter(prototipo_id=prototipo_id).count()
        Prototipo.objects.filter(pk=prototipo_id).update(total_unidades=total)
        desarrollo_id = (
            Prototipo.objects.filter(pk=prototipo_id).values_list("desarrollo_id", flat=True).first()
        )
        if desarrollo_id is None:
            return total
        desarrollo_total = (
            Prototipo.objects.filter(desarrollo_id=desarrollo_id).aggregate(t=Sum("total_unidades"))["t"]
            or 0
        )
        Desarrollo.objects.filter(pk=desarrollo_id).update(total_unidades=desarrollo_total)
    return total
