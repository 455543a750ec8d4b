from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Sum

from sales.models import CompradorVenta

from .models import Pago


@dataclass(frozen=True)
class Progreso:
    venta_id: object
    monto_pagado: Decimal
    progreso: int

    def as_dict(self):
        return {
            "venta_id": str(self.venta_id),
            "monto_pagado": str(self.monto_pagado),
            "progreso": self.progreso,
        }


def porcentaje(monto, precio_total) -> int:
    """round(monto / precio_total * 100), sin tope en 100. Precio <= 0 -> 0."""
    precio_total = Decimal(precio_total or 0)
    if precio_total <= 0:
        return 0
    ratio = Decimal(monto) / precio_total * Decimal("100")
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_progress_batch(ventas):
    """Avance de pago de varias ventas.

    Una consulta a compradores_venta para todas las ventas y una a pagos
    (solo ``registrado``, sumados por participación), sin importar cuántas
    ventas haya.
    """
    ventas = list(ventas)
    if not ventas:
        return {}

    venta_ids = [venta.pk for venta in ventas]
    links = CompradorVenta.objects.filter(venta_id__in=venta_ids).values_list("id", "venta_id")
    venta_by_link = dict(links)

    pagado = defaultdict(lambda: Decimal("0"))
    if venta_by_link:
        totals = (
            Pago.objects.filter(
                comprador_venta_id__in=list(venta_by_link),
                estado=Pago.Estado.REGISTRADO,
            )
            .values("comprador_venta_id")
            .annotate(total=Sum("monto"))
            .order_by()
        )
        for row in totals:
            pagado[venta_by_link[row["comprador_venta_id"]]] += row["total"] or Decimal("0")

    result = {}
    for venta in ventas:
        monto = pagado[venta.pk]
        result[venta.pk] = Progreso(
            venta_id=venta.pk,
            monto_pagado=monto,
            progreso=porcentaje(monto, venta.precio_total),
        )
    return result


def compute_progress(venta) -> Progreso:
    return compute_progress_batch([venta])[venta.pk]
