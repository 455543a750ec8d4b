"""
Acceso a las unidades de un prototipo.

Las funciones síncronas hacen cada escritura en su propia transacción;
``UnidadStore`` las expone como corutinas para el serializador de mutaciones.

El estado de una unidad acompaña al de su venta: ``con_anticipo`` abre la
venta, ``vendido`` solo se alcanza con la venta pagada y una unidad con venta
activa no vuelve a ``disponible``.
"""
import logging

from asgiref.sync import sync_to_async
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import ProtectedError
from django.forms.models import model_to_dict

from finance.ledger import compute_progress
from sales.models import Venta
from sales.reconciliation import complete_sale, should_complete
from sales.services import abrir_venta, venta_activa

from .forms import UnidadForm
from .models import Prototipo, Unidad
from .status import prototipo_summary, sync_total_unidades

logger = logging.getLogger(__name__)


class UnidadProtegidaError(Exception):
    """La unidad está referenciada por una venta y no puede eliminarse."""


def _form_error(form):
    return ValidationError({name: list(errors) for name, errors in form.errors.items()})


def _estado_error(message):
    return ValidationError({"estado": [message]})


def _check_transition(anterior, nuevo, venta):
    """Valida el cambio de estado contra la venta activa.

    Devuelve el progreso de pago cuando el cambio a ``vendido`` debe
    completar la venta; None en cualquier otro caso permitido.
    """
    if nuevo == anterior:
        return None
    if anterior == Unidad.Estado.VENDIDO:
        raise _estado_error("Una unidad vendida no puede cambiar de estado.")

    if nuevo == Unidad.Estado.VENDIDO:
        if venta is None:
            raise _estado_error("La unidad no tiene una venta activa.")
        if venta.estado == Venta.Estado.COMPLETADA:
            return None
        progreso = compute_progress(venta)
        if not should_complete(venta, progreso):
            raise _estado_error(
                f"La venta lleva {progreso.progreso}% pagado; la unidad se marca vendida al completar el pago."
            )
        return progreso

    if venta is not None:
        if nuevo == Unidad.Estado.CON_ANTICIPO and venta.estado == Venta.Estado.EN_PROCESO:
            return None
        raise _estado_error("La unidad tiene una venta activa.")
    return None


def list_unidades(prototipo_id):
    return list(Unidad.objects.filter(prototipo_id=prototipo_id).order_by("numero"))


def count_unidades(**filters):
    return Unidad.objects.filter(**filters).count()


def create_unidad(prototipo_id, data):
    prototipo = Prototipo.objects.get(pk=prototipo_id)
    form = UnidadForm(data, prototipo=prototipo)
    if not form.is_valid():
        raise _form_error(form)
    estado = form.cleaned_data["estado"]
    if estado == Unidad.Estado.VENDIDO:
        raise _estado_error("Una unidad nueva no puede registrarse como vendida.")

    with transaction.atomic():
        unidad = form.save(commit=False)
        unidad.estado = Unidad.Estado.DISPONIBLE
        unidad.save()
        if estado == Unidad.Estado.CON_ANTICIPO:
            abrir_venta(unidad)
            unidad.estado = Unidad.Estado.CON_ANTICIPO
        sync_total_unidades(prototipo.pk)
    logger.info("Unidad %s creada en el prototipo %s", unidad.pk, prototipo.pk)
    return unidad


def update_unidad(prototipo_id, unidad_id, patch):
    with transaction.atomic():
        unidad = (
            Unidad.objects.select_for_update()
            .select_related("prototipo")
            .get(pk=unidad_id, prototipo_id=prototipo_id)
        )
        anterior = unidad.estado
        data = model_to_dict(unidad, fields=["numero", "nivel", "estado", "precio_venta"])
        if data.get("precio_venta") is not None:
            data["precio_venta"] = str(data["precio_venta"])
        data.update(patch)

        form = UnidadForm(data, instance=unidad, prototipo=unidad.prototipo)
        if not form.is_valid():
            raise _form_error(form)
        nuevo = form.cleaned_data["estado"]
        venta = venta_activa(unidad.pk) if nuevo != anterior else None
        progreso = _check_transition(anterior, nuevo, venta)

        unidad = form.save(commit=False)
        if nuevo == Unidad.Estado.CON_ANTICIPO and anterior != nuevo and venta is None:
            # Al pasar a "con anticipo" la unidad entra en proceso de venta.
            unidad.estado = anterior
            unidad.save()
            abrir_venta(unidad)
            unidad.estado = nuevo
        elif progreso is not None:
            unidad.estado = anterior
            unidad.save()
            complete_sale(venta, progreso)
            unidad.estado = nuevo
        else:
            unidad.save()
    logger.info("Unidad %s actualizada", unidad.pk)
    return unidad


def delete_unidad(prototipo_id, unidad_id):
    with transaction.atomic():
        unidad = Unidad.objects.select_for_update().get(pk=unidad_id, prototipo_id=prototipo_id)
        if unidad.ventas.exists():
            raise UnidadProtegidaError(f"La unidad {unidad.numero} tiene ventas asociadas.")
        try:
            unidad.delete()
        except ProtectedError as exc:
            raise UnidadProtegidaError(f"La unidad {unidad.numero} tiene ventas asociadas.") from exc
        sync_total_unidades(prototipo_id)
    logger.info("Unidad %s eliminada del prototipo %s", unidad_id, prototipo_id)


def generar_unidades(prototipo, cantidad, prefijo=""):
    """Genera ``cantidad`` unidades disponibles numeradas ``<prefijo><n>``.

    La numeración continúa después de las unidades existentes y salta los
    números ya ocupados.
    """
    with transaction.atomic():
        existentes = set(
            Unidad.objects.select_for_update()
            .filter(prototipo=prototipo)
            .values_list("numero", flat=True)
        )
        nuevas = []
        n = len(existentes)
        while len(nuevas) < cantidad:
            n += 1
            numero = f"{prefijo}{n}"
            if numero in existentes:
                continue
            nuevas.append(
                Unidad(
                    prototipo=prototipo,
                    numero=numero,
                    estado=Unidad.Estado.DISPONIBLE,
                    precio_venta=prototipo.precio,
                )
            )
        Unidad.objects.bulk_create(nuevas)
        sync_total_unidades(prototipo.pk)
    logger.info("Generadas %s unidades en el prototipo %s", cantidad, prototipo.pk)
    return nuevas


class UnidadStore:
    """Operaciones asíncronas sobre las unidades de un prototipo."""

    def __init__(self, prototipo_id):
        self.prototipo_id = prototipo_id

    async def create(self, data):
        return await sync_to_async(create_unidad)(self.prototipo_id, data)

    async def update(self, unidad_id, patch):
        return await sync_to_async(update_unidad)(self.prototipo_id, unidad_id, patch)

    async def delete(self, unidad_id):
        await sync_to_async(delete_unidad)(self.prototipo_id, unidad_id)

    async def list(self):
        return await sync_to_async(list_unidades)(self.prototipo_id)

    async def count(self, **filters):
        return await sync_to_async(count_unidades)(prototipo_id=self.prototipo_id, **filters)

    async def summary(self):
        prototipo = await Prototipo.objects.aget(pk=self.prototipo_id)
        return await sync_to_async(prototipo_summary)(prototipo)

    async def generate(self, cantidad, prefijo=""):
        prototipo = await Prototipo.objects.aget(pk=self.prototipo_id)
        return await sync_to_async(generar_unidades)(prototipo, cantidad, prefijo)
