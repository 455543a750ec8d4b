import logging
from functools import partial

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from sales.reconciliation import reconcile_venta

from .models import Pago

logger = logging.getLogger(__name__)


def _reconcile_after_commit(venta_id):
    try:
        reconcile_venta(venta_id)
    except DatabaseError:
        logger.exception("Conciliación de la venta %s tras un pago falló", venta_id)


@receiver(post_save, sender=Pago)
@receiver(post_delete, sender=Pago)
def pago_changed(sender, instance, **kwargs):
    if not getattr(settings, "SALES_AUTO_RECONCILE", True):
        return
    venta_id = instance.comprador_venta.venta_id
    transaction.on_commit(partial(_reconcile_after_commit, venta_id))
