from decimal import Decimal
from itertools import count

from django.contrib.auth import get_user_model

from finance.models import Pago
from inventory.models import Desarrollo, Prototipo, Unidad
from sales.models import Comprador, CompradorVenta, Venta


class Factory:
    _seq = count(1)

    @classmethod
    def _n(cls):
        return next(cls._seq)

    @classmethod
    def user(cls, *, password="pass1234", **kwargs):
        n = cls._n()
        defaults = {
            "username": f"user{n}",
            "email": f"user{n}@example.com",
            "is_active": True,
        }
        defaults.update(kwargs)
        return get_user_model().objects.create_user(password=password, **defaults)

    @classmethod
    def desarrollo(cls, **kwargs):
        n = cls._n()
        defaults = {
            "nombre": f"Desarrollo {n}",
            "ubicacion": "Guadalajara",
        }
        defaults.update(kwargs)
        return Desarrollo.objects.create(**defaults)

    @classmethod
    def prototipo(cls, *, desarrollo=None, **kwargs):
        n = cls._n()
        defaults = {
            "desarrollo": desarrollo or cls.desarrollo(),
            "nombre": f"Prototipo {n}",
            "precio": Decimal("1000000.00"),
        }
        defaults.update(kwargs)
        return Prototipo.objects.create(**defaults)

    @classmethod
    def unidad(cls, *, prototipo=None, estado=Unidad.Estado.DISPONIBLE, **kwargs):
        n = cls._n()
        defaults = {
            "prototipo": prototipo or cls.prototipo(),
            "numero": f"U-{n}",
            "estado": estado,
        }
        defaults.update(kwargs)
        return Unidad.objects.create(**defaults)

    @classmethod
    def comprador(cls, **kwargs):
        n = cls._n()
        defaults = {
            "nombre": f"Comprador {n}",
            "documento": f"DOC{n}",
        }
        defaults.update(kwargs)
        return Comprador.objects.create(**defaults)

    @classmethod
    def venta(cls, *, unidad=None, compradores=None, estado=Venta.Estado.EN_PROCESO, **kwargs):
        """Venta con sus participaciones. ``compradores`` son instancias de Comprador."""
        defaults = {
            "unidad": unidad or cls.unidad(estado=Unidad.Estado.CON_ANTICIPO),
            "precio_total": Decimal("1000000.00"),
            "estado": estado,
        }
        defaults.update(kwargs)
        venta = Venta.objects.create(**defaults)
        if compradores is None:
            compradores = [cls.comprador()]
        for comprador in compradores:
            CompradorVenta.objects.create(
                venta=venta,
                comprador=comprador,
                porcentaje=Decimal("100") / len(compradores),
            )
        return venta

    @classmethod
    def pago(cls, *, comprador_venta, monto, estado=Pago.Estado.REGISTRADO, **kwargs):
        defaults = {
            "comprador_venta": comprador_venta,
            "monto": Decimal(str(monto)),
            "estado": estado,
        }
        defaults.update(kwargs)
        return Pago.objects.create(**defaults)
