"""
Management command para conciliar las ventas en proceso contra sus pagos.

Uso:
    python manage.py reconciliar_ventas
    python manage.py reconciliar_ventas --desarrollo <id>
"""

from django.core.management.base import BaseCommand

from sales.models import Venta
from sales.reconciliation import reconcile_ventas


class Command(BaseCommand):
    help = (
        "Completa las ventas en proceso que ya tienen el 100% de pagos "
        "registrados y marca su unidad como vendida. Repara unidades de "
        "ventas completadas que no quedaron como vendidas."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--desarrollo",
            type=int,
            default=None,
            help="ID del desarrollo. Si se omite, concilia TODOS los desarrollos.",
        )

    def handle(self, *args, **options):
        ventas_qs = Venta.objects.all()
        scope = "TODOS los desarrollos"
        if options["desarrollo"]:
            ventas_qs = ventas_qs.filter(unidad__prototipo__desarrollo_id=options["desarrollo"])
            scope = f"desarrollo {options['desarrollo']}"

        resultado = reconcile_ventas(ventas_qs)

        self.stdout.write(f"  Alcance:             {scope}")
        self.stdout.write(f"  Ventas evaluadas:    {resultado.evaluadas}")
        self.stdout.write(f"  Ventas completadas:  {len(resultado.completadas)}")
        self.stdout.write(f"  Unidades reparadas:  {len(resultado.unidades_reparadas)}")
        for error in resultado.errores:
            self.stdout.write(self.style.ERROR(f"  Error ({error['venta_id']}): {error['error']}"))

        if resultado.sin_cambios:
            self.stdout.write(self.style.WARNING("Sin cambios."))
        else:
            self.stdout.write(self.style.SUCCESS("Listo."))
