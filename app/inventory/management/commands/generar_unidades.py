"""
Management command para generar unidades disponibles en un prototipo.

Uso:
    python manage.py generar_unidades <prototipo_id> <cantidad>
    python manage.py generar_unidades <prototipo_id> <cantidad> --prefijo A-
"""

from django.core.management.base import BaseCommand, CommandError

from inventory.models import Prototipo
from inventory.store import generar_unidades


class Command(BaseCommand):
    help = "Genera unidades disponibles numeradas <prefijo><n> al precio del prototipo."

    def add_arguments(self, parser):
        parser.add_argument("prototipo_id", type=int)
        parser.add_argument("cantidad", type=int)
        parser.add_argument("--prefijo", type=str, default="", help="Prefijo del número de unidad.")

    def handle(self, *args, **options):
        cantidad = options["cantidad"]
        if cantidad < 1:
            raise CommandError("La cantidad debe ser mayor a cero.")
        try:
            prototipo = Prototipo.objects.get(pk=options["prototipo_id"])
        except Prototipo.DoesNotExist:
            raise CommandError(f"No existe el prototipo {options['prototipo_id']}.")

        nuevas = generar_unidades(prototipo, cantidad, options["prefijo"].strip())
        numeros = ", ".join(u.numero for u in nuevas)
        self.stdout.write(f"  Prototipo: {prototipo}")
        self.stdout.write(f"  Unidades:  {numeros}")
        self.stdout.write(self.style.SUCCESS(f"Listo. {len(nuevas)} unidades generadas."))
