from django.db import models

from core.normalization import parse_tags


class Desarrollo(models.Model):
    """
    Desarrollo inmobiliario (edificio / complejo).
    """
    nombre = models.CharField("Nombre Desarrollo", max_length=150)
    ubicacion = models.CharField("Ubicación", max_length=200, blank=True)
    # Valor denormalizado: solo se usa como respaldo para mostrar el total
    # cuando el conteo real de unidades no está disponible.
    total_unidades = models.PositiveIntegerField("Total de unidades (referencia)", default=0)
    amenidades = models.JSONField("Amenidades", default=list, blank=True)

    class Meta:
        db_table = "desarrollos"
        ordering = ["nombre"]

    def __str__(self):
        return self.nombre

    @property
    def amenidades_list(self):
        return parse_tags(self.amenidades)


class Prototipo(models.Model):
    """
    Prototipos (tipo de unidad / planta) dentro de un desarrollo.
    """
    desarrollo = models.ForeignKey(Desarrollo, on_delete=models.CASCADE, related_name="prototipos")
    nombre = models.CharField("Nombre Prototipo", max_length=150)
    tipo = models.CharField("Tipo", max_length=50, blank=True)
    precio = models.DecimalField("Precio", max_digits=14, decimal_places=2, default=0)
    total_unidades = models.PositiveIntegerField("Total de unidades (referencia)", default=0)

    # Especificaciones
    habitaciones = models.PositiveIntegerField("Habitaciones", blank=True, null=True)
    banos = models.PositiveIntegerField("Baños", blank=True, null=True)
    superficie = models.FloatField("Superficie (m2)", blank=True, null=True)

    class Meta:
        db_table = "prototipos"
        ordering = ["nombre"]

    def __str__(self):
        return f"{self.nombre} - {self.desarrollo.nombre}"


class Unidad(models.Model):
    """
    La unidad física vendible de un prototipo.
    """
    prototipo = models.ForeignKey(Prototipo, on_delete=models.PROTECT, related_name="unidades")
    numero = models.CharField("Número", max_length=50)
    nivel = models.CharField("Nivel", max_length=50, blank=True)

    class Estado(models.TextChoices):
        DISPONIBLE = "disponible", "Disponible"
        CON_ANTICIPO = "con_anticipo", "Con anticipo"
        VENDIDO = "vendido", "Vendido"

    estado = models.CharField(
        max_length=20,
        choices=Estado.choices,
        default=Estado.DISPONIBLE,
        blank=True,
        null=True,
    )
    precio_venta = models.DecimalField("Precio de venta", max_digits=14, decimal_places=2, blank=True, null=True)

    class Meta:
        db_table = "unidades"
        ordering = ["numero"]
        constraints = [
            models.UniqueConstraint(
                fields=["prototipo", "numero"],
                name="unique_numero_por_prototipo",
            ),
        ]

    def __str__(self):
        return f"Unidad {self.numero} ({self.prototipo.nombre})"

    def as_dict(self):
        return {
            "id": self.pk,
            "prototipo_id": self.prototipo_id,
            "numero": self.numero,
            "nivel": self.nivel,
            "estado": self.estado,
            "precio_venta": str(self.precio_venta) if self.precio_venta is not None else None,
        }
