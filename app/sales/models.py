import uuid

from django.db import models


class Comprador(models.Model):
    nombre = models.CharField("Nombre completo", max_length=200)
    documento = models.CharField("Documento", max_length=50, blank=True, db_index=True)
    email = models.EmailField("Email", blank=True)
    telefono = models.CharField("Teléfono", max_length=30, blank=True)

    class Meta:
        db_table = "compradores"
        ordering = ["nombre"]

    def __str__(self):
        return self.nombre


class Venta(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    unidad = models.ForeignKey("inventory.Unidad", on_delete=models.PROTECT, related_name="ventas")
    precio_total = models.DecimalField("Precio Total", max_digits=14, decimal_places=2)
    es_fraccional = models.BooleanField("Venta fraccional", default=False)

    class Estado(models.TextChoices):
        EN_PROCESO = "en_proceso", "En proceso"
        COMPLETADA = "completada", "Completada"
        CANCELADA = "cancelada", "Cancelada"

    estado = models.CharField(max_length=20, choices=Estado.choices, default=Estado.EN_PROCESO)
    fecha_creacion = models.DateTimeField(auto_now_add=True)
    fecha_actualizacion = models.DateTimeField(auto_now=True)

    compradores = models.ManyToManyField(Comprador, through="CompradorVenta", related_name="ventas", blank=True)

    class Meta:
        db_table = "ventas"
        ordering = ["-fecha_creacion"]
        constraints = [
            models.UniqueConstraint(
                fields=["unidad"],
                condition=models.Q(estado__in=["en_proceso", "completada"]),
                name="una_venta_activa_por_unidad",
            ),
        ]

    def __str__(self):
        return f"Venta {self.id}"


class CompradorVenta(models.Model):
    """
    Participación de un comprador en una venta. Los pagos se registran
    contra esta relación, nunca directamente contra la venta.
    """
    venta = models.ForeignKey(Venta, on_delete=models.CASCADE, related_name="participaciones")
    comprador = models.ForeignKey(Comprador, on_delete=models.PROTECT, related_name="participaciones")
    porcentaje = models.DecimalField("% de propiedad", max_digits=5, decimal_places=2, default=100)

    class Meta:
        db_table = "compradores_venta"
        constraints = [
            models.UniqueConstraint(
                fields=["venta", "comprador"],
                name="unique_comprador_por_venta",
            ),
        ]

    def __str__(self):
        return f"{self.comprador} - {self.venta_id}"


class VentaLog(models.Model):
    class Action(models.TextChoices):
        CREATED = "CREATED", "Creación"
        COMPLETED = "COMPLETED", "Completada"
        UNIT_SOLD = "UNIT_SOLD", "Unidad vendida"
        REPAIRED = "REPAIRED", "Reparación"
        NOTE = "NOTE", "Nota"

    venta = models.ForeignKey(Venta, on_delete=models.CASCADE, related_name="logs")
    action = models.CharField(max_length=20, choices=Action.choices)
    message = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "ventas_log"
        ordering = ["-created_at"]
