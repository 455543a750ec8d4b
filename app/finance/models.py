from django.db import models


# ---------------------------------------------------------------------------
# Pagos de compradores
# ---------------------------------------------------------------------------

class Pago(models.Model):
    comprador_venta = models.ForeignKey(
        "sales.CompradorVenta", on_delete=models.PROTECT, related_name="pagos"
    )
    monto = models.DecimalField("Monto", max_digits=14, decimal_places=2)

    class Estado(models.TextChoices):
        REGISTRADO = "registrado", "Registrado"
        PENDIENTE = "pendiente", "Pendiente"
        CANCELADO = "cancelado", "Cancelado"

    # Solo los pagos registrados cuentan para el avance de la venta.
    estado = models.CharField(max_length=20, choices=Estado.choices, default=Estado.PENDIENTE)
    fecha_pago = models.DateField("Fecha de pago", blank=True, null=True)
    notas = models.TextField("Observaciones", blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "pagos"
        ordering = ["-created_at"]

    def __str__(self):
        return f"Pago #{self.pk} – ${self.monto:,.0f}"

    @property
    def venta_id(self):
        return self.comprador_venta.venta_id
