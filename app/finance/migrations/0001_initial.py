from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("sales", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Pago",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("monto", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="Monto")),
                (
                    "estado",
                    models.CharField(
                        choices=[("registrado", "Registrado"), ("pendiente", "Pendiente"), ("cancelado", "Cancelado")],
                        default="pendiente",
                        max_length=20,
                    ),
                ),
                ("fecha_pago", models.DateField(blank=True, null=True, verbose_name="Fecha de pago")),
                ("notas", models.TextField(blank=True, verbose_name="Observaciones")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "comprador_venta",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="pagos",
                        to="sales.compradorventa",
                    ),
                ),
            ],
            options={
                "db_table": "pagos",
                "ordering": ["-created_at"],
            },
        ),
    ]
