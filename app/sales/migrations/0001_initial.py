from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("inventory", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Comprador",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("nombre", models.CharField(max_length=200, verbose_name="Nombre completo")),
                ("documento", models.CharField(blank=True, db_index=True, max_length=50, verbose_name="Documento")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="Email")),
                ("telefono", models.CharField(blank=True, max_length=30, verbose_name="Teléfono")),
            ],
            options={
                "db_table": "compradores",
                "ordering": ["nombre"],
            },
        ),
        migrations.CreateModel(
            name="Venta",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("precio_total", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="Precio Total")),
                ("es_fraccional", models.BooleanField(default=False, verbose_name="Venta fraccional")),
                (
                    "estado",
                    models.CharField(
                        choices=[("en_proceso", "En proceso"), ("completada", "Completada"), ("cancelada", "Cancelada")],
                        default="en_proceso",
                        max_length=20,
                    ),
                ),
                ("fecha_creacion", models.DateTimeField(auto_now_add=True)),
                ("fecha_actualizacion", models.DateTimeField(auto_now=True)),
                (
                    "unidad",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ventas",
                        to="inventory.unidad",
                    ),
                ),
            ],
            options={
                "db_table": "ventas",
                "ordering": ["-fecha_creacion"],
            },
        ),
        migrations.CreateModel(
            name="CompradorVenta",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("porcentaje", models.DecimalField(decimal_places=2, default=100, max_digits=5, verbose_name="% de propiedad")),
                (
                    "comprador",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="participaciones",
                        to="sales.comprador",
                    ),
                ),
                (
                    "venta",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="participaciones",
                        to="sales.venta",
                    ),
                ),
            ],
            options={
                "db_table": "compradores_venta",
                "constraints": [
                    models.UniqueConstraint(fields=("venta", "comprador"), name="unique_comprador_por_venta"),
                ],
            },
        ),
        migrations.AddField(
            model_name="venta",
            name="compradores",
            field=models.ManyToManyField(
                blank=True,
                related_name="ventas",
                through="sales.CompradorVenta",
                to="sales.comprador",
            ),
        ),
        migrations.AddConstraint(
            model_name="venta",
            constraint=models.UniqueConstraint(
                condition=models.Q(("estado__in", ["en_proceso", "completada"])),
                fields=("unidad",),
                name="una_venta_activa_por_unidad",
            ),
        ),
        migrations.CreateModel(
            name="VentaLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("CREATED", "Creación"),
                            ("COMPLETED", "Completada"),
                            ("UNIT_SOLD", "Unidad vendida"),
                            ("REPAIRED", "Reparación"),
                            ("NOTE", "Nota"),
                        ],
                        max_length=20,
                    ),
                ),
                ("message", models.CharField(blank=True, max_length=255)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "venta",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="logs",
                        to="sales.venta",
                    ),
                ),
            ],
            options={
                "db_table": "ventas_log",
                "ordering": ["-created_at"],
            },
        ),
    ]
