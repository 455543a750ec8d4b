from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Desarrollo",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("nombre", models.CharField(max_length=150, verbose_name="Nombre Desarrollo")),
                ("ubicacion", models.CharField(blank=True, max_length=200, verbose_name="Ubicación")),
                ("total_unidades", models.PositiveIntegerField(default=0, verbose_name="Total de unidades (referencia)")),
                ("amenidades", models.JSONField(blank=True, default=list, verbose_name="Amenidades")),
            ],
            options={
                "db_table": "desarrollos",
                "ordering": ["nombre"],
            },
        ),
        migrations.CreateModel(
            name="Prototipo",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("nombre", models.CharField(max_length=150, verbose_name="Nombre Prototipo")),
                ("tipo", models.CharField(blank=True, max_length=50, verbose_name="Tipo")),
                ("precio", models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="Precio")),
                ("total_unidades", models.PositiveIntegerField(default=0, verbose_name="Total de unidades (referencia)")),
                ("habitaciones", models.PositiveIntegerField(blank=True, null=True, verbose_name="Habitaciones")),
                ("banos", models.PositiveIntegerField(blank=True, null=True, verbose_name="Baños")),
                ("superficie", models.FloatField(blank=True, null=True, verbose_name="Superficie (m2)")),
                (
                    "desarrollo",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="prototipos",
                        to="inventory.desarrollo",
                    ),
                ),
            ],
            options={
                "db_table": "prototipos",
                "ordering": ["nombre"],
            },
        ),
        migrations.CreateModel(
            name="Unidad",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("numero", models.CharField(max_length=50, verbose_name="Número")),
                ("nivel", models.CharField(blank=True, max_length=50, verbose_name="Nivel")),
                (
                    "estado",
                    models.CharField(
                        blank=True,
                        choices=[("disponible", "Disponible"), ("con_anticipo", "Con anticipo"), ("vendido", "Vendido")],
                        default="disponible",
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "precio_venta",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True, verbose_name="Precio de venta"),
                ),
                (
                    "prototipo",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="unidades",
                        to="inventory.prototipo",
                    ),
                ),
            ],
            options={
                "db_table": "unidades",
                "ordering": ["numero"],
                "constraints": [
                    models.UniqueConstraint(fields=("prototipo", "numero"), name="unique_numero_por_prototipo"),
                ],
            },
        ),
    ]
