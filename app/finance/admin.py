from django.contrib import admin

from sales.models import CompradorVenta

from .models import Pago


class PagoInline(admin.TabularInline):
    model = Pago
    extra = 0
    fields = ("monto", "estado", "fecha_pago", "notas")


@admin.register(CompradorVenta)
class CompradorVentaAdmin(admin.ModelAdmin):
    list_display = ("comprador", "venta", "porcentaje")
    search_fields = ("comprador__nombre", "venta__id")
    inlines = [PagoInline]


@admin.register(Pago)
class PagoAdmin(admin.ModelAdmin):
    list_display = ("id", "comprador_venta", "monto", "estado", "fecha_pago", "created_at")
    list_filter = ("estado",)
    search_fields = ("comprador_venta__comprador__nombre", "comprador_venta__venta__id")
