from django.contrib import admin, messages

from .models import Comprador, CompradorVenta, Venta, VentaLog
from .reconciliation import reconcile_ventas


class CompradorVentaInline(admin.TabularInline):
    model = CompradorVenta
    extra = 0
    autocomplete_fields = ["comprador"]


class VentaLogInline(admin.TabularInline):
    model = VentaLog
    extra = 0
    can_delete = False
    readonly_fields = ("action", "message", "metadata", "created_at")


@admin.register(Venta)
class VentaAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "unidad",
        "estado",
        "precio_total",
        "es_fraccional",
        "fecha_creacion",
    )
    list_filter = ("estado", "unidad__prototipo__desarrollo")
    search_fields = ("id", "unidad__numero", "compradores__nombre")
    ordering = ("-fecha_creacion",)
    inlines = [CompradorVentaInline, VentaLogInline]
    actions = ["conciliar_ventas"]

    @admin.action(description="Conciliar ventas seleccionadas")
    def conciliar_ventas(self, request, queryset):
        resultado = reconcile_ventas(queryset)
        if resultado.errores:
            self.message_user(request, f"Conciliación con {len(resultado.errores)} errores.", messages.WARNING)
        self.message_user(
            request,
            f"{resultado.evaluadas} evaluadas, {len(resultado.completadas)} completadas, "
            f"{len(resultado.unidades_reparadas)} unidades reparadas.",
            messages.SUCCESS,
        )


@admin.register(Comprador)
class CompradorAdmin(admin.ModelAdmin):
    list_display = ("nombre", "documento", "email", "telefono")
    search_fields = ("nombre", "documento", "email")
