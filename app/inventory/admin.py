from django.contrib import admin

from .models import Desarrollo, Prototipo, Unidad


class UnidadInline(admin.TabularInline):
    model = Unidad
    extra = 0
    fields = ("numero", "nivel", "estado", "precio_venta")


@admin.register(Desarrollo)
class DesarrolloAdmin(admin.ModelAdmin):
    list_display = ("nombre", "ubicacion", "total_unidades")
    search_fields = ("nombre", "ubicacion")


@admin.register(Prototipo)
class PrototipoAdmin(admin.ModelAdmin):
    list_display = ("nombre", "desarrollo", "tipo", "precio", "total_unidades")
    list_filter = ("desarrollo",)
    search_fields = ("nombre", "desarrollo__nombre")
    inlines = [UnidadInline]


@admin.register(Unidad)
class UnidadAdmin(admin.ModelAdmin):
    list_display = ("numero", "prototipo", "nivel", "estado", "precio_venta")
    list_filter = ("estado", "prototipo__desarrollo")
    search_fields = ("numero", "prototipo__nombre")
