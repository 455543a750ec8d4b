from django import forms

from core.normalization import parse_price
from .models import Unidad


class UnidadForm(forms.ModelForm):
    precio_venta = forms.CharField(required=False)

    class Meta:
        model = Unidad
        fields = ["numero", "nivel", "estado", "precio_venta"]

    def __init__(self, *args, **kwargs):
        self.prototipo = kwargs.pop("prototipo", None)
        super().__init__(*args, **kwargs)
        self.fields["estado"].required = False
        if self.instance and self.instance.pk and self.instance.precio_venta is not None:
            self.initial["precio_venta"] = f"{self.instance.precio_venta}"

    def clean_numero(self):
        numero = (self.cleaned_data.get("numero") or "").strip()
        if not numero:
            raise forms.ValidationError("El número de unidad es obligatorio.")
        prototipo = self.prototipo or getattr(self.instance, "prototipo", None)
        if prototipo is not None:
            duplicated = Unidad.objects.filter(prototipo=prototipo, numero=numero)
            if self.instance.pk:
                duplicated = duplicated.exclude(pk=self.instance.pk)
            if duplicated.exists():
                raise forms.ValidationError("Ya existe una unidad con ese número en el prototipo.")
        return numero

    def clean_estado(self):
        return self.cleaned_data.get("estado") or Unidad.Estado.DISPONIBLE

    def clean_precio_venta(self):
        try:
            return parse_price(self.cleaned_data.get("precio_venta"))
        except ValueError:
            raise forms.ValidationError("Precio inválido.")

    def save(self, commit=True):
        unidad = super().save(commit=False)
        if self.prototipo is not None:
            unidad.prototipo = self.prototipo
        if commit:
            unidad.save()
        return unidad


class GenerarUnidadesForm(forms.Form):
    cantidad = forms.IntegerField(min_value=1, max_value=500)
    prefijo = forms.CharField(max_length=20, required=False)

    def clean_prefijo(self):
        return (self.cleaned_data.get("prefijo") or "").strip()
