from django import forms

from core.normalization import normalize_document_number, normalize_person_name, normalize_phone, parse_price
from inventory.models import Unidad

from .models import Comprador, Venta


class CompradorForm(forms.ModelForm):
    porcentaje = forms.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False)

    class Meta:
        model = Comprador
        fields = ["nombre", "documento", "email", "telefono"]

    def clean_documento(self):
        return normalize_document_number(self.cleaned_data.get("documento") or "")

    def clean_nombre(self):
        value = normalize_person_name(self.cleaned_data.get("nombre") or "")
        if not value:
            raise forms.ValidationError("El nombre completo es obligatorio y solo puede contener letras.")
        return value

    def clean_telefono(self):
        return normalize_phone(self.cleaned_data.get("telefono") or "")

    def save(self, commit=True):
        # Un documento ya registrado identifica al mismo comprador.
        documento = self.cleaned_data.get("documento")
        if documento:
            existente = Comprador.objects.filter(documento=documento).first()
            if existente is not None:
                return existente
        return super().save(commit=commit)


class AbrirVentaForm(forms.Form):
    unidad = forms.ModelChoiceField(queryset=Unidad.objects.select_related("prototipo"))
    precio_total = forms.CharField(required=False)
    es_fraccional = forms.NullBooleanField(required=False)

    def clean_precio_total(self):
        try:
            precio = parse_price(self.cleaned_data.get("precio_total"))
        except ValueError:
            raise forms.ValidationError("Precio inválido.")
        if precio is not None and precio <= 0:
            raise forms.ValidationError("El precio debe ser mayor a cero.")
        return precio


class FiltroVentasForm(forms.Form):
    estado = forms.ChoiceField(choices=Venta.Estado.choices, required=False)
