from django import forms

from core.normalization import parse_price
from sales.models import CompradorVenta, Venta

from .models import Pago


class PagoForm(forms.ModelForm):
    monto = forms.CharField()

    class Meta:
        model = Pago
        fields = ["comprador_venta", "monto", "estado", "fecha_pago", "notas"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["estado"].required = False
        self.fields["comprador_venta"].queryset = CompradorVenta.objects.select_related("venta")

    def clean_monto(self):
        try:
            monto = parse_price(self.cleaned_data.get("monto"))
        except ValueError:
            raise forms.ValidationError("Monto inválido.")
        if monto is None or monto <= 0:
            raise forms.ValidationError("El monto debe ser mayor a cero.")
        return monto

    def clean_estado(self):
        return self.cleaned_data.get("estado") or Pago.Estado.PENDIENTE

    def clean_comprador_venta(self):
        comprador_venta = self.cleaned_data.get("comprador_venta")
        if comprador_venta is not None and comprador_venta.venta.estado == Venta.Estado.CANCELADA:
            raise forms.ValidationError("La venta está cancelada.")
        return comprador_venta
