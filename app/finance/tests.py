import json
from decimal import Decimal

from django.test import override_settings
from django.urls import reverse

from finance.ledger import compute_progress, compute_progress_batch, porcentaje
from finance.models import Pago
from inventory.models import Unidad
from sales.models import Venta
from tests.base import BaseAppTestCase
from tests.factories import Factory


class LedgerTests(BaseAppTestCase):
    def setUp(self):
        self.venta = Factory.venta(
            precio_total=Decimal("1000000.00"),
            compradores=[Factory.comprador(), Factory.comprador()],
        )
        self.links = list(self.venta.participaciones.order_by("id"))

    def test_sums_registered_payments_of_all_buyers(self):
        Factory.pago(comprador_venta=self.links[0], monto="300000")
        Factory.pago(comprador_venta=self.links[1], monto="700000")

        progreso = compute_progress(self.venta)

        self.assertEqual(progreso.monto_pagado, Decimal("1000000"))
        self.assertEqual(progreso.progreso, 100)

    def test_pending_and_cancelled_payments_are_excluded(self):
        venta = Factory.venta(precio_total=Decimal("500000.00"))
        link = venta.participaciones.get()
        Factory.pago(comprador_venta=link, monto="200000")
        Factory.pago(comprador_venta=link, monto="300000", estado=Pago.Estado.PENDIENTE)
        Factory.pago(comprador_venta=link, monto="100000", estado=Pago.Estado.CANCELADO)

        progreso = compute_progress(venta)

        self.assertEqual(progreso.monto_pagado, Decimal("200000"))
        self.assertEqual(progreso.progreso, 40)

    def test_sale_without_buyers_has_no_progress(self):
        venta = Factory.venta(compradores=[])
        progreso = compute_progress(venta)
        self.assertEqual((progreso.monto_pagado, progreso.progreso), (Decimal("0"), 0))

    def test_overpayment_is_not_clamped(self):
        Factory.pago(comprador_venta=self.links[0], monto="1200000")
        self.assertEqual(compute_progress(self.venta).progreso, 120)

    def test_zero_price_yields_zero(self):
        self.assertEqual(porcentaje(Decimal("100"), Decimal("0")), 0)
        self.assertEqual(porcentaje(Decimal("100"), None), 0)

    def test_rounding(self):
        self.assertEqual(porcentaje(Decimal("333335"), Decimal("1000000")), 33)
        self.assertEqual(porcentaje(Decimal("335000"), Decimal("1000000")), 34)

    def test_progress_is_monotonic(self):
        previous = compute_progress(self.venta).progreso
        for monto in ("100000", "50000", "250000", "1"):
            Factory.pago(comprador_venta=self.links[0], monto=monto)
            current = compute_progress(self.venta).progreso
            self.assertGreaterEqual(current, previous)
            previous = current

    def test_order_of_payments_does_not_matter(self):
        otra = Factory.venta(precio_total=Decimal("1000000.00"))
        link = otra.participaciones.get()
        for monto in ("700000", "300000"):
            Factory.pago(comprador_venta=link, monto=monto)
        for monto in ("300000", "700000"):
            Factory.pago(comprador_venta=self.links[0], monto=monto)
        self.assertEqual(compute_progress(otra).progreso, compute_progress(self.venta).progreso)

    def test_batch_uses_two_queries(self):
        ventas = [self.venta] + [Factory.venta() for _ in range(4)]
        for venta in ventas:
            Factory.pago(comprador_venta=venta.participaciones.first(), monto="10000")

        with self.assertNumQueries(2):
            progresos = compute_progress_batch(ventas)

        self.assertEqual(set(progresos), {venta.pk for venta in ventas})
        self.assertEqual(progresos[ventas[1].pk].progreso, 1)

    def test_empty_batch_does_not_query(self):
        with self.assertNumQueries(0):
            self.assertEqual(compute_progress_batch([]), {})


class PagoReconciliationSignalTests(BaseAppTestCase):
    def setUp(self):
        self.venta = Factory.venta(precio_total=Decimal("500000.00"))
        self.link = self.venta.participaciones.get()

    def test_full_payment_completes_sale_on_commit(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            Factory.pago(comprador_venta=self.link, monto="500000")

        self.assertEqual(len(callbacks), 1)
        self.venta.refresh_from_db()
        self.venta.unidad.refresh_from_db()
        self.assertEqual(self.venta.estado, Venta.Estado.COMPLETADA)
        self.assertEqual(self.venta.unidad.estado, Unidad.Estado.VENDIDO)

    def test_pending_payment_does_not_complete(self):
        with self.captureOnCommitCallbacks(execute=True):
            Factory.pago(comprador_venta=self.link, monto="500000", estado=Pago.Estado.PENDIENTE)
        self.venta.refresh_from_db()
        self.assertEqual(self.venta.estado, Venta.Estado.EN_PROCESO)

    @override_settings(SALES_AUTO_RECONCILE=False)
    def test_auto_reconcile_can_be_disabled(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            Factory.pago(comprador_venta=self.link, monto="500000")
        self.assertEqual(callbacks, [])
        self.venta.refresh_from_db()
        self.assertEqual(self.venta.estado, Venta.Estado.EN_PROCESO)


class FinanceApiTests(BaseAppTestCase):
    def setUp(self):
        self.login_staff()
        self.venta = Factory.venta(precio_total=Decimal("1000000.00"))
        self.link = self.venta.participaciones.get()

    def test_register_payment(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(
                reverse("finance_api:pago_crear"),
                data=json.dumps(
                    {"comprador_venta": self.link.pk, "monto": "$1,000,000", "estado": "registrado"}
                ),
                content_type="application/json",
            )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["monto"], "1000000")
        self.venta.refresh_from_db()
        self.assertEqual(self.venta.estado, Venta.Estado.COMPLETADA)

    def test_payment_defaults_to_pending(self):
        response = self.client.post(
            reverse("finance_api:pago_crear"),
            data=json.dumps({"comprador_venta": self.link.pk, "monto": "1000"}),
            content_type="application/json",
        )
        self.assertEqual(response.json()["estado"], Pago.Estado.PENDIENTE)

    def test_invalid_amount(self):
        response = self.client.post(
            reverse("finance_api:pago_crear"),
            data=json.dumps({"comprador_venta": self.link.pk, "monto": "-5"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("monto", response.json()["detalles"])

    def test_progress_endpoint(self):
        Factory.pago(comprador_venta=self.link, monto="250000")
        response = self.client.get(reverse("finance_api:venta_progreso", kwargs={"venta_id": self.venta.pk}))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["progreso"], 25)
        self.assertEqual(response.json()["monto_pagado"], "250000.00")
