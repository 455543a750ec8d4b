import json
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.db import DatabaseError, connection
from django.test.utils import CaptureQueriesContext
from django.urls import reverse

from finance.ledger import compute_progress
from inventory.models import Unidad
from sales.models import Comprador, Venta, VentaLog
from sales.reconciliation import complete_sale, reconcile_venta, reconcile_ventas
from sales.services import VentaActivaError, abrir_venta
from tests.base import BaseAppTestCase
from tests.factories import Factory


def _writes(queries):
    return [q["sql"] for q in queries if q["sql"].lstrip().upper().startswith(("UPDATE", "INSERT", "DELETE"))]


class ReconciliationTests(BaseAppTestCase):
    def _venta_pagada(self, precio="1000000.00", pagos=("300000", "700000")):
        venta = Factory.venta(
            precio_total=Decimal(precio),
            compradores=[Factory.comprador(), Factory.comprador()],
        )
        links = list(venta.participaciones.order_by("id"))
        for link, monto in zip(links, pagos):
            Factory.pago(comprador_venta=link, monto=monto)
        return venta

    def test_fully_paid_sale_is_completed_and_unit_sold(self):
        venta = self._venta_pagada()

        resultado = reconcile_ventas()

        self.assertEqual(resultado.completadas, [venta.pk])
        venta.refresh_from_db()
        venta.unidad.refresh_from_db()
        self.assertEqual(venta.estado, Venta.Estado.COMPLETADA)
        self.assertEqual(venta.unidad.estado, Unidad.Estado.VENDIDO)
        self.assertEqual(
            set(venta.logs.values_list("action", flat=True)),
            {VentaLog.Action.COMPLETED, VentaLog.Action.UNIT_SOLD},
        )

    def test_partial_payment_does_not_transition(self):
        venta = Factory.venta(precio_total=Decimal("500000.00"))
        link = venta.participaciones.get()
        Factory.pago(comprador_venta=link, monto="200000")
        Factory.pago(comprador_venta=link, monto="300000", estado="pendiente")

        resultado = reconcile_ventas()

        self.assertEqual(compute_progress(venta).progreso, 40)
        self.assertTrue(resultado.sin_cambios)
        venta.refresh_from_db()
        self.assertEqual(venta.estado, Venta.Estado.EN_PROCESO)

    def test_second_pass_writes_nothing(self):
        self._venta_pagada()
        Factory.venta()
        reconcile_ventas()

        with CaptureQueriesContext(connection) as ctx:
            resultado = reconcile_ventas()

        self.assertTrue(resultado.sin_cambios)
        self.assertEqual(_writes(ctx.captured_queries), [])

    def test_stale_completion_is_rejected(self):
        venta = self._venta_pagada()
        stale = Venta.objects.get(pk=venta.pk)
        progreso = compute_progress(venta)

        self.assertTrue(complete_sale(venta, progreso))
        self.assertFalse(complete_sale(stale, progreso))
        self.assertEqual(venta.logs.filter(action=VentaLog.Action.COMPLETED).count(), 1)

    def test_repairs_unit_of_completed_sale(self):
        venta = Factory.venta(estado=Venta.Estado.COMPLETADA)

        with self.assertLogs("sales.reconciliation", level="WARNING"):
            resultado = reconcile_ventas()

        self.assertEqual(resultado.unidades_reparadas, [venta.unidad_id])
        venta.unidad.refresh_from_db()
        self.assertEqual(venta.unidad.estado, Unidad.Estado.VENDIDO)
        self.assertTrue(venta.logs.filter(action=VentaLog.Action.REPAIRED).exists())

    def test_cancelled_sales_are_ignored(self):
        venta = self._venta_pagada()
        Venta.objects.filter(pk=venta.pk).update(estado=Venta.Estado.CANCELADA)
        self.assertEqual(reconcile_ventas().evaluadas, 0)

    def test_fetch_failure_aborts_pass(self):
        with mock.patch("sales.reconciliation.compute_progress_batch", side_effect=DatabaseError("boom")):
            with self.assertLogs("sales.reconciliation", level="ERROR"):
                resultado = reconcile_ventas()
        self.assertEqual(len(resultado.errores), 1)
        self.assertEqual(resultado.completadas, [])

    def test_reconcile_single_sale(self):
        venta = self._venta_pagada()
        self.assertTrue(reconcile_venta(venta.pk))
        self.assertFalse(reconcile_venta(venta.pk))

    def test_command(self):
        self._venta_pagada()
        out = StringIO()
        call_command("reconciliar_ventas", stdout=out)
        self.assertIn("Ventas completadas:  1", out.getvalue())


class AbrirVentaTests(BaseAppTestCase):
    def setUp(self):
        self.unidad = Factory.unidad(prototipo=Factory.prototipo(precio=Decimal("750000.00")))

    def test_opens_sale_and_marks_unit(self):
        compradores = [Factory.comprador(), Factory.comprador()]

        venta = abrir_venta(self.unidad, compradores=compradores)

        self.assertEqual(venta.estado, Venta.Estado.EN_PROCESO)
        self.assertEqual(venta.precio_total, Decimal("750000.00"))
        self.assertTrue(venta.es_fraccional)
        self.assertEqual(
            sorted(venta.participaciones.values_list("porcentaje", flat=True)),
            [Decimal("50.00"), Decimal("50.00")],
        )
        self.unidad.refresh_from_db()
        self.assertEqual(self.unidad.estado, Unidad.Estado.CON_ANTICIPO)

    def test_rejects_second_active_sale(self):
        abrir_venta(self.unidad)
        with self.assertRaises(VentaActivaError):
            abrir_venta(self.unidad)

    def test_rejects_sold_unit(self):
        self.unidad.estado = Unidad.Estado.VENDIDO
        self.unidad.save()
        with self.assertRaises(VentaActivaError):
            abrir_venta(self.unidad)


class SalesApiTests(BaseAppTestCase):
    def setUp(self):
        self.login_staff()

    def test_listing_has_progress_and_never_writes(self):
        venta = Factory.venta(precio_total=Decimal("1000000.00"))
        Factory.pago(comprador_venta=venta.participaciones.get(), monto="1000000")

        with CaptureQueriesContext(connection) as ctx:
            response = self.client.get(reverse("sales_api:ventas"))

        self.assertEqual(response.status_code, 200)
        item = response.json()["ventas"][0]
        self.assertEqual(item["progreso"], 100)
        self.assertEqual(item["unidad_numero"], venta.unidad.numero)
        self.assertEqual(item["estado"], Venta.Estado.EN_PROCESO)
        self.assertEqual(_writes(ctx.captured_queries), [])

    def test_listing_filters_by_estado(self):
        Factory.venta()
        completada = Factory.venta(estado=Venta.Estado.COMPLETADA)
        response = self.client.get(reverse("sales_api:ventas"), {"estado": "completada"})
        self.assertEqual([v["id"] for v in response.json()["ventas"]], [str(completada.pk)])

    def test_listing_degrades_when_progress_fails(self):
        Factory.venta()
        with mock.patch("sales.api_views.compute_progress_batch", side_effect=DatabaseError("boom")):
            with self.assertLogs("sales.api_views", level="ERROR"):
                response = self.client.get(reverse("sales_api:ventas"))
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["ventas"][0]["progreso"])

    def test_open_sale(self):
        unidad = Factory.unidad()
        response = self.client.post(
            reverse("sales_api:ventas"),
            data=json.dumps(
                {
                    "unidad": unidad.pk,
                    "precio_total": "$900,000",
                    "compradores": [{"nombre": "Ana López 1", "documento": "AB-123"}],
                }
            ),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        venta = Venta.objects.get(pk=response.json()["id"])
        self.assertEqual(venta.precio_total, Decimal("900000"))
        self.assertEqual(Comprador.objects.get().nombre, "Ana Lopez")
        self.assertEqual(Comprador.objects.get().documento, "AB123")

    def test_open_sale_rejects_repeated_buyer(self):
        unidad = Factory.unidad()
        response = self.client.post(
            reverse("sales_api:ventas"),
            data=json.dumps(
                {
                    "unidad": unidad.pk,
                    "compradores": [
                        {"nombre": "Ana Lopez", "documento": "X1"},
                        {"nombre": "Ana Lopez", "documento": "X-1"},
                    ],
                }
            ),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid")
        self.assertIn("compradores", response.json()["detalles"])
        self.assertFalse(Venta.objects.exists())
        self.assertFalse(Comprador.objects.exists())

    def test_open_sale_conflict(self):
        venta = Factory.venta()
        response = self.client.post(
            reverse("sales_api:ventas"),
            data=json.dumps({"unidad": venta.unidad_id}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "venta_activa")

    def test_conciliar(self):
        venta = Factory.venta(precio_total=Decimal("100.00"))
        Factory.pago(comprador_venta=venta.participaciones.get(), monto="100")
        response = self.client.post(reverse("sales_api:conciliar"))
        self.assertEqual(response.json()["completadas"], [str(venta.pk)])

    def test_conciliar_requires_staff(self):
        self.login_as(self.make_user(is_staff=False))
        response = self.client.post(reverse("sales_api:conciliar"))
        self.assertEqual(response.status_code, 403)
