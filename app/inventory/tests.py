import asyncio
import json
import threading
from decimal import Decimal
from io import StringIO
from unittest import mock

from asgiref.sync import async_to_sync
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import DatabaseError
from django.db.models import ProtectedError
from django.test import SimpleTestCase
from django.urls import reverse

from inventory.models import Unidad
from inventory.mutations import DESCARTADA, ERROR, BusyWithPending, Idle, MutationSerializer, registry
from inventory.status import (
    ETIQUETA_EN_VENTA,
    ETIQUETA_PRE_VENTA,
    ETIQUETA_VENDIDO,
    ConteoUnidades,
    count_by_status,
    desarrollo_label,
    desarrollo_summary,
    label_for,
    prototipo_summary,
)
from inventory.store import (
    UnidadProtegidaError,
    create_unidad,
    delete_unidad,
    generar_unidades,
    update_unidad,
)
from sales.models import Venta
from tests.base import BaseAppTestCase
from tests.factories import Factory


class CountByStatusTests(SimpleTestCase):
    def test_partitions_by_estado(self):
        conteo = count_by_status(["disponible", "vendido", "con_anticipo", "disponible"])
        self.assertEqual(
            (conteo.disponibles, conteo.vendidas, conteo.con_anticipo, conteo.total),
            (2, 1, 1, 4),
        )
        self.assertFalse(conteo.estimado)

    def test_unknown_and_null_estado_only_count_toward_total(self):
        conteo = count_by_status(["disponible", None, "reservado", {"estado": "vendido"}])
        self.assertEqual(conteo.total, 4)
        self.assertEqual(conteo.disponibles + conteo.vendidas + conteo.con_anticipo, 2)

    def test_partition_never_exceeds_total(self):
        samples = [
            [],
            ["disponible"] * 3,
            ["vendido", "vendido", None],
            ["con_anticipo", "x", "disponible", "vendido"],
        ]
        for estados in samples:
            conteo = count_by_status(estados)
            self.assertLessEqual(conteo.disponibles + conteo.vendidas + conteo.con_anticipo, conteo.total)

    def test_empty_list_falls_back_to_denormalized_total(self):
        conteo = count_by_status([], fallback_total=12)
        self.assertEqual(conteo.total, 12)
        self.assertTrue(conteo.estimado)
        self.assertEqual(conteo.display, "0/12")

    def test_estimated_total_never_labels_vendido(self):
        conteo = count_by_status([], fallback_total=12)
        self.assertEqual(label_for(conteo), ETIQUETA_PRE_VENTA)

    def test_porcentaje_vendido(self):
        self.assertEqual(ConteoUnidades(disponibles=1, vendidas=1, con_anticipo=1, total=3).porcentaje_vendido, 67)
        self.assertEqual(ConteoUnidades().porcentaje_vendido, 0)


class DesarrolloLabelTests(SimpleTestCase):
    def test_priority_order(self):
        cases = [
            ((True, 2, 0, 10), ETIQUETA_EN_VENTA),
            ((True, 0, 5, 10), ETIQUETA_EN_VENTA),
            ((False, 3, 0, 10), ETIQUETA_PRE_VENTA),
            ((False, 0, 0, 10), ETIQUETA_VENDIDO),
            ((False, 0, 10, 10), ETIQUETA_PRE_VENTA),
            ((False, 0, 0, 0), ETIQUETA_PRE_VENTA),
        ]
        for args, expected in cases:
            with self.subTest(args=args):
                self.assertEqual(desarrollo_label(*args), expected)


class StatusSummaryTests(BaseAppTestCase):
    def setUp(self):
        self.desarrollo = Factory.desarrollo(amenidades=["Alberca", "Gimnasio"])
        self.prototipo = Factory.prototipo(desarrollo=self.desarrollo)
        self.otro = Factory.prototipo(desarrollo=self.desarrollo)

    def test_desarrollo_summary_counts_all_prototipos(self):
        Factory.unidad(prototipo=self.prototipo, estado=Unidad.Estado.VENDIDO)
        Factory.unidad(prototipo=self.prototipo)
        Factory.unidad(prototipo=self.otro, estado=Unidad.Estado.CON_ANTICIPO)

        resumen = desarrollo_summary(self.desarrollo)

        self.assertEqual(resumen.conteo.total, 3)
        self.assertEqual(resumen.prototipos, 2)
        self.assertEqual(resumen.etiqueta, ETIQUETA_EN_VENTA)

    def test_sold_unit_with_available_ones_is_en_venta(self):
        Factory.unidad(prototipo=self.prototipo, estado=Unidad.Estado.VENDIDO)
        Factory.unidad(prototipo=self.otro)
        self.assertEqual(desarrollo_summary(self.desarrollo).etiqueta, ETIQUETA_EN_VENTA)

    def test_empty_desarrollo_uses_estimated_total(self):
        self.desarrollo.total_unidades = 20
        resumen = desarrollo_summary(self.desarrollo)
        self.assertTrue(resumen.conteo.estimado)
        self.assertEqual(resumen.etiqueta, ETIQUETA_PRE_VENTA)

    def test_prototipo_summary_falls_back_when_query_fails(self):
        self.prototipo.total_unidades = 8
        with mock.patch.object(Unidad.objects, "filter", side_effect=DatabaseError("boom")):
            with self.assertLogs("inventory.status", level="ERROR"):
                conteo = prototipo_summary(self.prototipo)
        self.assertEqual(conteo.total, 8)
        self.assertTrue(conteo.estimado)


class UnidadStoreTests(BaseAppTestCase):
    def setUp(self):
        self.prototipo = Factory.prototipo(precio=Decimal("900000.00"))

    def test_create_parses_price_and_syncs_totals(self):
        unidad = create_unidad(self.prototipo.pk, {"numero": " 101 ", "nivel": "1", "precio_venta": "$1,250,000.50"})

        self.assertEqual(unidad.numero, "101")
        self.assertEqual(unidad.estado, Unidad.Estado.DISPONIBLE)
        self.assertEqual(unidad.precio_venta, Decimal("1250000.50"))
        self.prototipo.refresh_from_db()
        self.prototipo.desarrollo.refresh_from_db()
        self.assertEqual(self.prototipo.total_unidades, 1)
        self.assertEqual(self.prototipo.desarrollo.total_unidades, 1)

    def test_create_rejects_duplicate_numero(self):
        Factory.unidad(prototipo=self.prototipo, numero="101")
        with self.assertRaises(ValidationError) as ctx:
            create_unidad(self.prototipo.pk, {"numero": "101"})
        self.assertIn("numero", ctx.exception.message_dict)

    def test_create_rejects_invalid_price(self):
        with self.assertRaises(ValidationError) as ctx:
            create_unidad(self.prototipo.pk, {"numero": "102", "precio_venta": "mucho"})
        self.assertIn("precio_venta", ctx.exception.message_dict)

    def test_update_to_con_anticipo_opens_sale(self):
        unidad = Factory.unidad(prototipo=self.prototipo, precio_venta=Decimal("950000.00"))

        update_unidad(self.prototipo.pk, unidad.pk, {"estado": Unidad.Estado.CON_ANTICIPO})

        venta = Venta.objects.get(unidad=unidad)
        self.assertEqual(venta.estado, Venta.Estado.EN_PROCESO)
        self.assertEqual(venta.precio_total, Decimal("950000.00"))
        unidad.refresh_from_db()
        self.assertEqual(unidad.estado, Unidad.Estado.CON_ANTICIPO)

    def test_update_keeps_untouched_fields(self):
        unidad = Factory.unidad(prototipo=self.prototipo, nivel="3", precio_venta=Decimal("10.00"))
        update_unidad(self.prototipo.pk, unidad.pk, {"nivel": "4"})
        unidad.refresh_from_db()
        self.assertEqual(unidad.nivel, "4")
        self.assertEqual(unidad.precio_venta, Decimal("10.00"))

    def test_delete_blocked_by_sale(self):
        venta = Factory.venta(unidad=Factory.unidad(prototipo=self.prototipo))
        with self.assertRaises(UnidadProtegidaError):
            delete_unidad(self.prototipo.pk, venta.unidad_id)
        self.assertTrue(Unidad.objects.filter(pk=venta.unidad_id).exists())

    def test_delete_maps_protected_error(self):
        unidad = Factory.unidad(prototipo=self.prototipo)
        with mock.patch.object(Unidad, "delete", side_effect=ProtectedError("ventas", set())):
            with self.assertRaises(UnidadProtegidaError):
                delete_unidad(self.prototipo.pk, unidad.pk)
        self.assertTrue(Unidad.objects.filter(pk=unidad.pk).exists())

    def test_create_con_anticipo_opens_sale(self):
        unidad = create_unidad(self.prototipo.pk, {"numero": "7", "estado": Unidad.Estado.CON_ANTICIPO})

        self.assertEqual(unidad.estado, Unidad.Estado.CON_ANTICIPO)
        venta = Venta.objects.get(unidad=unidad)
        self.assertEqual(venta.estado, Venta.Estado.EN_PROCESO)
        self.assertEqual(venta.precio_total, Decimal("900000.00"))

    def test_create_vendido_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            create_unidad(self.prototipo.pk, {"numero": "8", "estado": Unidad.Estado.VENDIDO})
        self.assertIn("estado", ctx.exception.message_dict)
        self.assertFalse(Unidad.objects.filter(prototipo=self.prototipo).exists())

    def _venta(self, pagado):
        venta = Factory.venta(
            unidad=Factory.unidad(prototipo=self.prototipo, estado=Unidad.Estado.CON_ANTICIPO),
            precio_total=Decimal("500000.00"),
        )
        Factory.pago(comprador_venta=venta.participaciones.get(), monto=pagado)
        return venta

    def test_update_to_vendido_requires_full_payment(self):
        venta = self._venta("100000")

        with self.assertRaises(ValidationError) as ctx:
            update_unidad(self.prototipo.pk, venta.unidad_id, {"estado": Unidad.Estado.VENDIDO})

        self.assertIn("20%", ctx.exception.message_dict["estado"][0])
        venta.unidad.refresh_from_db()
        self.assertEqual(venta.unidad.estado, Unidad.Estado.CON_ANTICIPO)

    def test_update_to_vendido_completes_paid_sale(self):
        venta = self._venta("500000")

        unidad = update_unidad(self.prototipo.pk, venta.unidad_id, {"estado": Unidad.Estado.VENDIDO})

        self.assertEqual(unidad.estado, Unidad.Estado.VENDIDO)
        venta.refresh_from_db()
        venta.unidad.refresh_from_db()
        self.assertEqual(venta.estado, Venta.Estado.COMPLETADA)
        self.assertEqual(venta.unidad.estado, Unidad.Estado.VENDIDO)

    def test_update_to_vendido_without_sale_is_rejected(self):
        unidad = Factory.unidad(prototipo=self.prototipo)
        with self.assertRaises(ValidationError):
            update_unidad(self.prototipo.pk, unidad.pk, {"estado": Unidad.Estado.VENDIDO})

    def test_unit_with_active_sale_cannot_return_to_disponible(self):
        venta = self._venta("0.01")
        with self.assertRaises(ValidationError):
            update_unidad(self.prototipo.pk, venta.unidad_id, {"estado": Unidad.Estado.DISPONIBLE})
        venta.unidad.refresh_from_db()
        self.assertEqual(venta.unidad.estado, Unidad.Estado.CON_ANTICIPO)

    def test_sold_unit_keeps_its_state(self):
        venta = Factory.venta(
            unidad=Factory.unidad(prototipo=self.prototipo, estado=Unidad.Estado.VENDIDO),
            estado=Venta.Estado.COMPLETADA,
        )
        for estado in (Unidad.Estado.DISPONIBLE, Unidad.Estado.CON_ANTICIPO):
            with self.assertRaises(ValidationError):
                update_unidad(self.prototipo.pk, venta.unidad_id, {"estado": estado})
        unidad = update_unidad(self.prototipo.pk, venta.unidad_id, {"nivel": "9"})
        self.assertEqual(unidad.estado, Unidad.Estado.VENDIDO)

    def test_delete_syncs_totals(self):
        unidad = create_unidad(self.prototipo.pk, {"numero": "1"})
        delete_unidad(self.prototipo.pk, unidad.pk)
        self.prototipo.refresh_from_db()
        self.assertEqual(self.prototipo.total_unidades, 0)

    def test_generar_unidades_skips_taken_numbers(self):
        Factory.unidad(prototipo=self.prototipo, numero="A-2")

        nuevas = generar_unidades(self.prototipo, 3, "A-")

        self.assertEqual([u.numero for u in nuevas], ["A-3", "A-4", "A-5"])
        self.assertTrue(all(u.precio_venta == Decimal("900000.00") for u in nuevas))
        self.prototipo.refresh_from_db()
        self.assertEqual(self.prototipo.total_unidades, 4)

    def test_generar_unidades_command(self):
        call_command("generar_unidades", str(self.prototipo.pk), "2", "--prefijo", "B", stdout=StringIO())
        self.assertEqual(
            list(Unidad.objects.filter(prototipo=self.prototipo).values_list("numero", flat=True)),
            ["B1", "B2"],
        )


# ---------------------------------------------------------------------------
# Serializador de mutaciones
# ---------------------------------------------------------------------------

class FakeUnidad:
    def __init__(self, pk):
        self.pk = pk

    def as_dict(self):
        return {"id": self.pk}


class FakeStore:
    """Store en memoria: registra cada llamada y puede bloquearse hasta ``release``."""

    def __init__(self, events=None):
        self.calls = []
        self.events = events if events is not None else []
        self.release = asyncio.Event()
        self.release.set()
        self.fail_on = {}

    async def _run(self, kind, unidad_id, payload=None):
        self.calls.append((kind, unidad_id, payload))
        self.events.append(f"{kind}:{unidad_id}")
        await self.release.wait()
        if unidad_id in self.fail_on:
            raise self.fail_on[unidad_id]
        return FakeUnidad(unidad_id or 99)

    async def create(self, data):
        return await self._run("create", None, data)

    async def update(self, unidad_id, patch):
        return await self._run("update", unidad_id, patch)

    async def delete(self, unidad_id):
        await self._run("delete", unidad_id)


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


class MutationSerializerTests(SimpleTestCase):
    def make_serializer(self, store, refresh=None):
        return MutationSerializer("unidades:test", store, refresh=refresh, history=10)

    async def test_second_update_waits_for_first(self):
        store = FakeStore()
        store.release.clear()
        serializer = self.make_serializer(store)

        task_a = asyncio.ensure_future(serializer.update_unit(1, {"nivel": "A"}))
        await _settle()
        task_b = asyncio.ensure_future(serializer.update_unit(2, {"nivel": "B"}))
        await _settle()

        self.assertEqual(len(store.calls), 1)
        self.assertIsInstance(serializer.state, BusyWithPending)

        store.release.set()
        resultado_a, resultado_b = await asyncio.gather(task_a, task_b)

        self.assertEqual(store.calls, [("update", 1, {"nivel": "A"}), ("update", 2, {"nivel": "B"})])
        self.assertTrue(resultado_a.ok)
        self.assertTrue(resultado_b.ok)
        self.assertIsInstance(serializer.state, Idle)
        self.assertFalse(serializer.is_busy)

    async def test_last_pending_request_wins(self):
        store = FakeStore()
        store.release.clear()
        serializer = self.make_serializer(store)

        task_a = asyncio.ensure_future(serializer.update_unit(1, {"v": "A"}))
        await _settle()
        task_b = asyncio.ensure_future(serializer.update_unit(1, {"v": "B"}))
        await _settle()
        task_c = asyncio.ensure_future(serializer.update_unit(1, {"v": "C"}))
        await _settle()

        resultado_b = await task_b
        self.assertEqual(resultado_b.estado, DESCARTADA)

        store.release.set()
        await asyncio.gather(task_a, task_c)
        self.assertEqual([call[2] for call in store.calls], [{"v": "A"}, {"v": "C"}])

    async def test_refresh_completes_before_pending_runs(self):
        events = []
        store = FakeStore(events)
        store.release.clear()

        async def refresh():
            events.append("refresh")
            return ConteoUnidades(total=len(events))

        serializer = self.make_serializer(store, refresh=refresh)
        task_a = asyncio.ensure_future(serializer.update_unit(1, {}))
        await _settle()
        task_b = asyncio.ensure_future(serializer.delete_unit(2))
        await _settle()
        store.release.set()
        await asyncio.gather(task_a, task_b)

        self.assertEqual(events, ["update:1", "refresh", "delete:2", "refresh"])
        self.assertIsNotNone(serializer.snapshot)

    async def test_failure_releases_collection(self):
        store = FakeStore()
        store.fail_on[1] = ValidationError({"numero": ["Ya existe."]})
        serializer = self.make_serializer(store)

        resultado = await serializer.update_unit(1, {"numero": "X"})

        self.assertEqual(resultado.estado, ERROR)
        self.assertEqual(resultado.codigo, "invalid")
        self.assertEqual(resultado.detalles, {"numero": ["Ya existe."]})
        self.assertFalse(serializer.is_busy)

        resultado = await serializer.update_unit(2, {"numero": "Y"})
        self.assertTrue(resultado.ok)

    async def test_unexpected_store_error_is_logged_and_released(self):
        store = FakeStore()
        store.fail_on[5] = RuntimeError("sin conexión")
        serializer = self.make_serializer(store)

        with self.assertLogs("inventory.mutations", level="ERROR"):
            resultado = await serializer.delete_unit(5)

        self.assertEqual(resultado.codigo, "store_error")
        self.assertFalse(serializer.is_busy)

    async def test_deferred_failure_is_notified(self):
        store = FakeStore()
        store.release.clear()
        store.fail_on[2] = UnidadProtegidaError("La unidad 2 tiene ventas asociadas.")
        received = []
        serializer = MutationSerializer("unidades:test", store, notify=received.append, history=10)

        task_a = asyncio.ensure_future(serializer.update_unit(1, {}))
        await _settle()
        task_b = asyncio.ensure_future(serializer.delete_unit(2))
        await _settle()
        with self.assertLogs("inventory.mutations", level="WARNING"):
            store.release.set()
            _, resultado_b = await asyncio.gather(task_a, task_b)

        self.assertEqual(resultado_b.codigo, "protected")
        ultima = received[-1]
        self.assertTrue(ultima.diferida)
        self.assertEqual(ultima.tag, "error")
        self.assertEqual(ultima.recurso_id, 2)
        self.assertEqual(list(serializer.notifications), received)

    async def test_create_reports_new_resource_id(self):
        serializer = self.make_serializer(FakeStore())
        resultado = await serializer.create_unit({"numero": "1"})
        self.assertEqual(resultado.recurso_id, 99)
        self.assertEqual(serializer.notifications[-1].titulo, "Unidad creada")

    async def test_concurrent_refresh_is_single_flight(self):
        calls = []
        gate = asyncio.Event()

        async def refresh():
            calls.append(1)
            await gate.wait()
            return ConteoUnidades(total=3)

        serializer = self.make_serializer(FakeStore(), refresh=refresh)
        first = asyncio.ensure_future(serializer.refresh())
        second = asyncio.ensure_future(serializer.refresh())
        await _settle()
        gate.set()
        results = await asyncio.gather(first, second)

        self.assertEqual(len(calls), 1)
        self.assertEqual(results[0], results[1])

    async def test_generate_reports_created_units(self):
        store = FakeStore()

        async def generate(cantidad, prefijo=""):
            return [FakeUnidad(n) for n in range(1, cantidad + 1)]

        store.generate = generate
        resultado = await self.make_serializer(store).generate_units(2)

        self.assertTrue(resultado.ok)
        self.assertEqual(resultado.unidades, [{"id": 1}, {"id": 2}])


class SlowStore:
    """Store que tarda en la primera unidad; se llama desde hilos distintos."""

    def __init__(self):
        self.calls = []
        self.started = threading.Event()

    async def update(self, unidad_id, patch):
        self.calls.append(("update", unidad_id))
        if unidad_id == 1:
            self.started.set()
            await asyncio.sleep(0.2)
        return FakeUnidad(unidad_id)


class CoordinatorLoopTests(SimpleTestCase):
    def setUp(self):
        self.loop = asyncio.new_event_loop()
        self.thread = threading.Thread(target=self.loop.run_forever, daemon=True)
        self.thread.start()

    def tearDown(self):
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.thread.join(timeout=2)
        self.loop.close()

    def test_requests_from_different_loops_share_the_queue(self):
        store = SlowStore()
        serializer = MutationSerializer("unidades:test", store, history=10, loop=self.loop)
        results = {}

        def call(unidad_id):
            results[unidad_id] = async_to_sync(serializer.update_unit)(unidad_id, {})

        first = threading.Thread(target=call, args=(1,))
        second = threading.Thread(target=call, args=(2,))
        first.start()
        self.assertTrue(store.started.wait(timeout=2))
        second.start()
        first.join(timeout=5)
        second.join(timeout=5)

        self.assertFalse(first.is_alive())
        self.assertFalse(second.is_alive())
        self.assertTrue(results[1].ok)
        self.assertTrue(results[2].ok)
        self.assertEqual(store.calls, [("update", 1), ("update", 2)])
        self.assertEqual(serializer.state, Idle())

    def test_registry_shares_one_coordinator(self):
        self.assertIs(registry.for_prototipo(1)._loop, registry.for_prototipo(2)._loop)
        self.assertIn(1, registry)
        registry.clear()
        self.assertNotIn(1, registry)


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

class InventoryApiTests(BaseAppTestCase):
    def setUp(self):
        registry.clear()
        self.prototipo = Factory.prototipo(precio=Decimal("800000.00"))
        self.login_staff()

    def tearDown(self):
        registry.clear()

    def _url(self, name, **kwargs):
        return reverse(f"inventory_api:{name}", kwargs=kwargs)

    def test_desarrollo_resumen(self):
        Factory.unidad(prototipo=self.prototipo, estado=Unidad.Estado.CON_ANTICIPO)
        response = self.client.get(self._url("desarrollo_resumen", desarrollo_id=self.prototipo.desarrollo_id))
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["etiqueta"], ETIQUETA_PRE_VENTA)
        self.assertEqual(payload["total"], 1)
        self.assertEqual(payload["prototipos"], 1)

    def test_prototipo_resumen_missing_is_404(self):
        response = self.client.get(self._url("prototipo_resumen", prototipo_id=999999))
        self.assertEqual(response.status_code, 404)

    def test_create_unit(self):
        response = self.client.post(
            self._url("unidades", prototipo_id=self.prototipo.pk),
            data=json.dumps({"numero": "PH-1", "precio_venta": "$2,000,000"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        unidad = Unidad.objects.get(prototipo=self.prototipo, numero="PH-1")
        self.assertEqual(response.json()["recurso_id"], unidad.pk)
        self.assertEqual(unidad.precio_venta, Decimal("2000000"))

    def test_invalid_update_returns_details(self):
        unidad = Factory.unidad(prototipo=self.prototipo)
        response = self.client.patch(
            self._url("unidad_detail", prototipo_id=self.prototipo.pk, unidad_id=unidad.pk),
            data=json.dumps({"precio_venta": "abc"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid")
        self.assertIn("precio_venta", response.json()["detalles"])

    def test_delete_unit_with_sale_conflicts(self):
        venta = Factory.venta(unidad=Factory.unidad(prototipo=self.prototipo))
        response = self.client.delete(
            self._url("unidad_detail", prototipo_id=self.prototipo.pk, unidad_id=venta.unidad_id)
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "protected")

    def test_estado_reports_snapshot_and_notifications(self):
        Factory.unidad(prototipo=self.prototipo)
        self.client.post(
            self._url("unidades", prototipo_id=self.prototipo.pk),
            data=json.dumps({"numero": "2"}),
            content_type="application/json",
        )
        response = self.client.get(self._url("unidades_estado", prototipo_id=self.prototipo.pk))
        payload = response.json()
        self.assertFalse(payload["ocupado"])
        self.assertEqual(payload["conteo"]["total"], 2)
        self.assertEqual(payload["notificaciones"][-1]["nivel"], "success")

    def test_generar(self):
        response = self.client.post(
            self._url("unidades_generar", prototipo_id=self.prototipo.pk),
            data=json.dumps({"cantidad": 3}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["generadas"], 3)
        self.assertEqual(len(response.json()["unidades"]), 3)

        estado = self.client.get(self._url("unidades_estado", prototipo_id=self.prototipo.pk)).json()
        self.assertEqual(estado["conteo"]["total"], 3)
        self.assertEqual(estado["notificaciones"][-1]["titulo"], "Unidades generadas")

    def test_update_missing_prototipo_is_404(self):
        response = self.client.patch(
            self._url("unidad_detail", prototipo_id=999999, unidad_id=1),
            data=json.dumps({"nivel": "2"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 404)
        self.assertNotIn(999999, registry)

    def test_marking_unpaid_unit_as_sold_is_rejected(self):
        venta = Factory.venta(unidad=Factory.unidad(prototipo=self.prototipo, estado=Unidad.Estado.CON_ANTICIPO))
        response = self.client.patch(
            self._url("unidad_detail", prototipo_id=self.prototipo.pk, unidad_id=venta.unidad_id),
            data=json.dumps({"estado": "vendido"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("estado", response.json()["detalles"])

    def test_writes_require_staff(self):
        self.login_as(self.make_user(is_staff=False))
        response = self.client.post(
            self._url("unidades", prototipo_id=self.prototipo.pk),
            data=json.dumps({"numero": "9"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 403)
        response = self.client.get(self._url("unidades", prototipo_id=self.prototipo.pk))
        self.assertEqual(response.status_code, 200)

    def test_reads_require_authentication(self):
        self.client.logout()
        response = self.client.get(self._url("prototipo_resumen", prototipo_id=self.prototipo.pk))
        self.assertEqual(response.status_code, 401)
