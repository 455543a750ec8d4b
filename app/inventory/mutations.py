"""
Serialización de mutaciones (crear / actualizar / eliminar) por colección.

Cada colección de unidades (las de un prototipo) tiene un único consumidor:
nunca hay dos mutaciones en vuelo a la vez. Una solicitud que llega mientras
la colección está ocupada ocupa el único lugar pendiente y reemplaza a la que
hubiera ahí (gana la última). Tras cada mutación se espera el refresco de la
colección antes de ejecutar la pendiente.

El estado de cada serializador vive en el loop coordinador del registro (un
hilo propio), así que solicitudes atendidas en loops distintos comparten la
misma cola. Las llamadas al almacenamiento vuelven al loop y al contexto de
quien pidió la mutación, donde está su conexión a la base de datos.
El registro es por proceso.
"""
import asyncio
import contextvars
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Optional

from django.conf import settings
from django.contrib.messages import constants as message_constants
from django.core.exceptions import ObjectDoesNotExist, ValidationError

from sales.services import VentaActivaError

from .store import UnidadProtegidaError, UnidadStore

logger = logging.getLogger(__name__)

OK = "ok"
ERROR = "error"
DESCARTADA = "descartada"


# ---------------------------------------------------------------------------
# Estados
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Busy:
    pass


@dataclass(frozen=True)
class BusyWithPending:
    pending: "Mutation"


@dataclass(frozen=True)
class _Origin:
    """Loop y contexto de quien llamó al serializador."""

    loop: asyncio.AbstractEventLoop
    context: contextvars.Context

    async def run(self, coro):
        if self.loop is asyncio.get_running_loop():
            return await coro
        try:
            future = self.context.run(asyncio.run_coroutine_threadsafe, coro, self.loop)
        except RuntimeError:
            # El loop de origen ya cerró.
            coro.close()
            raise
        return await asyncio.wrap_future(future)


@dataclass
class Mutation:
    kind: str
    recurso_id: Any
    run: Callable[[], Awaitable[Any]]
    future: Optional[asyncio.Future] = None
    origin: Optional[_Origin] = None


@dataclass(frozen=True)
class ResultadoMutacion:
    estado: str
    recurso_id: Any = None
    unidad: Optional[dict] = None
    unidades: Optional[list] = None
    error: Optional[str] = None
    codigo: Optional[str] = None
    detalles: dict = field(default_factory=dict)

    @property
    def ok(self):
        return self.estado == OK


@dataclass(frozen=True)
class Notificacion:
    nivel: int
    titulo: str
    descripcion: str
    recurso_id: Any = None
    diferida: bool = False

    @property
    def tag(self):
        return message_constants.DEFAULT_TAGS.get(self.nivel, "info")

    def as_dict(self):
        return {
            "nivel": self.tag,
            "titulo": self.titulo,
            "descripcion": self.descripcion,
            "recurso_id": self.recurso_id,
            "diferida": self.diferida,
        }


_TITULOS = {
    "create": ("Unidad creada", "La unidad ha sido creada exitosamente", "No se pudo crear la unidad"),
    "update": ("Unidad actualizada", "La unidad ha sido actualizada exitosamente", "No se pudo actualizar la unidad"),
    "delete": ("Unidad eliminada", "La unidad ha sido eliminada exitosamente", "No se pudo eliminar la unidad"),
    "generate": (
        "Unidades generadas",
        "Las unidades han sido generadas exitosamente",
        "No se pudieron generar las unidades",
    ),
}


_CODIGOS = (
    (ValidationError, "invalid"),
    (ObjectDoesNotExist, "not_found"),
    (UnidadProtegidaError, "protected"),
    (VentaActivaError, "conflict"),
)


def _codigo_error(exc):
    for exc_class, codigo in _CODIGOS:
        if isinstance(exc, exc_class):
            return codigo
    return "store_error"


def _describe_error(exc):
    if isinstance(exc, ValidationError):
        detalles = exc.message_dict if hasattr(exc, "error_dict") else {"__all__": exc.messages}
        return "; ".join(exc.messages), detalles
    return str(exc) or exc.__class__.__name__, {}


# ---------------------------------------------------------------------------
# Serializador
# ---------------------------------------------------------------------------

class MutationSerializer:
    def __init__(self, key, store, refresh=None, notify=None, history=None, loop=None):
        self.key = key
        self._loop = loop
        self.store = store
        self._refresh_fn = refresh
        self._notify_fn = notify
        if history is None:
            history = getattr(settings, "INVENTORY_NOTIFICATION_HISTORY", 20)
        self.notifications = deque(maxlen=history)
        self.state = Idle()
        self.snapshot = None
        self._worker = None
        self._refresh_task = None

    @property
    def is_busy(self):
        return not isinstance(self.state, Idle)

    # -- entradas ---------------------------------------------------------

    async def create_unit(self, data):
        return await self.submit(Mutation("create", None, lambda: self.store.create(data)))

    async def update_unit(self, unidad_id, patch):
        return await self.submit(Mutation("update", unidad_id, lambda: self.store.update(unidad_id, patch)))

    async def delete_unit(self, unidad_id):
        return await self.submit(Mutation("delete", unidad_id, lambda: self.store.delete(unidad_id)))

    async def generate_units(self, cantidad, prefijo=""):
        return await self.submit(Mutation("generate", None, lambda: self.store.generate(cantidad, prefijo)))

    async def submit(self, mutation):
        return await self._dispatch(partial(self._submit, mutation))

    async def estado(self, refrescar=False):
        """Ocupación, conteo y notificaciones de la colección, leídos en el coordinador."""
        return await self._dispatch(partial(self._estado, refrescar))

    async def _dispatch(self, fn):
        origin = _Origin(asyncio.get_running_loop(), contextvars.copy_context())
        if self._loop is None or self._loop is origin.loop:
            return await fn(origin)
        future = asyncio.run_coroutine_threadsafe(fn(origin), self._loop)
        return await asyncio.wrap_future(future)

    async def _submit(self, mutation, origin):
        loop = asyncio.get_running_loop()
        mutation.origin = origin
        mutation.future = loop.create_future()

        if isinstance(self.state, Idle):
            self.state = Busy()
            self._worker = loop.create_task(self._consume(mutation, deferred=False))
        else:
            if isinstance(self.state, BusyWithPending):
                self._discard(self.state.pending)
            self.state = BusyWithPending(mutation)
        return await mutation.future

    # -- consumidor -------------------------------------------------------

    async def _consume(self, mutation, deferred):
        try:
            while mutation is not None:
                resultado = await self._execute(mutation, deferred)
                await self._shared_refresh(mutation.origin)

                pending = None
                if isinstance(self.state, BusyWithPending):
                    pending = self.state.pending
                    self.state = Busy()
                    if pending.future.done():
                        # Quien la pidió ya no espera.
                        pending = None
                if pending is None:
                    self.state = Idle()

                if not mutation.future.done():
                    mutation.future.set_result(resultado)
                mutation, deferred = pending, True
        except asyncio.CancelledError:
            # Consumidor cancelado (cierre del loop): la colección queda libre.
            waiting = [mutation]
            if isinstance(self.state, BusyWithPending):
                waiting.append(self.state.pending)
            self.state = Idle()
            for item in waiting:
                if item is not None and item.future is not None and not item.future.done():
                    item.future.cancel()
            raise

    async def _execute(self, mutation, deferred):
        titulo_ok, descripcion_ok, descripcion_error = _TITULOS[mutation.kind]
        try:
            if mutation.origin is not None:
                value = await mutation.origin.run(mutation.run())
            else:
                value = await mutation.run()
        except (ValidationError, ObjectDoesNotExist, UnidadProtegidaError, VentaActivaError) as exc:
            mensaje, detalles = _describe_error(exc)
            self._report_failure(mutation, deferred, descripcion_error, mensaje)
            return ResultadoMutacion(
                ERROR, mutation.recurso_id, error=mensaje, codigo=_codigo_error(exc), detalles=detalles
            )
        except Exception as exc:
            # Cualquier otro fallo del almacenamiento libera la colección igual.
            logger.exception("Error en mutación %s de %s", mutation.kind, self.key)
            mensaje, detalles = _describe_error(exc)
            self._report_failure(mutation, deferred, descripcion_error, mensaje)
            return ResultadoMutacion(
                ERROR, mutation.recurso_id, error=mensaje, codigo=_codigo_error(exc), detalles=detalles
            )

        unidad = value.as_dict() if hasattr(value, "as_dict") else None
        unidades = [item.as_dict() for item in value] if isinstance(value, list) else None
        recurso_id = mutation.recurso_id
        if recurso_id is None and unidad is not None:
            recurso_id = unidad["id"]
        self._push(
            Notificacion(message_constants.SUCCESS, titulo_ok, descripcion_ok, recurso_id, deferred)
        )
        return ResultadoMutacion(OK, recurso_id, unidad=unidad, unidades=unidades)

    def _report_failure(self, mutation, deferred, descripcion_error, mensaje):
        if deferred:
            logger.warning(
                "Mutación diferida %s de %s (recurso %s) falló: %s",
                mutation.kind,
                self.key,
                mutation.recurso_id,
                mensaje,
            )
        self._push(
            Notificacion(
                message_constants.ERROR,
                "Error",
                f"{descripcion_error}: {mensaje}",
                mutation.recurso_id,
                deferred,
            )
        )

    def _discard(self, mutation):
        logger.info("Mutación %s pendiente de %s reemplazada por una más reciente", mutation.kind, self.key)
        if not mutation.future.done():
            mutation.future.set_result(ResultadoMutacion(DESCARTADA, mutation.recurso_id))

    def _push(self, notificacion):
        self.notifications.append(notificacion)
        if self._notify_fn is not None:
            try:
                self._notify_fn(notificacion)
            except Exception:
                logger.exception("Error entregando notificación de %s", self.key)

    # -- refresco ---------------------------------------------------------

    async def refresh(self):
        """Refresca la vista de la colección; las llamadas concurrentes comparten la misma."""
        return await self._dispatch(self._shared_refresh)

    async def _shared_refresh(self, origin):
        if self._refresh_fn is None:
            return self.snapshot
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.ensure_future(self._do_refresh(origin))
        return await asyncio.shield(self._refresh_task)

    async def _estado(self, refrescar, origin):
        if refrescar or self.snapshot is None:
            await self._shared_refresh(origin)
        return {
            "ocupado": self.is_busy,
            "conteo": self.snapshot.as_dict() if self.snapshot is not None else None,
            "notificaciones": [n.as_dict() for n in self.notifications],
        }

    async def _do_refresh(self, origin):
        try:
            if origin is not None:
                self.snapshot = await origin.run(self._refresh_fn())
            else:
                self.snapshot = await self._refresh_fn()
        except Exception:
            logger.exception("No se pudo refrescar la colección %s", self.key)
        return self.snapshot


# ---------------------------------------------------------------------------
# Registro por colección
# ---------------------------------------------------------------------------

class SerializerRegistry:
    """Un serializador por prototipo, todos atendidos por el mismo loop coordinador."""

    def __init__(self):
        self._serializers = {}
        self._lock = threading.Lock()
        self._loop = None

    def _coordinator(self):
        if self._loop is None:
            loop = asyncio.new_event_loop()
            thread = threading.Thread(target=loop.run_forever, name="inventory-mutations", daemon=True)
            thread.start()
            self._loop = loop
        return self._loop

    @staticmethod
    def _key(prototipo_id):
        return f"unidades:{prototipo_id}"

    def for_prototipo(self, prototipo_id):
        key = self._key(prototipo_id)
        with self._lock:
            serializer = self._serializers.get(key)
            if serializer is None:
                store = UnidadStore(prototipo_id)
                serializer = MutationSerializer(key, store, refresh=store.summary, loop=self._coordinator())
                self._serializers[key] = serializer
        return serializer

    def __contains__(self, prototipo_id):
        return self._key(prototipo_id) in self._serializers

    def clear(self):
        self._serializers.clear()


registry = SerializerRegistry()
