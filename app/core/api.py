import json

from django.core.exceptions import ValidationError
from django.http import JsonResponse


def json_error(message, status=400, code="bad_request", **extra):
    return JsonResponse({"error": message, "code": code, **extra}, status=status)


def parse_body(request):
    """Cuerpo JSON (objeto) o formulario como dict. ValueError si el JSON no es válido."""
    if request.content_type == "application/json":
        data = json.loads(request.body or b"{}")
        if not isinstance(data, dict):
            raise ValueError("Se esperaba un objeto JSON.")
        return data
    return request.POST.dict()


def check_user(user, staff=False):
    """Lecturas: usuario autenticado. Escrituras: ``is_staff``."""
    if not user.is_authenticated:
        return json_error("Autenticación requerida", status=401, code="unauthenticated")
    if staff and not user.is_staff:
        return json_error("Permiso denegado", status=403, code="forbidden")
    return None


def validation_error(exc_or_form, message="Datos inválidos"):
    if isinstance(exc_or_form, ValidationError):
        detalles = exc_or_form.message_dict if hasattr(exc_or_form, "error_dict") else {"__all__": exc_or_form.messages}
    else:
        detalles = {name: list(errors) for name, errors in exc_or_form.errors.items()}
    return json_error(message, code="invalid", detalles=detalles)
