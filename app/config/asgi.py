"""
ASGI config. Las mutaciones de unidades se serializan en el event loop del
proceso, por lo que la app debe servirse con un servidor ASGI.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

application = get_asgi_application()
