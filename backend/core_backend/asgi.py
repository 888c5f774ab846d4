import os
import django

# Set the Django settings module first
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core_backend.settings")

# Setup Django explicitly before any models are imported
django.setup()

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.auth import AuthMiddlewareStack
from django.core.asgi import get_asgi_application

import kds.routing
import notifications.routing

# Initialize Django ASGI application early to ensure AppRegistry is populated
# before importing code that may import ORM models.
django_asgi_app = get_asgi_application()

# Combine WebSocket URL patterns from all apps
websocket_urlpatterns = (
    kds.routing.websocket_urlpatterns + notifications.routing.websocket_urlpatterns
)

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": AuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
    }
)
