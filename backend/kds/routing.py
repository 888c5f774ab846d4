from django.urls import re_path
from . import consumers

websocket_urlpatterns = [
    re_path(r'ws/kds/(?P<destination>kitchen|bar)/$', consumers.StationConsumer.as_asgi()),
]
