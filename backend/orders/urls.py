from django.urls import path, include
from rest_framework import routers
from .views import OrderViewSet, OrderSessionViewSet

app_name = "orders"

router = routers.DefaultRouter()
router.register(r"sessions", OrderSessionViewSet, basename="session")
router.register(r"orders", OrderViewSet, basename="order")

urlpatterns = [
    path("", include(router.urls)),
]
