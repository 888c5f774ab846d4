from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import PreparationTicketViewSet

router = DefaultRouter()
router.register(r'tickets', PreparationTicketViewSet)

app_name = 'kds'

urlpatterns = [
    path('', include(router.urls)),
]
