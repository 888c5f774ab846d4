from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import TableViewSet

router = SimpleRouter()
router.register(r'', TableViewSet, basename='table')

app_name = "tables"

urlpatterns = [
    path('', include(router.urls)),
]
