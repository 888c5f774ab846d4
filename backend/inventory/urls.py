from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    AdjustStockView,
    InventoryStockViewSet,
    SellableItemsView,
    StockDiscrepancyViewSet,
    StockMovementViewSet,
)

router = DefaultRouter()
router.register(r'stock', InventoryStockViewSet)
router.register(r'movements', StockMovementViewSet)
router.register(r'discrepancies', StockDiscrepancyViewSet)

app_name = "inventory"

urlpatterns = [
    path('', include(router.urls)),
    path("adjust/", AdjustStockView.as_view(), name="stock-adjust"),
    path("sellable/", SellableItemsView.as_view(), name="sellable-items"),
]
