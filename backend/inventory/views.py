from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from core_backend.base.viewsets import ReadOnlyBaseViewSet
from products.models import Product
from users.permissions import IsManagerOrHigher
from .models import InventoryStock, StockDiscrepancy, StockMovement
from .policy import StockPolicyService
from .serializers import (
    InventoryStockSerializer,
    ResolveDiscrepancySerializer,
    SellablePackageSerializer,
    SellableProductSerializer,
    StockAdjustmentSerializer,
    StockDiscrepancySerializer,
    StockMovementSerializer,
)
from .services import InventoryService


class InventoryStockViewSet(ReadOnlyBaseViewSet):
    queryset = InventoryStock.objects.all()
    serializer_class = InventoryStockSerializer
    select_related_fields = ("product",)
    filterset_fields = ["product", "low_stock_notified"]
    search_fields = ["product__name"]


class StockMovementViewSet(ReadOnlyBaseViewSet):
    queryset = StockMovement.objects.all()
    serializer_class = StockMovementSerializer
    select_related_fields = ("product", "order")
    filterset_fields = ["product", "movement_type", "order"]
    ordering = ["-created_at", "-id"]


class StockDiscrepancyViewSet(ReadOnlyBaseViewSet):
    """
    Operator-facing reconciliation view: ledger updates that failed after
    payment was captured.
    """

    queryset = StockDiscrepancy.objects.all()
    serializer_class = StockDiscrepancySerializer
    permission_classes = [IsManagerOrHigher]
    select_related_fields = ("product", "order")
    filterset_fields = ["status", "operation", "order"]
    ordering = ["-created_at"]

    @action(detail=True, methods=["post"])
    def retry(self, request, pk=None):
        discrepancy = self.get_object()
        resolved = InventoryService.retry_discrepancy(discrepancy.pk, user=request.user)
        discrepancy.refresh_from_db()
        return Response(
            {"resolved": resolved, "discrepancy": StockDiscrepancySerializer(discrepancy).data},
            status=status.HTTP_200_OK,
        )

    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        discrepancy = self.get_object()
        serializer = ResolveDiscrepancySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        discrepancy = InventoryService.resolve_discrepancy(
            discrepancy.pk, user=request.user, note=serializer.validated_data["note"]
        )
        return Response(StockDiscrepancySerializer(discrepancy).data)


class AdjustStockView(APIView):
    """
    Manual stock correction.
    - Positive quantity: adds stock.
    - Negative quantity: removes stock (never below zero).
    """

    permission_classes = [IsManagerOrHigher]

    def post(self, request, *args, **kwargs):
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product = get_object_or_404(Product, pk=serializer.validated_data["product_id"])

        movement = InventoryService.adjust_stock(
            product,
            serializer.validated_data["quantity"],
            user=request.user,
            reason=serializer.validated_data["reason"],
        )
        return Response(StockMovementSerializer(movement).data, status=status.HTTP_201_CREATED)


class SellableItemsView(APIView):
    """
    Items a cashier may ring up right now. Strict items with nothing
    available are left out; flexible items carry an advisory stock status.
    """

    def get(self, request, *args, **kwargs):
        products = StockPolicyService.list_sellable_products()
        packages = StockPolicyService.list_sellable_packages()
        return Response(
            {
                "products": SellableProductSerializer(products, many=True).data,
                "packages": SellablePackageSerializer(packages, many=True).data,
            }
        )
