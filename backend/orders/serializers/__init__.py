from .order_serializers import (
    OrderItemAddOnSerializer,
    OrderItemSerializer,
    OrderModificationSerializer,
    OrderSerializer,
)
from .session_serializers import OrderSessionSerializer, OrderSessionListSerializer
from .action_serializers import (
    AddOnInputSerializer,
    OrderItemInputSerializer,
    OrderCreateSerializer,
    PaymentSerializer,
    VoidOrderSerializer,
    ApplyDiscountSerializer,
    OpenSessionSerializer,
    MoveTableSerializer,
    AbandonSessionSerializer,
    ReduceItemSerializer,
)

__all__ = [
    "OrderItemAddOnSerializer",
    "OrderItemSerializer",
    "OrderModificationSerializer",
    "OrderSerializer",
    "OrderSessionSerializer",
    "OrderSessionListSerializer",
    "AddOnInputSerializer",
    "OrderItemInputSerializer",
    "OrderCreateSerializer",
    "PaymentSerializer",
    "VoidOrderSerializer",
    "ApplyDiscountSerializer",
    "OpenSessionSerializer",
    "MoveTableSerializer",
    "AbandonSessionSerializer",
    "ReduceItemSerializer",
]
