from .order_viewset import OrderViewSet
from .session_viewset import OrderSessionViewSet

__all__ = ["OrderViewSet", "OrderSessionViewSet"]
