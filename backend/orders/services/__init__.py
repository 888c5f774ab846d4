"""
Orders services package.

- OrderService: order lifecycle (draft, confirm, bubbling, complete, void)
- OrderSessionService: tabs (open, add order, bill preview, close, abandon, move)
- OrderCalculationService: derived order and session totals
"""

from .order_service import OrderService
from .session_service import OrderSessionService
from .calculation_service import OrderCalculationService

__all__ = [
    "OrderService",
    "OrderSessionService",
    "OrderCalculationService",
]
