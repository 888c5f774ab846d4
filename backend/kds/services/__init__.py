from .routing_service import RoutingService, Declared, Inferred, ItemRoute
from .ticket_service import TicketService
from .notification_service import KDSNotificationService

__all__ = [
    'RoutingService', 'Declared', 'Inferred', 'ItemRoute',
    'TicketService', 'KDSNotificationService',
]
