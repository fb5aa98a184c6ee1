from orders.services.coordinator import AssignmentCoordinator
from orders.services.queries import OrderQueryService
from orders.services.store import OrderStore

__all__ = ['AssignmentCoordinator', 'OrderQueryService', 'OrderStore']
