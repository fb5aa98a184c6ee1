"""
ORDERS App - Error taxonomy

Every failure leaves the order untouched. OrderConflict and OrderNotFound
are retryable after re-fetching; the others need a different request.
"""


class OrderError(Exception):
    """Base class for order lifecycle failures."""

    code = 'order_error'
    retryable = False

    def __init__(self, message: str = ''):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class OrderValidationError(OrderError):
    """Invalid order fields."""

    code = 'validation_error'

    def __init__(self, errors: dict):
        self.errors = errors
        summary = '; '.join(
            f"{field}: {', '.join(messages)}" for field, messages in errors.items()
        )
        super().__init__(f"Invalid order: {summary}")


class OrderNotFound(OrderError):
    """Order not found."""

    code = 'not_found'
    retryable = True

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class OrderConflict(OrderError):
    """The order changed concurrently."""

    code = 'conflict'
    retryable = True

    def __init__(self, order_id, expected_status, current_status=None):
        self.order_id = order_id
        self.expected_status = expected_status
        self.current_status = current_status
        if current_status:
            message = (
                f"Order {order_id} is {current_status}, expected {expected_status}"
            )
        else:
            message = f"Order {order_id} is no longer {expected_status}"
        super().__init__(message)


class OrderForbidden(OrderError):
    """Actor is not allowed to perform this operation."""

    code = 'forbidden'


class InvalidTransition(OrderError):
    """Requested transition does not exist."""

    code = 'invalid_transition'

    def __init__(self, order_id, current_status, operation: str):
        self.order_id = order_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} order {order_id} in status {current_status}"
        )
