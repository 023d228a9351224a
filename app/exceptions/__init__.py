"""Custom exceptions for the laundry application."""
from decimal import Decimal


class LaundryError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

class BusinessLogicError(LaundryError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)

class NotFoundError(LaundryError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)

class PaymentRequiredError(BusinessLogicError):
    """Raised when a handoff is attempted while the order still has a balance."""
    def __init__(self, order_id, ticket_code, outstanding):
        outstanding = Decimal(outstanding)
        message = f"El pedido {ticket_code} tiene un saldo pendiente de ${outstanding:.2f}; cobre antes de entregar"
        super().__init__(message, status_code=402, payload={
            'code': 'PAYMENT_REQUIRED',
            'order_id': order_id,
            'outstanding': str(outstanding),
        })
        self.order_id = order_id
        self.outstanding = outstanding

class DriverUnavailableError(BusinessLogicError):
    """Raised when a task is assigned to an offline, inactive or unknown driver."""
    def __init__(self, driver_id, reason='offline'):
        message = f"El repartidor {driver_id} no está disponible ({reason})"
        super().__init__(message, status_code=409, payload={'code': 'DRIVER_UNAVAILABLE', 'driver_id': driver_id})
        self.driver_id = driver_id

class ConcurrencyConflictError(BusinessLogicError):
    """Raised when the order row changed since the snapshot was read."""
    def __init__(self, order_id, expected_version):
        message = f"El pedido {order_id} fue modificado por otro usuario; recargue e intente de nuevo"
        super().__init__(message, status_code=409, payload={
            'code': 'CONCURRENT_MODIFICATION',
            'order_id': order_id,
            'expected_version': expected_version,
        })
        self.order_id = order_id

class PersistenceError(LaundryError):
    """Raised when a store call fails; the transaction has been rolled back."""
    def __init__(self, message="Error al guardar los cambios", payload=None):
        super().__init__(message, 500, payload)
