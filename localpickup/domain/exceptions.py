class DomainException(Exception):
    pass


class InvalidOrderError(DomainException):
    """Некорректная корзина или сумма ниже минимальной"""
    pass


class PaymentFailedError(DomainException):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"payment failed: {reason}")


class OrderPersistenceError(DomainException):
    """Деньги списаны, а заказ не сохранен, нужна ручная сверка"""

    def __init__(self, payment_id: str, amount, customer_id: str):
        self.payment_id = payment_id
        self.amount = amount
        self.customer_id = customer_id
        super().__init__("order could not be saved after payment")


class PinCacheError(DomainException):
    pass


class GeoIndexError(DomainException):
    pass


class OrderNotFoundError(DomainException):
    pass


class BusinessNotFoundError(DomainException):
    pass


class OrderAccessDeniedError(DomainException):
    pass


class InvalidOrderStateError(DomainException):
    def __init__(self, action: str, status):
        self.action = action
        self.status = status
        super().__init__(f"order cannot be {action} in status {getattr(status, 'value', status)}")


class InvalidPINError(DomainException):
    def __init__(self):
        super().__init__("invalid PIN")


class CancellationNotSupportedError(DomainException):
    pass


class NotificationError(DomainException):
    pass


class BusinessAccessDeniedError(DomainException):
    pass
