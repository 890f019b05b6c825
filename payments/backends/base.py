# ==================== PAYMENTS/BACKENDS/BASE.PY ====================
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    reference: str = ''
    message: str = ''
    data: dict = field(default_factory=dict)


def to_minor_units(amount):
    """Gateway amounts are integers in the currency's minor unit (paise, kuruş)"""
    return int(Decimal(amount) * 100)


class BasePaymentBackend:
    """Payment collaborator used by the booking workflow.

    Every method returns a PaymentResult; gateway errors are reported through
    ``success=False`` instead of raising.
    """

    def create_order(self, booking):
        """Open a gateway order for the booking's total price"""
        raise NotImplementedError

    def verify(self, order_id, payment_id, signature):
        """Check the signature the client received after authorizing a payment"""
        raise NotImplementedError

    def capture(self, booking):
        """Capture the renter's authorized payment for ``booking``"""
        raise NotImplementedError

    def refund(self, booking):
        """Refund a captured payment in full"""
        raise NotImplementedError
