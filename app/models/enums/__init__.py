from .bid_status import BidStatus
from .email_template_type import EmailTemplateType
from .listing_status import ListingStatus
from .payment_method import PaymentMethod
from .payment_status import PaymentStatus
from .user_role import UserRole

__all__ = [
    "BidStatus",
    "EmailTemplateType",
    "ListingStatus",
    "PaymentMethod",
    "PaymentStatus",
    "UserRole",
]
