from enum import Enum


class PaymentMethod(str, Enum):
    PAYPAL = "paypal"
    CASHAPP = "cashapp"
    VENMO = "venmo"
    BANK_TRANSFER = "bank_transfer"
