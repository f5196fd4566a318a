from decimal import Decimal

from pydantic import BaseModel, ConfigDict
from sqlmodel import Field, SQLModel

from app.core.timeutils import UtcDatetime
from app.models.enums.payment_method import PaymentMethod
from app.models.enums.payment_status import PaymentStatus


# seller-level payment credentials shown to auction winners
class PaymentSettingsBase(SQLModel):
    model_config = ConfigDict(extra="forbid")
    paypal_email: str | None = Field(default=None, max_length=255)
    cashapp_id: str | None = Field(default=None, max_length=255)
    cashapp_qr: str | None = Field(default=None, max_length=1024)
    venmo_id: str | None = Field(default=None, max_length=255)
    venmo_qr: str | None = Field(default=None, max_length=1024)
    bank_name: str | None = Field(default=None, max_length=255)
    bank_account_name: str | None = Field(default=None, max_length=255)
    bank_account_number: str | None = Field(default=None, max_length=255)
    bank_routing_number: str | None = Field(default=None, max_length=255)
    payment_instructions: str | None = Field(default=None, max_length=5000)


class PaymentSettingsUpdate(PaymentSettingsBase):
    pass


class PaymentSettingsGet(PaymentSettingsBase):
    id: int | None = None
    updated_at: UtcDatetime | None = None


class PaymentBase(SQLModel):
    model_config = ConfigDict(extra="forbid")
    payment_method: PaymentMethod
    buyer_contact: str = Field(min_length=1, max_length=500)
    notes: str | None = Field(default=None, max_length=2000)


class PaymentCreate(PaymentBase):
    pass


class PaymentGet(PaymentBase):
    id: int
    listing_id: int
    bid_id: int
    amount: Decimal
    status: PaymentStatus
    created_by: str
    created_at: UtcDatetime


class PaymentOption(BaseModel):
    method: PaymentMethod
    label: str
