from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import TIMESTAMP, Column, func
from sqlmodel import Field

from app.schemas.payment_schema import PaymentSettingsBase


# a single record holds the seller payment credentials
class PaymentSettings(PaymentSettingsBase, table=True):
    __tablename__ = "payment_settings"

    id: int = Field(default=None, primary_key=True)
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(
            TIMESTAMP(timezone=True),
            nullable=True,
            server_default=func.now(),
            onupdate=func.now(),
        ),
    )
