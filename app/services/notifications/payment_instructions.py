"""
HTML fragments substituted into the auction emails.
"""

from datetime import datetime
from decimal import Decimal
from html import escape
from typing import Iterable, Optional

from app.models.enums.payment_method import PaymentMethod
from app.models.listing_model import Listing
from app.models.payment_settings_model import PaymentSettings

NO_PAYMENT_SETTINGS = "Contact seller for payment details."

PAYMENT_METHOD_LABELS = {
    PaymentMethod.PAYPAL: "PayPal",
    PaymentMethod.CASHAPP: "Cash App",
    PaymentMethod.VENMO: "Venmo",
    PaymentMethod.BANK_TRANSFER: "Bank Transfer",
}


def format_price(amount: Decimal) -> str:
    return f"{Decimal(amount):.2f}"


def format_date(value: datetime) -> str:
    # e.g. "October 9, 2026"
    return f"{value:%B} {value.day}, {value.year}"


def accepted_methods(listing: Listing) -> list[PaymentMethod]:
    if listing.payment_methods is None:
        return list(PaymentMethod)
    return [PaymentMethod(method) for method in listing.payment_methods]


def configured_methods(
    settings: Optional[PaymentSettings], methods: Iterable[PaymentMethod]
) -> list[PaymentMethod]:
    """Methods out of ``methods`` whose credentials are filled in."""
    if settings is None:
        return []

    configured = []
    for method in methods:
        if method == PaymentMethod.PAYPAL and settings.paypal_email:
            configured.append(method)
        elif method == PaymentMethod.CASHAPP and settings.cashapp_id:
            configured.append(method)
        elif method == PaymentMethod.VENMO and settings.venmo_id:
            configured.append(method)
        elif (
            method == PaymentMethod.BANK_TRANSFER
            and settings.bank_name
            and settings.bank_account_number
        ):
            configured.append(method)
    return configured


def _qr_code(url: Optional[str], label: str) -> str:
    if not url:
        return ""
    return (
        "<p>Scan this QR code to pay:</p>"
        f'<img src="{escape(url)}" alt="{label} QR Code" '
        'style="max-width: 200px; border: 1px solid #eee;">'
    )


def _method_block(method: PaymentMethod, settings: PaymentSettings) -> str:
    label = PAYMENT_METHOD_LABELS[method]
    lines = [
        '<div style="margin-bottom: 15px;">',
        f'<strong style="color: #F4812C;">{label}:</strong><br>',
    ]
    if method == PaymentMethod.PAYPAL:
        lines.append(f"Send payment to: <code>{escape(settings.paypal_email)}</code>")
    elif method == PaymentMethod.CASHAPP:
        lines.append(f"Send to: <code>{escape(settings.cashapp_id)}</code>")
        lines.append(_qr_code(settings.cashapp_qr, label))
    elif method == PaymentMethod.VENMO:
        lines.append(f"Send to: <code>{escape(settings.venmo_id)}</code>")
        lines.append(_qr_code(settings.venmo_qr, label))
    elif method == PaymentMethod.BANK_TRANSFER:
        lines.extend(
            [
                f"Bank: {escape(settings.bank_name)}<br>",
                f"Account Name: {escape(settings.bank_account_name or 'Not provided')}<br>",
                f"Account Number: {escape(settings.bank_account_number)}<br>",
                f"Routing Number: {escape(settings.bank_routing_number or 'Not provided')}",
            ]
        )
    lines.append("</div>")
    return "".join(lines)


def build_payment_instructions(
    settings: Optional[PaymentSettings], listing: Listing
) -> str:
    """
    Payment options for the winner, limited to the methods the listing accepts
    and the seller actually configured.
    """
    if settings is None:
        return NO_PAYMENT_SETTINGS

    parts = [
        '<div style="font-family: Arial, sans-serif; margin: 20px 0;">',
        '<h3 style="color: #1B2841; border-bottom: 1px solid #eee; padding-bottom: 10px;">Payment Options</h3>',
    ]
    for method in configured_methods(settings, accepted_methods(listing)):
        parts.append(_method_block(method, settings))

    if settings.payment_instructions:
        extra = escape(settings.payment_instructions).replace("\n", "<br>")
        parts.append(
            '<div style="margin-top: 20px; padding-top: 15px; border-top: 1px solid #eee;">'
            '<strong style="color: #1B2841;">Additional Instructions:</strong>'
            f"<p>{extra}</p>"
            "</div>"
        )

    parts.append("</div>")
    return "".join(parts)


def build_transaction_details(
    listing: Listing, final_price: Decimal, when: datetime
) -> str:
    return "".join(
        [
            '<div style="background-color: #f9f9f9; padding: 15px; border-radius: 5px; margin-bottom: 20px; border-left: 4px solid #F4812C;">',
            f"<strong>Item:</strong> {escape(listing.title)}<br>",
            f"<strong>Final Price:</strong> ${format_price(final_price)}<br>",
            f"<strong>Transaction Date:</strong> {format_date(when)}<br>",
            f"<strong>Reference:</strong> TRU-{listing.id}",
            "</div>",
        ]
    )


def build_auction_details(
    listing: Listing, final_price: Decimal, winner_email: str, when: datetime
) -> str:
    return "".join(
        [
            '<div style="background-color: #f9f9f9; padding: 15px; border-radius: 5px; margin: 15px 0; border-left: 4px solid #1B2841;">',
            f"<strong>Item:</strong> {escape(listing.title)}<br>",
            f"<strong>Category:</strong> {escape(listing.category or 'Not specified')}<br>",
            f"<strong>Final Price:</strong> ${format_price(final_price)}<br>",
            f"<strong>Buyer:</strong> {escape(winner_email)}<br>",
            f"<strong>Auction ID:</strong> {listing.id}<br>",
            f"<strong>Date Ended:</strong> {format_date(when)}",
            "</div>",
        ]
    )
