from enum import Enum


class EmailTemplateType(str, Enum):
    AUCTION_WON = "auction_won"
    ADMIN_NOTIFICATION = "admin_notification"
    LISTING_CREATED = "listing_created"
