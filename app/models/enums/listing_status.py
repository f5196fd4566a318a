from enum import Enum


# https://github.com/fastapi/sqlmodel/issues/96#issuecomment-921179607
class ListingStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    # deadline passed, with or without a winning bid
    ENDED = "ended"
    # closed through buy-now
    SOLD = "sold"
