from enum import Enum


class BidStatus(str, Enum):
    ACTIVE = "active"
    WON = "won"
    LOST = "lost"
