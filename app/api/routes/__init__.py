from .email_templates_route import router as email_templates_router
from .listings import router as listings_router
from .payment_settings_route import router as payment_settings_router
from .users_route import router as users_router

__all__ = [
    "email_templates_router",
    "listings_router",
    "payment_settings_router",
    "users_router",
]
