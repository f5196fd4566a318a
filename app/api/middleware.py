import os

from fastapi import Request, status
from fastapi.responses import JSONResponse
from firebase_admin import _apps, auth, credentials, exceptions, initialize_app

from app.core.config import config
from app.core.logging import get_logger

logger = get_logger(__name__)

firebase_app = None


def init_firebase():
    global firebase_app
    if not _apps and os.getenv("TESTING") != "1":
        cred = credentials.Certificate(config.firebase_credentials_path)
        options = {}
        if config.firebase_storage_bucket:
            options["storageBucket"] = config.firebase_storage_bucket
        firebase_app = initialize_app(cred, options)
        logger.info("firebase_initialized", bucket=config.firebase_storage_bucket)


async def authenticate_request(request: Request, call_next):
    if request.url.path.startswith(("/docs", "/openapi.json", "/redoc")):
        return await call_next(request)

    auth_header = request.headers.get("Authorization")

    if not auth_header:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Authorization header is missing"},
        )

    token = auth_header.split(" ")[1] if " " in auth_header else None
    if not token:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": "Invalid or missing authentication token"},
        )

    # tests override get_user instead
    if os.getenv("TESTING") == "1":
        return await call_next(request)

    try:
        user = auth.verify_id_token(token, firebase_app)
    except (ValueError, exceptions.FirebaseError) as e:
        logger.warning("token_verification_failed", error=str(e))
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": f"{e}"},
        )

    request.state.user = user
    return await call_next(request)
