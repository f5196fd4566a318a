import ssl

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.core import config

# this constructs a connection string to our database
db_url = config.config.database_url or URL.create(
    drivername="postgresql+asyncpg",
    username=config.config.db_user,
    password=config.config.db_password,
    host=config.config.db_host,
    port=config.config.db_port,
    database=config.config.db_name,
)

# upgrade connection to use SSL
connect_args = {}
if config.config.render_env == config.Environment.PRODUCTION:
    connect_args["ssl"] = ssl.create_default_context()

# Engine does not work directly with a database it requires a session
# (sessionmaker)
engine = create_async_engine(
    db_url,
    echo=config.config.db_echo,
    future=True,
    connect_args=connect_args,
)

# factory for creating asynchronous sessions (AsyncSession)
async_session = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    # objects remain available after committing a transaction
    expire_on_commit=False,
)


async def init_db():
    # tables are registered on the metadata when the model modules are imported
    from app.models import (  # noqa: F401
        bid_model,
        email_template_model,
        listing_model,
        payment_model,
        payment_settings_model,
        user_model,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
