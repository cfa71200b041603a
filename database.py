import os

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

# ----------------------------------------------------------------------------
# Config
# ----------------------------------------------------------------------------
# Prefer PostgreSQL if provided, otherwise fall back to SQLite (so server always boots)
_env_db = os.getenv("DATABASE_URL", "").strip()
if _env_db:
    DATABASE_URL = _env_db
else:
    # Non-prod fallback to avoid startup failures when Postgres is unavailable
    DATABASE_URL = "sqlite+aiosqlite:///./app.db"

USING_SQLITE = DATABASE_URL.startswith("sqlite")

# aiosqlite connections are bound to the event loop that opened them
_engine_options = {"poolclass": NullPool} if USING_SQLITE else {"pool_pre_ping": True}

engine = create_async_engine(DATABASE_URL, echo=False, future=True, **_engine_options)
async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()


async def get_db() -> AsyncSession:
    async with async_session() as session:
        yield session


async def init_models():
    # Import for side effects: registers the tables on Base.metadata
    import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
