"""
Async SQLAlchemy engine and sessions for the billing database.

Postgres via asyncpg in deployments; any async URL (e.g. sqlite+aiosqlite)
works since the models only use portable column types.
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
import os

# Import all models to ensure they're registered in the same registry
# This must happen before creating the engine
from infrastructure.db.models import Base, PlanModel, EnrollmentModel, InvoiceModel  # noqa: F401


def database_url() -> str:
    """DATABASE_URL if set, otherwise assembled from the DB_* variables."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    user = os.getenv("DB_USER", "postgres")
    password = os.getenv("DB_PASSWORD", "postgres")
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_NAME", "chitfund")
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"


DATABASE_URL = database_url()

engine = create_async_engine(
    DATABASE_URL,
    echo=os.getenv("DB_ECHO", "false").lower() == "true",
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def create_tables() -> None:
    """Create any missing tables. Used for local runs; deployments manage the schema."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db_session() -> AsyncSession:
    """
    Dependency function to get database session.
    Use this in FastAPI route dependencies.
    """
    async with AsyncSessionLocal() as session:
        yield session
