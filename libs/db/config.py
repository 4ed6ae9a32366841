from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine, AsyncSession

from libs.common.config import get_settings

settings = get_settings()


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    if not database_url.startswith("sqlite"):
        kwargs.setdefault("pool_pre_ping", True)  # Test connections before using
        kwargs.setdefault("pool_size", settings.DB_POOL_SIZE)
        kwargs.setdefault("max_overflow", settings.DB_MAX_OVERFLOW)
        kwargs.setdefault("pool_timeout", settings.DB_POOL_TIMEOUT)
        kwargs.setdefault("pool_recycle", settings.DB_POOL_RECYCLE)
    return create_async_engine(database_url, future=True, **kwargs)


# echo=True for local dev to see SQL queries
engine = build_engine(
    settings.DATABASE_URL,
    echo=(settings.ENVIRONMENT == "local"),
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)
