from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from .config import get_settings

settings = get_settings()

is_sqlite = settings.database_url.startswith("sqlite")

engine = create_async_engine(
    settings.database_url,
    echo=False,  # Disable SQL query logging to reduce noise
    future=True,
    pool_pre_ping=True,  # Validate connections before use
    connect_args={
        "command_timeout": 60,  # 60 second command timeout
    } if settings.database_url.startswith("postgresql") else {}
)

if is_sqlite:
    # SQLite ignores ON DELETE CASCADE (env_vars) unless asked per connection
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()


async def get_db():
    """One session per request; the lifecycle manager commits explicitly."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
