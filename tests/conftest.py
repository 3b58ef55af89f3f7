"""
Test configuration and fixtures for pytest.

Fixtures include: an in-memory database, a routing sink writing to a temp
directory, a mocked orchestrator and a lifecycle manager wired to all three.
Nothing here talks to Docker, Traefik or DNS.
"""

import os
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool


def pytest_configure(config):
    """
    Pytest hook called before test collection.
    Sets up test environment variables and registers custom markers.
    """
    # Set test environment variables BEFORE any app imports
    os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
    os.environ["SUPAPANEL_MODE"] = "development"
    os.environ["LOG_LEVEL"] = "DEBUG"

    # Import and clear settings cache after env vars are set
    from supapanel.config import get_settings
    get_settings.cache_clear()

    # Register custom markers
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "docker: mark test as requiring Docker")


# Test database setup (one shared connection so the in-memory schema survives)
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def test_db_engine():
    """Create test database engine."""
    from supapanel.database import Base
    import supapanel.models  # noqa: F401  (registers tables)

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db_session(test_db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def dynamic_dir(tmp_path):
    """Directory standing in for Traefik's watched dynamic config directory."""
    return tmp_path / "traefik" / "dynamic"


@pytest.fixture
def routing_sink(dynamic_dir):
    from supapanel.services.routing import TraefikFileSink
    return TraefikFileSink(str(dynamic_dir))


@pytest.fixture
def projects_dir(tmp_path):
    path = tmp_path / "projects"
    path.mkdir()
    return path


@pytest.fixture
def mock_orchestrator(projects_dir):
    """Orchestrator whose operations all succeed and report nothing deployed."""
    from supapanel.services.orchestration.base import ComposeResult, DockerStatus

    orchestrator = MagicMock()
    orchestrator.get_project_path = MagicMock(side_effect=lambda slug: str(projects_dir / slug))
    orchestrator.deploy = AsyncMock(return_value=ComposeResult(success=True, output="started"))
    orchestrator.stop = AsyncMock(return_value=ComposeResult(success=True))
    orchestrator.teardown = AsyncMock(return_value=ComposeResult(success=True))
    orchestrator.get_status = AsyncMock(return_value={
        'status': DockerStatus.NOT_DEPLOYED,
        'running_count': 0,
        'total_count': 0,
        'containers': {},
    })
    orchestrator.get_logs = AsyncMock(return_value={'success': True, 'logs': "kong  | started\n"})
    orchestrator.get_studio_url = AsyncMock(return_value=None)
    return orchestrator


@pytest.fixture
def dns_verifier():
    """DNS check that always succeeds."""
    return AsyncMock(return_value=True)


@pytest.fixture
def lifecycle_manager(test_db_session, mock_orchestrator, routing_sink, dns_verifier):
    from supapanel.services.project_lifecycle import ProjectLifecycleManager
    return ProjectLifecycleManager(
        test_db_session,
        mock_orchestrator,
        routing_sink,
        dns_verifier=dns_verifier,
    )


@pytest.fixture
def panel_domain_manager(test_db_session, routing_sink, dns_verifier):
    from supapanel.services.panel_domain import PanelDomainManager
    return PanelDomainManager(test_db_session, routing_sink, dns_verifier=dns_verifier)
