"""Shared pytest fixtures for the CRM automation engine test suite.

Provides:
- In-memory async SQLite database for the audit log
- Collaborator fakes wired into NodeServices (see fakes.py)
- Executor, registry and hook-bus fixtures
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Override settings BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("EXECUTION_LOG_ENABLED", "true")

from core import metrics  # noqa: E402
from fakes import (  # noqa: E402
    FakeContactStore,
    FakeDealStore,
    FakeEventPublisher,
    FakeMessageLog,
    FakeMessagingClient,
    FakeTemplateStore,
    HookRecorder,
)
from db.base import Base  # noqa: E402
from nodes.registry import NodeHandlerRegistry  # noqa: E402
from nodes.services import NodeServices  # noqa: E402
from workflow import hooks as hooks_module  # noqa: E402
from workflow.engine import WorkflowExecutor  # noqa: E402
from workflow.hooks import ExecutionLifecycleHooks  # noqa: E402


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_process_state():
    """Start every test with empty metrics and a fresh process-wide hook bus."""
    metrics.reset()
    hooks_module._hooks = None
    yield
    hooks_module._hooks = None


@pytest.fixture
def contact() -> dict:
    return {
        "id": "contact-1",
        "name": "Maria Silva",
        "phone": "5511999990000",
        "email": "maria@example.com",
        "tags": ["lead", "vip"],
        "custom_fields": {"city": "Lisbon", "plan": "gold"},
    }


@pytest.fixture
def profile() -> dict:
    return {
        "id": "user-1",
        "meta_access_token": "token-abc",
        "meta_waba_id": "waba-1",
        "meta_phone_number_id": "phone-1",
    }


@pytest.fixture
def services(contact) -> NodeServices:
    return NodeServices(
        contacts=FakeContactStore({contact["id"]: dict(contact)}),
        deals=FakeDealStore(),
        templates=FakeTemplateStore(),
        messaging=FakeMessagingClient(),
        message_log=FakeMessageLog(),
        events=FakeEventPublisher(),
    )


@pytest.fixture
def registry(services) -> NodeHandlerRegistry:
    return NodeHandlerRegistry(services)


@pytest.fixture
def hooks() -> ExecutionLifecycleHooks:
    return ExecutionLifecycleHooks()


@pytest.fixture
def recorder(hooks) -> HookRecorder:
    return HookRecorder(hooks)


@pytest.fixture
def executor(registry, hooks) -> WorkflowExecutor:
    return WorkflowExecutor(registry, hooks)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh file-backed audit database per test.

    A file database lets concurrent runs use separate connections instead of
    interleaving on one shared StaticPool connection.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}",
        echo=False,
    )
    # Import all models so Base.metadata knows about them
    import db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
