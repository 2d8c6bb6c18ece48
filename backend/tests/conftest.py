"""
SandboxForge - Test Configuration and Fixtures
"""
import os
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from faker import Faker

# Set testing environment before settings are imported
os.environ['ENVIRONMENT'] = 'development'
os.environ['LOG_FILE'] = ''
os.environ['LOG_LEVEL'] = 'DEBUG'
os.environ['DAYTONA_API_KEY'] = 'test-daytona-key'
os.environ['ANTHROPIC_API_KEY'] = 'test-anthropic-key'
os.environ['OPENAI_API_KEY'] = 'test-openai-key'
os.environ['LOVABLE_API_KEY'] = ''
os.environ['WORKER_TRANSPORT'] = 'local'
os.environ['GENERATION_TIMEOUT_SECONDS'] = '0'
os.environ['SSE_DISCONNECT_POLL_SECONDS'] = '0.05'
os.environ['WORKER_KILL_GRACE_SECONDS'] = '1'

from sandboxforge.main import app
from sandboxforge.core.config import Settings, settings
from sandboxforge.modules.generation.cancellation import CancellationController
from sandboxforge.modules.generation.invocation import InvocationBuilder
from sandboxforge.modules.generation.orchestrator import SessionOrchestrator
from sandboxforge.api.v1.endpoints.generate import get_cancellation_controller, get_orchestrator
from sandboxforge.api.v1.endpoints.sandboxes import get_invocation_builder, get_worker_factory

from tests.mocks.workers import FakeWorkerFactory

fake = Faker()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with every credential configured"""
    return Settings(
        DAYTONA_API_KEY='test-daytona-key',
        ANTHROPIC_API_KEY='test-anthropic-key',
        OPENAI_API_KEY='test-openai-key',
        LOVABLE_API_KEY='test-lovable-key',
        WORKER_COMMAND='npx tsx',
        WORKER_SCRIPTS_DIR='scripts',
        GENERATION_TIMEOUT_SECONDS=0,
        LOG_FILE='',
    )


@pytest.fixture
def prompt() -> str:
    return fake.sentence(nb_words=6)


@pytest.fixture
def worker_factory() -> FakeWorkerFactory:
    return FakeWorkerFactory()


@pytest.fixture
def orchestrator(worker_factory, test_settings) -> SessionOrchestrator:
    return SessionOrchestrator(
        worker_factory=worker_factory,
        builder=InvocationBuilder(test_settings),
        config=test_settings,
    )


@pytest.fixture
def controller() -> CancellationController:
    return CancellationController()


@pytest.fixture
async def client(worker_factory, controller) -> AsyncGenerator[AsyncClient, None]:
    """Test client whose workers are scripted fakes"""
    runner = SessionOrchestrator(
        worker_factory=worker_factory,
        builder=InvocationBuilder(settings),
        config=settings,
    )
    app.dependency_overrides[get_orchestrator] = lambda: runner
    app.dependency_overrides[get_cancellation_controller] = lambda: controller
    app.dependency_overrides[get_invocation_builder] = lambda: InvocationBuilder(settings)
    app.dependency_overrides[get_worker_factory] = lambda: worker_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()
