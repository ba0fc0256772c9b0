"""
Pytest Configuration and Fixtures
Global test configuration and reusable test fixtures
"""

import os
import sys

# Load .env.test before any other imports
from dotenv import load_dotenv
load_dotenv('.env.test')

import pytest
from unittest.mock import AsyncMock, MagicMock
from types import SimpleNamespace

# Add repository root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Override environment for tests
os.environ["AI_INTERPOLATOR_ENVIRONMENT"] = "development"
os.environ["AI_INTERPOLATOR_LOG_LEVEL"] = "ERROR"

from ai_interpolator.core.config import InMemoryFieldConfigRepository
from ai_interpolator.core.generation_client import GenerationClient
from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig, UNLIMITED, WorkerType
from ai_interpolator.processing import (
    BatchStrategy,
    DirectStrategy,
    QueueStrategy,
    QueueWorker,
    WorkQueue,
)
from ai_interpolator.rules import build_default_registry
from ai_interpolator.services import (
    ConfigResolver,
    EntityModifier,
    EntityTokenRenderer,
    InMemoryEntityStorage,
    InMemoryTermStorage,
    InterpolatorLifecycle,
    LocalFileStorage,
    RuleRunner,
    StatusTracker,
    status_field_definition,
)


# ============================================================================
# Field configuration
# ============================================================================

@pytest.fixture
def article_fields():
    """Field definitions of the node/article bundle."""
    return [
        FieldDefinition(name="title", type="string", label="Title"),
        FieldDefinition(name="body", type="text_long", label="Body"),
        FieldDefinition(name="summary", type="string", label="Summary", settings={"max_length": 255}),
        FieldDefinition(
            name="tags",
            type="entity_reference",
            label="Tags",
            cardinality=UNLIMITED,
            target_type="taxonomy_term",
            settings={"handler_settings": {"target_bundles": {"tags": "tags"}, "auto_create": True}},
        ),
        FieldDefinition(name="rating", type="integer", label="Rating", settings={"min": 0, "max": 11}),
    ]


@pytest.fixture
def repository(article_fields):
    """Repository with an article bundle and a status field."""
    repo = InMemoryFieldConfigRepository()
    for definition in article_fields:
        repo.add_field_definition("node", "article", definition)
    repo.add_field_definition("node", "article", status_field_definition())
    return repo


def make_config(field_name, rule, base_field="body", **kwargs):
    """Build an enabled interpolation config."""
    return InterpolationConfig(field_name=field_name, rule=rule, base_field=base_field, **kwargs)


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def article():
    """Unsaved article with a body."""
    return Entity(
        entity_type="node",
        bundle="article",
        fields={
            "title": [{"value": "Hello"}],
            "body": [{"value": "<p>Drupal is a content management system.</p>"}],
        },
    )


# ============================================================================
# Collaborators
# ============================================================================

@pytest.fixture
def mock_client():
    """Mock generation client."""
    client = MagicMock(spec=GenerationClient)
    client.generate = AsyncMock(return_value='[{"value": "Generated"}]')
    client.generate_structured = AsyncMock(return_value='[{"value": "https://example.com/image.png"}]')
    client.close = AsyncMock()
    return client


@pytest.fixture
def token_renderer():
    return EntityTokenRenderer()


@pytest.fixture
def resolver(repository, token_renderer):
    return ConfigResolver(repository, token_renderer)


@pytest.fixture
def term_storage():
    return InMemoryTermStorage([
        {"tid": 1, "name": "Drupal", "vid": "tags"},
        {"tid": 2, "name": "PHP", "vid": "tags"},
    ])


@pytest.fixture
def file_storage(tmp_path):
    return LocalFileStorage(str(tmp_path / "files"))


@pytest.fixture
def registry(mock_client, resolver, term_storage, file_storage):
    return build_default_registry(
        mock_client,
        resolver,
        term_storage=term_storage,
        file_storage=file_storage,
    )


@pytest.fixture
def storage():
    return InMemoryEntityStorage()


@pytest.fixture
def work_queue():
    queue = WorkQueue("sqlite://", name="test_queue", lease_seconds=60)
    yield queue
    queue.close()


@pytest.fixture
def pipeline(repository, resolver, registry, storage, work_queue):
    """Fully wired pipeline attached to the in-memory storage."""
    runner = RuleRunner(registry)
    tracker = StatusTracker(repository, storage)
    strategies = {
        WorkerType.DIRECT: DirectStrategy(runner, tracker),
        WorkerType.BATCH: BatchStrategy(runner, tracker, storage),
        WorkerType.QUEUE: QueueStrategy(work_queue, tracker),
    }
    modifier = EntityModifier(resolver, registry, strategies)
    lifecycle = InterpolatorLifecycle(modifier).attach(storage)
    worker = QueueWorker(work_queue, storage, repository, runner, tracker)
    return SimpleNamespace(
        repository=repository,
        registry=registry,
        runner=runner,
        tracker=tracker,
        strategies=strategies,
        modifier=modifier,
        lifecycle=lifecycle,
        storage=storage,
        work_queue=work_queue,
        worker=worker,
    )


# Pytest configuration hooks
def pytest_configure(config):
    """Pytest configuration hook."""
    config.addinivalue_line("markers", "integration: integration tests")
    config.addinivalue_line("markers", "unit: unit tests")


def pytest_collection_modifyitems(config, items):
    """Add 'unit' marker to all tests by default."""
    for item in items:
        if "integration" not in item.keywords:
            item.add_marker(pytest.mark.unit)
