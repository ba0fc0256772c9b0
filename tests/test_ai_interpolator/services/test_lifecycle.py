"""
Integration tests for the save lifecycle.

Saves go through InMemoryEntityStorage with the pipeline attached, the
way a host wires it.
"""

import pytest

from ai_interpolator.models import EntityStatus, WorkerType
from ai_interpolator.services import STATUS_FIELD


@pytest.fixture
def enable(pipeline, config_factory):
    def _enable(field_name, rule, **kwargs):
        config = config_factory(field_name, rule, **kwargs)
        pipeline.repository.set_config("node", "article", config)
        return config
    return _enable


@pytest.mark.integration
class TestInterpolatorLifecycle:
    """Tests for direct and batch fields through storage saves."""

    @pytest.mark.asyncio
    async def test_direct_field_saved_with_entity(self, enable, pipeline, mock_client, article):
        enable("summary", "ai_interpolator_string")

        saved = await pipeline.storage.save(article)

        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value("summary") == "Generated"
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.FINISHED.value
        assert loaded.revision == 1
        assert mock_client.generate.await_count == 1

    @pytest.mark.asyncio
    async def test_batch_field_written_after_save(self, enable, pipeline, mock_client, article):
        enable("summary", "ai_interpolator_string", worker_type=WorkerType.BATCH.value)

        saved = await pipeline.storage.save(article)

        assert saved.get("summary") == []
        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value("summary") == "Generated"
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.FINISHED.value
        # Field write and status write are separate suppressed saves
        assert loaded.revision == 3
        assert mock_client.generate.await_count == 1

    @pytest.mark.asyncio
    async def test_batch_failure_sets_failed(self, enable, pipeline, mock_client, article):
        enable("summary", "ai_interpolator_string", worker_type=WorkerType.BATCH.value)
        mock_client.generate.side_effect = RuntimeError("backend down")

        saved = await pipeline.storage.save(article)

        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get("summary") == []
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.FAILED.value

    @pytest.mark.asyncio
    async def test_resave_without_edit_mode_keeps_value(self, enable, pipeline, mock_client, article):
        enable("summary", "ai_interpolator_string")
        saved = await pipeline.storage.save(article)

        entity = await pipeline.storage.load("node", saved.id)
        entity.set("body", "Something else entirely")
        await pipeline.storage.save(entity)

        assert mock_client.generate.await_count == 1

    @pytest.mark.asyncio
    async def test_resave_in_edit_mode_regenerates(self, enable, pipeline, mock_client, article):
        enable("summary", "ai_interpolator_string", edit_mode=True)
        saved = await pipeline.storage.save(article)
        mock_client.generate.return_value = '[{"value": "Regenerated"}]'

        entity = await pipeline.storage.load("node", saved.id)
        await pipeline.storage.save(entity)
        assert mock_client.generate.await_count == 1

        entity = await pipeline.storage.load("node", saved.id)
        entity.set("body", "Something else entirely")
        await pipeline.storage.save(entity)

        assert mock_client.generate.await_count == 2
        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value("summary") == "Regenerated"

    @pytest.mark.asyncio
    async def test_status_field_added_with_first_config(self, enable, pipeline, article):
        pipeline.repository.remove_field_definition("node", "article", STATUS_FIELD)
        enable("summary", "ai_interpolator_string")

        saved = await pipeline.storage.save(article)

        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.FINISHED.value

    @pytest.mark.asyncio
    async def test_direct_failure_still_saves(self, enable, pipeline, mock_client, article):
        enable("summary", "ai_interpolator_string")
        mock_client.generate.side_effect = RuntimeError("backend down")

        saved = await pipeline.storage.save(article)

        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value("title") == "Hello"
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.FAILED.value


@pytest.mark.integration
class TestMixedWorkers:
    """Tests for the entity status when one save uses several workers."""

    @pytest.mark.asyncio
    async def test_direct_failure_with_batch_success(self, enable, pipeline, mock_client, article):
        enable("summary", "ai_interpolator_string")
        enable("rating", "ai_interpolator_integer", worker_type=WorkerType.BATCH.value)
        mock_client.generate.side_effect = [RuntimeError("backend down"), '[{"value": 7}]']

        saved = await pipeline.storage.save(article)

        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value("rating") == 7
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.FAILED.value

    @pytest.mark.asyncio
    async def test_direct_failure_with_queue_success(self, enable, pipeline, mock_client, article):
        enable("summary", "ai_interpolator_string")
        enable("rating", "ai_interpolator_integer", worker_type=WorkerType.QUEUE.value)
        mock_client.generate.side_effect = [RuntimeError("backend down"), '[{"value": 7}]']

        saved = await pipeline.storage.save(article)
        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.PROCESSING.value

        assert await pipeline.worker.run() == 1

        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value("rating") == 7
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.FAILED.value

    @pytest.mark.asyncio
    async def test_batch_failure_with_queue_success(self, enable, pipeline, mock_client, article):
        enable("summary", "ai_interpolator_string", worker_type=WorkerType.BATCH.value)
        enable("rating", "ai_interpolator_integer", worker_type=WorkerType.QUEUE.value)
        mock_client.generate.side_effect = [RuntimeError("backend down"), '[{"value": 7}]']

        saved = await pipeline.storage.save(article)
        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.PROCESSING.value

        await pipeline.worker.run()

        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.FAILED.value

    @pytest.mark.asyncio
    async def test_all_workers_succeed(self, enable, pipeline, mock_client, article):
        enable("summary", "ai_interpolator_string", worker_type=WorkerType.BATCH.value)
        enable("rating", "ai_interpolator_integer", worker_type=WorkerType.QUEUE.value)
        mock_client.generate.side_effect = ['[{"value": "Generated"}]', '[{"value": 7}]']

        saved = await pipeline.storage.save(article)
        await pipeline.worker.run()

        loaded = await pipeline.storage.load("node", saved.id)
        assert loaded.get_value("summary") == "Generated"
        assert loaded.get_value(STATUS_FIELD) == EntityStatus.FINISHED.value
