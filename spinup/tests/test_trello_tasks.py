"""Celery task bodies, run eagerly in-process.

These are plain (non-async) tests: the tasks drive their own event loop.
"""

import uuid
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from spinup.common.exceptions import ExternalServiceError, NotFoundError
from spinup.core.trello_sync.publisher import TrelloPublisher
from spinup.integrations.trello import TrelloClient
from spinup.tasks.trello_tasks import (
    deregister_trello_webhook,
    push_artifact_to_trello,
    sync_pending_artifacts,
)


@pytest.fixture
def fake_session():
    session = AsyncMock()

    @asynccontextmanager
    async def _factory():
        yield session

    with patch("spinup.db.session.async_session_factory", _factory):
        yield session


def test_push_commits_and_reports_card(fake_session):
    artifact_id = uuid.uuid4()
    mapping = MagicMock(trello_card_id="card_7")
    with patch.object(TrelloPublisher, "publish_artifact", AsyncMock(return_value=mapping)) as publish:
        result = push_artifact_to_trello(str(artifact_id), correlation_id="req-1")

    assert result == {"artifact_id": str(artifact_id), "card_id": "card_7"}
    assert publish.await_args.args[1] == artifact_id
    fake_session.commit.assert_awaited_once()


def test_push_without_board_reports_no_card(fake_session):
    artifact_id = str(uuid.uuid4())
    with patch.object(TrelloPublisher, "publish_artifact", AsyncMock(return_value=None)):
        result = push_artifact_to_trello(artifact_id)
    assert result == {"artifact_id": artifact_id, "card_id": None}


def test_push_for_deleted_artifact_is_dropped(fake_session):
    failure = AsyncMock(side_effect=NotFoundError("Artifact"))
    with patch.object(TrelloPublisher, "publish_artifact", failure):
        assert push_artifact_to_trello(str(uuid.uuid4())) is None
    fake_session.rollback.assert_awaited_once()


def test_push_upstream_failure_is_retried(fake_session):
    failure = AsyncMock(side_effect=ExternalServiceError("trello", "PUT /cards/card_7 -> 503", 503))
    with patch.object(TrelloPublisher, "publish_artifact", failure):
        # Called directly, Task.retry re-raises the original exception
        with pytest.raises(ExternalServiceError):
            push_artifact_to_trello(str(uuid.uuid4()))
    fake_session.commit.assert_not_awaited()
    fake_session.rollback.assert_awaited_once()


@pytest.mark.parametrize("status", [401, 403, 404])
def test_push_permanent_rejection_is_not_retried(fake_session, status):
    failure = AsyncMock(side_effect=ExternalServiceError("trello", f"GET /boards/board_1/lists -> {status}", status))
    with (
        patch.object(TrelloPublisher, "publish_artifact", failure),
        patch.object(push_artifact_to_trello, "retry") as retry,
    ):
        assert push_artifact_to_trello(str(uuid.uuid4())) is None
    retry.assert_not_called()


def test_push_upstream_outage_schedules_retry(fake_session):
    failure = AsyncMock(side_effect=ExternalServiceError("trello", "PUT /cards/card_7 timed out"))
    with (
        patch.object(TrelloPublisher, "publish_artifact", failure),
        patch.object(push_artifact_to_trello, "retry", side_effect=RuntimeError("retry scheduled")) as retry,
    ):
        with pytest.raises(RuntimeError):
            push_artifact_to_trello(str(uuid.uuid4()))
    assert retry.call_args.kwargs["countdown"] == 60


def test_webhook_teardown():
    delete = AsyncMock(return_value=None)
    with patch.object(TrelloClient, "delete_webhook", delete):
        deregister_trello_webhook("tok", "webhook_1")
    delete.assert_awaited_once_with("webhook_1")


@pytest.mark.parametrize("status", [401, 404])
def test_webhook_teardown_gives_up_when_unreachable(status):
    gone = AsyncMock(side_effect=ExternalServiceError("trello", "DELETE /webhooks/webhook_1", status))
    with patch.object(TrelloClient, "delete_webhook", gone):
        assert deregister_trello_webhook("tok", "webhook_1") is None


def test_webhook_teardown_retries_on_outage():
    outage = AsyncMock(side_effect=ExternalServiceError("trello", "DELETE /webhooks/webhook_1 timed out"))
    with patch.object(TrelloClient, "delete_webhook", outage):
        with pytest.raises(ExternalServiceError):
            deregister_trello_webhook("tok", "webhook_1")


def test_sync_pending_artifacts_enqueues_each(fake_session, mock_celery_tasks):
    ids = [uuid.uuid4(), uuid.uuid4()]
    with patch("spinup.core.trello_sync.mappings.find_stale_artifact_ids", AsyncMock(return_value=ids)):
        assert sync_pending_artifacts() == 2

    queued = [c.args[0] for c in mock_celery_tasks["push"].call_args_list]
    assert queued == [str(i) for i in ids]
