import asyncio
import uuid

from spinup.common.exceptions import ExternalServiceError, NotFoundError
from spinup.common.logging import bind_correlation_id, get_logger
from spinup.config import settings
from spinup.tasks.celery_app import app

logger = get_logger("tasks.trello")

CATCH_UP_BATCH_SIZE = 200


def _run_async(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@app.task(
    name="spinup.tasks.trello_tasks.push_artifact_to_trello",
    bind=True,
    max_retries=settings.TRELLO_SYNC_RETRY_LIMIT,
)
def push_artifact_to_trello(self, artifact_id: str, correlation_id: str | None = None):
    bind_correlation_id(correlation_id)
    logger.info("Pushing artifact %s to Trello (attempt %d)", artifact_id, self.request.retries + 1)

    async def _push():
        from spinup.core.trello_sync.publisher import TrelloPublisher
        from spinup.db.session import async_session_factory

        async with async_session_factory() as db:
            try:
                mapping = await TrelloPublisher().publish_artifact(db, uuid.UUID(artifact_id))
                await db.commit()
                return mapping.trello_card_id if mapping else None
            except Exception:
                await db.rollback()
                raise

    try:
        card_id = _run_async(_push())
    except NotFoundError:
        logger.warning("Artifact %s no longer exists; dropping Trello push", artifact_id)
        return None
    except ExternalServiceError as exc:
        if exc.is_credential_rejection or exc.upstream_status == 404:
            # Revoked token or board gone: retrying cannot succeed
            logger.error(
                "Trello rejected push for artifact %s (%s); not retrying", artifact_id, exc.upstream_status,
            )
            return None
        countdown = settings.TRELLO_SYNC_RETRY_COUNTDOWN * (2 ** self.request.retries)
        logger.error(
            "Trello push for artifact %s failed: %s; retrying in %ds", artifact_id, exc.detail, countdown,
        )
        raise self.retry(exc=exc, countdown=countdown)

    return {"artifact_id": artifact_id, "card_id": card_id}


@app.task(name="spinup.tasks.trello_tasks.deregister_trello_webhook", bind=True, max_retries=3)
def deregister_trello_webhook(self, access_token: str, webhook_id: str, correlation_id: str | None = None):
    bind_correlation_id(correlation_id)
    logger.info("Deregistering Trello webhook %s", webhook_id)

    async def _delete():
        from spinup.integrations.trello import TrelloClient

        await TrelloClient(token=access_token).delete_webhook(webhook_id)

    try:
        _run_async(_delete())
    except ExternalServiceError as exc:
        if exc.upstream_status in (401, 404):
            # Token revoked or webhook already gone: nothing left to clean up
            logger.info("Trello webhook %s already unreachable (%s)", webhook_id, exc.upstream_status)
            return
        logger.error("Failed to deregister Trello webhook %s: %s", webhook_id, exc.detail)
        raise self.retry(exc=exc, countdown=60)


@app.task(name="spinup.tasks.trello_tasks.sync_pending_artifacts")
def sync_pending_artifacts():
    correlation = bind_correlation_id(None)
    logger.info("Looking for artifacts pending a Trello push")

    async def _sync_pending():
        from spinup.core.trello_sync.mappings import find_stale_artifact_ids
        from spinup.db.session import async_session_factory

        async with async_session_factory() as db:
            artifact_ids = await find_stale_artifact_ids(db, limit=CATCH_UP_BATCH_SIZE)

        for artifact_id in artifact_ids:
            push_artifact_to_trello.delay(str(artifact_id), correlation_id=correlation)

        logger.info("Queued Trello push for %d artifacts", len(artifact_ids))
        return len(artifact_ids)

    return _run_async(_sync_pending())
