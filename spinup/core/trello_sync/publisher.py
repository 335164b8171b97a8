"""Pushes internal changes out to Trello.

Board selection and disconnect run inside the user's request and fail
loudly; they commit before queueing follow-up work so a worker never reads
the state they replace. Artifact pushes run in Celery
(``push_artifact_to_trello``): transient failures are retried, permanent
rejections are logged and dropped, and neither touches the artifact itself.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from spinup.common.exceptions import ConflictError, ExternalServiceError, NotFoundError
from spinup.common.logging import correlation_id, get_logger
from spinup.core.trello_sync.connections import (
    claim_board,
    delete_connection,
    get_connection,
    require_connection,
    webhook_callback_url,
)
from spinup.core.trello_sync.mappings import create_mapping, get_mapping_for_artifact, mark_pushed
from spinup.db.models.artifact import Artifact
from spinup.db.models.trello_card_mapping import TrelloCardMapping
from spinup.db.models.trello_connection import TrelloConnection
from spinup.integrations.trello import TrelloClient

logger = get_logger("trello_sync.publisher")

WEBHOOK_DESCRIPTION = "SpinUp sync"
BOARD_CONFLICT = "A board is already selected; disconnect before choosing another"


def summarize_artifact(artifact: Artifact) -> str:
    """Plain-text card description mirroring the artifact's content."""
    lines = [f"SpinUp {artifact.artifact_type.replace('_', ' ')} ({artifact.status})", ""]
    for key, value in (artifact.data or {}).items():
        label = str(key).replace("_", " ").capitalize()
        lines.append(f"**{label}:** {_render_value(value)}")
    return "\n".join(lines).strip()


def _render_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(_render_value(v) for v in value)
    if isinstance(value, dict):
        return "; ".join(f"{k}: {_render_value(v)}" for k, v in value.items())
    if value is None:
        return "-"
    return str(value)


class TrelloPublisher:
    async def select_board(self, db: AsyncSession, team_id: uuid.UUID, board_id: str) -> TrelloConnection:
        connection = await require_connection(db, team_id)

        if connection.board_id == board_id and connection.webhook_id:
            logger.info("Board %s already selected for team %s", board_id, team_id)
            return connection
        if connection.board_id is not None:
            raise ConflictError(BOARD_CONFLICT)

        client = TrelloClient(token=connection.access_token)
        webhook = await client.create_webhook(
            webhook_callback_url(team_id), board_id, description=WEBHOOK_DESCRIPTION
        )
        webhook_id = webhook.get("id")
        if not webhook_id:
            raise ExternalServiceError("trello", "webhook registration returned no id")

        if not await claim_board(db, team_id, board_id, webhook_id):
            # Another request selected a board while our webhook was being registered
            await self._discard(client.delete_webhook, webhook_id, "webhook")
            connection = await require_connection(db, team_id)
            if connection.board_id == board_id:
                return connection
            raise ConflictError(BOARD_CONFLICT)

        result = await db.execute(select(Artifact.id).where(Artifact.team_id == team_id))
        artifact_ids = list(result.scalars().all())
        connection = await require_connection(db, team_id)

        # Workers read the board from their own session
        await db.commit()
        for artifact_id in artifact_ids:
            enqueue_artifact_push(artifact_id)
        return connection

    async def disconnect(self, db: AsyncSession, team_id: uuid.UUID) -> None:
        connection = await get_connection(db, team_id)
        if connection is None:
            logger.info("Disconnect for team %s with no Trello connection", team_id)
            return

        access_token, webhook_id = connection.access_token, connection.webhook_id
        await delete_connection(db, team_id)
        await db.commit()

        if webhook_id:
            enqueue_webhook_teardown(access_token, webhook_id)

    async def publish_artifact(self, db: AsyncSession, artifact_id: uuid.UUID) -> TrelloCardMapping | None:
        artifact = await db.get(Artifact, artifact_id)
        if artifact is None:
            raise NotFoundError("Artifact", str(artifact_id))

        connection = await get_connection(db, artifact.team_id)
        if connection is None or connection.board_id is None:
            logger.info("Team %s has no Trello board; skipping artifact %s", artifact.team_id, artifact_id)
            return None

        client = TrelloClient(token=connection.access_token)
        description = summarize_artifact(artifact)
        mapping = await get_mapping_for_artifact(db, artifact_id)

        if mapping is not None:
            try:
                await client.update_card(mapping.trello_card_id, description)
            except ExternalServiceError as e:
                if e.upstream_status != 404:
                    raise
                # Card was deleted on the board; put a fresh one in its place
                card = await self._create_card(client, connection, artifact, description)
                logger.warning(
                    "Card %s for artifact %s is gone; replaced by %s",
                    mapping.trello_card_id, artifact_id, card["id"],
                )
                mapping.trello_card_id = card["id"]
            await mark_pushed(db, mapping)
            logger.info("Pushed artifact %s to card %s", artifact_id, mapping.trello_card_id)
            return mapping

        card = await self._create_card(client, connection, artifact, description)
        mapping = await create_mapping(db, artifact.id, artifact.team_id, card["id"])
        if mapping.trello_card_id != card["id"]:
            logger.warning(
                "Artifact %s was mapped concurrently to card %s; removing card %s",
                artifact_id, mapping.trello_card_id, card["id"],
            )
            await self._discard(client.delete_card, card["id"], "card")
        return mapping

    async def _create_card(
        self, client: TrelloClient, connection: TrelloConnection, artifact: Artifact, description: str
    ) -> dict[str, Any]:
        lists = await client.get_board_lists(connection.board_id)
        if not lists:
            raise ExternalServiceError("trello", f"board {connection.board_id} has no open lists")
        return await client.create_card(lists[0]["id"], artifact.title, description)

    async def _discard(self, delete, object_id: str, kind: str) -> None:
        try:
            await delete(object_id)
        except ExternalServiceError as e:
            logger.error("Could not remove redundant Trello %s %s: %s", kind, object_id, e.detail)


def on_artifact_changed(artifact: Artifact) -> None:
    """Hook for the artifact forms, called after a save has committed.

    Never raises: a broker outage leaves the artifact unsynchronised until
    the periodic catch-up job, not unsaved.
    """
    enqueue_artifact_push(artifact.id)


def enqueue_artifact_push(artifact_id: uuid.UUID) -> None:
    from spinup.tasks.trello_tasks import push_artifact_to_trello

    try:
        push_artifact_to_trello.delay(str(artifact_id), correlation_id=correlation_id.get())
    except Exception as e:
        logger.error("Could not queue Trello push for artifact %s: %s", artifact_id, e)


def enqueue_webhook_teardown(access_token: str, webhook_id: str) -> None:
    from spinup.tasks.trello_tasks import deregister_trello_webhook

    try:
        deregister_trello_webhook.delay(access_token, webhook_id, correlation_id=correlation_id.get())
    except Exception as e:
        logger.error("Could not queue teardown of Trello webhook %s: %s", webhook_id, e)
