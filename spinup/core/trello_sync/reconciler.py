"""Applies a classified card move to internal artifact state.

Only ever moves an artifact forward to ``complete``. Every write is an
overwrite, so duplicate or reordered deliveries converge.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from spinup.common.enums import ArtifactStatus, ReconcileOutcome
from spinup.common.logging import get_logger
from spinup.config import settings
from spinup.core.trello_sync.connections import get_connection
from spinup.core.trello_sync.mappings import find_mapping_by_card
from spinup.db.models.artifact import Artifact

logger = get_logger("trello_sync.reconciler")


def is_done_list(list_name: str | None) -> bool:
    if not list_name:
        return False
    lowered = list_name.casefold()
    return any(keyword.casefold() in lowered for keyword in settings.TRELLO_DONE_KEYWORDS)


async def reconcile(
    db: AsyncSession, team_id: uuid.UUID, trello_card_id: str, list_name: str
) -> ReconcileOutcome:
    if not is_done_list(list_name):
        logger.debug("Card %s moved to '%s'; not a completion list", trello_card_id, list_name)
        return ReconcileOutcome.IGNORED

    connection = await get_connection(db, team_id)
    if connection is None:
        logger.info("Delivery for disconnected team %s ignored", team_id)
        return ReconcileOutcome.IGNORED

    mapping = await find_mapping_by_card(db, team_id, trello_card_id)
    if mapping is None:
        # TODO: decide with product whether to fall back to a title match
        logger.info("No artifact mapped to card %s for team %s", trello_card_id, team_id)
        return ReconcileOutcome.IGNORED

    artifact = await db.get(Artifact, mapping.artifact_id)
    if artifact is None or artifact.team_id != team_id:
        logger.warning("Mapping for card %s points at a missing artifact %s", trello_card_id, mapping.artifact_id)
        return ReconcileOutcome.IGNORED

    now = datetime.now(timezone.utc)
    if artifact.status != ArtifactStatus.COMPLETE:
        logger.info(
            "Artifact %s completed from Trello: %s -> %s (list '%s')",
            artifact.id, artifact.status, ArtifactStatus.COMPLETE.value, list_name,
        )
        artifact.status = ArtifactStatus.COMPLETE.value

    mapping.last_pulled_at = now
    connection.last_synced_at = now
    await db.flush()
    return ReconcileOutcome.APPLIED
