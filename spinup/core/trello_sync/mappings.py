"""Artifact <-> Trello card associations.

Mappings are created on first push and only ever touched afterwards;
nothing here deletes them, so a disconnected team's mappings stay behind.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from spinup.common.logging import get_logger
from spinup.db.models.artifact import Artifact
from spinup.db.models.trello_card_mapping import TrelloCardMapping
from spinup.db.models.trello_connection import TrelloConnection
from spinup.db.upsert import insert_for

logger = get_logger("trello_sync.mappings")


async def get_mapping_for_artifact(db: AsyncSession, artifact_id: uuid.UUID) -> TrelloCardMapping | None:
    result = await db.execute(
        select(TrelloCardMapping).where(TrelloCardMapping.artifact_id == artifact_id)
    )
    return result.scalar_one_or_none()


async def find_mapping_by_card(
    db: AsyncSession, team_id: uuid.UUID, trello_card_id: str
) -> TrelloCardMapping | None:
    # Card ids are only unique within a board; the team scope keeps one
    # tenant's deliveries from resolving to another tenant's artifact.
    result = await db.execute(
        select(TrelloCardMapping).where(
            TrelloCardMapping.trello_card_id == trello_card_id,
            TrelloCardMapping.team_id == team_id,
        )
    )
    return result.scalar_one_or_none()


async def create_mapping(
    db: AsyncSession, artifact_id: uuid.UUID, team_id: uuid.UUID, trello_card_id: str
) -> TrelloCardMapping:
    """Insert the mapping unless another worker got there first.

    Returns whichever mapping is stored; callers compare its card id with
    the one they created to detect a lost race.
    """
    now = datetime.now(timezone.utc)
    stmt = insert_for(db, TrelloCardMapping).values(
        id=uuid.uuid4(),
        artifact_id=artifact_id,
        team_id=team_id,
        trello_card_id=trello_card_id,
        last_pushed_at=now,
        created_at=now,
        updated_at=now,
    )
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["artifact_id"]))

    result = await db.execute(
        select(TrelloCardMapping)
        .where(TrelloCardMapping.artifact_id == artifact_id)
        .execution_options(populate_existing=True)
    )
    mapping = result.scalar_one()
    if mapping.trello_card_id == trello_card_id:
        logger.info("Mapped artifact %s -> card %s", artifact_id, trello_card_id)
    return mapping


async def mark_pushed(db: AsyncSession, mapping: TrelloCardMapping) -> None:
    mapping.last_pushed_at = datetime.now(timezone.utc)
    await db.flush()


async def mark_pulled(db: AsyncSession, mapping: TrelloCardMapping) -> None:
    mapping.last_pulled_at = datetime.now(timezone.utc)
    await db.flush()


async def find_stale_artifact_ids(db: AsyncSession, limit: int = 200) -> list[uuid.UUID]:
    """Artifacts of board-connected teams never pushed, or edited since the last push."""
    query = (
        select(Artifact.id)
        .join(TrelloConnection, TrelloConnection.team_id == Artifact.team_id)
        .outerjoin(TrelloCardMapping, TrelloCardMapping.artifact_id == Artifact.id)
        .where(
            TrelloConnection.board_id.isnot(None),
            or_(
                TrelloCardMapping.id.is_(None),
                TrelloCardMapping.last_pushed_at.is_(None),
                TrelloCardMapping.last_pushed_at < Artifact.updated_at,
            ),
        )
        .order_by(Artifact.updated_at.asc())
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all())
