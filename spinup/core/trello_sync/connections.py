"""Per-team Trello connection store and its lifecycle.

    NOT_CONNECTED --authorize--> CONNECTED_NO_BOARD --select board--> CONNECTED_WITH_BOARD
          ^                                                                   |
          +------------------------------ disconnect -------------------------+

Every write is a last-write-wins upsert keyed by team id, so repeated or
concurrent authorization completions converge on one row.
"""

import uuid
from datetime import datetime, timezone
from urllib.parse import urlencode

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from spinup.common.enums import ConnectionState
from spinup.common.exceptions import NotConnectedError
from spinup.common.logging import get_logger
from spinup.config import settings
from spinup.db.models.trello_connection import TrelloConnection
from spinup.db.upsert import insert_for

logger = get_logger("trello_sync.connections")


def webhook_callback_url(team_id: uuid.UUID) -> str:
    """The exact URL registered with Trello; also the signature's HMAC input."""
    return f"{settings.APP_URL.rstrip('/')}/api/v1/trello/webhook/{team_id}"


def authorization_return_url(team_id: uuid.UUID) -> str:
    query = urlencode({"teamId": str(team_id)})
    return f"{settings.APP_URL.rstrip('/')}/api/v1/trello/callback?{query}"


def connection_state(connection: TrelloConnection | None) -> ConnectionState:
    if connection is None:
        return ConnectionState.NOT_CONNECTED
    if connection.board_id is None:
        return ConnectionState.CONNECTED_NO_BOARD
    return ConnectionState.CONNECTED_WITH_BOARD


async def get_connection(db: AsyncSession, team_id: uuid.UUID) -> TrelloConnection | None:
    result = await db.execute(
        select(TrelloConnection)
        .where(TrelloConnection.team_id == team_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def require_connection(db: AsyncSession, team_id: uuid.UUID) -> TrelloConnection:
    connection = await get_connection(db, team_id)
    if connection is None:
        raise NotConnectedError(str(team_id))
    return connection


async def upsert_connection(
    db: AsyncSession, team_id: uuid.UUID, access_token: str, trello_member_id: str
) -> TrelloConnection:
    """Store a verified credential for the team.

    A repeat completion overwrites the credential and member id; a previously
    selected board and its webhook are kept.
    """
    now = datetime.now(timezone.utc)
    stmt = insert_for(db, TrelloConnection).values(
        id=uuid.uuid4(),
        team_id=team_id,
        access_token=access_token,
        trello_member_id=trello_member_id,
        connected_at=now,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["team_id"],
        set_={
            "access_token": stmt.excluded.access_token,
            "trello_member_id": stmt.excluded.trello_member_id,
            "connected_at": stmt.excluded.connected_at,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    await db.execute(stmt)

    connection = await require_connection(db, team_id)
    logger.info("Stored Trello connection for team %s (member=%s)", team_id, trello_member_id)
    return connection


async def claim_board(
    db: AsyncSession, team_id: uuid.UUID, board_id: str, webhook_id: str
) -> bool:
    """Record the board only if none is selected yet.

    The check and the write are one statement, so of two concurrent
    selections exactly one wins. Returns False for the loser.
    """
    result = await db.execute(
        update(TrelloConnection)
        .where(TrelloConnection.team_id == team_id, TrelloConnection.board_id.is_(None))
        .values(board_id=board_id, webhook_id=webhook_id, updated_at=datetime.now(timezone.utc))
    )
    if result.rowcount != 1:
        return False

    logger.info("Team %s now syncing board %s (webhook=%s)", team_id, board_id, webhook_id)
    return True


async def delete_connection(db: AsyncSession, team_id: uuid.UUID) -> None:
    await db.execute(delete(TrelloConnection).where(TrelloConnection.team_id == team_id))
    logger.info("Removed Trello connection for team %s", team_id)
