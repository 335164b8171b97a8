import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from spinup.common.logging import get_logger
from spinup.core.trello_sync.connections import require_connection
from spinup.core.trello_sync.schemas import BoardSummary
from spinup.integrations.trello import TrelloClient

logger = get_logger("trello_sync.boards")


async def list_boards(db: AsyncSession, team_id: uuid.UUID) -> list[BoardSummary]:
    """Open boards visible to the team's Trello member. Read-only."""
    connection = await require_connection(db, team_id)

    client = TrelloClient(token=connection.access_token)
    raw_boards = await client.list_boards(connection.trello_member_id)

    boards = [
        BoardSummary(id=b["id"], name=b.get("name", ""))
        for b in raw_boards
        if isinstance(b, dict) and b.get("id")
    ]
    logger.info("Team %s can see %d Trello boards", team_id, len(boards))
    return boards
