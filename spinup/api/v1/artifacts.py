import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from spinup.api.deps import get_current_user, get_db, require_team_access
from spinup.common.enums import ConnectionState
from spinup.common.exceptions import NotConnectedError, NotFoundError
from spinup.core.trello_sync.connections import connection_state, get_connection
from spinup.core.trello_sync.publisher import on_artifact_changed
from spinup.core.trello_sync.schemas import SyncQueuedResponse
from spinup.db.models.artifact import Artifact
from spinup.db.models.user import User

router = APIRouter(tags=["Artifacts"])


@router.post(
    "/teams/{team_id}/artifacts/{artifact_id}/trello-sync",
    response_model=SyncQueuedResponse,
    status_code=202,
)
async def sync_artifact_to_trello(
    team_id: uuid.UUID,
    artifact_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Manually re-queue an artifact's push to its team's Trello board."""
    await require_team_access(db, current_user, team_id, write=True)

    artifact = await db.get(Artifact, artifact_id)
    if artifact is None or artifact.team_id != team_id:
        raise NotFoundError("Artifact", str(artifact_id))

    connection = await get_connection(db, team_id)
    if connection_state(connection) is not ConnectionState.CONNECTED_WITH_BOARD:
        raise NotConnectedError(str(team_id))

    on_artifact_changed(artifact)
    return SyncQueuedResponse(artifact_id=artifact.id)
