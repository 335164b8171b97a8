"""Two-leg Trello authorization.

Leg one sends the user to Trello's consent screen. Trello hands the token
back in the URL fragment, which never reaches a server, so the callback
first serves a bounce page that re-issues the fragment as a ``token``
query parameter. Leg two verifies that token against ``/members/me``
before anything is stored.
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from spinup.common.exceptions import ExternalServiceError, InvalidCredentialError
from spinup.common.logging import get_logger
from spinup.core.trello_sync.connections import authorization_return_url, upsert_connection
from spinup.db.models.trello_connection import TrelloConnection
from spinup.integrations.trello import TrelloClient

logger = get_logger("trello_sync.authorization")


def begin_authorization(team_id: uuid.UUID) -> str:
    url = TrelloClient.authorize_url(authorization_return_url(team_id))
    logger.info("Starting Trello authorization for team %s", team_id)
    return url


async def complete_authorization(
    db: AsyncSession, team_id: uuid.UUID, token: str
) -> TrelloConnection:
    token = token.strip()
    if not token:
        raise InvalidCredentialError("Empty Trello token")

    client = TrelloClient(token=token)
    try:
        member = await client.get_member("me")
    except ExternalServiceError as e:
        if e.is_credential_rejection:
            logger.warning("Trello rejected token for team %s (status=%s)", team_id, e.upstream_status)
            raise InvalidCredentialError() from e
        raise

    member_id = member.get("id") if isinstance(member, dict) else None
    if not member_id:
        logger.warning("Trello member lookup for team %s returned no id", team_id)
        raise InvalidCredentialError("Trello did not identify the token's member")

    return await upsert_connection(db, team_id, access_token=token, trello_member_id=member_id)
