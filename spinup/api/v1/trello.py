import uuid
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from spinup.api.deps import get_current_user, get_db, get_optional_user, require_team_access
from spinup.api.templating import templates
from spinup.common.exceptions import (
    ExternalServiceError,
    InvalidCredentialError,
    InvalidSignatureError,
)
from spinup.common.logging import get_logger
from spinup.common.security import verify_trello_webhook_signature
from spinup.core.trello_sync.authorization import begin_authorization, complete_authorization
from spinup.core.trello_sync.boards import list_boards
from spinup.core.trello_sync.connections import (
    connection_state,
    get_connection,
    webhook_callback_url,
)
from spinup.core.trello_sync.publisher import TrelloPublisher
from spinup.core.trello_sync.schemas import (
    BoardListResponse,
    ConnectionStatusResponse,
    SelectBoardRequest,
    SelectBoardResponse,
    WebhookAck,
)
from spinup.core.trello_sync.webhook_handler import handle_webhook_delivery
from spinup.db.models.user import User
from spinup.integrations.trello import TrelloClient

router = APIRouter(prefix="/trello", tags=["Trello"])
logger = get_logger("api.trello")

CALLBACK_PATH = "/api/v1/trello/callback"
NO_STORE_HEADERS = {"Cache-Control": "no-store", "Referrer-Policy": "no-referrer"}


def _settings_path(team_id: uuid.UUID) -> str:
    return f"/teams/{team_id}/settings/trello"


def _settings_redirect(team_id: uuid.UUID, **flags: str) -> RedirectResponse:
    url = f"{_settings_path(team_id)}?{urlencode(flags)}"
    return RedirectResponse(url, status_code=302, headers=NO_STORE_HEADERS)


def _sign_in_redirect(request: Request) -> RedirectResponse:
    return RedirectResponse(f"/sign-in?{urlencode({'next': request.url.path})}", status_code=302)


# ---------- Authorization ----------


@router.get("/connect")
async def connect_trello(
    request: Request,
    team_id: uuid.UUID = Query(..., alias="teamId"),
    current_user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if current_user is None:
        return _sign_in_redirect(request)
    await require_team_access(db, current_user, team_id, write=True)

    return RedirectResponse(begin_authorization(team_id), status_code=302)


@router.get("/callback", response_class=HTMLResponse)
async def trello_callback(
    request: Request,
    team_id: uuid.UUID = Query(..., alias="teamId"),
    token: str | None = Query(None),
    current_user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    # First leg: Trello put the token in the fragment; bounce it back as a query param
    if token is None:
        return templates.TemplateResponse(
            request,
            "trello_callback.html",
            {
                "team_id": str(team_id),
                "callback_path": CALLBACK_PATH,
                "settings_path": _settings_path(team_id),
            },
            headers=NO_STORE_HEADERS,
        )

    if current_user is None:
        return _sign_in_redirect(request)
    await require_team_access(db, current_user, team_id, write=True)

    try:
        await complete_authorization(db, team_id, token)
    except InvalidCredentialError:
        return _settings_redirect(team_id, error="invalid_token")
    except ExternalServiceError as e:
        logger.error("Trello verification failed for team %s: %s", team_id, e.detail)
        return _settings_redirect(team_id, error="trello_unavailable")

    return _settings_redirect(team_id, connected="1")


@router.get("/disconnect")
async def disconnect_trello(
    request: Request,
    team_id: uuid.UUID = Query(..., alias="teamId"),
    current_user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if current_user is None:
        return _sign_in_redirect(request)
    await require_team_access(db, current_user, team_id, write=True)

    await TrelloPublisher().disconnect(db, team_id)
    return _settings_redirect(team_id, disconnected="1")


# ---------- Boards ----------


@router.get("/status", response_model=ConnectionStatusResponse)
async def get_connection_status(
    team_id: uuid.UUID = Query(..., alias="teamId"),
    verify: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_team_access(db, current_user, team_id)

    connection = await get_connection(db, team_id)
    response = ConnectionStatusResponse(team_id=team_id, state=connection_state(connection))
    if connection is not None:
        response.board_id = connection.board_id
        response.connected_at = connection.connected_at
        response.last_synced_at = connection.last_synced_at
        if verify:
            response.credential_valid = await TrelloClient(token=connection.access_token).health_check()
    return response


@router.get("/boards", response_model=BoardListResponse)
async def get_boards(
    team_id: uuid.UUID = Query(..., alias="teamId"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_team_access(db, current_user, team_id)
    return BoardListResponse(boards=await list_boards(db, team_id))


@router.post("/select-board", response_model=SelectBoardResponse)
async def select_board(
    body: SelectBoardRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_team_access(db, current_user, body.team_id, write=True)

    connection = await TrelloPublisher().select_board(db, body.team_id, body.board_id)
    return SelectBoardResponse(board_id=connection.board_id, webhook_id=connection.webhook_id)


# ---------- Webhook ----------


@router.head("/webhook/{team_id}")
async def trello_webhook_probe(team_id: uuid.UUID):
    # Trello verifies the callback URL with a HEAD before activating the webhook
    return Response(status_code=200)


@router.post("/webhook/{team_id}", response_model=WebhookAck)
async def trello_webhook(team_id: uuid.UUID, request: Request, db: AsyncSession = Depends(get_db)):
    body = await request.body()

    signature = request.headers.get("x-trello-webhook")
    if not verify_trello_webhook_signature(body, webhook_callback_url(team_id), signature):
        logger.warning("Rejected unsigned or mis-signed Trello delivery for team %s", team_id)
        raise InvalidSignatureError()

    outcome = await handle_webhook_delivery(db, team_id, body)
    return WebhookAck(outcome=outcome.value)
