from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from spinup.common.enums import ConnectionState, WebhookEventKind

# ---------- Inbound webhook payload ----------
# Trello payloads carry far more than we read; unknown fields are dropped.


class _TrelloModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TrelloCardRef(_TrelloModel):
    id: str | None = None
    name: str | None = None


class TrelloListRef(_TrelloModel):
    id: str | None = None
    name: str | None = None


class TrelloActionData(_TrelloModel):
    card: TrelloCardRef | None = None
    list_: TrelloListRef | None = Field(default=None, alias="list")
    list_before: TrelloListRef | None = Field(default=None, alias="listBefore")
    list_after: TrelloListRef | None = Field(default=None, alias="listAfter")


class TrelloAction(_TrelloModel):
    type: str = ""
    data: TrelloActionData = Field(default_factory=TrelloActionData)


class TrelloWebhookPayload(_TrelloModel):
    action: TrelloAction | None = None


# ---------- Classified events ----------


class CardMovedEvent(BaseModel):
    kind: Literal[WebhookEventKind.CARD_MOVED] = WebhookEventKind.CARD_MOVED
    card_id: str
    card_name: str | None = None
    list_before: str | None = None
    list_after: str


class OtherEvent(BaseModel):
    kind: Literal[WebhookEventKind.OTHER] = WebhookEventKind.OTHER
    action_type: str


InboundEvent = CardMovedEvent | OtherEvent


# ---------- API schemas ----------


class BoardSummary(BaseModel):
    id: str
    name: str


class BoardListResponse(BaseModel):
    boards: list[BoardSummary]


class SelectBoardRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_id: uuid.UUID = Field(alias="teamId")
    board_id: str = Field(alias="boardId", min_length=1, max_length=100)


class SelectBoardResponse(BaseModel):
    ok: bool = True
    board_id: str
    webhook_id: str


class ConnectionStatusResponse(BaseModel):
    team_id: uuid.UUID
    state: ConnectionState
    board_id: str | None = None
    connected_at: datetime | None = None
    last_synced_at: datetime | None = None
    credential_valid: bool | None = None


class WebhookAck(BaseModel):
    ok: bool = True
    outcome: str


class SyncQueuedResponse(BaseModel):
    status: str = "queued"
    artifact_id: uuid.UUID
