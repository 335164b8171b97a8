import json
import uuid

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from spinup.common.enums import ReconcileOutcome, WebhookEventKind
from spinup.common.exceptions import MalformedPayloadError
from spinup.common.logging import get_logger
from spinup.core.trello_sync.reconciler import reconcile
from spinup.core.trello_sync.schemas import (
    CardMovedEvent,
    InboundEvent,
    OtherEvent,
    TrelloWebhookPayload,
)

logger = get_logger("trello_sync.webhook_handler")

CARD_UPDATE_ACTION = "updateCard"


def parse_webhook_payload(body: bytes) -> TrelloWebhookPayload:
    try:
        raw = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise MalformedPayloadError("Invalid JSON payload")

    try:
        return TrelloWebhookPayload.model_validate(raw)
    except ValidationError as e:
        logger.info("Rejected webhook payload: %d validation errors", e.error_count())
        raise MalformedPayloadError("Payload does not match the Trello action shape")


def classify_event(payload: TrelloWebhookPayload) -> InboundEvent:
    action = payload.action
    if action is None:
        return OtherEvent(action_type="")

    data = action.data
    card_id = data.card.id if data.card else None
    list_after = data.list_after.name if data.list_after else None

    if action.type == CARD_UPDATE_ACTION and card_id and list_after:
        return CardMovedEvent(
            card_id=card_id,
            card_name=data.card.name,
            list_before=data.list_before.name if data.list_before else None,
            list_after=list_after,
        )
    return OtherEvent(action_type=action.type)


async def handle_webhook_delivery(
    db: AsyncSession, team_id: uuid.UUID, body: bytes
) -> ReconcileOutcome:
    """Parse, classify and apply one delivery. Raises MalformedPayloadError
    before any database access if the body is unusable."""
    event = classify_event(parse_webhook_payload(body))

    if event.kind is not WebhookEventKind.CARD_MOVED:
        logger.debug("Ignoring Trello action '%s' for team %s", event.action_type, team_id)
        return ReconcileOutcome.IGNORED

    outcome = await reconcile(db, team_id, event.card_id, event.list_after)
    logger.info(
        "Card %s moved '%s' -> '%s' for team %s: %s",
        event.card_id, event.list_before, event.list_after, team_id, outcome.value,
    )
    return outcome
