import json

import pytest

from spinup.common.enums import ArtifactStatus, ReconcileOutcome
from spinup.common.exceptions import MalformedPayloadError
from spinup.core.trello_sync.reconciler import is_done_list, reconcile
from spinup.core.trello_sync.webhook_handler import classify_event, parse_webhook_payload
from spinup.tests.conftest import card_moved_payload


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Done", True),
        ("Done ✅", True),
        ("COMPLETED", True),
        ("Finished Q3", True),
        ("Doing", False),
        ("Backlog", False),
        ("", False),
        (None, False),
    ],
)
def test_is_done_list(name, expected):
    assert is_done_list(name) is expected


def test_classify_card_move():
    payload = parse_webhook_payload(json.dumps(card_moved_payload("card_1", "Done", list_before="Doing")).encode())
    event = classify_event(payload)
    assert event.kind == "card_moved"
    assert event.card_id == "card_1"
    assert event.list_before == "Doing"
    assert event.list_after == "Done"


def test_classify_other_action():
    payload = parse_webhook_payload(b'{"action": {"type": "createCard", "data": {"card": {"id": "c"}}}}')
    event = classify_event(payload)
    assert event.kind == "other"
    assert event.action_type == "createCard"


def test_parse_rejects_non_json():
    with pytest.raises(MalformedPayloadError):
        parse_webhook_payload(b"\xff\xfe")


def test_parse_ignores_unknown_fields():
    payload = parse_webhook_payload(b'{"action": {"type": "updateCard", "idMemberCreator": "m"}, "extra": 1}')
    assert payload.action.type == "updateCard"


@pytest.mark.asyncio
async def test_reconcile_applies_completion(db_session, team, artifact, card_mapping):
    outcome = await reconcile(db_session, team.id, "card_1", "Done")
    assert outcome is ReconcileOutcome.APPLIED
    assert artifact.status == ArtifactStatus.COMPLETE.value
    assert card_mapping.last_pulled_at is not None


@pytest.mark.asyncio
async def test_reconcile_already_complete_still_converges(db_session, team, artifact, card_mapping):
    artifact.status = ArtifactStatus.COMPLETE.value
    await db_session.flush()

    outcome = await reconcile(db_session, team.id, "card_1", "Done")
    assert outcome is ReconcileOutcome.APPLIED
    assert artifact.status == ArtifactStatus.COMPLETE.value


@pytest.mark.asyncio
async def test_reconcile_ignores_non_done_list(db_session, team, artifact, card_mapping):
    outcome = await reconcile(db_session, team.id, "card_1", "Review")
    assert outcome is ReconcileOutcome.IGNORED
    assert artifact.status == ArtifactStatus.IN_PROGRESS.value


@pytest.mark.asyncio
async def test_reconcile_without_connection(db_session, team, artifact):
    outcome = await reconcile(db_session, team.id, "card_1", "Done")
    assert outcome is ReconcileOutcome.IGNORED


@pytest.mark.asyncio
async def test_reconcile_other_team_mapping(db_session, team, other_team, artifact, card_mapping):
    outcome = await reconcile(db_session, other_team.id, "card_1", "Done")
    assert outcome is ReconcileOutcome.IGNORED
    assert artifact.status == ArtifactStatus.IN_PROGRESS.value
