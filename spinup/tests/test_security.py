from datetime import timedelta

import pytest

from spinup.common.security import (
    create_access_token,
    decode_token,
    trello_webhook_signature,
    verify_trello_webhook_signature,
)

CALLBACK = "https://app.example.com/api/v1/trello/webhook/team"


def test_access_token_round_trip():
    payload = decode_token(create_access_token({"sub": "user-1"}))
    assert payload["sub"] == "user-1"
    assert payload["type"] == "access"


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-1))
    with pytest.raises(ValueError):
        decode_token(token)


def test_webhook_signature_verifies():
    body = b'{"action": {"type": "updateCard"}}'
    signature = trello_webhook_signature(body, CALLBACK)
    assert verify_trello_webhook_signature(body, CALLBACK, signature)


def test_webhook_signature_binds_body_and_callback():
    body = b'{"action": {"type": "updateCard"}}'
    signature = trello_webhook_signature(body, CALLBACK)
    assert not verify_trello_webhook_signature(body + b" ", CALLBACK, signature)
    assert not verify_trello_webhook_signature(body, CALLBACK + "x", signature)


def test_webhook_signature_uses_app_secret():
    body = b"{}"
    forged = trello_webhook_signature(body, CALLBACK, secret="someone-else")
    assert not verify_trello_webhook_signature(body, CALLBACK, forged)
    assert not verify_trello_webhook_signature(body, CALLBACK, None)
    assert not verify_trello_webhook_signature(body, CALLBACK, "")
