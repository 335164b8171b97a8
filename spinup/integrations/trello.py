"""Trello integration client.

Uses the real Trello REST API when a valid key is configured, otherwise
falls back to mock responses for development. Every call is bounded by
``TRELLO_TIMEOUT_SECONDS``; failures surface as ``ExternalServiceError``
with the upstream status attached and no credentials in the message.
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlencode

import httpx

from spinup.common.exceptions import ExternalServiceError
from spinup.config import settings
from spinup.integrations.base import BaseIntegration

# Trello rejects card descriptions longer than this
CARD_DESC_LIMIT = 16384


def _is_mock() -> bool:
    return settings.TRELLO_API_KEY.startswith("mock_")


def _id() -> str:
    return uuid.uuid4().hex[:24]


def _stable_id(seed: str) -> str:
    return hashlib.sha1(seed.encode()).hexdigest()[:24]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TrelloClient(BaseIntegration):
    """Trello client bound to one member token, with mock fallback."""

    API_URL = "https://api.trello.com/1"
    AUTHORIZE_URL = "https://trello.com/1/authorize"

    def __init__(
        self,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            "trello",
            timeout if timeout is not None else settings.TRELLO_TIMEOUT_SECONDS,
            transport,
        )
        self.token = token

    @classmethod
    def authorize_url(cls, return_url: str) -> str:
        params = {
            "key": settings.TRELLO_API_KEY,
            "name": settings.TRELLO_APP_NAME,
            "expiration": "never",
            "response_type": "token",
            "scope": settings.TRELLO_SCOPE,
            "callback_method": "fragment",
            "return_url": return_url,
        }
        return f"{cls.AUTHORIZE_URL}?{urlencode(params)}"

    def _params(self) -> dict[str, str]:
        params = {"key": settings.TRELLO_API_KEY}
        if self.token:
            params["token"] = self.token
        return params

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        params = {**self._params(), **kwargs.pop("params", {})}
        try:
            async with self.http_client() as client:
                resp = await client.request(method, f"{self.API_URL}{path}", params=params, **kwargs)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            # The request URL carries key and token; never put it in the message
            status_code = e.response.status_code
            self.logger.warning("Trello %s %s -> %d", method, path, status_code)
            raise ExternalServiceError(
                "trello", f"{method} {path} -> {status_code}", upstream_status=status_code
            ) from None
        except httpx.TimeoutException:
            self.logger.warning("Trello %s %s timed out after %.1fs", method, path, self.timeout)
            raise ExternalServiceError("trello", f"{method} {path} timed out") from None
        except httpx.HTTPError as e:
            self.logger.warning("Trello %s %s transport error: %s", method, path, type(e).__name__)
            raise ExternalServiceError("trello", f"{method} {path} failed: {type(e).__name__}") from None

        if not resp.content:
            return {}
        return resp.json()

    async def health_check(self) -> bool:
        if _is_mock():
            self.logger.info("Trello health check: OK (mock)")
            return True
        try:
            await self.get_member()
            return True
        except ExternalServiceError as e:
            self.logger.error("Trello health check failed: %s", e.detail)
            return False

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def get_member(self, member_id: str = "me") -> dict[str, Any]:
        if not _is_mock():
            return await self._request("GET", f"/members/{member_id}", params={"fields": "id,username,fullName"})

        seed = self.token or "anonymous"
        return {"id": _stable_id(seed), "username": "spinup_mock", "fullName": "SpinUp Mock Member"}

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    async def list_boards(self, member_id: str) -> list[dict[str, Any]]:
        if not _is_mock():
            boards = await self._request(
                "GET", f"/members/{member_id}/boards",
                params={"fields": "id,name", "filter": "open"},
            )
            self.logger.info("Listed %d boards for member %s", len(boards), member_id)
            return boards

        boards = [
            {"id": _stable_id(f"{member_id}:roadmap"), "name": "Startup Roadmap"},
            {"id": _stable_id(f"{member_id}:launch"), "name": "Launch Checklist"},
        ]
        self.logger.info("Listed %d mock boards for member %s", len(boards), member_id)
        return boards

    async def get_board_lists(self, board_id: str) -> list[dict[str, Any]]:
        if not _is_mock():
            return await self._request(
                "GET", f"/boards/{board_id}/lists", params={"filter": "open", "fields": "id,name,pos"},
            )

        return [
            {"id": _stable_id(f"{board_id}:{name}"), "name": name, "pos": idx * 16384}
            for idx, name in enumerate(["To Do", "Doing", "Done"])
        ]

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    async def create_card(self, list_id: str, name: str, description: str = "") -> dict[str, Any]:
        description = description[:CARD_DESC_LIMIT]
        if not _is_mock():
            card = await self._request(
                "POST", "/cards", json={"name": name, "desc": description, "idList": list_id},
            )
            self.logger.info("Created card '%s' (id=%s)", name, card["id"])
            return card

        card_id = _id()
        short_link = uuid.uuid4().hex[:8]
        card: dict[str, Any] = {
            "id": card_id, "name": name, "desc": description, "idList": list_id,
            "shortUrl": f"https://trello.com/c/{short_link}",
            "closed": False, "dateLastActivity": _now_iso(),
        }
        self.logger.info("Created mock card '%s' (id=%s)", name, card_id)
        return card

    async def update_card(self, card_id: str, description: str) -> dict[str, Any]:
        description = description[:CARD_DESC_LIMIT]
        if not _is_mock():
            card = await self._request("PUT", f"/cards/{card_id}", json={"desc": description})
            self.logger.info("Updated card %s", card_id)
            return card

        self.logger.info("Updated mock card %s", card_id)
        return {"id": card_id, "desc": description, "dateLastActivity": _now_iso()}

    async def delete_card(self, card_id: str) -> None:
        if not _is_mock():
            await self._request("DELETE", f"/cards/{card_id}")
            self.logger.info("Deleted card %s", card_id)
            return

        self.logger.info("Deleted mock card %s", card_id)

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    async def create_webhook(self, callback_url: str, model_id: str, description: str = "") -> dict[str, Any]:
        if not _is_mock():
            webhook = await self._request(
                "POST", "/webhooks",
                json={"callbackURL": callback_url, "idModel": model_id, "description": description},
            )
            self.logger.info("Created webhook %s for model %s", webhook.get("id"), model_id)
            return webhook

        return {"id": _id(), "callbackURL": callback_url, "idModel": model_id, "active": True}

    async def delete_webhook(self, webhook_id: str) -> None:
        if not _is_mock():
            await self._request("DELETE", f"/webhooks/{webhook_id}")
            self.logger.info("Deleted webhook %s", webhook_id)
            return

        self.logger.info("Deleted mock webhook %s", webhook_id)
