"""Async HTTP client for the game server."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from joke_factory.config.loader import get_client_settings

logger = logging.getLogger("joke_factory.client")

USER_ID_HEADER = "X-User-Id"
ME_PATH = "/v1/session/me"
SESSION_LOST_CODES = {"INVALID_SESSION", "UNAUTHENTICATED"}


class ApiError(Exception):
    """A rejected or failed request; ``status`` is 0 when no response arrived."""

    def __init__(
        self,
        status: int,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        path: str = "",
    ) -> None:
        super().__init__(f"{status} {code}: {message}")
        self.status = status
        self.code = code
        self.message = message
        self.details = details or {}
        self.path = path

    @property
    def is_transient(self) -> bool:
        return self.status == 0 or self.status >= 500

    @property
    def is_session_lost(self) -> bool:
        if self.status == 401 or self.code in SESSION_LOST_CODES:
            return True
        return self.status == 404 and self.path == ME_PATH

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}
        return cls(
            status=response.status_code,
            code=str(body.get("code") or "HTTP_ERROR"),
            message=str(body.get("message") or response.reason_phrase or ""),
            details=body.get("details") if isinstance(body.get("details"), dict) else {},
            path=response.request.url.path,
        )


class ApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        user_id: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_client_settings()
        self.user_id = user_id
        self._client = httpx.AsyncClient(
            base_url=base_url or settings["base_url"],
            timeout=timeout or settings["request_timeout_seconds"],
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        if self.user_id is None:
            return {}
        return {USER_ID_HEADER: str(self.user_id)}

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(
                method, path, json=json, params=params, headers=self._headers()
            )
        except httpx.RequestError as exc:
            logger.debug("%s %s failed: %s", method, path, exc)
            raise ApiError(0, "NETWORK_ERROR", str(exc), path=path) from exc
        if response.status_code >= 400:
            raise ApiError.from_response(response)
        return response.json()

    # --- Session -------------------------------------------------------------

    async def join(self, display_name: str) -> Dict[str, Any]:
        payload = await self._request(
            "POST", "/v1/session/join", json={"display_name": display_name}
        )
        self.user_id = payload["user"]["user_id"]
        return payload

    async def instructor_login(self, display_name: str, password: str) -> Dict[str, Any]:
        payload = await self._request(
            "POST",
            "/v1/session/instructor-login",
            json={"display_name": display_name, "password": password},
        )
        self.user_id = payload["user"]["user_id"]
        return payload

    async def me(self) -> Dict[str, Any]:
        return await self._request("GET", ME_PATH)

    async def team(self, round_id: Optional[int] = None) -> Dict[str, Any]:
        params = {"round_id": round_id} if round_id is not None else None
        return await self._request("GET", "/v1/session/team", params=params)

    async def view(self) -> Dict[str, Any]:
        return await self._request("GET", "/v1/session/view")

    async def active_rounds(self) -> List[Dict[str, Any]]:
        payload = await self._request("GET", "/v1/rounds/active")
        return payload["rounds"]

    async def teams(self) -> List[Dict[str, Any]]:
        payload = await self._request("GET", "/v1/teams")
        return payload["teams"]

    # --- Production and grading ----------------------------------------------

    async def submit_batch(
        self, round_id: int, team_id: int, jokes: List[str]
    ) -> Dict[str, Any]:
        payload = await self._request(
            "POST",
            f"/v1/rounds/{round_id}/batches",
            json={"team_id": team_id, "jokes": list(jokes)},
        )
        return payload["batch"]

    async def team_summary(self, round_id: int, team_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/v1/rounds/{round_id}/teams/{team_id}/summary")

    async def team_batches(self, round_id: int, team_id: int) -> List[Dict[str, Any]]:
        payload = await self._request(
            "GET", f"/v1/rounds/{round_id}/teams/{team_id}/batches"
        )
        return payload["batches"]

    async def next_batch(self, round_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """The head of the grading queue, or None when nothing is waiting."""
        params = {"round_id": round_id} if round_id is not None else None
        try:
            return await self._request("GET", "/v1/qc/queue/next", params=params)
        except ApiError as exc:
            if exc.code == "EMPTY_QUEUE":
                return None
            raise

    async def queue_count(self, round_id: Optional[int] = None) -> int:
        params = {"round_id": round_id} if round_id is not None else None
        payload = await self._request("GET", "/v1/qc/queue/count", params=params)
        return payload["queue_size"]

    async def submit_ratings(
        self,
        batch_id: int,
        ratings: List[Dict[str, Any]],
        feedback: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/v1/qc/batches/{batch_id}/ratings",
            json={"ratings": list(ratings), "feedback": feedback},
        )

    # --- Market ----------------------------------------------------------------

    async def market(self, round_id: int) -> List[Dict[str, Any]]:
        payload = await self._request("GET", f"/v1/rounds/{round_id}/market")
        return payload["items"]

    async def budget(self, round_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/v1/rounds/{round_id}/customers/budget")

    async def buy(self, round_id: int, joke_id: int) -> Dict[str, Any]:
        return await self._request("POST", f"/v1/rounds/{round_id}/market/{joke_id}/buy")

    async def return_joke(self, round_id: int, joke_id: int) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/v1/rounds/{round_id}/market/{joke_id}/return"
        )

    # --- Instructor --------------------------------------------------------------

    async def configure_round(
        self, round_id: int, batch_size: int, customer_budget: int
    ) -> Dict[str, Any]:
        payload = await self._request(
            "PUT",
            f"/v1/instructor/rounds/{round_id}/config",
            json={"batch_size": batch_size, "customer_budget": customer_budget},
        )
        return payload["round"]

    async def start_round(self, round_id: int) -> Dict[str, Any]:
        payload = await self._request("POST", f"/v1/instructor/rounds/{round_id}/start")
        return payload["round"]

    async def end_round(self, round_id: int) -> Dict[str, Any]:
        payload = await self._request("POST", f"/v1/instructor/rounds/{round_id}/end")
        return payload["round"]

    async def set_reveal_flag(self, round_id: int, is_popped_active: bool) -> Dict[str, Any]:
        payload = await self._request(
            "POST",
            f"/v1/instructor/rounds/{round_id}/popups",
            json={"is_popped_active": is_popped_active},
        )
        return payload["round"]

    async def open_next_round(self) -> Dict[str, Any]:
        payload = await self._request("POST", "/v1/instructor/rounds/next")
        return payload["round"]

    async def lobby(self, round_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/v1/instructor/rounds/{round_id}/lobby")

    async def assign_options(self, round_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/v1/instructor/rounds/{round_id}/assign/options")

    async def assign(self, round_id: int, customer_count: int, team_count: int) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/v1/instructor/rounds/{round_id}/assign",
            json={"customer_count": customer_count, "team_count": team_count},
        )

    async def patch_user(self, round_id: int, user_id: int, **changes: Any) -> Dict[str, Any]:
        return await self._request(
            "PATCH", f"/v1/instructor/rounds/{round_id}/users/{user_id}", json=changes
        )

    async def remove_user(self, round_id: int, user_id: int) -> Dict[str, Any]:
        return await self._request(
            "DELETE", f"/v1/instructor/rounds/{round_id}/users/{user_id}"
        )

    async def stats(self, round_id: int) -> Dict[str, Any]:
        return await self._request("GET", f"/v1/instructor/rounds/{round_id}/stats")

    async def rename_team(self, team_id: int, name: str) -> Dict[str, Any]:
        return await self._request(
            "PATCH", f"/v1/instructor/teams/{team_id}", json={"name": name}
        )

    async def reset(self) -> Dict[str, Any]:
        return await self._request("POST", "/v1/instructor/reset")
