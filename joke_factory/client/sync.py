"""Polling session synchroniser used by every player's client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from joke_factory.client.api_client import ApiClient, ApiError
from joke_factory.client.local_cache import LocalCache
from joke_factory.config.loader import get_client_settings

logger = logging.getLogger("joke_factory.client.sync")

Callback = Callable[..., Union[None, Awaitable[None]]]


async def _fire(callback: Optional[Callback], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if asyncio.iscoroutine(result):
        await result


class SessionSync:
    """
    Keeps a local snapshot of ``/v1/session/view`` fresh.

    A poll is launched every ``poll_interval`` seconds. Launching a poll
    cancels the one still in flight, and a response is applied only if it
    belongs to the newest poll. Parts of the snapshot are replaced only when
    their content changed, so ``on_change`` fires with the names of the parts
    that actually moved.
    """

    def __init__(
        self,
        api: ApiClient,
        cache: Optional[LocalCache] = None,
        poll_interval: Optional[float] = None,
        on_change: Optional[Callback] = None,
        on_session_lost: Optional[Callback] = None,
    ) -> None:
        self.api = api
        self.cache = cache or LocalCache()
        self.poll_interval = poll_interval or get_client_settings()["poll_interval_seconds"]
        self.on_change = on_change
        self.on_session_lost = on_session_lost

        self.state_version: Optional[int] = None
        self.me: Optional[Dict[str, Any]] = None
        self.round: Optional[Dict[str, Any]] = None
        self.view: Optional[Dict[str, Any]] = None

        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None
        self._loop_task: Optional[asyncio.Task] = None
        self._running = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        if self.api.user_id is None:
            raise RuntimeError("Join or log in before starting the session sync.")
        self._running = True
        self._loop_task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        self._running = False
        tasks = [t for t in (self._loop_task, self._inflight) if t is not None]
        current = asyncio.current_task()
        for task in tasks:
            if task is not current and not task.done():
                task.cancel()
        for task in tasks:
            if task is not current:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._inflight = None

    async def _run(self) -> None:
        while self._running:
            self.launch_poll()
            await asyncio.sleep(self.poll_interval)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------
    def launch_poll(self) -> asyncio.Task:
        """Start a new poll, superseding any poll that has not finished."""
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._generation += 1
        self._inflight = asyncio.get_running_loop().create_task(
            self._poll(self._generation)
        )
        return self._inflight

    async def poll_once(self) -> List[str]:
        task = self.launch_poll()
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled():
                return []
            raise

    async def _poll(self, generation: int) -> List[str]:
        try:
            payload = await self.api.view()
        except ApiError as exc:
            if generation != self._generation:
                return []
            if exc.is_session_lost:
                await self._session_lost(exc)
            elif exc.is_transient:
                logger.debug("Poll failed, retrying next cycle: %s", exc)
            else:
                logger.warning("Poll rejected: %s", exc)
            return []
        if generation != self._generation:
            logger.debug("Dropping superseded poll %s", generation)
            return []
        return await self.apply(payload)

    async def apply(self, payload: Dict[str, Any]) -> List[str]:
        """Quietly merge a view payload; returns the names of changed parts."""
        changed: List[str] = []
        me = self._self_record(payload)
        if me != self.me:
            self.me = me
            changed.append("me")
        game_round = payload.get("round")
        if game_round != self.round:
            self.round = game_round
            changed.append("round")
        view = self._merge_view(payload.get("view"))
        if view != self.view:
            self.view = view
            changed.append("view")
        self.state_version = payload.get("state_version")
        if changed:
            await _fire(self.on_change, changed)
        return changed

    def _self_record(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        me = payload.get("me")
        if me is None:
            return None
        record = {
            "user_id": me.get("user_id"),
            "display_name": me.get("display_name"),
            "role": me.get("role"),
            "team_id": me.get("team_id"),
            "status": me.get("status"),
        }
        view = payload.get("view") or {}
        if view.get("kind") == "customer":
            record["budget"] = view.get("budget")
            record["purchased_joke_ids"] = list(view.get("purchased_joke_ids") or [])
        return record

    def _merge_view(self, view: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if view is None or self.round is None:
            return view
        round_id = self.round.get("id")
        if view.get("kind") == "producer" and view.get("batches"):
            view = dict(view)
            view["batches"] = self.cache.merge_batches(round_id, view["batches"])
        elif view.get("kind") == "quality_control":
            view = dict(view)
            view["history"] = self.cache.grading_history(round_id)
        return view

    async def _session_lost(self, exc: ApiError) -> None:
        logger.info("Session lost (%s); clearing identity", exc.code)
        self.api.user_id = None
        self.me = None
        self.round = None
        self.view = None
        self.state_version = None
        self.cache.clear()
        self._running = False
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
        await _fire(self.on_session_lost, exc)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def join(self, display_name: str) -> Dict[str, Any]:
        self.cache.clear()
        return await self.api.join(display_name)

    async def submit_batch(self, round_id: int, team_id: int, jokes: List[str]) -> Dict[str, Any]:
        batch = await self.api.submit_batch(round_id, team_id, jokes)
        self.cache.remember_batch(round_id, batch["batch_id"], jokes, batch.get("joke_ids"))
        return batch

    async def grade(
        self,
        round_id: int,
        batch_id: int,
        ratings: List[Dict[str, Any]],
        feedback: Optional[str] = None,
    ) -> Dict[str, Any]:
        result = await self.api.submit_ratings(batch_id, ratings, feedback)
        rated = dict(result["batch"], round_id=round_id)
        self.cache.remember_grading(round_id, batch_id, ratings, feedback, rated)
        return self.cache.merge_grading(round_id, rated)

    async def buy(self, round_id: int, joke_id: int) -> Dict[str, Any]:
        return await self.api.buy(round_id, joke_id)

    async def return_joke(self, round_id: int, joke_id: int) -> Dict[str, Any]:
        return await self.api.return_joke(round_id, joke_id)
