"""Host-side persistence loop: hydrate once at startup, then coalesce saves.

The bridge owns no storage. It talks to :class:`StateCommands` exactly as a UI
process would: one ``load_state`` during :meth:`PersistenceBridge.start`, then
``save_state`` whenever the application state changes.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Any, Protocol

import structlog

from financex_state.host.commands import StateCommands

logger = structlog.get_logger(__name__)


class StateSource(Protocol):
    """Application state owner the bridge snapshots and hydrates."""

    def snapshot(self) -> Mapping[str, Any]: ...

    def hydrate(self, persisted: Mapping[str, Any]) -> None: ...


class PersistenceBridge:
    """Coalescing save scheduler in front of the state commands."""

    def __init__(self, commands: StateCommands, source: StateSource) -> None:
        self._commands = commands
        self._source = source
        self._ready = False
        self._scheduled = False
        self._save_lock = asyncio.Lock()
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def save_scheduled(self) -> bool:
        return self._scheduled

    async def start(self) -> bool:
        """Load and hydrate persisted state; return ``True`` if hydration happened."""

        hydrated = False
        result = await asyncio.to_thread(self._commands.load_state)
        if not result.ok:
            logger.warning("persisted_state_unreadable", error=result.error)
        elif result.value:
            hydrated = self._hydrate(result.value)

        self._ready = True
        # Persist the current state right after the first load.
        self.request_save()
        return hydrated

    def request_save(self) -> None:
        """Schedule a save unless one is already waiting to run.

        Saves run one at a time in request order; a request made while a save is
        in flight queues exactly one follow-up save that snapshots the newer state.
        """

        if not self._ready or self._scheduled:
            return
        self._scheduled = True
        task = asyncio.get_running_loop().create_task(self._run_scheduled())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def persist(self) -> bool:
        """Serialize the current snapshot and save it; failures are logged."""

        async with self._save_lock:
            return await self._persist_snapshot()

    async def drain(self) -> None:
        """Wait until every scheduled or in-flight save has finished."""

        while self._pending:
            await asyncio.gather(*tuple(self._pending))

    async def _run_scheduled(self) -> bool:
        async with self._save_lock:
            # Later requests queue a new save; this one snapshots from here on.
            self._scheduled = False
            return await self._persist_snapshot()

    async def _persist_snapshot(self) -> bool:
        try:
            payload = json.dumps(self._source.snapshot(), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            logger.error("state_snapshot_unserializable", error=str(exc))
            return False

        result = await asyncio.to_thread(self._commands.save_state, payload)
        if not result.ok:
            logger.error("state_save_command_failed", error=result.error)
            return False
        return True

    def _hydrate(self, raw: str) -> bool:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("persisted_state_unparsable", error=exc.msg, length=len(raw))
            return False
        if not isinstance(parsed, dict):
            logger.warning(
                "persisted_state_unparsable", error="expected a JSON object", length=len(raw)
            )
            return False
        self._source.hydrate(parsed)
        logger.info("persisted_state_hydrated", keys=sorted(parsed))
        return True


__all__ = ["PersistenceBridge", "StateSource"]
