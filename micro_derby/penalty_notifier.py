from __future__ import annotations

import asyncio
from typing import Optional, Set

import requests

from micro_derby.config import PENALTY_ENDPOINT, PENALTY_TIMEOUT


class PenaltyNotifier:
    """
    Sends the single 'lose' signal to the configured endpoint.

    The response is ignored and transport failures never propagate; callers
    only learn whether the POST went out.
    """

    def __init__(
        self,
        endpoint: str = PENALTY_ENDPOINT,
        timeout: float = PENALTY_TIMEOUT,
        enabled: bool = True,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.enabled = enabled
        self.last_error: Optional[str] = None
        self._pending: Set[asyncio.Task] = set()

    def send(self) -> bool:
        if not self.enabled:
            print(f"[PenaltyNotifier] Signalling disabled; not contacting {self.endpoint}.")
            return False
        try:
            requests.post(self.endpoint, timeout=self.timeout)
            self.last_error = None
            return True
        except requests.RequestException as err:
            self.last_error = str(err)
            print(f"[PenaltyNotifier] Signal to {self.endpoint} failed quietly: {err}")
            return False
        except Exception as err:
            self.last_error = str(err)
            print(f"[PenaltyNotifier] Unexpected error signalling {self.endpoint}: {err}")
            return False

    async def notify(self) -> bool:
        return await asyncio.to_thread(self.send)

    def fire(self) -> Optional[asyncio.Task]:
        """
        Fire-and-forget dispatch. Inside an event loop the POST runs on a worker
        thread and the task is returned; without a loop it is sent inline.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.send()
            return None

        task = loop.create_task(self.notify())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
