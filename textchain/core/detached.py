"""
Detached (fire-and-forget) downstream calls.

Some commands hand work to a backend that reports completion to the user
through its own out-of-band SMS. For those, the gateway issues the call,
bounds it with a short timeout and discards the outcome. The outcome is
still logged so the call remains observable in the service logs.
"""
import asyncio
from typing import Any, Awaitable, Optional, Set

import structlog

logger = structlog.get_logger(__name__)


class DetachedCallRunner:
    """Spawns bounded background calls whose results are ignored."""

    def __init__(self, default_timeout: float = 5.0):
        self.default_timeout = default_timeout
        # Strong references; the event loop only keeps weak ones.
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of detached calls still running."""
        return len(self._tasks)

    def spawn(
        self,
        name: str,
        call: Awaitable[Any],
        timeout: Optional[float] = None,
    ) -> asyncio.Task:
        """
        Schedule ``call`` in the background and return immediately.

        Args:
            name: Operation name used in log events
            call: Awaitable performing the downstream request
            timeout: Seconds before the call is abandoned

        Returns:
            The scheduled task (callers are not expected to await it)
        """
        limit = timeout if timeout is not None else self.default_timeout
        task = asyncio.create_task(self._run(name, call, limit), name=f"detached:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        logger.info("Detached call issued", operation=name, timeout=limit)
        return task

    async def _run(self, name: str, call: Awaitable[Any], timeout: float) -> None:
        try:
            result = await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Detached call timed out", operation=name, timeout=timeout)
        except asyncio.CancelledError:
            logger.info("Detached call cancelled", operation=name)
            raise
        except Exception as e:
            logger.warning(
                "Detached call failed",
                operation=name,
                error_type=type(e).__name__,
                error=str(e),
            )
        else:
            logger.info(
                "Detached call finished",
                operation=name,
                success=getattr(result, "success", None),
            )

    async def drain(self, timeout: Optional[float] = None) -> None:
        """
        Wait for pending detached calls, cancelling any left after ``timeout``.

        Args:
            timeout: Seconds to wait before cancelling stragglers
        """
        if not self._tasks:
            return

        tasks = list(self._tasks)
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)

        logger.info(
            "Detached calls drained",
            completed=len(done),
            cancelled=len(still_running),
        )
