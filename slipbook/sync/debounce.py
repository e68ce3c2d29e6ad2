"""
Debounce primitive

A Debouncer owns one cancellable scheduled task. Every trigger() cancels
the pending task and schedules a fresh one; the action only runs after
`delay` seconds pass with no further trigger.

Once the delay has elapsed the action is in flight and is detached from
the timer: later triggers schedule a new run but never cancel a running
one.
"""

import asyncio
from typing import Awaitable, Callable, Optional


class Debouncer:
    
    def __init__(
        self,
        delay: float,
        action: Callable[[], Awaitable[object]],
    ):
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self._delay = delay
        self._action = action
        self._timer: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Task] = set()
        self._closed = False
    
    @property
    def delay(self) -> float:
        return self._delay
    
    @property
    def pending(self) -> bool:
        """True while a timer is waiting to fire."""
        return self._timer is not None and not self._timer.done()
    
    @property
    def in_flight(self) -> int:
        return len(self._in_flight)
    
    @property
    def closed(self) -> bool:
        return self._closed
    
    def trigger(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
        """
        (Re)start the quiescence timer.
        
        Args:
            loop: Loop to schedule on; defaults to the running loop
            
        Returns:
            False if the debouncer is closed and nothing was scheduled
        """
        if self._closed:
            return False
        self.cancel()
        loop = loop or asyncio.get_running_loop()
        self._timer = loop.create_task(self._wait_then_run())
        return True
    
    def cancel(self) -> bool:
        """Cancel the pending timer, if any. In-flight actions are left alone."""
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()
            return True
        return False
    
    async def _wait_then_run(self) -> None:
        await asyncio.sleep(self._delay)
        
        task = asyncio.current_task()
        if self._timer is task:
            self._timer = None
        self._in_flight.add(task)
        try:
            await self._action()
        finally:
            self._in_flight.discard(task)
    
    async def close(self) -> None:
        """Stop scheduling, cancel the pending timer and wait for in-flight runs."""
        self._closed = True
        self.cancel()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
