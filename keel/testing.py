"""
Testing utilities for containers.

Provides a recording completion primitive, a gate for holding hooks
in flight, and a sample startable service with call tracking.
"""

from typing import Any, Awaitable, List, Optional, Sequence
import asyncio
import inspect

from .lifecycle import AsyncioCompletion


class RecordingCompletion(AsyncioCompletion):
    """
    ``Completion`` that records every hook result it awaits.

    Tracks access for assertions.
    """

    def __init__(self):
        self.settled: List[Any] = []
        self.gather_calls = 0

    async def settle(self, value: Any) -> Any:
        self.settled.append(value)
        return await super().settle(value)

    def gather(self, awaitables: Sequence[Awaitable[Any]]) -> Awaitable[List[Any]]:
        self.gather_calls += 1
        return super().gather(awaitables)

    def reset(self) -> None:
        self.settled.clear()
        self.gather_calls = 0


class HookGate:
    """
    Holds lifecycle hooks until released.

    Example:
        gate = HookGate()
        service = Service(start=gate.wait)
        task = asyncio.create_task(container.start("service"))
        await gate.entered.wait()   # hook is now in flight
        gate.release()
        await task
    """

    def __init__(self):
        self.entered = asyncio.Event()
        self._released = asyncio.Event()

    async def wait(self) -> None:
        self.entered.set()
        await self._released.wait()

    def release(self) -> None:
        self._released.set()


class Service:
    """
    Sample startable service recording its hook calls.

    Args:
        *dependencies: Resolved dependencies (kept for assertions)
        start: Optional async callable run by ``start``
        fail_start: Exception raised by ``start``
        fail_stop: Exception raised by ``stop``
    """

    def __init__(
        self,
        *dependencies: Any,
        start: Optional[Any] = None,
        fail_start: Optional[BaseException] = None,
        fail_stop: Optional[BaseException] = None,
    ):
        self.dependencies = dependencies
        self.start_calls = 0
        self.stop_calls = 0
        self.running = False
        self._start = start
        self._fail_start = fail_start
        self._fail_stop = fail_stop

    async def start(self) -> None:
        self.start_calls += 1
        if self._start is not None:
            await self._start()
        if self._fail_start is not None:
            raise self._fail_start
        self.running = True

    async def stop(self) -> None:
        self.stop_calls += 1
        if self._fail_stop is not None:
            raise self._fail_stop
        self.running = False

    def __repr__(self) -> str:
        return f"Service(running={self.running}, starts={self.start_calls}, stops={self.stop_calls})"


class CountingFactory:
    """Factory wrapper counting how often the container invokes it."""

    def __init__(self, build):
        self._build = build
        self.calls = 0
        self.instances: List[Any] = []
        # Keep the wrapped signature visible for arity inspection
        self.__signature__ = inspect.signature(build)

    def __call__(self, *dependencies: Any) -> Any:
        self.calls += 1
        instance = self._build(*dependencies)
        self.instances.append(instance)
        return instance
