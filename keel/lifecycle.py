"""
Lifecycle manager - starts and stops startable modules.

Each startable module walks a small state machine::

    UNSTARTED -> STARTING -> STARTED -> STOPPING -> UNSTARTED

``start``/``stop`` suspend exactly once, while awaiting the lifecycle hook.
All state changes happen synchronously right before or after that await, so
no locking is needed on a single event loop.

Awaiting is delegated to a ``Completion`` primitive which can be swapped out
(e.g. in tests) through the container constructor.
"""

from typing import Any, Awaitable, Callable, List, Optional, Protocol, Sequence
import asyncio
import inspect
import logging
import time

from .diagnostics import Diagnostics, EventType
from .errors import LifecycleError
from .filters import filter_entries
from .module import ModuleEntry, ModuleState
from .registry import Registry
from .resolver import Resolver

logger = logging.getLogger("keel.lifecycle")

DEFAULT_START_HOOK = "start"
DEFAULT_STOP_HOOK = "stop"


class Completion(Protocol):
    """Asynchronous completion primitive used to await lifecycle hooks."""

    def settle(self, value: Any) -> Awaitable[Any]:
        """Turn a hook's return value (awaitable or plain) into an awaitable."""
        ...

    def gather(self, awaitables: Sequence[Awaitable[Any]]) -> Awaitable[List[Any]]:
        """Await all ``awaitables``; fail as soon as one fails."""
        ...


class AsyncioCompletion:
    """Default ``Completion`` built on asyncio."""

    async def settle(self, value: Any) -> Any:
        if inspect.isawaitable(value):
            return await value
        return value

    def gather(self, awaitables: Sequence[Awaitable[Any]]) -> Awaitable[List[Any]]:
        return asyncio.gather(*awaitables)


class LifecycleManager:
    """
    Drives start/stop transitions on top of the resolver.

    Args:
        registry: Module registry
        resolver: Resolver used to obtain instances
        completion: Completion primitive (defaults to ``AsyncioCompletion``)
        diagnostics: Event sink
        start_hook: Default hook name for ``start``
        stop_hook: Default hook name for ``stop``
    """

    def __init__(
        self,
        registry: Registry,
        resolver: Resolver,
        completion: Optional[Completion] = None,
        diagnostics: Optional[Diagnostics] = None,
        *,
        start_hook: str = DEFAULT_START_HOOK,
        stop_hook: str = DEFAULT_STOP_HOOK,
    ):
        self._registry = registry
        self._resolver = resolver
        self._completion = completion or AsyncioCompletion()
        self._diagnostics = diagnostics or Diagnostics()
        self.start_hook = start_hook
        self.stop_hook = stop_hook

    async def start(self, name: str, hook_name: Optional[str] = None) -> Any:
        """
        Start a startable module and return its instance.

        Already started modules are returned as-is without calling the hook
        again.

        Raises:
            LifecycleError: Unknown or non-startable module, transition in
                progress, missing hook, or hook failure
            ResolutionError: If the instance cannot be resolved
        """
        hook_name = hook_name or self.start_hook
        entry = self._require(name, "start")

        if not entry.startable:
            raise LifecycleError(
                f"Cannot start non-startable module '{name}'.",
                module=name,
                code="NOT_STARTABLE",
            )

        if entry.state is ModuleState.STARTED:
            if not entry.has_instance:
                raise LifecycleError(
                    f"Module '{name}' indicates that it has already been started but "
                    f"no instance for it could be found.",
                    module=name,
                    code="STATE_CORRUPTED",
                )
            return entry.instance

        self._refuse_transition(entry, "start")

        instance = self._resolver.resolve(name)
        hook = self._hook(entry, instance, hook_name, "start")

        entry.state = ModuleState.STARTING
        self._diagnostics.emit(EventType.STARTING, module=name, metadata={"hook": hook_name})
        logger.info(f"Starting module '{name}'...")
        began = time.perf_counter()

        try:
            await self._completion.settle(hook())
        except asyncio.CancelledError:
            entry.state = ModuleState.UNSTARTED
            raise
        except Exception as e:
            entry.state = ModuleState.UNSTARTED
            logger.error(f"Module '{name}' failed to start: {e}")
            self._diagnostics.emit(EventType.START_FAILED, module=name, error=e)
            raise LifecycleError(
                f"Module '{name}' failed to start: {e}",
                module=name,
                code="START_FAILED",
                metadata={"hook": hook_name},
            ) from e

        entry.state = ModuleState.STARTED
        duration = time.perf_counter() - began
        logger.info(f"Module '{name}' started")
        self._diagnostics.emit(EventType.STARTED, module=name, duration=duration)
        return instance

    async def stop(self, name: str, hook_name: Optional[str] = None) -> None:
        """
        Stop a started module and discard its instance.

        The next ``get_instance``/``start`` runs the factory again.

        Raises:
            LifecycleError: Unknown or not started module, missing hook, or
                hook failure
        """
        hook_name = hook_name or self.stop_hook
        entry = self._require(name, "stop")

        self._refuse_transition(entry, "stop")

        if entry.state is not ModuleState.STARTED:
            raise LifecycleError(
                f"Attempting to stop module '{name}' but it has not yet been started.",
                module=name,
                code="NOT_STARTED",
            )

        instance = self._resolver.resolve(name)
        hook = self._hook(entry, instance, hook_name, "stop")

        entry.state = ModuleState.STOPPING
        self._diagnostics.emit(EventType.STOPPING, module=name, metadata={"hook": hook_name})
        logger.info(f"Stopping module '{name}'...")
        began = time.perf_counter()

        try:
            await self._completion.settle(hook())
        except asyncio.CancelledError:
            entry.state = ModuleState.STARTED
            raise
        except Exception as e:
            entry.state = ModuleState.STARTED
            logger.error(f"Module '{name}' failed to stop: {e}")
            self._diagnostics.emit(EventType.STOP_FAILED, module=name, error=e)
            raise LifecycleError(
                f"Module '{name}' failed to stop: {e}",
                module=name,
                code="STOP_FAILED",
                metadata={"hook": hook_name},
            ) from e

        entry.discard_instance()
        entry.state = ModuleState.UNSTARTED
        duration = time.perf_counter() - began
        logger.info(f"Module '{name}' stopped")
        self._diagnostics.emit(EventType.STOPPED, module=name, duration=duration)

    async def start_all(self) -> List[Any]:
        """
        Start every idle startable module concurrently.

        Returns:
            Started instances in registration order (empty if none)
        """
        targets = filter_entries(
            self._registry.entries(),
            {"state": ModuleState.UNSTARTED, "properties": {"startable": True}},
        )
        if not targets:
            return []

        logger.info(f"Starting {len(targets)} module(s): {', '.join(t.name for t in targets)}")
        results = await self._completion.gather([self.start(t.name) for t in targets])
        return list(results)

    async def stop_all(self) -> List[Any]:
        """Stop every started module concurrently."""
        targets = filter_entries(self._registry.entries(), {"state": ModuleState.STARTED})
        if not targets:
            return []

        logger.info(f"Stopping {len(targets)} module(s): {', '.join(t.name for t in targets)}")
        results = await self._completion.gather([self.stop(t.name) for t in targets])
        return list(results)

    def _require(self, name: str, action: str) -> ModuleEntry:
        entry = self._registry.get(name)
        if entry is None:
            raise LifecycleError(
                f"Attempting to {action} module '{name}' but no module by that name "
                f"has been registered.",
                module=name,
                code="MODULE_NOT_FOUND",
            )
        return entry

    @staticmethod
    def _refuse_transition(entry: ModuleEntry, action: str) -> None:
        if entry.state in (ModuleState.STARTING, ModuleState.STOPPING):
            raise LifecycleError(
                f"Cannot {action} module '{entry.name}' while it is {entry.state.value}.",
                module=entry.name,
                code="TRANSITION_IN_PROGRESS",
                metadata={"state": entry.state.value},
            )

    @staticmethod
    def _hook(entry: ModuleEntry, instance: Any, hook_name: str, action: str) -> Callable[[], Any]:
        hook = getattr(instance, hook_name, None)
        if not callable(hook):
            raise LifecycleError(
                f"Cannot {action} module '{entry.name}', {action} function "
                f"'{hook_name}()' not found.",
                module=entry.name,
                code="HOOK_NOT_FOUND",
                metadata={"hook": hook_name},
            )
        return hook
