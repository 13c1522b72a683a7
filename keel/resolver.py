"""
Dependency resolver.

Resolves a module's instance graph depth-first, left to right, memoizing each
instance on its registry entry. Resolution is fully synchronous.
"""

from typing import Any, List, Optional
import logging
import time

from .diagnostics import Diagnostics, EventType
from .errors import DependencyCycleError, ResolutionError
from .registry import Registry

logger = logging.getLogger("keel.resolver")


class ResolveCtx:
    """
    Context for a single ``resolve`` call.

    Tracks the resolution path for cycle detection and error messages.
    """
    __slots__ = ("stack",)

    def __init__(self):
        self.stack: List[str] = []

    def push(self, name: str) -> None:
        self.stack.append(name)

    def pop(self) -> None:
        self.stack.pop()

    def in_cycle(self, name: str) -> bool:
        """Check if ``name`` is currently being resolved."""
        return name in self.stack

    def get_trace(self) -> List[str]:
        return self.stack.copy()


class Resolver:
    """Resolves and caches module instances from a ``Registry``."""

    __slots__ = ("_registry", "_diagnostics", "detect_cycles")

    def __init__(
        self,
        registry: Registry,
        diagnostics: Optional[Diagnostics] = None,
        *,
        detect_cycles: bool = True,
    ):
        self._registry = registry
        self._diagnostics = diagnostics or Diagnostics()
        self.detect_cycles = detect_cycles

    def resolve(self, name: str) -> Any:
        """
        Return the instance of module ``name``, creating it on first use.

        Raises:
            ResolutionError: Unknown module, self-dependency, dependency on a
                startable module, dependency cycle, or factory returned None
        """
        entry = self._registry.get(name)
        if entry is not None and entry.has_instance:
            return entry.instance

        start = time.perf_counter()
        try:
            instance = self._resolve(name, ResolveCtx())
        except Exception as e:
            self._diagnostics.emit(EventType.RESOLUTION_FAILED, module=name, error=e)
            raise

        self._diagnostics.emit(
            EventType.RESOLVED,
            module=name,
            duration=time.perf_counter() - start,
        )
        return instance

    def _resolve(self, name: str, ctx: ResolveCtx, requested_by: Optional[str] = None) -> Any:
        entry = self._registry.get(name)
        if entry is None:
            if requested_by is None:
                raise ResolutionError(
                    f"Attempting to retrieve module '{name}' but no module by that "
                    f"name has been registered.",
                    module=name,
                    code="MODULE_NOT_FOUND",
                )
            raise ResolutionError(
                f"Module '{requested_by}' depends on '{name}' but no module by that "
                f"name has been registered.",
                module=requested_by,
                code="MISSING_DEPENDENCY",
                metadata={"dependency": name},
            )

        if entry.has_instance:
            return entry.instance

        if self.detect_cycles and ctx.in_cycle(name):
            trace = ctx.get_trace()
            raise DependencyCycleError(trace[trace.index(name):] + [name], module=name)

        ctx.push(name)
        try:
            dependencies = []
            for dependency in entry.dependencies:
                if dependency == name:
                    raise ResolutionError(
                        f"Module '{name}' cannot depend on itself.",
                        module=name,
                        code="SELF_DEPENDENCY",
                    )

                child = self._registry.get(dependency)
                if child is not None and child.startable:
                    raise ResolutionError(
                        f"Module '{name}' cannot depend on startable module '{dependency}'.",
                        module=name,
                        code="STARTABLE_DEPENDENCY",
                        metadata={"dependency": dependency},
                    )

                dependencies.append(self._resolve(dependency, ctx, requested_by=name))

            instance = entry.factory(*dependencies)
        finally:
            ctx.pop()

        if instance is None:
            raise ResolutionError(
                f"Failed to instantiate module '{name}'.",
                module=name,
                code="NO_INSTANCE",
            )

        entry.instance = instance
        logger.debug(f"Instantiated module '{name}'")
        return instance
