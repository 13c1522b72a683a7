"""
Container - the public composition root.

Usage:
    container = Container()
    container.register("config", {"dsn": "sqlite://"})
    container.register("db", Database, dependencies=["config"])
    container.register("server", Server, {"startable": True}, ["db"])

    db = container.get_instance("db")
    await container.start("server")
    ...
    await container.stop_all()
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

from .config import ContainerConfig
from .diagnostics import Diagnostics
from .errors import ResolutionError
from .filters import Query, filter_entries
from .lifecycle import Completion, LifecycleManager
from .module import ModuleView
from .registry import DefinitionLike, Registry, build_definition
from .resolver import Resolver

logger = logging.getLogger("keel.container")


class Container:
    """
    Dependency injection and module lifecycle container.

    Singleton-only: every module has at most one live instance, created
    lazily on first ``get_instance``/``start``.

    Args:
        completion: Asynchronous completion primitive used to await
            lifecycle hooks (defaults to asyncio)
        config: Container settings
        diagnostics: Shared diagnostics coordinator
    """

    def __init__(
        self,
        completion: Optional[Completion] = None,
        *,
        config: Optional[ContainerConfig] = None,
        diagnostics: Optional[Diagnostics] = None,
    ):
        self.config = config or ContainerConfig()
        self._diagnostics = diagnostics or Diagnostics()
        self._registry = Registry(self._diagnostics)
        self._resolver = Resolver(
            self._registry,
            self._diagnostics,
            detect_cycles=self.config.detect_cycles,
        )
        self._lifecycle = LifecycleManager(
            self._registry,
            self._resolver,
            completion,
            self._diagnostics,
            start_hook=self.config.start_hook,
            stop_hook=self.config.stop_hook,
        )

    @property
    def diagnostics(self) -> Diagnostics:
        return self._diagnostics

    # ========================================================================
    # Registration
    # ========================================================================

    def register(
        self,
        name: str,
        factory: Any,
        properties: Optional[Mapping[str, Any]] = None,
        dependencies: Optional[Sequence[str]] = None,
    ) -> None:
        """
        Register a module.

        Args:
            name: Unique module name
            factory: Value, or callable taking one positional argument per
                dependency
            properties: Module flags (``{"startable": True}``)
            dependencies: Ordered module names passed to the factory

        Raises:
            RegistrationError: If the definition is rejected
        """
        definition = build_definition(
            {
                "name": name,
                "factory": factory,
                "properties": properties,
                "dependencies": dependencies,
            },
            operation="register",
        )
        self._registry.register(definition)

    def register_complex(self, definition: DefinitionLike) -> None:
        """Register a module from a definition mapping or ``ModuleDefinition``."""
        self._registry.register(build_definition(definition, operation="register_complex"))

    def replace(
        self,
        name: str,
        factory: Any,
        properties: Optional[Mapping[str, Any]] = None,
        dependencies: Optional[Sequence[str]] = None,
    ) -> None:
        """
        Clear then register ``name``.

        Raises:
            MutationError: If the module was already instantiated
            RegistrationError: If the new definition is rejected
        """
        self.replace_complex({
            "name": name,
            "factory": factory,
            "properties": properties,
            "dependencies": dependencies,
        })

    def replace_complex(self, definition: DefinitionLike) -> None:
        """``replace`` taking a definition mapping or ``ModuleDefinition``."""
        module = build_definition(definition, operation="replace_complex")
        if module.name in self._registry:
            logger.debug(f"Replacing module '{module.name}'")
        self._registry.clear(module.name)
        self._registry.register(module)

    def clear(self, name: str) -> None:
        """Remove an uninstantiated module. Unknown names are ignored."""
        self._registry.clear(name)

    def reset(self) -> None:
        """Remove every module. Fails while any module is started."""
        self._registry.reset()

    # ========================================================================
    # Resolution & lifecycle
    # ========================================================================

    def get_instance(self, name: str) -> Any:
        """Resolve (and memoize) the instance of ``name``."""
        return self._resolver.resolve(name)

    async def start(self, name: str, hook_name: Optional[str] = None) -> Any:
        """Start a startable module; returns its instance."""
        return await self._lifecycle.start(name, hook_name)

    async def stop(self, name: str, hook_name: Optional[str] = None) -> None:
        """Stop a started module and discard its instance."""
        await self._lifecycle.stop(name, hook_name)

    async def start_all(self) -> List[Any]:
        """Start every idle startable module concurrently."""
        return await self._lifecycle.start_all()

    async def stop_all(self) -> List[Any]:
        """Stop every started module concurrently."""
        return await self._lifecycle.stop_all()

    async def __aenter__(self) -> "Container":
        try:
            await self.start_all()
        except Exception as e:
            logger.error(f"Startup failed: {e}")
            # Rollback - stop the modules that did start
            logger.info("Rolling back started modules...")
            await self.stop_all()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop_all()
        return False

    # ========================================================================
    # Introspection
    # ========================================================================

    def filtered_modules(self, query: Query) -> List[ModuleView]:
        """
        Query registered modules.

        Example:
            container.filtered_modules({"started": True})
            container.filtered_modules({"properties": {"startable": True}})
        """
        return filter_entries(self._registry.entries(), query)

    def is_registered(self, name: str) -> bool:
        return name in self._registry

    def names(self) -> List[str]:
        return self._registry.names()

    def describe(self, name: str) -> Dict[str, Any]:
        """Snapshot of one module's definition and state."""
        entry = self._registry.get(name)
        if entry is None:
            raise ResolutionError(
                f"Attempting to describe module '{name}' but no module by that "
                f"name has been registered.",
                module=name,
                code="MODULE_NOT_FOUND",
            )
        return entry.view().to_dict()

    def snapshot(self) -> List[Dict[str, Any]]:
        """Snapshots of all modules in registration order."""
        return [entry.view().to_dict() for entry in self._registry.entries()]

    def graph(self):
        """Build a ``DependencyGraph`` of the current registry."""
        from .graph import DependencyGraph
        return DependencyGraph.from_container(self)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __len__(self) -> int:
        return len(self._registry)

    def __repr__(self) -> str:
        started = sum(1 for entry in self._registry.entries() if entry.started)
        return f"Container(modules={len(self._registry)}, started={started})"
