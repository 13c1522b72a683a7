"""
Registry - owns module definitions and their state.

Validates definitions on the way in (required fields, uniqueness, factory
arity) and refuses mutations that would silently invalidate live state.
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union
import logging

from .diagnostics import Diagnostics, EventType
from .errors import MutationError, RegistrationError
from .module import (
    CallableFactory,
    Factory,
    ModuleDefinition,
    ModuleEntry,
    ModuleState,
    ValueFactory,
)

logger = logging.getLogger("keel.registry")

_REQUIRED = ("name", "factory")

DefinitionLike = Union[ModuleDefinition, Mapping[str, Any]]


def build_definition(definition: DefinitionLike, operation: str = "register_complex") -> ModuleDefinition:
    """
    Normalize a mapping or ``ModuleDefinition`` into a ``ModuleDefinition``.

    Args:
        definition: ``{"name", "factory", "properties"?, "dependencies"?}``
        operation: Public operation name, used in error messages

    Raises:
        RegistrationError: If ``name`` or ``factory`` is missing or malformed
    """
    if isinstance(definition, ModuleDefinition):
        data: Mapping[str, Any] = {
            "name": definition.name,
            "factory": definition.factory,
            "properties": definition.properties,
            "dependencies": definition.dependencies,
        }
    elif isinstance(definition, Mapping):
        data = definition
    else:
        raise RegistrationError(
            f"Attempting to {operation}() with a {type(definition).__name__}; "
            f"expected a mapping or ModuleDefinition.",
            code="INVALID_DEFINITION",
        )

    for required in _REQUIRED:
        if data.get(required) is None:
            raise RegistrationError(
                f"Attempting to register module with {operation}() but its "
                f"definition is missing '{required}' property.",
                module=data.get("name"),
                code="MISSING_PROPERTY",
                metadata={"property": required},
            )

    name = data["name"]
    if not isinstance(name, str) or not name:
        raise RegistrationError(
            f"Module name must be a non-empty string, got {name!r}.",
            code="INVALID_NAME",
        )

    properties = data.get("properties") or {}
    if not isinstance(properties, Mapping):
        raise RegistrationError(
            f"Properties of module '{name}' must be a mapping, got {type(properties).__name__}.",
            module=name,
            code="INVALID_PROPERTIES",
        )

    dependencies = data.get("dependencies") or ()
    if isinstance(dependencies, str) or not isinstance(dependencies, Sequence):
        raise RegistrationError(
            f"Dependencies of module '{name}' must be a sequence of module names.",
            module=name,
            code="INVALID_DEPENDENCIES",
        )

    return ModuleDefinition(
        name=name,
        factory=data["factory"],
        properties=dict(properties),
        dependencies=tuple(dependencies),
    )


class Registry:
    """
    Insertion-ordered mapping from module name to ``ModuleEntry``.

    All operations are synchronous; mutations are atomic with respect to
    any awaiting lifecycle call.
    """

    __slots__ = ("_entries", "_diagnostics")

    def __init__(self, diagnostics: Optional[Diagnostics] = None):
        self._entries: Dict[str, ModuleEntry] = {}
        self._diagnostics = diagnostics or Diagnostics()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def register(self, definition: ModuleDefinition) -> ModuleEntry:
        """
        Store a fresh entry for ``definition``.

        Raises:
            RegistrationError: Duplicate name, dependencies on a value
                factory, duplicate dependency names or arity mismatch
        """
        name = definition.name

        if name in self._entries:
            raise RegistrationError(
                f"Attempting to register module '{name}', but it has already "
                f"been registered. See replace().",
                module=name,
                code="DUPLICATE_MODULE",
            )

        factory = self._build_factory(definition)

        seen = set()
        duplicates = []
        for dependency in definition.dependencies:
            if dependency in seen and dependency not in duplicates:
                duplicates.append(dependency)
            seen.add(dependency)
        if duplicates:
            raise RegistrationError(
                f"Module '{name}' declares duplicate dependencies: {', '.join(duplicates)}.",
                module=name,
                code="DUPLICATE_DEPENDENCY",
                metadata={"duplicates": duplicates},
            )

        entry = ModuleEntry(definition, factory)
        self._entries[name] = entry

        logger.debug(
            f"Registered module '{name}' "
            f"(dependencies={list(definition.dependencies)}, startable={definition.startable})"
        )
        self._diagnostics.emit(
            EventType.REGISTERED,
            module=name,
            metadata={"dependencies": list(definition.dependencies)},
        )
        return entry

    def clear(self, name: str) -> None:
        """
        Remove an entry. Unknown names are ignored.

        Raises:
            MutationError: If the module already holds an instance
        """
        entry = self._entries.get(name)
        if entry is None:
            return

        if entry.has_instance:
            raise MutationError(
                f"Module '{name}' was already instantiated, cannot modify.",
                module=name,
                code="MODULE_INSTANTIATED",
            )

        del self._entries[name]
        logger.debug(f"Cleared module '{name}'")
        self._diagnostics.emit(EventType.CLEARED, module=name)

    def reset(self) -> None:
        """
        Remove every entry.

        Raises:
            MutationError: If one or more modules are started (or mid
                start/stop)
        """
        started = [
            entry.name for entry in self._entries.values()
            if entry.state is not ModuleState.UNSTARTED
        ]
        if started:
            raise MutationError(
                f"Cannot reset container while one or more modules are running. "
                f"Please use stop() or stop_all(). Started modules: {', '.join(started)}",
                code="MODULES_RUNNING",
                metadata={"started": started},
            )

        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"Reset registry ({count} modules removed)")
        self._diagnostics.emit(EventType.RESET, metadata={"removed": count})

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, name: str) -> Optional[ModuleEntry]:
        return self._entries.get(name)

    def entries(self) -> List[ModuleEntry]:
        """Entries in insertion order."""
        return list(self._entries.values())

    def names(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[ModuleEntry]:
        return iter(self.entries())

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build_factory(self, definition: ModuleDefinition) -> Factory:
        name = definition.name
        count = len(definition.dependencies)

        if definition.is_value:
            if count > 0:
                raise RegistrationError(
                    f"Cannot register module '{name}' with dependencies. You must use "
                    f"a factory for your module if you wish to provide dependencies.",
                    module=name,
                    code="VALUE_WITH_DEPENDENCIES",
                )
            return ValueFactory(definition.factory)

        try:
            factory = CallableFactory.of(definition.factory)
        except ValueError as e:
            # No signature (builtins such as dict); only a zero-argument call is safe
            if count > 0:
                raise RegistrationError(
                    f"Cannot inspect factory of module '{name}': {e}",
                    module=name,
                    code="UNINSPECTABLE_FACTORY",
                ) from e
            factory = CallableFactory(func=definition.factory, arity=0)
        except TypeError as e:
            raise RegistrationError(
                f"Cannot inspect factory of module '{name}': {e}",
                module=name,
                code="UNINSPECTABLE_FACTORY",
            ) from e

        if not factory.accepts(count):
            raise RegistrationError(
                f"The number of parameters in factory implementation of module "
                f"'{name}' ({factory.arity}) does not match number of passed "
                f"dependencies ({count}).",
                module=name,
                code="ARITY_MISMATCH",
                metadata={"arity": factory.arity, "dependencies": count},
            )
        return factory
