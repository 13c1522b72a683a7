"""
Module definitions and per-module state.

A module is a named unit with a factory, an ordered list of dependency names
and a small set of properties. The factory is either a plain value
(``ValueFactory``) or a callable taking one positional argument per declared
dependency (``CallableFactory``).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union
import inspect


class _Missing:
    """Sentinel for "no instance yet" (instances may legitimately be falsy)."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

STARTABLE = "startable"


class ModuleState(str, Enum):
    """Lifecycle state of a module."""

    UNSTARTED = "unstarted"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"


def positional_arity(func: Callable) -> Tuple[int, bool]:
    """
    Inspect how many positional arguments a factory demands.

    Returns:
        ``(required, variadic)`` where ``required`` counts positional
        parameters without a default and ``variadic`` tells whether the
        factory declares ``*args``.

    Raises:
        ValueError/TypeError: If the signature cannot be inspected
        TypeError: If the factory has keyword-only parameters without defaults
    """
    sig = inspect.signature(func)
    required = 0
    variadic = False

    for param in sig.parameters.values():
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            if param.default is param.empty:
                required += 1
        elif param.kind is param.VAR_POSITIONAL:
            variadic = True
        elif param.kind is param.KEYWORD_ONLY and param.default is param.empty:
            raise TypeError(
                f"keyword-only parameter '{param.name}' cannot be injected positionally"
            )

    return required, variadic


@dataclass(frozen=True, slots=True)
class ValueFactory:
    """Factory variant for a pre-built value. Takes no dependencies."""

    value: Any

    def __call__(self, *dependencies: Any) -> Any:
        return self.value

    def accepts(self, count: int) -> bool:
        return count == 0

    @property
    def target(self) -> Any:
        return self.value


@dataclass(frozen=True, slots=True)
class CallableFactory:
    """Factory variant for a callable invoked with resolved dependencies."""

    func: Callable[..., Any]
    arity: int
    variadic: bool = False

    @classmethod
    def of(cls, func: Callable[..., Any]) -> "CallableFactory":
        required, variadic = positional_arity(func)
        return cls(func=func, arity=required, variadic=variadic)

    def __call__(self, *dependencies: Any) -> Any:
        return self.func(*dependencies)

    def accepts(self, count: int) -> bool:
        if self.variadic:
            return count >= self.arity
        return count == self.arity

    @property
    def target(self) -> Any:
        return self.func


Factory = Union[ValueFactory, CallableFactory]


@dataclass(frozen=True)
class ModuleDefinition:
    """
    Definition record supplied at registration.

    ``factory`` is the raw value or callable as given by the registrant.
    """

    name: str
    factory: Any
    properties: Mapping[str, Any] = field(default_factory=dict)
    dependencies: Tuple[str, ...] = ()

    @property
    def startable(self) -> bool:
        return bool(self.properties.get(STARTABLE, False))

    @property
    def is_value(self) -> bool:
        return not callable(self.factory)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "factory": describe_factory(self.factory),
            "properties": dict(self.properties),
            "dependencies": list(self.dependencies),
        }


def describe_factory(factory: Any) -> str:
    """Short printable description of a factory for diagnostics."""
    if callable(factory):
        module = getattr(factory, "__module__", None) or "?"
        qualname = getattr(factory, "__qualname__", None) or type(factory).__qualname__
        return f"{module}.{qualname}"
    return f"value:{type(factory).__name__}"


class ModuleEntry:
    """
    Registry entry: definition plus mutable per-module state.

    Owned exclusively by the registry; callers only ever see ``ModuleView``
    snapshots.
    """

    __slots__ = ("definition", "factory", "instance", "state")

    def __init__(self, definition: ModuleDefinition, factory: Factory):
        self.definition = definition
        self.factory = factory
        self.instance: Any = MISSING
        self.state = ModuleState.UNSTARTED

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def dependencies(self) -> Tuple[str, ...]:
        return self.definition.dependencies

    @property
    def startable(self) -> bool:
        return self.definition.startable

    @property
    def has_instance(self) -> bool:
        return self.instance is not MISSING

    @property
    def started(self) -> bool:
        # Still "started" while the stop hook is in flight.
        return self.state in (ModuleState.STARTED, ModuleState.STOPPING)

    def discard_instance(self) -> None:
        self.instance = MISSING

    def view(self) -> "ModuleView":
        return ModuleView(
            name=self.name,
            factory=self.definition.factory,
            dependencies=self.dependencies,
            properties=dict(self.definition.properties),
            instance=self.instance if self.has_instance else None,
            instantiated=self.has_instance,
            started=self.started,
            state=self.state,
        )

    def __repr__(self) -> str:
        return f"ModuleEntry(name={self.name!r}, state={self.state.value})"


@dataclass(frozen=True)
class ModuleView:
    """Read-only snapshot of a registry entry, as returned by queries."""

    name: str
    factory: Any
    dependencies: Tuple[str, ...]
    properties: Dict[str, Any]
    instance: Optional[Any]
    instantiated: bool
    started: bool
    state: ModuleState

    @property
    def startable(self) -> bool:
        return bool(self.properties.get(STARTABLE, False))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "factory": describe_factory(self.factory),
            "dependencies": list(self.dependencies),
            "properties": dict(self.properties),
            "instantiated": self.instantiated,
            "started": self.started,
            "state": self.state.value,
        }
