"""
Keel - in-process dependency injection and module lifecycle container.

Key Features:
- Named modules with ordered, positional dependencies
- Lazy, at-most-once instantiation (singleton-only)
- Async start/stop lifecycle for modules flagged ``startable``
- Structural queries over registered modules
- Static graph analysis: cycles, missing dependencies, DOT export
"""

__version__ = "1.0.0"

from .container import Container

from .module import (
    ModuleDefinition,
    ModuleState,
    ModuleView,
    ValueFactory,
    CallableFactory,
)

from .lifecycle import (
    Completion,
    AsyncioCompletion,
    LifecycleManager,
)

from .config import (
    ContainerConfig,
    ConfigLoader,
    ConfigError,
    configure_logging,
)

from .diagnostics import (
    Diagnostics,
    DiagnosticEvent,
    EventType,
    LoggingListener,
    RecordingListener,
)

from .graph import DependencyGraph

from .errors import (
    ContainerError,
    RegistrationError,
    ResolutionError,
    MutationError,
    LifecycleError,
    DependencyCycleError,
)

__all__ = [
    # Core
    "Container",

    # Definitions
    "ModuleDefinition",
    "ModuleState",
    "ModuleView",
    "ValueFactory",
    "CallableFactory",

    # Lifecycle
    "Completion",
    "AsyncioCompletion",
    "LifecycleManager",

    # Config
    "ContainerConfig",
    "ConfigLoader",
    "ConfigError",
    "configure_logging",

    # Diagnostics
    "Diagnostics",
    "DiagnosticEvent",
    "EventType",
    "LoggingListener",
    "RecordingListener",

    # Graph
    "DependencyGraph",

    # Errors
    "ContainerError",
    "RegistrationError",
    "ResolutionError",
    "MutationError",
    "LifecycleError",
    "DependencyCycleError",
]
