"""
Container error taxonomy.

Every contract violation raised by the container is a ``ContainerError``.
The four subclasses name the kind of violation:

- RegistrationError: duplicate name, missing field, arity mismatch
- ResolutionError: unknown module, self/startable dependency, cycles
- MutationError: clear/reset on live state
- LifecycleError: start/stop in the wrong state, missing or failing hook
"""

from typing import Any, Dict, List, Optional


class ContainerError(Exception):
    """
    Base exception for container contract violations.

    Attributes:
        code: Stable machine-readable identifier (e.g. "DUPLICATE_MODULE")
        message: Human-readable summary naming the module and the rule
        module: Offending module name, if any
        metadata: Additional context data
    """

    code: str = "CONTAINER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        module: Optional[str] = None,
        code: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.module = module
        if code is not None:
            self.code = code
        self.metadata = metadata or {}
        super().__init__(message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error for logging/CLI output."""
        return {
            "kind": self.kind,
            "code": self.code,
            "message": self.message,
            "module": self.module,
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return f"{self.kind}(code={self.code!r}, module={self.module!r})"


class RegistrationError(ContainerError):
    """Module definition rejected at registration time."""

    code = "REGISTRATION_FAILED"


class ResolutionError(ContainerError):
    """Module instance could not be resolved."""

    code = "RESOLUTION_FAILED"


class MutationError(ContainerError):
    """Registry mutation attempted while state is live."""

    code = "MUTATION_REFUSED"


class LifecycleError(ContainerError):
    """Start/stop rejected or lifecycle hook failed."""

    code = "LIFECYCLE_FAILED"


class DependencyCycleError(ResolutionError):
    """Circular dependency detected while resolving or analysing the graph."""

    code = "DEPENDENCY_CYCLE"

    def __init__(self, cycle: List[str], *, module: Optional[str] = None):
        self.cycle = list(cycle)

        msg = "Detected dependency cycle: " + " -> ".join(self.cycle)
        msg += "\n\nSuggested fixes:"
        msg += "\n  - Extract the shared part into a module both can depend on"
        msg += "\n  - Restructure dependencies to remove the cycle"

        super().__init__(
            msg,
            module=module or (self.cycle[0] if self.cycle else None),
            metadata={"cycle": self.cycle},
        )
