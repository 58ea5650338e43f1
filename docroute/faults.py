"""
docroute faults - structured fault types.

Faults carry a stable machine-readable code, a human-readable message
and the domain in which they occurred. Declaration and materialization
problems are raised as faults; request validation failures are never
raised, they become a 400 response (see controller.validation).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class FaultDomain(str, Enum):
    """Functional area where a fault occurred."""

    CONFIG = "config"
    REGISTRY = "registry"
    ROUTING = "routing"
    VALIDATION = "validation"

    def __str__(self) -> str:
        return self.value


class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Attributes:
        code: Stable machine-readable identifier (e.g., "ROUTE_CONFLICT")
        message: Human-readable summary
        domain: Fault domain (CONFIG, REGISTRY, ROUTING, VALIDATION)
        metadata: Additional context data

    Subclasses may set ``code`` and ``domain`` as class attributes.
    """

    code: Optional[str] = None
    domain: Optional[FaultDomain] = None

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else type(self).code
        self.message = message if message is not None else getattr(self, "message", None)
        self.domain = domain if domain is not None else type(self).domain

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"Fault(code={self.code!r}, domain={self.domain.value})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault to a dictionary for logging/serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "metadata": self.metadata,
        }


# ============================================================================
# Registry faults
# ============================================================================

class ControllerNotRegisteredFault(Fault):
    """Raised when materializing a controller the registry has never seen."""

    code = "CONTROLLER_NOT_REGISTERED"
    domain = FaultDomain.REGISTRY

    def __init__(self, controller_key: str):
        super().__init__(
            message=f"Controller '{controller_key}' has no registered metadata",
            metadata={"controller": controller_key},
        )


class InvalidMetadataFault(Fault):
    """Raised when a metadata fragment is malformed at attachment time."""

    code = "INVALID_METADATA"
    domain = FaultDomain.REGISTRY

    def __init__(self, message: str, **metadata: Any):
        super().__init__(message=message, metadata=metadata)


# ============================================================================
# Routing faults
# ============================================================================

class RouteConflictFault(Fault):
    """
    Raised when two methods of one controller resolve to the same
    (method, path) pair. Materialization refuses to shadow silently.
    """

    code = "ROUTE_CONFLICT"
    domain = FaultDomain.ROUTING

    def __init__(self, controller_key: str, conflicts: list[dict[str, Any]]):
        described = ", ".join(
            f"{c['method']} {c['path']} ({' vs '.join(c['handlers'])})" for c in conflicts
        )
        super().__init__(
            message=f"Duplicate routes in '{controller_key}': {described}",
            metadata={"controller": controller_key, "conflicts": conflicts},
        )
        self.conflicts = conflicts


# ============================================================================
# Config faults
# ============================================================================

class ConfigFault(Fault):
    """Raised when configuration values cannot be parsed."""

    code = "CONFIG_INVALID"
    domain = FaultDomain.CONFIG

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid value for {key}: {value!r} ({reason})",
            metadata={"key": key, "value": value},
        )
