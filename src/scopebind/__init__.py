"""Minimal dependency injection container with request-scoped lifecycles.

This package provides a lightweight dependency injection container for Python,
binding abstracts (classes or string aliases) to classes, import paths or factories,
resolving constructor dependencies from type hints, and caching instances per lifecycle.

Exports:
- `Container`: Main DI container supporting binding, resolution and lifecycle control.
- `Lifecycle`: Enum of caching policies (transient, singleton, per-request).
- `Binding`, `TypeReference`, `Factory`, `PrebuiltInstance`: Entries of the binding table.
- `ResolutionError`, `ResolutionFailure`: Structured resolution failure and its reasons.
- `ConfigurationError`: Raised for invalid bindings.
"""

from ._container import (
    Binding,
    ConfigurationError,
    Container,
    Factory,
    Lifecycle,
    PrebuiltInstance,
    ResolutionError,
    ResolutionFailure,
    TypeReference,
)


__all__ = [
    "Binding",
    "ConfigurationError",
    "Container",
    "Factory",
    "Lifecycle",
    "PrebuiltInstance",
    "ResolutionError",
    "ResolutionFailure",
    "TypeReference",
]
