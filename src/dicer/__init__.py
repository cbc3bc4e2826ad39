"""Dicer: rule-driven dependency injection.

Dicer builds instances of requested classes, resolving constructor
dependencies recursively from their type annotations. How each type is built
is governed by declarative rules: whether instances are shared, which
constructor arguments to supply, which dependencies to substitute, which
implementation to bind an abstraction to, and which methods to call after
construction. Rules can be inherited by subclasses, and a wildcard rule
supplies the defaults every other rule is merged over.

Key Features:
    - Autowiring from constructor type hints
    - Shared (singleton) and fresh instances, overridable per dependency
    - Deferred values computed at resolution time
    - Rule inheritance along the class hierarchy
    - Builders memoised per type, constructor introspection done once
    - Cycle detection

Basic Usage:
    >>> from dicer import Container
    >>>
    >>> container = Container()
    >>> container.add_rule(Logger, {"shared": True})
    >>> container.add_rule(Service, {"construct_params": {"name": "svc"}})
    >>>
    >>> service = container.get(Service)

The package consists of several modules:
    - container: The container and its builders
    - rules: Rule registration and lookup
    - parameter_plan: Constructor parameter resolution
    - deferred: Deferred values and their expansion
    - introspection: Type providers describing classes to the container
    - builders: High-level container construction
    - domain: Core domain models (Rule, MethodCall, Parameter)
    - errors: Framework-specific exceptions
"""

from dicer.builders import make_container
from dicer.container import Container
from dicer.deferred import Deferred, Value, expand, instance
from dicer.domain import WILDCARD, MethodCall, Rule, type_key
from dicer.errors import (
    ConfigurationError,
    CyclicDependencyError,
    DependencyError,
    MissingParameterError,
)
from dicer.introspection import ReflectionTypeProvider, TypeProvider, TypeRef, type_name

__all__ = [
    "Container",
    "make_container",
    "Rule",
    "MethodCall",
    "WILDCARD",
    "Deferred",
    "Value",
    "instance",
    "expand",
    "TypeProvider",
    "ReflectionTypeProvider",
    "TypeRef",
    "type_name",
    "type_key",
    "DependencyError",
    "ConfigurationError",
    "MissingParameterError",
    "CyclicDependencyError",
]
