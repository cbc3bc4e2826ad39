"""Domain models used throughout the container."""

import inspect
from dataclasses import dataclass, field
from typing import Any, Optional, Union

__all__ = [
    "WILDCARD",
    "Rule",
    "MethodCall",
    "Parameter",
    "PlannedParameter",
    "type_key",
]

WILDCARD = "*"
"""Name of the default rule applied when no type-specific rule matches."""


def type_key(name: str) -> str:
    """Cache and rule-store key for a type name: separators stripped, case folded."""
    return name.lstrip(".").casefold()


@dataclass(frozen=True)
class MethodCall:
    """A method invoked on an instance straight after construction.

    Attributes:
        method: Name of the method to call.
        args: Arguments for the call. A tuple is passed positionally, a dict as
            keyword arguments. Deferred values inside are expanded on every call.
    """

    method: str
    args: Union[tuple, dict] = ()


@dataclass(frozen=True)
class Rule:
    """Describes how instances of a type (or of every type, for the wildcard) are built.

    Attributes:
        name: Type name the rule was registered under, in its original case.
        shared: If True, the first instance built is cached and reused.
        allow_inheritance: If True, subclasses without a rule of their own use this rule.
        construct_params: Constructor arguments keyed by parameter name or position.
            Arguments passed to ``Container.get`` win on collision.
        call: Methods to call, in order, after construction.
        substitutions: Replacement values keyed by the type key of the dependency
            they stand in for.
        instance_of: Name of the concrete type to instantiate instead of the
            requested one.
        new_instances: Dependency type names always built fresh for this type.
        share_instances: Type names resolved and shared with the whole
            dependency tree below this type.

    Rules are compared by value but are not hashable, since several fields are
    dicts. ``construct_params`` and ``substitutions`` are copied one level deep
    on registration; nested structures the caller passed in are shared with the
    stored rule and must not be mutated afterwards.
    """

    name: str = WILDCARD
    shared: bool = False
    allow_inheritance: bool = True
    construct_params: dict[Union[str, int], Any] = field(default_factory=dict)
    call: tuple[MethodCall, ...] = ()
    substitutions: dict[str, Any] = field(default_factory=dict)
    instance_of: Optional[str] = None
    new_instances: tuple[str, ...] = ()
    share_instances: tuple[str, ...] = ()

    __hash__ = None

    @property
    def is_wildcard(self) -> bool:
        return self.name == WILDCARD

    def forces_new(self, name: str) -> bool:
        key = type_key(name)
        return any(type_key(n) == key for n in self.new_instances)

    def has_substitution(self, name: str) -> bool:
        return type_key(name) in self.substitutions


@dataclass(frozen=True)
class Parameter:
    """A constructor parameter as described by a type provider.

    Attributes:
        name: Parameter name.
        kind: One of the ``inspect.Parameter`` kinds.
        position: Index among the constructor's parameters (``self`` excluded).
        declared_type: Name of the injectable class the parameter is annotated
            with, or None when it is untyped or annotated with a non-injectable type.
        has_default: Whether the parameter declares a default value.
        default: The default value, if any.
    """

    name: str
    kind: Any
    position: int
    declared_type: Optional[str] = None
    has_default: bool = False
    default: Any = None

    @property
    def is_variadic(self) -> bool:
        return self.kind is inspect.Parameter.VAR_POSITIONAL

    @property
    def is_variadic_keyword(self) -> bool:
        return self.kind is inspect.Parameter.VAR_KEYWORD

    @property
    def is_keyword_only(self) -> bool:
        return self.kind is inspect.Parameter.KEYWORD_ONLY


@dataclass(frozen=True)
class PlannedParameter:
    """A parameter bound to the rule of the type being built."""

    parameter: Parameter
    has_substitution: bool
    force_new: bool
