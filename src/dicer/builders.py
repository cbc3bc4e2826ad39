"""High level entry point for configuring a container."""

from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

from dicer.container import Container
from dicer.domain import WILDCARD
from dicer.introspection import TypeProvider, TypeRef
from dicer.rules import RuleSpec

__all__ = ["make_container"]


def make_container(
    rules: Optional[Mapping[TypeRef, RuleSpec]] = None,
    instances: Union[Mapping[Optional[TypeRef], Any], Iterable[Any], None] = None,
    default_rule: Optional[RuleSpec] = None,
    types: Optional[TypeProvider] = None,
) -> Container:
    """Create a :class:`Container` from in-memory configuration.

    The wildcard entry of ``rules`` (``"*"``), if present, is registered before
    any other rule so that every other rule is merged over it, regardless of
    the order of the mapping.

    Args:
        rules: Mapping from type reference to rule.
        instances: Pre-built instances to seed the shared-instance cache with,
            as accepted by :meth:`Container.add_instances`.
        default_rule: Initial wildcard rule, applied before ``rules``.
        types: Type provider for the container; defaults to reflection.

    Returns:
        The configured container.

    Raises:
        ConfigurationError: If a rule or an instance is invalid.

    Example:
        >>> container = make_container({
        ...     "*": {"shared": True},
        ...     "myapp.Clock": {"shared": False},
        ...     Service: {"construct_params": {"name": "svc"}},
        ... })
    """
    container = Container(default_rule, types)
    rules = dict(rules or {})

    if WILDCARD in rules:
        container.add_rule(WILDCARD, rules.pop(WILDCARD))
    for ref, rule in rules.items():
        container.add_rule(ref, rule)

    if instances is not None:
        container.add_instances(instances)
    return container
