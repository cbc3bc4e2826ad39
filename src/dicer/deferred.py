"""Values computed at resolution time rather than stored in a rule.

A rule's ``construct_params``, ``substitutions`` and ``call`` arguments may
contain :class:`Deferred` values at any depth inside plain ``dict``, ``list``,
``tuple``, ``set`` and ``frozenset`` structures. Each time the rule is applied
the structure is expanded: every deferred value is replaced by the result of
calling it, and everything else is copied through untouched.

Example:
    >>> container.add_rule(Report, {
    ...     "construct_params": {
    ...         "created": Deferred(lambda container, share: datetime.now()),
    ...         "sinks": [instance(FileSink), instance(MailSink)],
    ...     },
    ... })
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, TYPE_CHECKING

from dicer.errors import ConfigurationError

if TYPE_CHECKING:
    from dicer.container import Container
    from dicer.introspection import TypeRef

__all__ = ["Deferred", "Value", "instance", "expand"]


@dataclass(frozen=True)
class Deferred:
    """A value computed by calling ``factory(container, share)`` at resolution time.

    ``share`` is the list of instances shared with the dependency tree being
    built. The factory's return value is used as-is and is not expanded further.

    Raises:
        ConfigurationError: If ``factory`` is not callable.
    """

    factory: Callable[["Container", list], Any]

    def __post_init__(self):
        if not callable(self.factory):
            raise ConfigurationError(f"Deferred value {self.factory!r} is not callable")

    def __call__(self, container: "Container", share: list) -> Any:
        return self.factory(container, share)


@dataclass(frozen=True)
class Value:
    """A value used exactly as given; structures inside it are not expanded."""

    value: Any


def instance(
    ref: "TypeRef", args: Optional[dict] = None, force_new: bool = False
) -> Deferred:
    """Deferred value resolving ``ref`` through the container.

    Example:
        >>> container.add_rule(Service, {"substitutions": {Cache: instance(RedisCache)}})
    """

    def resolve(container: "Container", share: list) -> Any:
        return container.get(ref, args, force_new, share)

    return Deferred(resolve)


def expand(value: Any, container: "Container", share: list) -> Any:
    """Expand every deferred value inside ``value``, depth first.

    Only exact builtin containers are traversed; instances of any other type,
    including subclasses of the builtin containers, are returned untouched. The
    input is never modified.
    """
    if isinstance(value, Deferred):
        return value(container, share)
    if isinstance(value, Value):
        return value.value

    kind = type(value)
    if kind is dict:
        return {key: expand(item, container, share) for key, item in value.items()}
    if kind in (list, tuple, set, frozenset):
        return kind(expand(item, container, share) for item in value)
    return value
