"""Registration and lookup of construction rules."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import fields
from typing import Any, Optional, Union

from dicer.domain import WILDCARD, MethodCall, Rule, type_key
from dicer.errors import ConfigurationError
from dicer.introspection import TypeProvider, TypeRef

__all__ = ["RuleStore", "RuleSpec"]

logger = logging.getLogger(__name__)

RuleSpec = Union[Rule, Mapping[str, Any]]
"""A partial rule given as a mapping of field names, or a complete :class:`Rule`."""

_RULE_FIELDS = frozenset(f.name for f in fields(Rule)) - {"name"}


class RuleStore:
    """Holds the wildcard rule and every type-specific rule, keyed by type key.

    Each rule registered is merged over the wildcard rule as it stands at
    registration time. Registering the wildcard changes the template for later
    registrations only.
    """

    def __init__(self, types: TypeProvider, default_rule: Optional[RuleSpec] = None):
        self._types = types
        self._rules: dict[str, Rule] = {WILDCARD: Rule()}
        if default_rule:
            self.add_rule(WILDCARD, default_rule)

    @property
    def wildcard(self) -> Rule:
        return self._rules[WILDCARD]

    def add_rule(self, ref: TypeRef, rule: RuleSpec) -> Rule:
        """Register a rule for a type, replacing any rule it had before.

        Args:
            ref: The type the rule applies to, or ``"*"`` for the wildcard rule.
            rule: Field values overriding the current wildcard rule. Accepted keys
                are the fields of :class:`Rule` other than ``name``.

        Returns:
            The normalised rule as stored.

        Raises:
            ConfigurationError: If the rule has unknown fields or malformed values.

        Example:
            >>> store.add_rule("myapp.Logger", {"shared": True})
            >>> store.add_rule(Service, {"construct_params": {"name": "svc"}})
        """
        name = self._types.name_for(ref)
        partial = _as_partial(rule)
        unknown = partial.keys() - _RULE_FIELDS
        if unknown:
            raise ConfigurationError(
                f"Unknown rule fields {sorted(unknown)} for `{name}`; "
                f"expected some of {sorted(_RULE_FIELDS)}"
            )

        merged = {f: getattr(self.wildcard, f) for f in _RULE_FIELDS}
        merged.update(partial)
        normalised = self._normalise(name, merged)

        self._rules[type_key(name)] = normalised
        logger.debug("Registered rule for %s: %s", name, normalised)
        return normalised

    def get_rule(self, ref: TypeRef) -> Rule:
        """Find the rule that applies to a type.

        Looks for an exact rule first, then for the nearest ancestor whose rule
        allows inheritance and does not bind its own implementation, and finally
        falls back to the wildcard rule. Unknown types get the wildcard rule.
        """
        name = self._types.name_for(ref)
        key = type_key(name)
        if key in self._rules:
            return self._rules[key]
        if len(self._rules) == 1:
            return self.wildcard

        for ancestor in self._types.ancestors(name):
            candidate = self._rules.get(type_key(ancestor))
            if candidate and candidate.allow_inheritance and not candidate.instance_of:
                return candidate

        return self.wildcard

    def __contains__(self, ref: TypeRef) -> bool:
        return type_key(self._types.name_for(ref)) in self._rules

    def _normalise(self, name: str, merged: dict[str, Any]) -> Rule:
        instance_of = merged["instance_of"]
        return Rule(
            name=name,
            shared=bool(merged["shared"]),
            allow_inheritance=bool(merged["allow_inheritance"]),
            construct_params=_construct_params(name, merged["construct_params"]),
            call=tuple(_method_call(name, entry) for entry in _entries(merged["call"])),
            substitutions={
                type_key(self._types.name_for(dependency)): value
                for dependency, value in dict(merged["substitutions"] or {}).items()
            },
            instance_of=self._types.name_for(instance_of) if instance_of else None,
            new_instances=self._names(merged["new_instances"]),
            share_instances=self._names(merged["share_instances"]),
        )

    def _names(self, refs) -> tuple[str, ...]:
        if not refs:
            return ()
        if isinstance(refs, (str, type)):
            refs = [refs]
        return tuple(self._types.name_for(ref) for ref in refs)


def _as_partial(rule: RuleSpec) -> dict[str, Any]:
    if isinstance(rule, Rule):
        return {f: getattr(rule, f) for f in _RULE_FIELDS}
    if isinstance(rule, Mapping):
        return dict(rule)
    raise ConfigurationError(f"Rule must be a mapping or a Rule, got {rule!r}")


def _construct_params(name: str, params) -> dict:
    if not params:
        return {}
    if isinstance(params, Mapping):
        return dict(params)
    if isinstance(params, (list, tuple)):
        return dict(enumerate(params))
    raise ConfigurationError(f"construct_params for `{name}` must be a mapping or a sequence")


def _entries(value) -> list:
    if not value:
        return []
    if isinstance(value, (str, MethodCall)):
        return [value]
    return list(value)


def _method_call(name: str, entry) -> MethodCall:
    """Normalise one ``call`` entry.

    Example:
        >>> _method_call("Mailer", "connect")               # MethodCall("connect", ())
        >>> _method_call("Mailer", ("login", ["user"]))     # MethodCall("login", ("user",))
        >>> _method_call("Mailer", ("login", {"user": 1}))  # MethodCall("login", {"user": 1})
    """
    if isinstance(entry, MethodCall):
        return entry
    if isinstance(entry, str):
        return MethodCall(entry)
    if isinstance(entry, (list, tuple)) and 1 <= len(entry) <= 2 and isinstance(entry[0], str):
        args = entry[1] if len(entry) == 2 else ()
        if args is None:
            return MethodCall(entry[0])
        if isinstance(args, Mapping):
            return MethodCall(entry[0], dict(args))
        if isinstance(args, Iterable) and not isinstance(args, (str, bytes)):
            return MethodCall(entry[0], tuple(args))
    raise ConfigurationError(f"Malformed call entry {entry!r} in rule for `{name}`")
