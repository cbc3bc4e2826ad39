"""Per-constructor parameter resolution.

A :class:`ParameterPlan` is derived once from a constructor's parameters and
the rule of the type being built. Executing the plan produces the positional
and keyword arguments for one call of that constructor. Each parameter is
resolved by the first of these that applies:

1. an argument keyed by the parameter's name (or position), from the caller's
   arguments merged over the rule's ``construct_params``;
2. the rule's substitution for the parameter's declared type;
3. an instance of the declared type, taken from the shared instances of the
   current dependency tree or resolved through the container;
4. the parameter's default value.

A parameter none of these apply to raises :class:`MissingParameterError`.
"""

from collections.abc import Mapping
from typing import Any, TYPE_CHECKING

from dicer.deferred import expand
from dicer.domain import Parameter, PlannedParameter, Rule, type_key
from dicer.errors import ConfigurationError, MissingParameterError

if TYPE_CHECKING:
    from dicer.container import Container

__all__ = ["ParameterPlan"]

_MISSING = object()


class ParameterPlan:
    """Resolves the arguments of one type's constructor under one rule."""

    def __init__(self, owner: str, parameters: list[PlannedParameter], rule: Rule):
        self.owner = owner
        self.parameters = parameters
        self._rule = rule

    @staticmethod
    def for_rule(owner: str, parameters: list[Parameter], rule: Rule) -> "ParameterPlan":
        """Bind constructor parameters to the substitutions and forced-new types of a rule."""
        return ParameterPlan(
            owner,
            [
                PlannedParameter(
                    parameter,
                    parameter.declared_type is not None
                    and rule.has_substitution(parameter.declared_type),
                    parameter.declared_type is not None
                    and rule.forces_new(parameter.declared_type),
                )
                for parameter in parameters
            ],
            rule,
        )

    def resolve(
        self, container: "Container", args: dict, share: list
    ) -> tuple[list[Any], dict[str, Any]]:
        """Resolve every parameter, in declaration order.

        Args:
            container: The container used to expand deferred values and build
                dependencies.
            args: Caller-supplied arguments keyed by parameter name or position.
            share: Instances shared with the dependency tree being built.

        Returns:
            The positional and keyword arguments for the constructor.

        Raises:
            MissingParameterError: If a parameter cannot be resolved.
        """
        rule = self._rule
        if rule.share_instances:
            share = share + [container.get(name) for name in rule.share_instances]
        if rule.construct_params:
            args = {**expand(rule.construct_params, container, share), **args}

        positional: list[Any] = []
        keywords: dict[str, Any] = {}

        for planned in self.parameters:
            parameter = planned.parameter
            value = _argument_for(parameter, args)

            if value is not _MISSING:
                if parameter.is_variadic and isinstance(value, (list, tuple)):
                    positional.extend(value)
                    continue
                if parameter.is_variadic_keyword:
                    if not isinstance(value, Mapping):
                        raise ConfigurationError(
                            f"Argument `{parameter.name}` to `{self.owner}` constructor "
                            "must be a mapping"
                        )
                    keywords.update(value)
                    continue
            elif planned.has_substitution:
                value = expand(
                    rule.substitutions[type_key(parameter.declared_type)], container, share
                )
            elif parameter.declared_type:
                value = self._inject(container, planned, share)
            elif parameter.has_default:
                value = parameter.default
            elif parameter.is_variadic or parameter.is_variadic_keyword:
                continue
            else:
                raise MissingParameterError(parameter.name, self.owner)

            if parameter.is_keyword_only:
                keywords[parameter.name] = value
            else:
                positional.append(value)

        return positional, keywords

    def _inject(self, container: "Container", planned: PlannedParameter, share: list) -> Any:
        declared_type = planned.parameter.declared_type
        if not planned.force_new:
            for candidate in share:
                if container.types.is_instance(candidate, declared_type):
                    return candidate
        return container.get(declared_type, None, planned.force_new, share)


def _argument_for(parameter: Parameter, args: dict) -> Any:
    if parameter.name in args:
        return args[parameter.name]
    return args.get(parameter.position, _MISSING)
