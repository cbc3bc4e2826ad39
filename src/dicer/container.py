"""
The container: builds instances of requested types according to registered rules.

The first request for a type produces a builder for it. Making the builder
looks up the type's rule, introspects the constructor once and binds a
:class:`~dicer.parameter_plan.ParameterPlan` to the rule; the builder is
memoised for the lifetime of the container, so rules must be registered before
a type is first requested.

Types whose rule is shared are built once and cached; later requests return the
cached instance without consulting the builder at all.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Optional, Union

from dicer.deferred import expand
from dicer.domain import MethodCall, Rule, type_key
from dicer.errors import ConfigurationError, CyclicDependencyError
from dicer.introspection import ReflectionTypeProvider, TypeProvider, TypeRef
from dicer.parameter_plan import ParameterPlan
from dicer.rules import RuleSpec, RuleStore

__all__ = ["Container", "Builder"]

logger = logging.getLogger(__name__)

Builder = Callable[[dict, list, bool], Any]
"""Builds one instance from ``(args, share, force_new)``."""


class Container:
    """Resolves types to fully constructed instances.

    Example:
        >>> container = Container()
        >>> container.add_rule(Logger, {"shared": True})
        >>> container.add_rule(Service, {"construct_params": {"name": "svc"}})
        >>> service = container.get(Service)
        >>> service.logger is container.get(Logger)
        True
    """

    def __init__(
        self,
        default_rule: Optional[RuleSpec] = None,
        types: Optional[TypeProvider] = None,
    ):
        """
        Args:
            default_rule: Fields for the wildcard rule that every other rule is
                merged over.
            types: Provider describing types to the container. Defaults to a
                :class:`ReflectionTypeProvider`.
        """
        self.types = types or ReflectionTypeProvider()
        self._rules = RuleStore(self.types, default_rule)
        self._builders: dict[str, Builder] = {}
        self._instances: dict[str, Any] = {}
        self._building: list[str] = []

    def add_rule(self, ref: TypeRef, rule: RuleSpec) -> "Container":
        """Register a rule for a type (or ``"*"``), replacing any previous one.

        Returns:
            The container, for chaining.
        """
        self._rules.add_rule(ref, rule)
        return self

    def get_rule(self, ref: TypeRef) -> Rule:
        """The rule applying to a type: its own, an inherited one, or the wildcard."""
        return self._rules.get_rule(ref)

    def add_instances(self, instances: Union[Mapping[Optional[TypeRef], Any], Iterable[Any]]) -> "Container":
        """Seed the shared-instance cache with objects built elsewhere.

        Args:
            instances: Either a mapping from type reference to instance, where a
                ``None`` key stands for the instance's own class, or an iterable of
                instances keyed by their own class.

        Returns:
            The container, for chaining.

        Raises:
            ConfigurationError: If an entry is a class or None rather than an instance.
        """
        pairs = instances.items() if isinstance(instances, Mapping) else ((None, i) for i in instances)
        for ref, obj in pairs:
            if obj is None or isinstance(obj, type):
                raise ConfigurationError(f"{obj!r} is not an instance")
            name = self.types.name_for(ref if ref is not None else type(obj))
            self._instances[type_key(name)] = obj
            logger.debug("Seeded shared instance of %s", name)
        return self

    def has_instance(self, ref: TypeRef) -> bool:
        """Whether a shared instance of the type is cached."""
        return type_key(self.types.name_for(ref)) in self._instances

    def get(
        self,
        ref: TypeRef,
        args: Optional[dict] = None,
        force_new: bool = False,
        share: Optional[list] = None,
    ) -> Any:
        """Build, or fetch from the shared cache, an instance of a type.

        Args:
            ref: The requested type.
            args: Constructor arguments keyed by parameter name or position. They
                take precedence over the rule's ``construct_params``.
            force_new: Build a fresh instance even if a shared one is cached. The
                fresh instance does not replace the cached one.
            share: Instances shared with the whole dependency tree being built.
                Type references in the list are resolved first.

        Returns:
            The instance.

        Raises:
            ConfigurationError: If the type, or a method its rule calls, does not exist.
            MissingParameterError: If a constructor parameter cannot be resolved.
            CyclicDependencyError: If building the type requires building it again.
                This includes post-construction calls whose arguments resolve the
                type being built: a shared instance is cached only after its calls
                succeed.
        """
        name = self.types.name_for(ref)
        key = type_key(name)

        if not force_new and key in self._instances:
            return self._instances[key]

        builder = self._builders.get(key)
        if builder is None:
            builder = self._builders[key] = self._make_builder(name, key)

        share = [self.get(item) if _is_type_ref(item) else item for item in share or ()]

        if key in self._building:
            chain = self._building[self._building.index(key):] + [key]
            raise CyclicDependencyError(chain)

        self._building.append(key)
        try:
            return builder(dict(args or {}), share, force_new)
        finally:
            self._building.pop()

    def _make_builder(self, name: str, key: str) -> Builder:
        rule = self._rules.get_rule(name)
        target = rule.instance_of or name

        cls = self.types.resolve(target)
        if self.types.is_abstract(target):
            raise ConfigurationError(
                f"Cannot instantiate abstract type `{target}`; "
                "bind it to an implementation with `instance_of`"
            )

        parameters = self.types.constructor(target)
        plan = ParameterPlan.for_rule(target, parameters, rule) if parameters is not None else None

        def construct(args: dict, share: list) -> Any:
            if plan is None:
                return cls()
            positional, keywords = plan.resolve(self, args, share)
            return cls(*positional, **keywords)

        if rule.call:
            construct = self._with_calls(target, rule.call, construct)

        logger.debug(
            "Created builder for %s (rule %s, shared=%s)", name, rule.name, rule.shared
        )

        if rule.shared and not rule.forces_new(name):

            def build_shared(args: dict, share: list, force_new: bool) -> Any:
                instance = construct(args, share)
                if not force_new:
                    self._instances[key] = instance
                    logger.debug("Cached shared instance of %s", name)
                return instance

            return build_shared

        def build(args: dict, share: list, force_new: bool) -> Any:
            return construct(args, share)

        return build

    def _with_calls(
        self,
        target: str,
        calls: tuple[MethodCall, ...],
        construct: Callable[[dict, list], Any],
    ) -> Callable[[dict, list], Any]:
        """Wrap ``construct`` so each declared method is called on the new instance.

        Raises:
            ConfigurationError: If a declared method does not exist on the type.
        """
        for method_call in calls:
            if not self.types.has_method(target, method_call.method):
                raise ConfigurationError(
                    f"Type `{target}` has no method `{method_call.method}`"
                )

        def construct_and_call(args: dict, share: list) -> Any:
            instance = construct(args, share)
            for method_call in calls:
                method = getattr(instance, method_call.method)
                call_args = expand(method_call.args, self, share)
                if isinstance(call_args, dict):
                    method(**call_args)
                else:
                    method(*call_args)
            return instance

        return construct_and_call


def _is_type_ref(item: Any) -> bool:
    return isinstance(item, (str, type))
