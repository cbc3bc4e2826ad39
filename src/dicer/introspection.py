"""Type description utilities consumed by the container.

The container never inspects classes directly. Everything it needs to know
about a type (whether it exists, its constructor parameters, its ancestors and
its methods) comes from a :class:`TypeProvider`. The default implementation,
:class:`ReflectionTypeProvider`, answers those questions with ``inspect``,
``typing`` and ``importlib``.
"""

import builtins
import importlib
import inspect
import types
from abc import ABC, abstractmethod
from typing import (
    Annotated,
    Any,
    Optional,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from dicer.domain import Parameter, type_key
from dicer.errors import ConfigurationError

__all__ = [
    "TypeRef",
    "TypeProvider",
    "ReflectionTypeProvider",
    "type_name",
]

_NOT_INJECTABLE_MODULES = frozenset({"builtins", "typing", "typing_extensions"})


TypeRef = Union[str, type]
"""Type alias for the ways a type can be referred to.

A type is named either by the class object itself or by its dotted path.

Example:
    >>> container.get(Database)
    >>> container.get("myapp.storage.Database")
"""


def type_name(cls: type) -> str:
    """Dotted name of a class, without the ``builtins.`` prefix.

    Example:
        >>> type_name(Database)  # Returns "myapp.storage.Database"
        >>> type_name(int)       # Returns "int"
    """
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


class TypeProvider(ABC):
    """Describes types to the container by name."""

    def name_for(self, ref: TypeRef) -> str:
        """Normalise a type reference to a type name.

        Raises:
            ConfigurationError: If ``ref`` is neither a string nor a class.
        """
        if isinstance(ref, str):
            return ref.lstrip(".")
        if inspect.isclass(ref):
            return self.name_of(ref)
        raise ConfigurationError(f"{ref!r} is not a type name or a class")

    @abstractmethod
    def name_of(self, cls: type) -> str:
        """Name of the given class, making it resolvable by that name afterwards."""

    @abstractmethod
    def exists(self, name: str) -> bool:
        pass

    @abstractmethod
    def resolve(self, name: str) -> type:
        """Class for the given name.

        Raises:
            ConfigurationError: If no such type exists.
        """

    @abstractmethod
    def is_abstract(self, name: str) -> bool:
        pass

    @abstractmethod
    def constructor(self, name: str) -> Optional[list[Parameter]]:
        """Ordered constructor parameters, or None when the type has no constructor."""

    @abstractmethod
    def ancestors(self, name: str) -> list[str]:
        """Names of the type's ancestors, nearest first. Empty for unknown types."""

    @abstractmethod
    def has_method(self, name: str, method: str) -> bool:
        pass

    @abstractmethod
    def is_instance(self, obj: Any, name: str) -> bool:
        pass


class ReflectionTypeProvider(TypeProvider):
    """Type provider backed by runtime reflection.

    Classes are found by importing their dotted path. Any class the provider is
    shown (as a reference, an annotation or an ancestor) is remembered, so
    classes that cannot be imported by name, such as ones defined inside a
    function, still resolve afterwards.
    """

    def __init__(self):
        self._known: dict[str, type] = {}

    def name_of(self, cls: type) -> str:
        name = type_name(cls)
        self._known[type_key(name)] = cls
        return name

    def exists(self, name: str) -> bool:
        return self._lookup(name) is not None

    def resolve(self, name: str) -> type:
        cls = self._lookup(name)
        if cls is None:
            raise ConfigurationError(f"Type `{name}` does not exist")
        return cls

    def is_abstract(self, name: str) -> bool:
        cls = self.resolve(name)
        return inspect.isabstract(cls) or getattr(cls, "_is_protocol", False)

    def constructor(self, name: str) -> Optional[list[Parameter]]:
        cls = self.resolve(name)
        init = cls.__init__
        if init is object.__init__:
            return None
        try:
            signature = inspect.signature(init)
        except (TypeError, ValueError):
            return None

        hints = _type_hints(init)
        parameters = list(signature.parameters.values())[1:]
        return [
            self._make_parameter(position, parameter, hints.get(parameter.name, parameter.annotation))
            for position, parameter in enumerate(parameters)
        ]

    def ancestors(self, name: str) -> list[str]:
        cls = self._lookup(name)
        if cls is None:
            return []
        return [self.name_of(base) for base in cls.__mro__[1:] if base is not object]

    def has_method(self, name: str, method: str) -> bool:
        return callable(getattr(self.resolve(name), method, None))

    def is_instance(self, obj: Any, name: str) -> bool:
        cls = self._lookup(name)
        return cls is not None and isinstance(obj, cls)

    def _lookup(self, name: str) -> Optional[type]:
        key = type_key(name)
        if key in self._known:
            return self._known[key]
        cls = _import_type(name.lstrip("."))
        if cls is not None:
            self._known[key] = cls
        return cls

    def _make_parameter(self, position: int, parameter: inspect.Parameter, annotation) -> Parameter:
        variadic = parameter.kind in (
            inspect.Parameter.VAR_POSITIONAL,
            inspect.Parameter.VAR_KEYWORD,
        )
        injectable = None if variadic else _injectable_type(annotation)
        has_default = parameter.default is not inspect.Parameter.empty
        return Parameter(
            parameter.name,
            parameter.kind,
            position,
            self.name_of(injectable) if injectable is not None else None,
            has_default,
            parameter.default if has_default else None,
        )


def _type_hints(func) -> dict[str, Any]:
    """Evaluated annotations of ``func``.

    When the annotations cannot be evaluated together, each one is evaluated on
    its own in the function's globals, so that a single unresolvable forward
    reference (such as a name imported only under ``TYPE_CHECKING``) leaves only
    that parameter unresolved.
    """
    try:
        return get_type_hints(func, include_extras=True)
    except (NameError, TypeError):
        pass

    globalns = getattr(func, "__globals__", {})
    hints = {}
    for name, annotation in getattr(func, "__annotations__", {}).items():
        if not isinstance(annotation, str):
            hints[name] = annotation
            continue
        try:
            hints[name] = eval(annotation, globalns)
        except (NameError, AttributeError, TypeError, SyntaxError):
            continue
    return hints


def _injectable_type(annotation) -> Optional[type]:
    """The class a parameter annotation asks to have injected, if any.

    ``Annotated`` and optional annotations are unwrapped. Builtin types and
    typing constructs (including ``Any``) are not injectable.

    Example:
        >>> _injectable_type(Database)                  # Database
        >>> _injectable_type(Optional[Database])        # Database
        >>> _injectable_type(Annotated[Database, "ro"]) # Database
        >>> _injectable_type(str)                       # None
        >>> _injectable_type(Any)                       # None
        >>> _injectable_type(list[Database])            # None
    """
    if annotation is inspect.Parameter.empty or annotation is None:
        return None

    origin = get_origin(annotation)
    if origin is Annotated:
        return _injectable_type(get_args(annotation)[0])
    if origin is Union or origin is types.UnionType:
        arms = [arm for arm in get_args(annotation) if arm is not type(None)]
        return _injectable_type(arms[0]) if len(arms) == 1 else None
    if origin is not None:
        return None

    if inspect.isclass(annotation) and annotation.__module__ not in _NOT_INJECTABLE_MODULES:
        return annotation
    return None


def _import_type(name: str) -> Optional[type]:
    """Import a class by dotted path, trying the longest importable module prefix first."""
    parts = name.split(".")
    if len(parts) == 1:
        candidate = getattr(builtins, name, None)
        return candidate if inspect.isclass(candidate) else None

    for split in range(len(parts) - 1, 0, -1):
        try:
            target = importlib.import_module(".".join(parts[:split]))
        except (ImportError, ValueError):
            continue
        for attribute in parts[split:]:
            target = getattr(target, attribute, None)
        if inspect.isclass(target):
            return target
    return None
