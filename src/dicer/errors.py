"""Exceptions raised while registering rules or resolving instances."""

__all__ = [
    "DependencyError",
    "ConfigurationError",
    "MissingParameterError",
    "CyclicDependencyError",
]


class DependencyError(Exception):
    """Base class for every error raised by the container."""

    pass


class ConfigurationError(DependencyError):
    """Raised when a rule, type or seeded instance cannot be used as configured."""

    pass


class MissingParameterError(DependencyError):
    """Raised when a constructor parameter cannot be resolved by any means.

    Attributes:
        parameter: Name of the unresolvable parameter.
        owner: Name of the type whose constructor declares it.
    """

    def __init__(self, parameter: str, owner: str):
        super().__init__(f"Missing `{parameter}` for `{owner}` constructor")
        self.parameter = parameter
        self.owner = owner


class CyclicDependencyError(DependencyError):
    """Raised when building a type requires building that same type again.

    A shared instance is cached only once its post-construction calls have
    succeeded, so a ``call`` argument resolving the type being built (for example
    ``instance(SelfType)``) is reported as a cycle rather than receiving the
    half-configured instance.
    """

    def __init__(self, chain: list[str]):
        super().__init__(f"Cyclic dependency: {' -> '.join(chain)}")
        self.chain = chain
