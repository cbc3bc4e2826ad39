from abc import ABC, abstractmethod
from typing import Any, Optional

import pytest

from dicer.container import Container
from dicer.deferred import Deferred, instance
from dicer.errors import (
    ConfigurationError,
    CyclicDependencyError,
    MissingParameterError,
)
from dicer.introspection import type_name


class Logger:
    pass


class Service:
    def __init__(self, name, logger: Logger):
        self.name = name
        self.logger = logger


class Consumer:
    def __init__(self, logger: Logger):
        self.logger = logger


class Plain:
    pass


class Bag:
    def __init__(self, label, *items):
        self.label = label
        self.items = items


class Endpoint:
    def __init__(self, *, url, timeout=5):
        self.url = url
        self.timeout = timeout


class Options:
    def __init__(self, **values):
        self.values = values


class NeedsValue:
    def __init__(self, logger: Logger, value):
        self.logger = logger
        self.value = value


class WithDefaults:
    def __init__(self, retries: int = 3, logger: Optional[Logger] = None):
        self.retries = retries
        self.logger = logger


class TakesAny:
    def __init__(self, value: Any = None):
        self.value = value


class SelfRegistering:
    def __init__(self):
        self.attached = []

    def attach(self, other):
        self.attached.append(other)


class Storage(ABC):
    @abstractmethod
    def load(self):
        pass


class MemoryStorage(Storage):
    def load(self):
        return "memory"


class Repository:
    def __init__(self, storage: Storage):
        self.storage = storage


class Clock:
    pass


class FixedClock(Clock):
    def __init__(self, at):
        self.at = at


class Scheduler:
    def __init__(self, clock: Clock):
        self.clock = clock


class Session:
    pass


class UserRepository:
    def __init__(self, session: Session):
        self.session = session


class OrderRepository:
    def __init__(self, session: Session):
        self.session = session


class UnitOfWork:
    def __init__(self, users: UserRepository, orders: OrderRepository):
        self.users = users
        self.orders = orders


class Mailer:
    def __init__(self):
        self.log = []

    def connect(self, host, port=25):
        self.log.append(("connect", host, port))

    def login(self, user):
        self.log.append(("login", user))


class BaseHandler:
    def __init__(self, level):
        self.level = level


class FileHandler(BaseHandler):
    pass


class Chicken:
    def __init__(self, egg: "Egg"):
        self.egg = egg


class Egg:
    def __init__(self, chicken: Chicken):
        self.chicken = chicken


@pytest.fixture
def container():
    return Container()


def test_shared_logger_is_injected_into_service(container):
    container.add_rule(Logger, {"shared": True})
    assert container.get(Logger) is container.get(Logger)

    container.add_rule(Service, {"construct_params": {"name": "svc"}})
    service = container.get(Service)

    assert service.name == "svc"
    assert service.logger is container.get(Logger)


def test_unshared_types_are_built_fresh(container):
    assert container.get(Logger) is not container.get(Logger)
    assert not container.has_instance(Logger)


def test_explicit_arguments_override_construct_params(container):
    container.add_rule(Service, {"construct_params": {"name": "svc"}})

    assert container.get(Service, {"name": "override"}).name == "override"
    assert container.get(Service).name == "svc"


def test_construct_params_can_be_positional(container):
    container.add_rule(Service, {"construct_params": ["svc"]})

    assert container.get(Service).name == "svc"


def test_type_names_are_case_insensitive(container):
    container.add_rule("." + type_name(Service).upper(), {"construct_params": {"name": "loud"}})

    assert container.get(Service).name == "loud"
    assert container.get(type_name(Service).lower()).name == "loud"


def test_type_listed_in_new_instances_is_not_shared(container):
    container.add_rule(Logger, {"shared": True})
    shared_logger = container.get(Logger)
    container.add_rule(Consumer, {"new_instances": [Logger]})

    consumer = container.get(Consumer)

    assert consumer.logger is not shared_logger
    assert container.get(Logger) is shared_logger


def test_shared_type_listing_itself_in_new_instances_is_not_shared(container):
    container.add_rule(Logger, {"shared": True, "new_instances": Logger})

    assert container.get(Logger) is not container.get(Logger)


def test_force_new_does_not_replace_shared_instance(container):
    container.add_rule(Logger, {"shared": True})
    shared_logger = container.get(Logger)

    fresh = container.get(Logger, force_new=True)

    assert fresh is not shared_logger
    assert container.get(Logger) is shared_logger


def test_type_without_constructor_is_instantiated(container):
    assert isinstance(container.get(Plain), Plain)


def test_variadic_argument_is_spliced(container):
    bag = container.get(Bag, {"label": "b", "items": [1, 2, 3]})

    assert bag.label == "b"
    assert bag.items == (1, 2, 3)


def test_variadic_argument_that_is_not_a_sequence_is_passed_whole(container):
    assert container.get(Bag, {"label": "b", "items": "x"}).items == ("x",)
    assert container.get(Bag, {"label": "b"}).items == ()


def test_keyword_only_parameters(container):
    endpoint = container.get(Endpoint, {"url": "http://localhost"})

    assert endpoint.url == "http://localhost"
    assert endpoint.timeout == 5


def test_variadic_keyword_arguments_are_merged(container):
    assert container.get(Options).values == {}
    assert container.get(Options, {"values": {"a": 1}}).values == {"a": 1}


def test_variadic_keyword_argument_must_be_a_mapping(container):
    with pytest.raises(ConfigurationError, match="must be a mapping"):
        container.get(Options, {"values": [1]})


def test_declared_type_is_injected_before_default(container):
    with_defaults = container.get(WithDefaults)

    assert with_defaults.retries == 3
    assert isinstance(with_defaults.logger, Logger)


def test_missing_parameter_raises_and_caches_nothing(container):
    container.add_rule(NeedsValue, {"shared": True})

    with pytest.raises(MissingParameterError, match="Missing `value`") as error:
        container.get(NeedsValue)

    assert error.value.parameter == "value"
    assert error.value.owner == type_name(NeedsValue)
    assert not container.has_instance(NeedsValue)


def test_abstract_type_is_bound_with_instance_of(container):
    container.add_rule(Storage, {"instance_of": MemoryStorage})

    repository = container.get(Repository)

    assert isinstance(repository.storage, MemoryStorage)
    assert repository.storage.load() == "memory"


def test_abstract_type_without_binding_raises(container):
    with pytest.raises(ConfigurationError, match="abstract"):
        container.get(Repository)


def test_unknown_type_raises(container):
    with pytest.raises(ConfigurationError, match="does not exist"):
        container.get("nonexistent_pkg_xyz.Thing")


def test_unknown_instance_of_raises(container):
    container.add_rule(Clock, {"instance_of": "nonexistent_pkg_xyz.Clock"})

    with pytest.raises(ConfigurationError, match="does not exist"):
        container.get(Clock)


def test_substitution_replaces_dependency(container):
    fixed = FixedClock(42)
    container.add_rule(Scheduler, {"substitutions": {Clock: fixed}})

    assert container.get(Scheduler).clock is fixed


def test_substitution_can_be_deferred(container):
    container.add_rule(
        Scheduler, {"substitutions": {type_name(Clock): instance(FixedClock, {"at": 7})}}
    )

    clock = container.get(Scheduler).clock

    assert isinstance(clock, FixedClock)
    assert clock.at == 7


def test_explicit_argument_wins_over_substitution(container):
    container.add_rule(Scheduler, {"substitutions": {Clock: FixedClock(42)}})
    own = FixedClock(1)

    assert container.get(Scheduler, {"clock": own}).clock is own


def test_share_instances_are_shared_within_one_tree(container):
    container.add_rule(UnitOfWork, {"share_instances": [Session]})

    first = container.get(UnitOfWork)
    second = container.get(UnitOfWork)

    assert first.users.session is first.orders.session
    assert first.users.session is not second.users.session


def test_share_argument_supplies_instances(container):
    session = Session()

    assert container.get(UserRepository, share=[session]).session is session
    assert isinstance(container.get(UserRepository, share=[Session]).session, Session)


def test_new_instances_ignore_shared_instances_of_the_tree(container):
    session = Session()
    container.add_rule(UserRepository, {"new_instances": [Session]})

    assert container.get(UserRepository, share=[session]).session is not session


def test_post_construction_calls_run_in_order(container):
    container.add_rule(
        Mailer,
        {
            "call": [
                ("connect", ["smtp.local"]),
                ("login", {"user": Deferred(lambda c, share: "admin")}),
            ]
        },
    )

    mailer = container.get(Mailer)

    assert mailer.log == [("connect", "smtp.local", 25), ("login", "admin")]


def test_post_construction_call_to_missing_method_raises(container):
    container.add_rule(Mailer, {"call": ["launch"]})

    with pytest.raises(ConfigurationError, match="no method `launch`"):
        container.get(Mailer)


def test_failed_post_construction_call_caches_nothing(container):
    container.add_rule(Mailer, {"shared": True, "call": [("login", [])]})

    with pytest.raises(TypeError):
        container.get(Mailer)

    assert not container.has_instance(Mailer)


def test_subclass_inherits_ancestor_rule(container):
    container.add_rule(BaseHandler, {"construct_params": {"level": "debug"}})

    assert container.get(FileHandler).level == "debug"


def test_subclass_does_not_inherit_when_inheritance_is_disallowed(container):
    container.add_rule(
        BaseHandler, {"construct_params": {"level": "debug"}, "allow_inheritance": False}
    )

    with pytest.raises(MissingParameterError, match="Missing `level`"):
        container.get(FileHandler)


def test_cycle_is_detected(container):
    with pytest.raises(CyclicDependencyError) as error:
        container.get(Chicken)

    assert error.value.chain[0] == error.value.chain[-1]

    with pytest.raises(CyclicDependencyError):
        container.get(Chicken)


def test_add_instances_by_explicit_key(container):
    logger = Logger()

    assert container.add_instances({Logger: logger}) is container
    assert container.get(Logger) is logger
    assert container.get(Service, {"name": "svc"}).logger is logger


def test_add_instances_by_runtime_type(container):
    logger = Logger()
    session = Session()
    container.add_instances([logger]).add_instances({None: session})

    assert container.get(Logger) is logger
    assert container.get(Session) is session


def test_add_instances_by_name(container):
    logger = Logger()
    container.add_instances({type_name(Logger).upper(): logger})

    assert container.get(Logger) is logger


@pytest.mark.parametrize("not_an_instance", [Logger, None])
def test_add_instances_rejects_non_instances(container, not_an_instance):
    with pytest.raises(ConfigurationError, match="is not an instance"):
        container.add_instances({Logger: not_an_instance})


def test_default_rule_applies_to_every_type():
    container = Container({"shared": True})

    assert container.get(Logger) is container.get(Logger)
    assert container.get(Plain) is container.get(Plain)


def test_registering_same_rule_twice_behaves_as_once(container):
    container.add_rule(Service, {"construct_params": {"name": "svc"}})
    once = container.get_rule(Service)
    container.add_rule(Service, {"construct_params": {"name": "svc"}})

    assert container.get_rule(Service) == once
    assert container.get(Service).name == "svc"


def test_parameter_annotated_any_falls_back_to_default(container):
    assert container.get(TakesAny).value is None
    assert container.get(TakesAny, {"value": 3}).value == 3


def test_post_construction_call_resolving_own_shared_type_is_a_cycle(container):
    container.add_rule(
        SelfRegistering,
        {"shared": True, "call": [("attach", (instance(SelfRegistering),))]},
    )

    with pytest.raises(CyclicDependencyError):
        container.get(SelfRegistering)

    assert not container.has_instance(SelfRegistering)
