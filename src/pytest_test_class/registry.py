import contextlib
import itertools
import logging
import typing

from pytest_test_class.definitions import (
    Count,
    Expected,
    MethodDescriptor,
    MethodKind,
    NO_PLAN,
)
from pytest_test_class.errors import DuplicateRegistrationError, RegistrationError

logger = logging.getLogger("pytest-test-class")

MARK_ATTRIBUTE = "__test_class_mark__"

F = typing.TypeVar("F", bound=typing.Callable[..., typing.Any])
OrderKey = typing.Optional[typing.Union[int, float, str]]


class _Mark(typing.NamedTuple):
    kind: MethodKind
    expected: Expected
    order_key: OrderKey


def _validate_expected(expected: typing.Any) -> Expected:
    if isinstance(expected, Count):
        return expected
    if isinstance(expected, bool) or not isinstance(expected, int) or expected < 0:
        raise RegistrationError(
            f"Expected assertion count must be a non-negative integer, NO_PLAN or NO_TEST, got {expected!r}"
        )
    return expected


class MethodRegistry:
    """Records which methods of each test class are tests and fixtures.

    Descriptors are stored per declaring class. The effective table of a class
    (own methods plus inherited ones, overridden by name) is flattened from
    the MRO on first use and cached until the next registration.
    """

    def __init__(self) -> None:
        self._own: typing.Dict[type, typing.Dict[str, MethodDescriptor]] = {}
        self._order: typing.Dict[type, int] = {}
        self._effective: typing.Dict[type, typing.Dict[str, MethodDescriptor]] = {}
        self._counter = itertools.count()
        self._frozen = False

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @contextlib.contextmanager
    def frozen(self) -> typing.Iterator["MethodRegistry"]:
        previous = self._frozen
        self._frozen = True
        try:
            yield self
        finally:
            self._frozen = previous

    def register(
        self,
        cls: type,
        name: str,
        kind: MethodKind,
        expected: Expected = 1,
        order_key: OrderKey = None,
    ) -> MethodDescriptor:
        if self._frozen:
            raise RegistrationError(
                f"Cannot register {cls.__name__}.{name} while a run is in progress"
            )
        own = self._own.setdefault(cls, {})
        if cls not in self._order:
            self._order[cls] = next(self._counter)

        existing = own.get(name)
        if existing is not None and existing.kind is not kind:
            raise DuplicateRegistrationError(
                f"{cls.__name__}.{name} is already registered as {existing.kind.value}, "
                f"cannot register it as {kind.value}"
            )

        descriptor = MethodDescriptor(
            name=name,
            kind=kind,
            expected=_validate_expected(expected),
            order_key=name if order_key is None else order_key,
            declaring_class=cls,
        )
        own[name] = descriptor
        self._effective.clear()
        logger.debug(f"Registered {kind.value} method {descriptor.qualname}")
        return descriptor

    def register_class(self, cls: type) -> None:
        """Register every decorated function defined directly on ``cls``."""
        if self._frozen:
            raise RegistrationError(
                f"Cannot register {cls.__name__} while a run is in progress"
            )
        for previous in list(self._order):
            if previous is not cls and _same_definition(previous, cls):
                # a module that is reloaded or a function that defines the class again
                logger.debug(f"{cls.__qualname__} redefined, dropping the previous definition")
                self.unregister(previous)
        if cls not in self._order:
            self._order[cls] = next(self._counter)
        for name, member in vars(cls).items():
            mark = getattr(member, MARK_ATTRIBUTE, None)
            if isinstance(mark, _Mark):
                self.register(cls, name, mark.kind, mark.expected, mark.order_key)

    def unregister(self, cls: type) -> None:
        """Forget ``cls`` and the methods registered on it.

        Subclasses stay registered but no longer inherit its methods.
        """
        if self._frozen:
            raise RegistrationError(
                f"Cannot unregister {cls.__name__} while a run is in progress"
            )
        self._own.pop(cls, None)
        self._order.pop(cls, None)
        self._effective.clear()

    def registered_classes(self) -> typing.List[type]:
        return list(self._order)

    def effective_methods(self, cls: type) -> typing.Dict[str, MethodDescriptor]:
        if cls in self._effective:
            return self._effective[cls]

        table: typing.Dict[str, MethodDescriptor] = {}
        for klass in reversed(cls.__mro__):
            table.update(self._own.get(klass, {}))

        for name, descriptor in table.items():
            if not callable(getattr(cls, name, None)):
                raise RegistrationError(
                    f"{descriptor.qualname} is registered but {cls.__name__}.{name} is not callable"
                )

        self._effective[cls] = table
        return table

    def methods_of_kind(
        self, cls: type, kind: MethodKind
    ) -> typing.List[MethodDescriptor]:
        return [d for d in self.effective_methods(cls).values() if d.kind is kind]

    def test_classes(self) -> typing.List[type]:
        classes = [
            cls
            for cls in self._order
            if not is_skipped_class(cls) and self.methods_of_kind(cls, MethodKind.test)
        ]
        return sort_classes(classes, self._order)


def _same_definition(a: type, b: type) -> bool:
    return a.__module__ == b.__module__ and a.__qualname__ == b.__qualname__


def is_skipped_class(cls: type) -> bool:
    # only the class's own attribute counts, subclasses of an abstract base run
    return bool(vars(cls).get("skip_class", False))


def sort_classes(
    classes: typing.Iterable[type], order: typing.Optional[typing.Dict[type, int]] = None
) -> typing.List[type]:
    order = order or {}
    return sorted(
        classes,
        key=lambda c: (c.__name__, c.__module__, order.get(c, 0)),
    )


default_registry = MethodRegistry()


def _marker(kind: MethodKind, default: Expected) -> typing.Callable[..., typing.Any]:
    def decorator_factory(
        expected: typing.Any = default,
        *,
        order: OrderKey = None,
    ) -> typing.Callable[..., typing.Any]:
        def decorator(func: F) -> F:
            setattr(func, MARK_ATTRIBUTE, _Mark(kind, _validate_expected(expected), order))
            return func

        if callable(expected):
            # used bare, e.g. @setup
            func, expected = expected, default
            return decorator(func)
        return decorator

    return decorator_factory


_test_marker = _marker(MethodKind.test, 1)


def test(expected: typing.Any = 1, *, order: OrderKey = None) -> typing.Callable[..., typing.Any]:
    """Mark a test method expecting ``expected`` assertions

    e.g.
    @test(2)
    def credit(self):
        ...
    """
    return _test_marker(expected, order=order)


# keep pytest from collecting the decorator itself when it is imported into a test module
test.__test__ = False  # type: ignore[attr-defined]


def tests(func: F) -> F:
    """Mark a test method with no fixed number of assertions."""
    return test(NO_PLAN)(func)


tests.__test__ = False  # type: ignore[attr-defined]

setup = _marker(MethodKind.setup, 0)
teardown = _marker(MethodKind.teardown, 0)
startup = _marker(MethodKind.setup_for_class, 0)
shutdown = _marker(MethodKind.teardown_for_class, 0)
