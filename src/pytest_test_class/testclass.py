import typing

from pytest_test_class.errors import BailOut, ProtocolViolation, SkipMethod
from pytest_test_class.registry import default_registry

if typing.TYPE_CHECKING:
    from pytest_test_class._adapter import ResultReporterAdapter


class TestClass:
    """Base class for grouping test methods with their fixtures.

    Subclasses are registered with the default registry when they are
    defined. The runner creates a fresh instance for every test method and
    binds it to the run through ``builder``.
    """

    # handled by the test class runner, not by pytest's own class collector
    __test__ = False

    builder: typing.Optional["ResultReporterAdapter"] = None
    current_method: typing.Optional[str] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        default_registry.register_class(cls)

    def _require_builder(self) -> "ResultReporterAdapter":
        if self.builder is None:
            raise ProtocolViolation(
                f"{type(self).__name__} emitted an assertion outside of a test run"
            )
        return self.builder

    def ok(
        self,
        passed: typing.Any,
        description: typing.Optional[str] = None,
        diagnostic: typing.Optional[str] = None,
    ) -> bool:
        result = self._require_builder().record(bool(passed), description, diagnostic)
        return result.passed

    def equal(
        self,
        got: typing.Any,
        expected: typing.Any,
        description: typing.Optional[str] = None,
    ) -> bool:
        passed = got == expected
        diagnostic = None if passed else f"     got: {got!r}\nexpected: {expected!r}"
        return self.ok(passed, description, diagnostic)

    def diag(self, message: str) -> None:
        self._require_builder().diag(message)

    def skip(self, reason: str = "") -> typing.NoReturn:
        raise SkipMethod(reason)

    def bail_out(self, reason: str = "") -> typing.NoReturn:
        raise BailOut(reason)
