import abc
import os
import sys
import typing
from abc import abstractmethod

from pytest_test_class.definitions import AssertionResult

_default_reporter: typing.Optional[typing.Type["Reporter"]] = None
_registered_reporters: typing.Dict[str, typing.Type["Reporter"]] = {}


class Reporter(metaclass=abc.ABCMeta):
    """Receives the flat assertion stream of a run."""

    @abstractmethod
    def plan(self, total: int) -> None: ...

    @abstractmethod
    def result(self, result: AssertionResult) -> None: ...

    @abstractmethod
    def summary(self, ran: int) -> None: ...

    def diag(self, message: str) -> None:
        pass

    def bail_out(self, reason: str) -> None:
        pass

    def method_started(self, test_class: str, method: str) -> None:
        pass


REPORTER_TYPE = typing.TypeVar("REPORTER_TYPE", bound=typing.Type[Reporter])


def register_reporter(*, default: bool = False):
    """Decorator for adding custom reporters

    e.g.
    @register_reporter()
    class JUnitReporter(Reporter):
        ...
    """

    def decorator(r: REPORTER_TYPE) -> REPORTER_TYPE:
        global _default_reporter
        _registered_reporters[r.__name__] = r
        if default:
            _default_reporter = r
        return r

    return decorator


@register_reporter(default=True)
class TapReporter(Reporter):
    """Writes the Test Anything Protocol to a text stream."""

    def __init__(
        self,
        stream: typing.Optional[typing.TextIO] = None,
        verbose: typing.Optional[bool] = None,
    ):
        self.stream = stream
        if verbose is None:
            verbose = bool(os.environ.get("TEST_VERBOSE"))
        self.verbose = verbose

    def _write(self, line: str) -> None:
        # resolved late so pytest's capture sees the output
        stream = self.stream or sys.stdout
        stream.write(line + "\n")

    def _comment(self, text: str) -> None:
        for line in text.rstrip("\n").split("\n"):
            self._write(f"# {line}" if line else "#")

    def plan(self, total: int) -> None:
        self._write(f"1..{total}")

    def result(self, result: AssertionResult) -> None:
        status = "ok" if result.passed else "not ok"
        line = f"{status} {result.sequence}"
        if result.skip is not None:
            line += f" # skip {result.skip}".rstrip()
        elif result.description:
            line += f" - {result.description}"
        self._write(line)
        if not result.passed:
            self._comment(
                f"  Failed test '{result.description}'\n"
                f"  in {result.test_class}.{result.method}"
            )
            if result.diagnostic:
                self._comment(result.diagnostic)

    def summary(self, ran: int) -> None:
        self._write(f"1..{ran}")

    def diag(self, message: str) -> None:
        self._comment(message)

    def bail_out(self, reason: str) -> None:
        self._write(f"Bail out!  {reason}".rstrip())

    def method_started(self, test_class: str, method: str) -> None:
        if self.verbose:
            self._write(f"#\n# {test_class}.{method}")


@register_reporter()
class RecordingReporter(Reporter):
    """Keeps everything in memory, used by the pytest items and in tests."""

    def __init__(self) -> None:
        self.planned: typing.Optional[int] = None
        self.ran: typing.Optional[int] = None
        self.results: typing.List[AssertionResult] = []
        self.diagnostics: typing.List[str] = []
        self.bailed_out: typing.Optional[str] = None
        self.methods: typing.List[typing.Tuple[str, str]] = []

    def plan(self, total: int) -> None:
        self.planned = total

    def result(self, result: AssertionResult) -> None:
        self.results.append(result)

    def summary(self, ran: int) -> None:
        self.ran = ran

    def diag(self, message: str) -> None:
        self.diagnostics.append(message)

    def bail_out(self, reason: str) -> None:
        self.bailed_out = reason

    def method_started(self, test_class: str, method: str) -> None:
        self.methods.append((test_class, method))


def get_reporter(name: typing.Optional[str]) -> typing.Type[Reporter]:
    if name is None:
        assert _default_reporter is not None
        return _default_reporter

    if name not in _registered_reporters:
        raise Exception(f"No such pytest-test-class reporter: {name}")
    return _registered_reporters[name]
