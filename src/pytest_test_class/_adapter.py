import contextlib
import logging
import typing
from dataclasses import dataclass

from pytest_test_class._reporters import Reporter
from pytest_test_class.definitions import (
    AssertionResult,
    Count,
    FailureKind,
    MethodDescriptor,
    exact_count,
)
from pytest_test_class.errors import ProtocolViolation

logger = logging.getLogger("pytest-test-class")


@dataclass
class MethodScope:
    """The method currently allowed to emit assertions."""

    test_class: type
    descriptor: MethodDescriptor
    emitted: int = 0
    overrun: bool = False

    @property
    def expected(self) -> typing.Optional[int]:
        return exact_count(self.descriptor.expected)

    @property
    def name(self) -> str:
        return f"{self.test_class.__name__}.{self.descriptor.name}"


class ResultReporterAdapter:
    """Numbers assertions and forwards them to a reporter.

    This is the only place the run-wide sequence counter changes. Pass/fail is
    decided by whoever calls ``record``; the adapter only checks that an
    assertion arrives while a method is active.
    """

    def __init__(self, reporter: Reporter):
        self.reporter = reporter
        self.sequence = 0
        self.results: typing.List[AssertionResult] = []
        self.planned: typing.Optional[int] = None
        self.finished = False
        self._scope: typing.Optional[MethodScope] = None

    @property
    def failures(self) -> typing.List[AssertionResult]:
        return [r for r in self.results if not r.passed]

    def announce_plan(self, total: int) -> None:
        if self.sequence or self.planned is not None:
            raise ProtocolViolation("The plan must be announced once, before any assertion")
        self.planned = total
        self.reporter.plan(total)

    @contextlib.contextmanager
    def method_scope(
        self, test_class: type, descriptor: MethodDescriptor
    ) -> typing.Iterator[MethodScope]:
        if self._scope is not None:
            raise ProtocolViolation(
                f"{descriptor.name} started while {self._scope.name} is still running"
            )
        scope = MethodScope(test_class, descriptor)
        self._scope = scope
        self.reporter.method_started(test_class.__name__, descriptor.name)
        try:
            yield scope
        finally:
            self._scope = None

    def record(
        self,
        passed: bool,
        description: typing.Optional[str] = None,
        diagnostic: typing.Optional[str] = None,
    ) -> AssertionResult:
        """Record an assertion made by a test or fixture method."""
        scope = self._active_scope()
        if scope.descriptor.expected is Count.NO_TEST:
            raise ProtocolViolation(
                f"{scope.name} is marked NO_TEST but emitted an assertion"
            )
        result = self._emit(
            scope,
            passed,
            description,
            diagnostic,
            failure_kind=None if passed else FailureKind.ASSERTION,
        )
        if scope.expected is not None and scope.emitted > scope.expected and not scope.overrun:
            scope.overrun = True
            message = (
                f"{scope.name} expected {scope.expected} assertion(s), "
                f"assertion {result.sequence} is one too many"
            )
            logger.warning(message)
            self.diag(message)
        return result

    def record_failure(
        self,
        description: str,
        failure_kind: FailureKind,
        diagnostic: typing.Optional[str] = None,
    ) -> AssertionResult:
        """Record a failure found by the runner rather than by an assertion."""
        return self._emit(
            self._active_scope(), False, description, diagnostic, failure_kind=failure_kind
        )

    def record_skip(self, reason: str) -> AssertionResult:
        return self._emit(self._active_scope(), True, "", None, skip=reason)

    def diag(self, message: str) -> None:
        if self.finished:
            raise ProtocolViolation("Diagnostic emitted after the run finished")
        self.reporter.diag(message)

    def bail_out(self, reason: str) -> None:
        self.finished = True
        self.reporter.bail_out(reason)

    def finish(self) -> None:
        if self.finished:
            raise ProtocolViolation("The run has already finished")
        if self.planned is None:
            self.reporter.summary(self.sequence)
        self.finished = True

    def _active_scope(self) -> MethodScope:
        if self.finished:
            raise ProtocolViolation("Assertion emitted after the run finished")
        if self._scope is None:
            raise ProtocolViolation("Assertion emitted outside of any test method")
        return self._scope

    def _emit(
        self,
        scope: MethodScope,
        passed: bool,
        description: typing.Optional[str],
        diagnostic: typing.Optional[str],
        failure_kind: typing.Optional[FailureKind] = None,
        skip: typing.Optional[str] = None,
    ) -> AssertionResult:
        self.sequence += 1
        scope.emitted += 1
        result = AssertionResult(
            sequence=self.sequence,
            passed=passed,
            description=scope.descriptor.name if description is None else description,
            test_class=scope.test_class.__name__,
            method=scope.descriptor.name,
            diagnostic=diagnostic,
            skip=skip,
            failure_kind=failure_kind,
        )
        self.results.append(result)
        self.reporter.result(result)
        return result
