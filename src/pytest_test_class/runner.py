import logging
import os
import traceback
import typing
from dataclasses import dataclass
from enum import Enum

import pytest

from pytest_test_class._adapter import MethodScope, ResultReporterAdapter
from pytest_test_class._reporters import Reporter, get_reporter
from pytest_test_class.definitions import (
    ClassPlan,
    ExitStatus,
    FailureKind,
    Invocation,
    InvocationOutcome,
    InvocationState,
    MethodDescriptor,
    RunPlan,
)
from pytest_test_class.errors import BailOut, FatalError, SkipMethod
from pytest_test_class.planning import calculate_plan
from pytest_test_class.registry import MethodRegistry, default_registry, is_skipped_class

logger = logging.getLogger("pytest-test-class")


class OutcomeStatus(Enum):
    ok = "ok"
    failed = "failed"
    skipped = "skipped"


@dataclass(frozen=True)
class Outcome:
    status: OutcomeStatus
    error: str = ""
    diagnostic: typing.Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.ok

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.failed


OK = Outcome(OutcomeStatus.ok)


def describe_exception(exc: BaseException) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def format_traceback(exc: BaseException, source_path: typing.Optional[str]) -> str:
    """Render a traceback starting at the first frame in the test class's file."""
    stack_summary = traceback.StackSummary.extract(traceback.walk_tb(exc.__traceback__))
    if not any(f.filename == source_path for f in stack_summary):
        source_path = None

    traceback_lines = []
    start_capture = source_path is None
    for frame_summary in stack_summary:
        if frame_summary.filename == source_path:
            # start capturing frames the first time we enter user code
            start_capture = True

        if start_capture:
            line = frame_summary.line or ""
            traceback_lines.append(
                f"""  File "{frame_summary.filename}", line {frame_summary.lineno}, in {frame_summary.name}"""
            )
            traceback_lines.append(f"    {line.lstrip()}")

    exconly = "".join(traceback.format_exception_only(type(exc), exc)).rstrip("\n")
    pretty_traceback = "\n".join(traceback_lines)
    return f"""Traceback (most recent call last):
{pretty_traceback}
{exconly}"""


def _source_path(func: typing.Any) -> typing.Optional[str]:
    code = getattr(getattr(func, "__func__", func), "__code__", None)
    return code.co_filename if code is not None else None


class TestRunner:
    """Runs test classes one method at a time and reports every assertion.

    Classes run alphabetically by name and test methods by order key. Each
    test method gets a fresh fixture object; setup methods run base class
    first, teardown methods derived class first. A failure anywhere inside a
    fixture or test method is recorded as a failing assertion and the run
    moves on. Only registration errors, protocol violations and bail outs
    escape ``run``.
    """

    __test__ = False

    def __init__(
        self,
        reporter: typing.Optional[Reporter] = None,
        registry: MethodRegistry = default_registry,
        method_filter: typing.Union[None, str, typing.Pattern[str]] = None,
    ):
        self.reporter = reporter if reporter is not None else get_reporter(None)()
        self.registry = registry
        if method_filter is None:
            method_filter = os.environ.get("TEST_METHOD")
        self.method_filter = method_filter
        self.plan: typing.Optional[RunPlan] = None
        self._adapter: typing.Optional[ResultReporterAdapter] = None

    @property
    def adapter(self) -> ResultReporterAdapter:
        assert self._adapter is not None
        return self._adapter

    def run(self, classes: typing.Optional[typing.Iterable[type]] = None) -> ExitStatus:
        with self.registry.frozen():
            if classes is None:
                selected = self.registry.test_classes()
            else:
                selected = [cls for cls in classes if not self._skip_class(cls)]

            self.plan = plan = calculate_plan(self.registry, selected, self.method_filter)
            self._adapter = adapter = ResultReporterAdapter(self.reporter)
            if plan.total is not None:
                adapter.announce_plan(plan.total)

            outcomes: typing.List[InvocationOutcome] = []
            try:
                for class_plan in plan.classes:
                    outcomes.extend(self._run_class(class_plan))
            except BailOut as e:
                logger.warning(f"Bailing out: {e.reason}")
                adapter.bail_out(e.reason)
                raise
            adapter.finish()

        status = ExitStatus(
            planned=plan.total,
            ran=adapter.sequence,
            failures=tuple(adapter.failures),
            outcomes=tuple(outcomes),
        )
        if not status.success:
            logger.info(
                f"{len(status.failures)} of {status.ran} assertion(s) failed"
                + ("" if plan.total is None else f", {plan.total} planned")
            )
        return status

    def _skip_class(self, cls: type) -> bool:
        if not is_skipped_class(cls):
            return False
        reason = vars(cls)["skip_class"]
        if isinstance(reason, str):
            logger.warning(f"Skipping {cls.__name__}: {reason}")
        return True

    def _run_class(self, class_plan: ClassPlan) -> typing.List[InvocationOutcome]:
        cls = class_plan.test_class
        chain = class_plan.class_fixtures
        logger.debug(f"Starting {cls.__name__}")

        class_fixture, class_outcome, cause = self._construct(cls)
        if class_fixture is not None:
            class_outcome, cause, remaining = self._run_setup_chain(
                cls, class_fixture, chain.before
            )
            self._pad_unrun(cls, remaining, cause)
        else:
            self._pad_unrun(cls, chain.before, cause)

        outcomes = []
        for invocation in class_plan.invocations:
            outcome = InvocationOutcome(invocation)
            first = self.adapter.sequence + 1
            if class_outcome.ok:
                self._run_invocation(invocation, class_fixture, outcome)
            else:
                self._not_run(invocation, outcome, class_outcome, cause)
            outcome.sequences = list(range(first, self.adapter.sequence + 1))
            outcomes.append(outcome)

        if class_fixture is not None:
            self._run_teardown_chain(cls, class_fixture, chain.after)
            class_fixture.builder = None
        else:
            self._pad_unrun(cls, chain.after, cause)
        return outcomes

    def _run_invocation(
        self,
        invocation: Invocation,
        class_fixture: typing.Any,
        outcome: InvocationOutcome,
    ) -> None:
        cls = invocation.test_class
        chain = invocation.fixtures

        fixture, setup_outcome, cause = self._construct(cls, class_fixture)
        if fixture is None:
            self._not_run(invocation, outcome, setup_outcome, cause)
            return

        self._transition(outcome, InvocationState.SETUP_RUNNING)
        setup_outcome, cause, remaining = self._run_setup_chain(cls, fixture, chain.before)
        self._pad_unrun(cls, remaining, cause)

        if setup_outcome.ok:
            self._transition(outcome, InvocationState.TEST_RUNNING)
            self._run_method(cls, fixture, invocation.method, FailureKind.TEST_BODY_FAILURE)
        else:
            if setup_outcome.failed:
                self._transition(outcome, InvocationState.ABORTED_BY_FIXTURE_FAILURE)
            self._report_not_run(cls, invocation.method, setup_outcome, cause)

        # teardown runs even when setup did not complete
        if not outcome.aborted:
            self._transition(outcome, InvocationState.TEARDOWN_RUNNING)
        if not self._run_teardown_chain(cls, fixture, chain.after):
            self._transition(outcome, InvocationState.ABORTED_BY_FIXTURE_FAILURE)
        if not outcome.aborted:
            self._transition(outcome, InvocationState.DONE)
        fixture.builder = None

    def _not_run(
        self,
        invocation: Invocation,
        outcome: InvocationOutcome,
        cause_outcome: Outcome,
        cause: str,
    ) -> None:
        cls = invocation.test_class
        self._pad_unrun(cls, invocation.fixtures.before, cause)
        self._report_not_run(cls, invocation.method, cause_outcome, cause)
        self._pad_unrun(cls, invocation.fixtures.after, cause)
        if cause_outcome.failed:
            self._transition(outcome, InvocationState.ABORTED_BY_FIXTURE_FAILURE)
        else:
            self._transition(outcome, InvocationState.DONE)

    def _construct(
        self, cls: type, class_fixture: typing.Any = None
    ) -> typing.Tuple[typing.Any, Outcome, str]:
        try:
            fixture = cls()
        except FatalError:
            raise
        except (pytest.fail.Exception, Exception) as e:
            logger.warning(f"Could not create {cls.__name__}: {describe_exception(e)}")
            failure = Outcome(
                OutcomeStatus.failed,
                describe_exception(e),
                format_traceback(e, _source_path(cls.__init__)),
            )
            return None, failure, f"{cls.__name__}()"
        if class_fixture is not None:
            vars(fixture).update(vars(class_fixture))
        fixture.builder = self.adapter
        return fixture, OK, ""

    def _run_setup_chain(
        self,
        cls: type,
        fixture: typing.Any,
        chain: typing.Sequence[MethodDescriptor],
    ) -> typing.Tuple[Outcome, str, typing.Sequence[MethodDescriptor]]:
        """Run setup methods until one does not succeed.

        Returns that method's outcome, its name and the setup methods that
        never ran.
        """
        for index, descriptor in enumerate(chain):
            result = self._run_method(
                cls, fixture, descriptor, FailureKind.FIXTURE_FAILURE, report_failure=False
            )
            if not result.ok:
                name = f"{cls.__name__}.{descriptor.name}"
                if result.failed:
                    logger.warning(f"Setup method {name} failed: {result.error}")
                return result, name, chain[index + 1 :]
        return OK, "", ()

    def _run_teardown_chain(
        self,
        cls: type,
        fixture: typing.Any,
        chain: typing.Sequence[MethodDescriptor],
    ) -> bool:
        succeeded = True
        for descriptor in chain:
            result = self._run_method(cls, fixture, descriptor, FailureKind.FIXTURE_FAILURE)
            if result.failed:
                logger.warning(
                    f"Teardown method {cls.__name__}.{descriptor.name} failed: {result.error}"
                )
                succeeded = False
        return succeeded

    def _run_method(
        self,
        cls: type,
        fixture: typing.Any,
        descriptor: MethodDescriptor,
        failure_kind: FailureKind,
        report_failure: bool = True,
    ) -> Outcome:
        with self.adapter.method_scope(cls, descriptor) as scope:
            result = self._invoke(fixture, descriptor)
            asserted = scope.emitted
            if result.failed and report_failure:
                self.adapter.record_failure(
                    f"{scope.name} died ({result.error})", failure_kind, result.diagnostic
                )
            self._check_count(scope, result, asserted)
        return result

    def _invoke(self, fixture: typing.Any, descriptor: MethodDescriptor) -> Outcome:
        fixture.current_method = descriptor.name
        method = getattr(fixture, descriptor.name)
        try:
            method()
        except FatalError:
            raise
        except SkipMethod as e:
            return Outcome(OutcomeStatus.skipped, e.reason)
        except pytest.skip.Exception as e:
            return Outcome(OutcomeStatus.skipped, e.msg or "")
        # pytest.fail, pytest.xfail and unmet pytest.raises derive from BaseException
        except (pytest.fail.Exception, Exception) as e:
            return Outcome(
                OutcomeStatus.failed,
                describe_exception(e),
                format_traceback(e, _source_path(method)),
            )
        finally:
            fixture.current_method = None
        return OK

    def _check_count(self, scope: MethodScope, result: Outcome, asserted: int) -> None:
        expected = scope.expected
        if expected is None:
            return

        if asserted > expected:
            message = f"expected {expected} assertion(s) in {scope.name}, {asserted} completed"
            logger.warning(message)
            self.adapter.record_failure(message, FailureKind.ASSERTION_COUNT_MISMATCH)
        elif scope.emitted < expected:
            if result.status is OutcomeStatus.skipped:
                reason = result.error
            elif result.failed:
                reason = f"{scope.name} died"
            else:
                message = f"expected {expected} assertion(s) in {scope.name}, {asserted} completed"
                logger.warning(message)
                self.adapter.record_failure(message, FailureKind.ASSERTION_COUNT_MISMATCH)
                reason = f"{scope.name} completed early"
            self._pad(scope, reason)

    def _pad(self, scope: MethodScope, reason: str) -> None:
        # keeps the announced plan consistent when a method stops short
        expected = scope.expected
        while expected is not None and scope.emitted < expected:
            self.adapter.record_skip(reason)

    def _pad_unrun(
        self, cls: type, descriptors: typing.Iterable[MethodDescriptor], cause: str
    ) -> None:
        for descriptor in descriptors:
            with self.adapter.method_scope(cls, descriptor) as scope:
                self._pad(scope, f"{cause} did not complete")

    def _report_not_run(
        self,
        cls: type,
        descriptor: MethodDescriptor,
        cause_outcome: Outcome,
        cause: str,
    ) -> None:
        with self.adapter.method_scope(cls, descriptor) as scope:
            if cause_outcome.failed:
                self.adapter.record_failure(
                    f"{scope.name} not run, {cause} died ({cause_outcome.error})",
                    FailureKind.FIXTURE_FAILURE,
                    cause_outcome.diagnostic,
                )
                self._pad(scope, f"{cause} died")
            else:
                self._pad(scope, cause_outcome.error)

    def _transition(self, outcome: InvocationOutcome, state: InvocationState) -> None:
        logger.debug(
            f"{outcome.invocation.name}: {outcome.state.value} -> {state.value}"
        )
        outcome.state = state


def build_plan_and_run(
    classes: typing.Optional[typing.Iterable[type]] = None,
    reporter: typing.Optional[Reporter] = None,
    registry: MethodRegistry = default_registry,
    method_filter: typing.Union[None, str, typing.Pattern[str]] = None,
) -> ExitStatus:
    return TestRunner(reporter, registry, method_filter).run(classes)


def run_tests(
    *classes: type,
    reporter: typing.Optional[Reporter] = None,
    method_filter: typing.Union[None, str, typing.Pattern[str]] = None,
) -> ExitStatus:
    """Run the given test classes, or every registered one, printing TAP by default

    e.g.
    if __name__ == "__main__":
        sys.exit(run_tests().exit_code)
    """
    return build_plan_and_run(classes or None, reporter, method_filter=method_filter)
