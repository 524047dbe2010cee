import typing
from dataclasses import dataclass, field
from enum import Enum


class MethodKind(Enum):
    test = "test"
    setup = "setup"
    teardown = "teardown"
    setup_for_class = "setup_for_class"
    teardown_for_class = "teardown_for_class"


class Count(Enum):
    NO_PLAN = "no_plan"
    NO_TEST = "no_test"


NO_PLAN = Count.NO_PLAN
NO_TEST = Count.NO_TEST

Expected = typing.Union[int, Count]


def exact_count(expected: Expected) -> typing.Optional[int]:
    # None means the count is not known ahead of time
    if expected is Count.NO_PLAN:
        return None
    if expected is Count.NO_TEST:
        return 0
    return expected


@dataclass(frozen=True)
class MethodDescriptor:
    name: str
    kind: MethodKind
    expected: Expected
    order_key: typing.Union[int, float, str]
    declaring_class: type

    @property
    def sort_key(self) -> typing.Tuple[typing.Any, ...]:
        # numeric keys sort before lexical ones, ties fall back to the name
        if isinstance(self.order_key, (int, float)):
            return (0, self.order_key, self.name)
        return (1, str(self.order_key), self.name)

    @property
    def qualname(self) -> str:
        return f"{self.declaring_class.__name__}.{self.name}"


@dataclass(frozen=True)
class FixtureChain:
    before: typing.Tuple[MethodDescriptor, ...]
    after: typing.Tuple[MethodDescriptor, ...]


@dataclass(frozen=True)
class Invocation:
    test_class: type
    method: MethodDescriptor
    fixtures: FixtureChain

    @property
    def expected(self) -> typing.Optional[int]:
        counts = [exact_count(d.expected) for d in self.descriptors]
        if any(c is None for c in counts):
            return None
        return sum(counts)

    @property
    def descriptors(self) -> typing.Tuple[MethodDescriptor, ...]:
        return self.fixtures.before + (self.method,) + self.fixtures.after

    @property
    def name(self) -> str:
        return f"{self.test_class.__name__}.{self.method.name}"


@dataclass(frozen=True)
class ClassPlan:
    test_class: type
    class_fixtures: FixtureChain
    invocations: typing.Tuple[Invocation, ...]

    @property
    def expected(self) -> typing.Optional[int]:
        counts = [exact_count(d.expected) for d in self.class_fixtures.before]
        counts += [exact_count(d.expected) for d in self.class_fixtures.after]
        counts += [invocation.expected for invocation in self.invocations]
        if any(c is None for c in counts):
            return None
        return sum(counts)


@dataclass(frozen=True)
class RunPlan:
    classes: typing.Tuple[ClassPlan, ...]
    total: typing.Optional[int]

    @property
    def indeterminate(self) -> bool:
        return self.total is None

    @property
    def invocations(self) -> typing.Tuple[Invocation, ...]:
        return tuple(i for class_plan in self.classes for i in class_plan.invocations)


class FailureKind(Enum):
    ASSERTION = "assertion"
    FIXTURE_FAILURE = "fixture_failure"
    TEST_BODY_FAILURE = "test_body_failure"
    ASSERTION_COUNT_MISMATCH = "assertion_count_mismatch"


@dataclass(frozen=True)
class AssertionResult:
    sequence: int
    passed: bool
    description: str
    test_class: str
    method: str
    diagnostic: typing.Optional[str] = None
    skip: typing.Optional[str] = None
    failure_kind: typing.Optional[FailureKind] = None


class InvocationState(Enum):
    PENDING = "pending"
    SETUP_RUNNING = "setup_running"
    TEST_RUNNING = "test_running"
    TEARDOWN_RUNNING = "teardown_running"
    DONE = "done"
    ABORTED_BY_FIXTURE_FAILURE = "aborted_by_fixture_failure"


@dataclass
class InvocationOutcome:
    invocation: Invocation
    state: InvocationState = InvocationState.PENDING
    sequences: typing.List[int] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return self.state is InvocationState.ABORTED_BY_FIXTURE_FAILURE


@dataclass(frozen=True)
class ExitStatus:
    planned: typing.Optional[int]
    ran: int
    failures: typing.Tuple[AssertionResult, ...]
    outcomes: typing.Tuple[InvocationOutcome, ...]

    @property
    def success(self) -> bool:
        if self.failures:
            return False
        return self.planned is None or self.planned == self.ran

    @property
    def exit_code(self) -> int:
        if self.failures:
            return min(len(self.failures), 254)
        if not self.success:
            return 255
        return 0
