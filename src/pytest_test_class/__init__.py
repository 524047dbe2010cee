from pytest_test_class._reporters import (
    RecordingReporter,
    Reporter,
    TapReporter,
    get_reporter,
    register_reporter,
)
from pytest_test_class.definitions import (
    NO_PLAN,
    NO_TEST,
    AssertionResult,
    Count,
    ExitStatus,
    FailureKind,
    InvocationState,
    MethodDescriptor,
    MethodKind,
    RunPlan,
)
from pytest_test_class.errors import (
    BailOut,
    ConfigurationError,
    DuplicateRegistrationError,
    FatalError,
    ProtocolViolation,
    RegistrationError,
    SkipMethod,
    TestClassError,
)
from pytest_test_class.planning import build_fixture_chain, calculate_plan
from pytest_test_class.registry import (
    MethodRegistry,
    default_registry,
    setup,
    shutdown,
    startup,
    teardown,
    test,
    tests,
)
from pytest_test_class.runner import TestRunner, build_plan_and_run, run_tests
from pytest_test_class.testclass import TestClass

__all__ = [
    "AssertionResult",
    "BailOut",
    "ConfigurationError",
    "Count",
    "DuplicateRegistrationError",
    "ExitStatus",
    "FailureKind",
    "FatalError",
    "InvocationState",
    "MethodDescriptor",
    "MethodKind",
    "MethodRegistry",
    "NO_PLAN",
    "NO_TEST",
    "ProtocolViolation",
    "RecordingReporter",
    "RegistrationError",
    "Reporter",
    "RunPlan",
    "SkipMethod",
    "TapReporter",
    "TestClass",
    "TestClassError",
    "TestRunner",
    "build_fixture_chain",
    "build_plan_and_run",
    "calculate_plan",
    "default_registry",
    "get_reporter",
    "register_reporter",
    "run_tests",
    "setup",
    "shutdown",
    "startup",
    "teardown",
    "test",
    "tests",
]
