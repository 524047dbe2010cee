import inspect
import typing

import pytest
from _pytest._code import ExceptionInfo
from _pytest.config.argparsing import Parser

from pytest_test_class import hooks
from pytest_test_class._reporters import Reporter, get_reporter
from pytest_test_class.definitions import ExitStatus, MethodKind
from pytest_test_class.errors import ConfigurationError
from pytest_test_class.planning import compile_method_filter
from pytest_test_class.registry import default_registry, is_skipped_class
from pytest_test_class.runner import TestRunner
from pytest_test_class.testclass import TestClass

MARKER_NAME = "test-class"


class TestClassFailed(Exception):
    __test__ = False

    def __init__(self, status: ExitStatus):
        super().__init__(f"{len(status.failures)} assertion(s) failed")
        self.status = status


def get_class_start_line(cls: type) -> typing.Optional[int]:
    try:
        _, start_line = inspect.getsourcelines(cls)
    except (OSError, TypeError):
        return None
    return start_line


def format_failures(test_class: type, status: ExitStatus) -> str:
    lines = [f"Failures in test class {test_class.__name__}:"]
    for failure in status.failures:
        lines.append(
            f"not ok {failure.sequence} - {failure.description} "
            f"({failure.test_class}.{failure.method})"
        )
        if failure.diagnostic:
            lines.extend(f"    {line}" for line in failure.diagnostic.split("\n"))

    summary = f"{len(status.failures)} of {status.ran} assertion(s) failed"
    if status.planned is not None:
        summary += f", {status.planned} planned"
    lines.append(summary)
    return "\n".join(lines) + "\n"


class TestClassItem(pytest.Item):
    def __init__(
        self,
        name: str,
        parent: pytest.Module,
        test_class: type,
    ) -> None:
        super().__init__(name, parent)
        self.add_marker(MARKER_NAME)
        self.test_class = test_class
        self.start_line = get_class_start_line(test_class)
        self.reporter: typing.Optional[Reporter] = None
        self.status: typing.Optional[ExitStatus] = None

        reason = vars(test_class).get("skip_class")
        if isinstance(reason, str):
            self.add_marker(pytest.mark.skip(reason=reason))

    def runtest(self):
        self.reporter = self.config.hook.pytest_test_class_make_reporter(item=self)
        runner = TestRunner(
            self.reporter, method_filter=self.config.option.test_class_method
        )
        self.status = runner.run([self.test_class])

        assert runner.plan is not None
        if not runner.plan.classes:
            pytest.skip("no test methods match the method filter")
        if not self.status.success:
            raise TestClassFailed(self.status)

    def repr_failure(
        self,
        excinfo: ExceptionInfo[BaseException],
        style=None,
    ):
        if isinstance(excinfo.value, TestClassFailed):
            return format_failures(self.test_class, excinfo.value.status)
        return super().repr_failure(excinfo, style)

    def reportinfo(self):
        return self.path, self.start_line, self.name


@pytest.hookimpl(tryfirst=True)
def pytest_pycollect_makeitem(collector, name, obj):
    if not (inspect.isclass(obj) and issubclass(obj, TestClass)) or obj is TestClass:
        return None
    if not isinstance(collector, pytest.Module):
        return None
    # classes imported from another module are collected where they are defined
    if obj.__module__ != collector.module.__name__:
        return None

    skip_class = vars(obj).get("skip_class", False)
    if is_skipped_class(obj) and not isinstance(skip_class, str):
        return None
    if not default_registry.methods_of_kind(obj, MethodKind.test):
        return None

    return TestClassItem.from_parent(collector, name=name, test_class=obj)


@pytest.hookimpl(trylast=True)
def pytest_test_class_make_reporter(item: TestClassItem) -> Reporter:
    return get_reporter(item.config.option.test_class_reporter)()


def pytest_configure(config):
    config.addinivalue_line(
        "markers", f"{MARKER_NAME}: filter for pytest-test-class generated tests"
    )
    try:
        compile_method_filter(config.option.test_class_method)
    except ConfigurationError as e:
        raise pytest.UsageError(str(e)) from e


def pytest_addoption(parser: Parser) -> None:
    group = parser.getgroup("collect")
    group.addoption(
        "--test-class-method",
        action="store",
        default=None,
        help="only run test class methods whose name matches this regular expression "
        "(defaults to the TEST_METHOD environment variable)",
        dest="test_class_method",
    )
    group.addoption(
        "--test-class-reporter",
        action="store",
        default=None,
        help="name of a registered reporter receiving test class assertions",
        dest="test_class_reporter",
    )


def pytest_addhooks(pluginmanager):
    pluginmanager.add_hookspecs(hooks)
