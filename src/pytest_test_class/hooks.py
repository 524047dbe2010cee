import pytest
import typing

if typing.TYPE_CHECKING:
    from pytest_test_class._reporters import Reporter
    from pytest_test_class.plugin import TestClassItem


@pytest.hookspec(firstresult=True)
def pytest_test_class_make_reporter(item: "TestClassItem") -> "Reporter":
    """Create the reporter that receives the assertions of one test class."""
