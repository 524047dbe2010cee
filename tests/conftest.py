import pytest

from pytest_test_class import RecordingReporter, default_registry

pytest_plugins = ["pytester"]


@pytest.fixture()
def recorder():
    return RecordingReporter()


@pytest.fixture(autouse=True)
def forget_test_classes():
    # classes defined inside a test must not leak into the default selection of later tests
    known = set(default_registry.registered_classes())
    yield
    for cls in default_registry.registered_classes():
        if cls not in known:
            default_registry.unregister(cls)
