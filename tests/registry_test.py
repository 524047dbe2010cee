import pytest

from pytest_test_class import (
    NO_PLAN,
    NO_TEST,
    DuplicateRegistrationError,
    MethodKind,
    MethodRegistry,
    RegistrationError,
    TestClass,
    default_registry,
    setup,
    shutdown,
    startup,
    teardown,
    test,
    tests,
)


def test_decorators_register_on_class_definition():
    class Widget(TestClass):
        @startup
        def connect(self):
            pass

        @setup(1)
        def make_widget(self):
            pass

        @test
        def one(self):
            pass

        @test(3, order=2)
        def three(self):
            pass

        @tests
        def many(self):
            pass

        @test(NO_TEST)
        def later(self):
            pass

        @teardown
        def drop_widget(self):
            pass

        @shutdown()
        def disconnect(self):
            pass

        def helper(self):
            pass

    table = default_registry.effective_methods(Widget)
    assert set(table) == {
        "connect",
        "make_widget",
        "one",
        "three",
        "many",
        "later",
        "drop_widget",
        "disconnect",
    }
    assert table["connect"].kind is MethodKind.setup_for_class
    assert table["connect"].expected == 0
    assert table["make_widget"].kind is MethodKind.setup
    assert table["make_widget"].expected == 1
    assert table["one"].expected == 1
    assert table["one"].order_key == "one"
    assert table["three"].expected == 3
    assert table["three"].order_key == 2
    assert table["many"].expected is NO_PLAN
    assert table["later"].expected is NO_TEST
    assert table["drop_widget"].kind is MethodKind.teardown
    assert table["disconnect"].kind is MethodKind.teardown_for_class


def test_conflicting_kind_is_rejected():
    class Target:
        def prepare(self):
            pass

    registry = MethodRegistry()
    registry.register(Target, "prepare", MethodKind.setup, 0)
    with pytest.raises(DuplicateRegistrationError):
        registry.register(Target, "prepare", MethodKind.test, 1)


def test_same_kind_replaces_previous_registration():
    class Target:
        def check(self):
            pass

    registry = MethodRegistry()
    registry.register(Target, "check", MethodKind.test, 1)
    registry.register(Target, "check", MethodKind.test, 4)
    assert registry.effective_methods(Target)["check"].expected == 4


def test_subclass_overrides_ancestor_method():
    class Base(TestClass):
        @test(1)
        def check(self):
            pass

        @test(1)
        def inherited(self):
            pass

    class Derived(Base):
        @test(2)
        def check(self):
            pass

    table = default_registry.effective_methods(Derived)
    assert table["check"].expected == 2
    assert table["check"].declaring_class is Derived
    assert table["inherited"].declaring_class is Base
    assert default_registry.effective_methods(Base)["check"].expected == 1


def test_undecorated_override_keeps_ancestor_descriptor():
    class Base(TestClass):
        @test(2)
        def check(self):
            pass

    class Derived(Base):
        def check(self):
            pass

    descriptor = default_registry.effective_methods(Derived)["check"]
    assert descriptor.declaring_class is Base
    assert descriptor.expected == 2


def test_registration_rejected_while_frozen():
    class Target:
        def check(self):
            pass

    registry = MethodRegistry()
    with registry.frozen():
        with pytest.raises(RegistrationError):
            registry.register(Target, "check", MethodKind.test, 1)
    registry.register(Target, "check", MethodKind.test, 1)


@pytest.mark.parametrize("count", [-1, 1.5, True, "two"])
def test_invalid_counts_are_rejected(count):
    with pytest.raises(RegistrationError):

        @test(count)
        def check(self):
            pass


def test_registered_name_must_be_callable():
    class Target:
        check = 3

    registry = MethodRegistry()
    registry.register(Target, "check", MethodKind.test, 1)
    with pytest.raises(RegistrationError, match="not callable"):
        registry.effective_methods(Target)


def test_test_classes_are_alphabetical_and_skip_abstract_bases():
    class Zebra(TestClass):
        @test
        def check(self):
            pass

    class Abstract(TestClass):
        skip_class = True

        @test
        def check(self):
            pass

    class Concrete(Abstract):
        pass

    class FixturesOnly(TestClass):
        @setup
        def prepare(self):
            pass

    registry = MethodRegistry()
    for cls in (Zebra, Abstract, Concrete, FixturesOnly):
        registry.register_class(cls)

    assert registry.test_classes() == [Concrete, Zebra]


def test_numeric_order_keys_sort_before_names():
    class Target:
        def alpha(self):
            pass

        def beta(self):
            pass

        def gamma(self):
            pass

    registry = MethodRegistry()
    registry.register(Target, "alpha", MethodKind.test, 1)
    registry.register(Target, "beta", MethodKind.test, 1, order_key=2)
    registry.register(Target, "gamma", MethodKind.test, 1, order_key=1)
    table = registry.effective_methods(Target)
    ordered = sorted(table.values(), key=lambda d: d.sort_key)
    assert [d.name for d in ordered] == ["gamma", "beta", "alpha"]


def test_redefined_class_replaces_the_previous_definition():
    def define():
        class Repeated(TestClass):
            @test(1)
            def check(self):
                pass

        return Repeated

    first = define()
    second = define()

    classes = default_registry.registered_classes()
    assert second in classes
    assert first not in classes
    assert default_registry.effective_methods(first) == {}


def test_unregister_forgets_the_class():
    registry = MethodRegistry()

    class Temporary(TestClass):
        @test(1)
        def check(self):
            pass

    registry.register_class(Temporary)
    assert registry.test_classes() == [Temporary]

    registry.unregister(Temporary)
    assert registry.test_classes() == []
    assert registry.effective_methods(Temporary) == {}

    with registry.frozen():
        with pytest.raises(RegistrationError):
            registry.unregister(Temporary)


def test_decorators_keep_their_documentation():
    assert "expecting ``expected`` assertions" in test.__doc__
    assert test.__test__ is False
    assert tests.__test__ is False
