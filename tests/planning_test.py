import re

import pytest

from pytest_test_class import (
    NO_PLAN,
    NO_TEST,
    ConfigurationError,
    MethodKind,
    TestClass,
    build_fixture_chain,
    calculate_plan,
    default_registry,
    setup,
    shutdown,
    startup,
    teardown,
    test,
)


def names(descriptors):
    return [d.name for d in descriptors]


def test_setup_runs_base_first_and_teardown_derived_first():
    class Parent(TestClass):
        @setup
        def parent_b(self):
            pass

        @setup
        def parent_a(self):
            pass

        @teardown
        def parent_down(self):
            pass

    class Child(Parent):
        @setup
        def child_up(self):
            pass

        @teardown
        def child_down_b(self):
            pass

        @teardown
        def child_down_a(self):
            pass

        @test
        def check(self):
            pass

    table = default_registry.effective_methods(Child)
    chain = build_fixture_chain(table, Child, MethodKind.setup, MethodKind.teardown)
    assert names(chain.before) == ["parent_a", "parent_b", "child_up"]
    assert names(chain.after) == ["child_down_a", "child_down_b", "parent_down"]


def test_fixture_chain_follows_multiple_inheritance_mro():
    class Database(TestClass):
        @setup
        def open_database(self):
            pass

    class Network(TestClass):
        @setup
        def open_network(self):
            pass

    class Service(Database, Network):
        @setup
        def start_service(self):
            pass

        @test
        def check(self):
            pass

    table = default_registry.effective_methods(Service)
    chain = build_fixture_chain(table, Service, MethodKind.setup, MethodKind.teardown)
    # MRO is Service, Database, Network, TestClass
    assert names(chain.before) == ["open_network", "open_database", "start_service"]


def test_plan_sums_tests_and_fixtures():
    class Parent(TestClass):
        @startup(1)
        def connect(self):
            pass

        @setup(1)
        def prepare(self):
            pass

        @test(2)
        def first(self):
            pass

        @shutdown(1)
        def disconnect(self):
            pass

    class Child(Parent):
        @teardown(1)
        def cleanup(self):
            pass

        @test(3)
        def second(self):
            pass

        @test(NO_TEST)
        def pending(self):
            pass

    plan = calculate_plan(default_registry, [Child])
    # three invocations each bracketed by prepare (1) and cleanup (1)
    assert plan.total == 1 + 1 + (1 + 2 + 1) + (1 + 3 + 1) + (1 + 0 + 1)
    assert [i.method.name for i in plan.invocations] == ["first", "pending", "second"]
    assert not plan.indeterminate


def test_any_indeterminate_count_makes_the_plan_indeterminate():
    class Exact(TestClass):
        @test(2)
        def check(self):
            pass

    class Open(TestClass):
        @setup(NO_PLAN)
        def prepare(self):
            pass

        @test(1)
        def check(self):
            pass

    assert calculate_plan(default_registry, [Exact]).total == 2
    plan = calculate_plan(default_registry, [Exact, Open])
    assert plan.total is None
    assert plan.indeterminate


def test_classes_are_planned_alphabetically():
    class Beta(TestClass):
        @test
        def check(self):
            pass

    class Alpha(TestClass):
        @test
        def check(self):
            pass

    plan = calculate_plan(default_registry, [Beta, Alpha, Beta])
    assert [c.test_class for c in plan.classes] == [Alpha, Beta]


def test_method_filter_drops_unmatched_methods_and_empty_classes():
    class Accounts(TestClass):
        @startup(1)
        def connect(self):
            pass

        @test(2)
        def credit(self):
            pass

        @test(1)
        def debit(self):
            pass

    class Reports(TestClass):
        @test
        def render(self):
            pass

    plan = calculate_plan(default_registry, [Accounts, Reports], method_filter="credit")
    assert [i.name for i in plan.invocations] == ["Accounts.credit"]
    assert plan.total == 3

    plan = calculate_plan(
        default_registry, [Accounts, Reports], method_filter=re.compile("cred")
    )
    assert plan.classes == ()
    assert plan.total == 0


def test_invalid_method_filter():
    with pytest.raises(ConfigurationError):
        calculate_plan(default_registry, [], method_filter="(")
