import logging
import re
import typing

from pytest_test_class.definitions import (
    ClassPlan,
    FixtureChain,
    Invocation,
    MethodDescriptor,
    MethodKind,
    RunPlan,
)
from pytest_test_class.errors import ConfigurationError
from pytest_test_class.registry import MethodRegistry, sort_classes

logger = logging.getLogger("pytest-test-class")


def build_fixture_chain(
    table: typing.Mapping[str, MethodDescriptor],
    cls: type,
    before_kind: MethodKind,
    after_kind: MethodKind,
) -> FixtureChain:
    """Order the fixtures around one invocation of a method of ``cls``.

    ``before`` runs from the most ancestral declaring class down to ``cls``,
    ``after`` runs from ``cls`` back up, so whatever a base class sets up is
    released last. Fixtures declared on the same class run in order-key order
    in both directions.
    """
    depth = {klass: i for i, klass in enumerate(reversed(cls.__mro__))}

    def collect(kind: MethodKind) -> typing.List[MethodDescriptor]:
        return [d for d in table.values() if d.kind is kind]

    before = sorted(
        collect(before_kind),
        key=lambda d: (depth.get(d.declaring_class, 0), d.sort_key),
    )
    after = sorted(
        collect(after_kind),
        key=lambda d: (-depth.get(d.declaring_class, 0), d.sort_key),
    )
    return FixtureChain(tuple(before), tuple(after))


def compile_method_filter(
    pattern: typing.Union[None, str, typing.Pattern[str]],
) -> typing.Optional[typing.Pattern[str]]:
    if pattern is None or pattern == "":
        return None
    if isinstance(pattern, re.Pattern):
        return pattern
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"{pattern!r} is not a valid method filter: {e}") from e


def plan_class(
    registry: MethodRegistry,
    cls: type,
    method_filter: typing.Optional[typing.Pattern[str]] = None,
) -> ClassPlan:
    table = registry.effective_methods(cls)
    methods = sorted(
        (d for d in table.values() if d.kind is MethodKind.test),
        key=lambda d: d.sort_key,
    )
    if method_filter is not None:
        methods = [d for d in methods if method_filter.fullmatch(d.name)]

    fixtures = build_fixture_chain(table, cls, MethodKind.setup, MethodKind.teardown)
    class_fixtures = build_fixture_chain(
        table, cls, MethodKind.setup_for_class, MethodKind.teardown_for_class
    )
    return ClassPlan(
        test_class=cls,
        class_fixtures=class_fixtures,
        invocations=tuple(Invocation(cls, m, fixtures) for m in methods),
    )


def calculate_plan(
    registry: MethodRegistry,
    classes: typing.Iterable[type],
    method_filter: typing.Union[None, str, typing.Pattern[str]] = None,
) -> RunPlan:
    compiled = compile_method_filter(method_filter)

    class_plans = []
    for cls in sort_classes(dict.fromkeys(classes)):
        class_plan = plan_class(registry, cls, compiled)
        if not class_plan.invocations:
            logger.debug(f"No test methods selected in {cls.__name__}")
            continue
        class_plans.append(class_plan)

    counts = [class_plan.expected for class_plan in class_plans]
    total = None if any(c is None for c in counts) else sum(counts)

    if total is None:
        logger.debug("Plan is indeterminate, the total is reported after the run")
    else:
        logger.info(f"Planned {total} assertion(s) in {len(class_plans)} class(es)")
    return RunPlan(tuple(class_plans), total)
