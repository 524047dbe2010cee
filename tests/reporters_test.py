import io

import pytest

from pytest_test_class import (
    NO_PLAN,
    RecordingReporter,
    Reporter,
    TapReporter,
    TestClass,
    TestRunner,
    get_reporter,
    register_reporter,
    run_tests,
    test,
)


def test_tap_output():
    class Checks(TestClass):
        @test(2)
        def compare(self):
            self.equal(1 + 1, 2, "addition")
            self.equal("a", "b", "letters")

        @test(2)
        def skipping(self):
            self.skip("later")

    stream = io.StringIO()
    status = run_tests(Checks, reporter=TapReporter(stream, verbose=False))

    assert not status.success
    assert stream.getvalue().split("\n") == [
        "1..4",
        "ok 1 - addition",
        "not ok 2 - letters",
        "#   Failed test 'letters'",
        "#   in Checks.compare",
        "#      got: 'a'",
        "# expected: 'b'",
        "ok 3 # skip later",
        "ok 4 # skip later",
        "",
    ]


def test_tap_trailing_plan_and_verbose_method_names():
    class Open(TestClass):
        @test(NO_PLAN)
        def check(self):
            self.ok(True, "first")

    stream = io.StringIO()
    TestRunner(TapReporter(stream, verbose=True)).run([Open])

    assert stream.getvalue().split("\n") == [
        "#",
        "# Open.check",
        "ok 1 - first",
        "1..1",
        "",
    ]


def test_tap_bail_out():
    stream = io.StringIO()
    TapReporter(stream).bail_out("no database")
    assert stream.getvalue() == "Bail out!  no database\n"


def test_reporter_registry():
    assert get_reporter(None) is TapReporter
    assert get_reporter("RecordingReporter") is RecordingReporter

    @register_reporter()
    class CountingReporter(Reporter):
        def __init__(self):
            self.count = 0

        def plan(self, total):
            pass

        def result(self, result):
            self.count += 1

        def summary(self, ran):
            pass

    assert get_reporter("CountingReporter") is CountingReporter
    with pytest.raises(Exception, match="No such pytest-test-class reporter"):
        get_reporter("Missing")
