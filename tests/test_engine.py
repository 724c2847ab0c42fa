"""Tests for the evaluation engine."""

import itertools
from unittest.mock import Mock

import pytest

from preflight.engine import Check, CheckResult, EvaluationReport, FoldPolicy, evaluate


def _checks(outcomes):
    return [Check(f"check_{i}", Mock(return_value=value)) for i, value in enumerate(outcomes)]


class TestCheck:
    """Test a single check."""

    def test_ordinary_check_passes_on_true(self):
        result = Check("dom", lambda: True, description="DOM").run()
        assert result.passed is True
        assert result.value is True
        assert result.description == "DOM"

    def test_ordinary_check_fails_on_false(self):
        result = Check("dom", lambda: False).run()
        assert result.passed is False

    def test_inverted_check_fails_when_detected(self):
        result = Check("xcache", lambda: True, fails_when=True).run()
        assert result.value is True
        assert result.passed is False

    def test_inverted_check_passes_when_absent(self):
        result = Check("xcache", lambda: False, fails_when=True).run()
        assert result.passed is True

    def test_raising_probe_is_recorded_as_failure(self):
        result = Check("broken", Mock(side_effect=RuntimeError("boom"))).run()
        assert result.passed is False
        assert result.value is None
        assert result.error == "boom"

    def test_raising_inverted_probe_is_still_a_failure(self):
        result = Check("broken", Mock(side_effect=OSError("nope")), fails_when=True).run()
        assert result.passed is False

    def test_string_representation(self):
        assert "✅" in str(CheckResult(name="a", value=True, passed=True, description="Alpha"))
        assert "❌" in str(CheckResult(name="a", value=False, passed=False))


class TestAccumulateAll:
    """Test the accumulate-all fold."""

    def test_every_check_runs_after_a_failure(self):
        checks = _checks([True, True, False, True, True, True, True])
        report = evaluate(checks, FoldPolicy.ACCUMULATE_ALL)

        assert report.verdict is False
        assert len(report.results) == 7
        for check in checks:
            check.probe.assert_called_once()

    def test_all_passing(self):
        report = evaluate(_checks([True] * 3), FoldPolicy.ACCUMULATE_ALL)
        assert report.verdict is True
        assert report.failed == []

    def test_informational_checks_do_not_affect_verdict(self):
        report = evaluate(
            _checks([True]),
            FoldPolicy.ACCUMULATE_ALL,
            informational=[Check("shell", lambda: False)],
        )
        assert report.verdict is True
        assert [r.name for r in report.informational] == ["shell"]
        assert report.result("shell") is None


class TestFailFast:
    """Test the fail-fast fold."""

    def test_later_checks_do_not_run(self):
        checks = _checks([True, False, True, True])
        report = evaluate(checks, FoldPolicy.FAIL_FAST)

        assert report.verdict is False
        assert report.pairs() == [("check_0", True), ("check_1", False)]
        checks[2].probe.assert_not_called()
        checks[3].probe.assert_not_called()

    def test_all_passing_runs_everything(self):
        checks = _checks([True] * 4)
        report = evaluate(checks, FoldPolicy.FAIL_FAST)
        assert report.verdict is True
        assert len(report.results) == 4


class TestVerdictMonotonicity:
    """The running verdict never goes from False back to True."""

    @pytest.mark.parametrize("policy", list(FoldPolicy))
    @pytest.mark.parametrize("outcomes", list(itertools.product([True, False], repeat=4)))
    def test_history_is_non_increasing(self, policy, outcomes):
        report = evaluate(_checks(outcomes), policy)

        history = [True] + report.history
        for before, after in zip(history, history[1:]):
            assert not (before is False and after is True)
        assert report.verdict == all(r.passed for r in report.results)

    def test_empty_evaluation_is_true(self):
        report = evaluate([], FoldPolicy.FAIL_FAST)
        assert report.verdict is True
        assert report.results == []


class TestEvaluationReport:
    """Test report helpers."""

    def test_to_dict(self):
        report = evaluate(_checks([True, False]), FoldPolicy.ACCUMULATE_ALL)
        data = report.to_dict()

        assert data['policy'] == "accumulate-all"
        assert data['verdict'] is False
        assert [c['passed'] for c in data['checks']] == [True, False]

    def test_default_report_is_true(self):
        assert EvaluationReport(policy=FoldPolicy.FAIL_FAST).verdict is True
