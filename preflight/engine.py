"""
Requirement evaluation engine.

An evaluation is a reduction over an ordered list of checks. Each check
produces a CheckResult; the fold policy decides whether evaluation continues
after a failed check (accumulate-all) or stops there (fail-fast). The verdict
starts out True and can only ever move to False.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class FoldPolicy(Enum):
    """How failed checks combine into the final verdict."""
    ACCUMULATE_ALL = "accumulate-all"
    FAIL_FAST = "fail-fast"


@dataclass
class CheckResult:
    """Result of a single check."""
    name: str
    value: Optional[bool]
    passed: bool
    description: str = ""
    error: Optional[str] = None

    def __str__(self) -> str:
        icon = "✅" if self.passed else "❌"
        return f"{icon} {self.description or self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'value': self.value,
            'passed': self.passed,
            'error': self.error,
        }


@dataclass(frozen=True)
class Check:
    """A single boolean probe of the environment.

    Attributes:
        name: Stable identifier shown to the reporter
        probe: Zero-argument callable returning the raw probe value
        fails_when: The raw value that means the requirement is unmet.
            False for ordinary checks, True for checks where detecting
            something (e.g. a legacy extension) is itself the problem.
        description: Human readable label
    """
    name: str
    probe: Callable[[], bool]
    fails_when: bool = False
    description: str = ""

    def run(self) -> CheckResult:
        """Run the probe and classify its outcome.

        A probe that raises is recorded as failed so the result is always
        definite.
        """
        try:
            value = bool(self.probe())
        except Exception as e:
            logger.warning("Check %s could not be evaluated: %s", self.name, e)
            return CheckResult(
                name=self.name,
                value=None,
                passed=False,
                description=self.description,
                error=str(e),
            )

        passed = value != self.fails_when
        logger.debug("Check %s returned %s (%s)", self.name, value, "pass" if passed else "fail")

        return CheckResult(
            name=self.name,
            value=value,
            passed=passed,
            description=self.description,
        )


@dataclass
class EvaluationReport:
    """Outcome of one evaluation.

    Attributes:
        policy: Fold policy the checks were evaluated with
        verdict: Final verdict
        results: Results of the checks that were executed, in order
        informational: Display-only results that never affect the verdict
        history: Running verdict after each executed check
    """
    policy: FoldPolicy
    verdict: bool = True
    results: List[CheckResult] = field(default_factory=list)
    informational: List[CheckResult] = field(default_factory=list)
    history: List[bool] = field(default_factory=list)

    @property
    def failed(self) -> List[CheckResult]:
        return [r for r in self.results if not r.passed]

    def result(self, name: str) -> Optional[CheckResult]:
        """Return the result recorded for ``name``, if the check was executed."""
        for r in self.results:
            if r.name == name:
                return r
        return None

    def pairs(self) -> List[tuple[str, bool]]:
        """Return ``(name, passed)`` pairs in evaluation order."""
        return [(r.name, r.passed) for r in self.results]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'policy': self.policy.value,
            'verdict': self.verdict,
            'checks': [r.to_dict() for r in self.results],
            'informational': [r.to_dict() for r in self.informational],
        }


def evaluate(checks: Sequence[Check],
             policy: FoldPolicy,
             informational: Sequence[Check] = ()) -> EvaluationReport:
    """
    Evaluate checks in order and fold their results into a verdict.

    Args:
        checks: Ordered checks contributing to the verdict
        policy: ACCUMULATE_ALL runs every check, FAIL_FAST stops after the
            first failure
        informational: Checks that are run and reported but never affect
            the verdict

    Returns:
        EvaluationReport with the verdict and the executed results
    """
    verdict = True
    results: List[CheckResult] = []
    history: List[bool] = []

    for check in checks:
        result = check.run()
        results.append(result)
        verdict = verdict and result.passed
        history.append(verdict)

        if not result.passed and policy is FoldPolicy.FAIL_FAST:
            logger.info("Stopping after failed check %s", check.name)
            break

    return EvaluationReport(
        policy=policy,
        verdict=verdict,
        results=results,
        informational=[check.run() for check in informational],
        history=history,
    )
