"""
Upgrade orchestration: a sequence of steps, each of which may be skipped,
retried, or declared optional.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .logger import get_logger

logger = get_logger()


class StepResult(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass
class UpgradeContext:
    upgrade_id: str
    args: Dict[str, Any] = field(default_factory=dict)
    step_results: List["UpgradeStepResult"] = field(default_factory=list)

    def report(self, result: "UpgradeStepResult") -> None:
        self.step_results.append(result)


@dataclass
class UpgradeStepResult:
    step_id: str
    result: StepResult
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.result == StepResult.SUCCEEDED


class UpgradeStep:
    """Base class for a unit of work run by ``run_upgrade``."""

    def id(self) -> str:
        raise NotImplementedError

    def executable(self) -> Callable[[UpgradeContext], UpgradeStepResult]:
        raise NotImplementedError

    def retry_count(self) -> int:
        return 0

    def is_optional(self) -> bool:
        """Whether the upgrade continues if this step fails after all retries."""
        return False

    def skip(self, context: UpgradeContext) -> bool:
        return False


def _execute_step(step: UpgradeStep, context: UpgradeContext) -> UpgradeStepResult:
    attempts = step.retry_count() + 1
    result: Optional[UpgradeStepResult] = None
    for attempt in range(1, attempts + 1):
        try:
            result = step.executable()(context)
        except Exception as e:
            logger.error(
                f"Step {step.id()} raised",
                attempt=attempt,
                error=str(e),
                error_type=type(e).__name__,
            )
            result = UpgradeStepResult(step.id(), StepResult.FAILED, {"error": str(e)})
        if result.succeeded:
            return result
        if attempt < attempts:
            logger.warning(f"Retrying step {step.id()}", attempt=attempt + 1, max_attempts=attempts)
    return result


def _should_skip(step: UpgradeStep, context: UpgradeContext) -> Optional[UpgradeStepResult]:
    """None when the step should run, otherwise a skipped or FAILED result."""
    try:
        skipped = step.skip(context)
    except Exception as e:
        logger.error(f"Skip check for step {step.id()} raised", error=str(e), error_type=type(e).__name__)
        return UpgradeStepResult(step.id(), StepResult.FAILED, {"error": str(e)})
    return UpgradeStepResult(step.id(), StepResult.SUCCEEDED, {"skipped": True}) if skipped else None


def run_upgrade(steps: List[UpgradeStep], context: UpgradeContext) -> StepResult:
    """
    Run steps in order.

    Returns:
        SUCCEEDED unless a non-optional step failed, in which case the
        remaining steps are not run
    """
    logger.info(f"Starting upgrade {context.upgrade_id}", steps=[s.id() for s in steps])
    for step in steps:
        result = _should_skip(step, context)
        if result is not None and result.succeeded:
            logger.info(f"Skipping step {step.id()}")
            continue

        if result is None:
            logger.info(f"Executing step {step.id()}")
            result = _execute_step(step, context)
        context.report(result)

        if result.succeeded:
            logger.info(f"Completed step {step.id()}", **result.details)
        elif step.is_optional():
            logger.warning(f"Optional step {step.id()} failed, continuing", **result.details)
        else:
            logger.error(f"Step {step.id()} failed, aborting upgrade {context.upgrade_id}", **result.details)
            return StepResult.FAILED

    logger.info(f"Upgrade {context.upgrade_id} finished")
    return StepResult.SUCCEEDED
