"""
Tests for upgrade.py - step orchestration.
"""

from fieldsweep.upgrade import StepResult, UpgradeContext, UpgradeStep, UpgradeStepResult, run_upgrade


class RecordingStep(UpgradeStep):
    """Step whose results are scripted per attempt."""

    def __init__(self, step_id, results, optional=False, retries=0, skip=False, log=None):
        self._id = step_id
        self._results = list(results)
        self._optional = optional
        self._retries = retries
        self._skip = skip
        self.attempts = 0
        self.log = log if log is not None else []

    def id(self):
        return self._id

    def is_optional(self):
        return self._optional

    def retry_count(self):
        return self._retries

    def skip(self, context):
        if isinstance(self._skip, Exception):
            raise self._skip
        return self._skip

    def executable(self):
        def run(context):
            self.attempts += 1
            self.log.append(self._id)
            outcome = self._results[min(self.attempts, len(self._results)) - 1]
            if isinstance(outcome, Exception):
                raise outcome
            return UpgradeStepResult(self._id, outcome)
        return run


class TestRunUpgrade:
    def test_all_steps_succeed(self):
        log = []
        steps = [RecordingStep("a", [StepResult.SUCCEEDED], log=log),
                 RecordingStep("b", [StepResult.SUCCEEDED], log=log)]
        context = UpgradeContext(upgrade_id="u")

        assert run_upgrade(steps, context) == StepResult.SUCCEEDED
        assert log == ["a", "b"]
        assert [r.step_id for r in context.step_results] == ["a", "b"]

    def test_skipped_steps_are_not_executed(self):
        step = RecordingStep("a", [StepResult.SUCCEEDED], skip=True)
        context = UpgradeContext(upgrade_id="u")

        assert run_upgrade([step], context) == StepResult.SUCCEEDED
        assert step.attempts == 0
        assert context.step_results == []

    def test_required_failure_aborts(self):
        log = []
        steps = [RecordingStep("a", [StepResult.FAILED], log=log),
                 RecordingStep("b", [StepResult.SUCCEEDED], log=log)]

        assert run_upgrade(steps, UpgradeContext(upgrade_id="u")) == StepResult.FAILED
        assert log == ["a"]

    def test_optional_failure_continues(self):
        log = []
        steps = [RecordingStep("a", [StepResult.FAILED], optional=True, log=log),
                 RecordingStep("b", [StepResult.SUCCEEDED], log=log)]

        assert run_upgrade(steps, UpgradeContext(upgrade_id="u")) == StepResult.SUCCEEDED
        assert log == ["a", "b"]

    def test_exception_counts_as_failure(self):
        step = RecordingStep("a", [ConnectionError("index down")])
        context = UpgradeContext(upgrade_id="u")

        assert run_upgrade([step], context) == StepResult.FAILED
        assert context.step_results[0].result == StepResult.FAILED
        assert "index down" in context.step_results[0].details["error"]

    def test_skip_check_error_fails_required_step(self):
        log = []
        steps = [RecordingStep("a", [StepResult.SUCCEEDED], skip=ConnectionError("marker lookup failed"), log=log),
                 RecordingStep("b", [StepResult.SUCCEEDED], log=log)]
        context = UpgradeContext(upgrade_id="u")

        assert run_upgrade(steps, context) == StepResult.FAILED
        assert log == []
        assert context.step_results[0].result == StepResult.FAILED
        assert "marker lookup failed" in context.step_results[0].details["error"]

    def test_skip_check_error_on_optional_step_continues(self):
        log = []
        steps = [RecordingStep("a", [StepResult.SUCCEEDED], optional=True, skip=RuntimeError("boom"), log=log),
                 RecordingStep("b", [StepResult.SUCCEEDED], log=log)]
        context = UpgradeContext(upgrade_id="u")

        assert run_upgrade(steps, context) == StepResult.SUCCEEDED
        assert log == ["b"]
        assert [r.result for r in context.step_results] == [StepResult.FAILED, StepResult.SUCCEEDED]

    def test_retries_until_success(self):
        step = RecordingStep("a", [StepResult.FAILED, RuntimeError("boom"), StepResult.SUCCEEDED], retries=2)

        assert run_upgrade([step], UpgradeContext(upgrade_id="u")) == StepResult.SUCCEEDED
        assert step.attempts == 3

    def test_retries_exhausted(self):
        step = RecordingStep("a", [StepResult.FAILED], retries=1)

        assert run_upgrade([step], UpgradeContext(upgrade_id="u")) == StepResult.FAILED
        assert step.attempts == 2


class TestStepDefaults:
    def test_base_step_defaults(self):
        step = UpgradeStep()
        assert step.retry_count() == 0
        assert step.is_optional() is False
        assert step.skip(UpgradeContext(upgrade_id="u")) is False
