"""
Backfill sweeps: scan for records missing derived fields and restate them.

A sweep runs to scan exhaustion and only then writes its completion marker.
Per-candidate problems are recorded in the report; scan and marker errors
propagate and leave the marker unset, so the next run starts a fresh scan.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .backfill import BackfillOutcome, BackfillResult, FieldBackfiller
from .constants import DATAHUB_POLICY_INFO_ASPECT_NAME, POLICY_ENTITY_NAME, POLICY_SEARCH_FIELDS, SYSTEM_ACTOR
from .env import DEFAULT_BATCH_SIZE
from .logger import get_logger
from .marker import CompletionMarker, now_millis
from .models import AuditStamp
from .scanner import CandidateScanner
from .services import EntityService, SearchService
from .upgrade import StepResult, UpgradeContext, UpgradeStep, UpgradeStepResult

logger = get_logger()


@dataclass
class SweepReport:
    pages: int = 0
    candidates: int = 0
    outcomes: Dict[BackfillOutcome, int] = field(default_factory=dict)

    def record(self, result: BackfillResult) -> None:
        self.outcomes[result.outcome] = self.outcomes.get(result.outcome, 0) + 1

    def count(self, outcome: BackfillOutcome) -> int:
        return self.outcomes.get(outcome, 0)

    def to_dict(self) -> Dict[str, int]:
        data = {"pages": self.pages, "candidates": self.candidates}
        for outcome in BackfillOutcome:
            data[outcome.value] = self.count(outcome)
        return data


class BackfillFieldsStep(UpgradeStep):
    """Restate every entity whose search document lacks any of ``fields``."""

    def __init__(
        self,
        sweep_id: str,
        entity_service: EntityService,
        search_service: SearchService,
        entity_type: str,
        aspect_name: str,
        fields: List[str],
        reprocess_enabled: bool = False,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self._sweep_id = sweep_id
        self.entity_type = entity_type
        self.reprocess_enabled = reprocess_enabled
        self.batch_size = batch_size
        self.marker = CompletionMarker(entity_service)
        self.scanner = CandidateScanner(search_service, [entity_type], fields, batch_size)
        self.backfiller = FieldBackfiller(entity_service, aspect_name)

    def id(self) -> str:
        return self._sweep_id

    def is_optional(self) -> bool:
        return True

    def skip(self, context: Optional[UpgradeContext] = None) -> bool:
        if self.reprocess_enabled:
            return False

        previously_run = self.marker.exists(self.id())
        if previously_run:
            logger.info(f"{self.id()} was already run. Skipping.")
        return previously_run

    def executable(self):
        return self.execute

    def execute(self, context: Optional[UpgradeContext] = None) -> UpgradeStepResult:
        audit_stamp = AuditStamp(actor=SYSTEM_ACTOR, time=now_millis())
        report = SweepReport()

        for page in self.scanner.pages():
            logger.info(
                f"Upgrading batch of {self.entity_type} {report.candidates}-{report.candidates + len(page.candidates)}",
                sweep_id=self.id(),
            )
            report.pages += 1
            report.candidates += len(page.candidates)
            logger.record_page(len(page.candidates))

            for candidate in page.candidates:
                result = self.backfiller.backfill(candidate, audit_stamp)
                report.record(result)
                logger.record_outcome(result.outcome.value, result.error_type)

        self.marker.write(self.id())
        logger.info(f"{self.id()} completed", **report.to_dict())
        return UpgradeStepResult(self.id(), StepResult.SUCCEEDED, report.to_dict())

    def run(self, context: Optional[UpgradeContext] = None) -> UpgradeStepResult:
        """Honour the skip gate, then execute."""
        if self.skip(context):
            return UpgradeStepResult(self.id(), StepResult.SUCCEEDED, {"skipped": True})
        return self.execute(context)


class BackfillPolicyFieldsStep(BackfillFieldsStep):
    """Regenerates policy search documents that lack the newer searchable fields."""

    UPGRADE_ID = "BackfillPolicyFieldsStep"

    def __init__(
        self,
        entity_service: EntityService,
        search_service: SearchService,
        reprocess_enabled: bool = False,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        super().__init__(
            self.UPGRADE_ID,
            entity_service,
            search_service,
            POLICY_ENTITY_NAME,
            DATAHUB_POLICY_INFO_ASPECT_NAME,
            POLICY_SEARCH_FIELDS,
            reprocess_enabled=reprocess_enabled,
            batch_size=batch_size,
        )
