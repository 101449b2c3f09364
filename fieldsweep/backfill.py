"""
Per-candidate restate of an authoritative aspect.

Every outcome, including failures, comes back as a BackfillResult; nothing
raised while handling one candidate escapes ``backfill``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .constants import DEFAULT_RUN_ID
from .logger import get_logger
from .marker import now_millis
from .models import AuditStamp, ChangeType, MetadataChangeProposal, SystemMetadata, serialize_aspect
from .schema import validate_policy_info
from .services import EntityService
from .urn import Urn, UrnParseError

logger = get_logger()


class BackfillOutcome(str, Enum):
    APPLIED = "applied"
    SKIPPED_NO_ASPECT = "skipped_no_aspect"
    SKIPPED_PARSE_ERROR = "skipped_parse_error"
    FAILED = "failed"


@dataclass
class BackfillResult:
    urn: str
    outcome: BackfillOutcome
    error: Optional[BaseException] = None

    @property
    def error_type(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None


def build_restate_proposal(
    urn: Urn,
    aspect_name: str,
    payload: dict,
    run_id: str = DEFAULT_RUN_ID,
    last_observed: Optional[int] = None,
) -> MetadataChangeProposal:
    """RESTATE proposal carrying the payload exactly as read."""
    return MetadataChangeProposal(
        entity_urn=str(urn),
        entity_type=urn.entity_type,
        aspect_name=aspect_name,
        change_type=ChangeType.RESTATE,
        aspect=serialize_aspect(payload),
        system_metadata=SystemMetadata(
            run_id=run_id,
            last_observed=now_millis() if last_observed is None else last_observed,
        ),
    )


class FieldBackfiller:
    def __init__(
        self,
        entity_service: EntityService,
        aspect_name: str,
        run_id: str = DEFAULT_RUN_ID,
        validate=validate_policy_info,
    ):
        self._entity_service = entity_service
        self.aspect_name = aspect_name
        self.run_id = run_id
        self._validate = validate

    def backfill(self, candidate: str, audit_stamp: AuditStamp) -> BackfillResult:
        """
        Restate the aspect of one candidate.

        Args:
            candidate: Raw urn as returned by the scan
            audit_stamp: Provenance attached to the write

        Returns:
            BackfillResult describing what happened
        """
        try:
            urn = Urn.create_from_string(candidate)
            response = self._entity_service.get_entity_v2(urn.entity_type, str(urn), {self.aspect_name})
        except UrnParseError as e:
            logger.error(
                f"Error getting {self.aspect_name} for entity with urn {candidate} while restating",
                urn=candidate,
                error=str(e),
            )
            return BackfillResult(candidate, BackfillOutcome.SKIPPED_PARSE_ERROR, e)
        except Exception as e:
            logger.error(f"Error fetching {self.aspect_name}", urn=candidate, error=str(e))
            return BackfillResult(candidate, BackfillOutcome.FAILED, e)

        aspect = response.aspects.get(self.aspect_name) if response is not None else None
        if aspect is None or aspect.value is None:
            logger.debug("No aspect to restate", urn=candidate, aspect=self.aspect_name)
            return BackfillResult(candidate, BackfillOutcome.SKIPPED_NO_ASPECT)

        payload = aspect.value
        try:
            if self._validate is not None:
                problems = self._validate(payload)
                if problems:
                    # The stored payload is authoritative; restate it regardless
                    logger.warning("Restating aspect with validation problems", urn=candidate, problems=problems)

            proposal = build_restate_proposal(urn, self.aspect_name, payload, run_id=self.run_id)
            logger.debug(f"Restating {self.aspect_name}", urn=candidate, value=payload)
            self._entity_service.ingest_proposal(proposal, audit_stamp, async_=False)
        except Exception as e:
            logger.error(f"Error ingesting {self.aspect_name} restate", urn=candidate, error=str(e))
            return BackfillResult(candidate, BackfillOutcome.FAILED, e)

        return BackfillResult(candidate, BackfillOutcome.APPLIED)
