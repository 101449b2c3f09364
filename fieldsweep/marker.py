"""
Durable "this sweep has completed" records.

A marker is an ordinary aspect on a reserved urn, so it gets the same
durability and read-your-writes behaviour as any other record in the store.
"""

import time
from typing import Optional

from .constants import (
    DATA_HUB_UPGRADE_ENTITY_NAME,
    DATA_HUB_UPGRADE_RESULT_ASPECT_NAME,
    DEFAULT_RUN_ID,
    SYSTEM_ACTOR,
)
from .logger import get_logger
from .models import AuditStamp, ChangeType, MetadataChangeProposal, SystemMetadata, serialize_aspect
from .services import EntityService
from .urn import Urn, make_urn

logger = get_logger()


def get_upgrade_urn(sweep_id: str) -> Urn:
    return make_urn(DATA_HUB_UPGRADE_ENTITY_NAME, sweep_id)


def now_millis() -> int:
    return int(time.time() * 1000)


class CompletionMarker:
    def __init__(self, entity_service: EntityService):
        self._entity_service = entity_service

    def exists(self, sweep_id: str) -> bool:
        return self._entity_service.exists(str(get_upgrade_urn(sweep_id)), include_soft_deleted=True)

    def write(self, sweep_id: str, timestamp_ms: Optional[int] = None) -> None:
        """
        Record that the sweep finished.

        Args:
            sweep_id: Stable sweep identifier
            timestamp_ms: Completion time in epoch milliseconds (default: now)
        """
        ts = now_millis() if timestamp_ms is None else timestamp_ms
        urn = get_upgrade_urn(sweep_id)
        proposal = MetadataChangeProposal(
            entity_urn=str(urn),
            entity_type=DATA_HUB_UPGRADE_ENTITY_NAME,
            aspect_name=DATA_HUB_UPGRADE_RESULT_ASPECT_NAME,
            change_type=ChangeType.UPSERT,
            aspect=serialize_aspect({"timestampMs": ts, "state": "SUCCEEDED"}),
            system_metadata=SystemMetadata(run_id=DEFAULT_RUN_ID, last_observed=ts),
        )
        self._entity_service.ingest_proposal(proposal, AuditStamp(actor=SYSTEM_ACTOR, time=ts), async_=False)
        logger.info("Recorded sweep completion", sweep_id=sweep_id, urn=str(urn), timestamp_ms=ts)
