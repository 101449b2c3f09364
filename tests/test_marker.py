"""
Tests for marker.py - completion markers.
"""

from fieldsweep.constants import DATA_HUB_UPGRADE_RESULT_ASPECT_NAME
from fieldsweep.marker import CompletionMarker, get_upgrade_urn
from fieldsweep.models import ChangeType


class TestCompletionMarker:
    def test_upgrade_urn(self):
        assert str(get_upgrade_urn("BackfillPolicyFieldsStep")) == "urn:li:dataHubUpgrade:BackfillPolicyFieldsStep"

    def test_absent_until_written(self, memory_entities):
        marker = CompletionMarker(memory_entities)
        assert not marker.exists("sweep-a")

        marker.write("sweep-a", timestamp_ms=1700000000000)

        assert marker.exists("sweep-a")
        assert not marker.exists("sweep-b")

    def test_write_records_timestamp(self, memory_entities):
        CompletionMarker(memory_entities).write("sweep-a", timestamp_ms=42)

        [(proposal, stamp, async_)] = memory_entities.proposals
        assert proposal.entity_urn == "urn:li:dataHubUpgrade:sweep-a"
        assert proposal.aspect_name == DATA_HUB_UPGRADE_RESULT_ASPECT_NAME
        assert proposal.change_type == ChangeType.UPSERT
        assert proposal.aspect.deserialize() == {"timestampMs": 42, "state": "SUCCEEDED"}
        assert stamp.time == 42
        assert async_ is False

    def test_default_timestamp_is_now(self, memory_entities):
        CompletionMarker(memory_entities).write("sweep-a")
        payload = memory_entities.proposals[0][0].aspect.deserialize()
        assert payload["timestampMs"] > 1_600_000_000_000

    def test_persists_in_sql_store(self, entity_service):
        """Markers survive across service instances backed by the same store."""
        CompletionMarker(entity_service).write("sweep-a")
        assert CompletionMarker(entity_service).exists("sweep-a")
