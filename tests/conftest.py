"""
Pytest configuration and shared fixtures.
"""

import pytest
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fieldsweep.constants import DATAHUB_POLICY_INFO_ASPECT_NAME, POLICY_ENTITY_NAME, SYSTEM_ACTOR
from fieldsweep.database import init_database
from fieldsweep.models import (
    AuditStamp,
    ChangeType,
    EntityResponse,
    EnvelopedAspect,
    MetadataChangeProposal,
    ScrollResult,
    SearchEntity,
    serialize_aspect,
)
from fieldsweep.schema import project_policy_info
from fieldsweep.search import SqlSearchService
from fieldsweep.storage import SqlEntityService
from fieldsweep.urn import Urn


class ScriptedSearchService:
    """Returns pre-built pages in call order and records every call."""

    def __init__(self, pages: List[Tuple[List[str], Optional[str]]]):
        self.pages = list(pages)
        self.calls: List[Dict[str, Any]] = []

    def scroll_across_entities(self, entities, input, filter, sort_criterion, scroll_id, keep_alive, size,
                               search_flags=None):
        self.calls.append({
            "entities": entities,
            "input": input,
            "filter": filter,
            "sort_criterion": sort_criterion,
            "scroll_id": scroll_id,
            "keep_alive": keep_alive,
            "size": size,
            "search_flags": search_flags,
        })
        index = len(self.calls) - 1
        if index >= len(self.pages):
            return ScrollResult()
        urns, next_id = self.pages[index]
        return ScrollResult(
            entities=[SearchEntity(entity=u) for u in urns],
            scroll_id=next_id,
            num_entities=len(urns),
        )


class InMemoryEntityService:
    """Dictionary-backed entity service that records reads and writes."""

    def __init__(self):
        self.aspects: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.fetched: List[str] = []
        self.proposals: List[Tuple[MetadataChangeProposal, AuditStamp, bool]] = []
        self.fail_get_for = set()
        self.fail_ingest_for = set()

    def put(self, urn: str, aspect: str, value: Dict[str, Any]) -> None:
        self.aspects[(urn, aspect)] = value

    def get_entity_v2(self, entity_type: str, urn, aspect_names: Iterable[str]):
        parsed = Urn.create_from_string(str(urn))
        key = str(parsed)
        self.fetched.append(key)
        if key in self.fail_get_for:
            raise ConnectionError(f"store unavailable for {key}")
        found = {
            name: EnvelopedAspect(name=name, value=self.aspects[(key, name)])
            for name in aspect_names
            if (key, name) in self.aspects
        }
        if not found:
            return None
        return EntityResponse(urn=key, entity_name=entity_type, aspects=found)

    def ingest_proposal(self, proposal, audit_stamp, async_=False):
        if proposal.entity_urn in self.fail_ingest_for:
            raise RuntimeError(f"ingest rejected for {proposal.entity_urn}")
        self.proposals.append((proposal, audit_stamp, async_))
        self.aspects[(proposal.entity_urn, proposal.aspect_name)] = proposal.aspect.deserialize()

    def exists(self, urn, include_soft_deleted=True):
        return any(k[0] == str(urn) for k in self.aspects)

    def restates(self) -> List[MetadataChangeProposal]:
        return [p for p, _, _ in self.proposals if p.change_type == ChangeType.RESTATE]


@pytest.fixture
def memory_entities() -> InMemoryEntityService:
    return InMemoryEntityService()


@pytest.fixture
def scripted_search():
    """Factory for a search service that serves the given pages."""
    def _make(pages):
        return ScriptedSearchService(pages)
    return _make


@pytest.fixture
def policy_info() -> Dict[str, Any]:
    """Complete dataHubPolicyInfo payload."""
    return {
        "displayName": "All Users - View Entity Page",
        "description": "Grants all users permission to view entity pages.",
        "type": "METADATA",
        "state": "ACTIVE",
        "privileges": ["VIEW_ENTITY_PAGE"],
        "actors": {"allUsers": True},
        "editable": False,
    }


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Initialized SQLite store."""
    path = tmp_path / "fieldsweep.db"
    init_database(path)
    return path


@pytest.fixture
def entity_service(db_path) -> SqlEntityService:
    return SqlEntityService(db_path)


@pytest.fixture
def search_service(db_path) -> SqlSearchService:
    return SqlSearchService(db_path)


@pytest.fixture
def seed_policy(entity_service, search_service):
    """
    Factory that stores a policy and, when ``indexed_fields`` is given,
    replaces its search document with a projection limited to those fields.
    """
    stamp = AuditStamp(actor=SYSTEM_ACTOR, time=0)

    def _seed(policy_id: str, info: Dict[str, Any], indexed_fields: Optional[List[str]] = None) -> str:
        urn = f"urn:li:{POLICY_ENTITY_NAME}:{policy_id}"
        entity_service.ingest_proposal(
            MetadataChangeProposal(
                entity_urn=urn,
                entity_type=POLICY_ENTITY_NAME,
                aspect_name=DATAHUB_POLICY_INFO_ASPECT_NAME,
                change_type=ChangeType.UPSERT,
                aspect=serialize_aspect(info),
            ),
            stamp,
        )
        if indexed_fields is not None:
            doc = {"urn": urn, **project_policy_info(info, fields=indexed_fields)}
            search_service.index_document(urn, POLICY_ENTITY_NAME, doc)
        return urn

    return _seed
