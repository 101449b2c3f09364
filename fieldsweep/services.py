"""
Collaborator interfaces the sweep depends on.

Both the local SQL backend and the REST client satisfy these; tests use
in-memory fakes.
"""

from typing import Iterable, List, Optional, Protocol

from .models import AuditStamp, EntityResponse, Filter, MetadataChangeProposal, ScrollResult, SearchFlags


class SearchService(Protocol):
    def scroll_across_entities(
        self,
        entities: List[str],
        input: str,
        filter: Optional[Filter],
        sort_criterion: Optional[str],
        scroll_id: Optional[str],
        keep_alive: Optional[str],
        size: int,
        search_flags: Optional[SearchFlags] = None,
    ) -> ScrollResult:
        ...


class EntityService(Protocol):
    def get_entity_v2(
        self,
        entity_type: str,
        urn: str,
        aspect_names: Iterable[str],
    ) -> Optional[EntityResponse]:
        ...

    def ingest_proposal(
        self,
        proposal: MetadataChangeProposal,
        audit_stamp: AuditStamp,
        async_: bool = False,
    ) -> None:
        ...

    def exists(self, urn: str, include_soft_deleted: bool = True) -> bool:
        ...
