"""
Candidate selection over the search index.

Candidates are documents missing ANY of the target fields. The selection may
include records that only lack one field; they get a full restate anyway,
which is safe because the restate replays the whole authoritative payload.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from .logger import get_logger
from .models import Condition, ConjunctiveCriterion, Criterion, Filter, SearchFlags
from .services import SearchService

logger = get_logger()


def missing_field_filter(fields: List[str]) -> Filter:
    """OR of one ``IS_NULL`` clause per field."""
    if not fields:
        raise ValueError("At least one target field is required")
    return Filter(clauses=[
        ConjunctiveCriterion(criteria=[Criterion(field=f, condition=Condition.IS_NULL)])
        for f in fields
    ])


def scan_flags() -> SearchFlags:
    # Existence filtering only; cached pages could still list repaired records
    return SearchFlags(
        fulltext=True,
        skip_cache=True,
        skip_highlighting=True,
        skip_aggregates=True,
    )


@dataclass
class ScanPage:
    candidates: List[str] = field(default_factory=list)
    next_cursor: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return not self.candidates or self.next_cursor is None


class CandidateScanner:
    def __init__(
        self,
        search_service: SearchService,
        entity_types: List[str],
        fields: List[str],
        page_size: int,
    ):
        if page_size <= 0:
            raise ValueError(f"Page size must be positive, got {page_size}")
        self._search_service = search_service
        self.entity_types = list(entity_types)
        self.filter = missing_field_filter(fields)
        self.page_size = page_size

    def scan(self, cursor: Optional[str] = None) -> ScanPage:
        """
        Fetch one page of candidates.

        Errors from the search service propagate to the caller.
        """
        result = self._search_service.scroll_across_entities(
            self.entity_types,
            "*",
            self.filter,
            None,
            cursor,
            None,
            self.page_size,
            scan_flags(),
        )
        if result.num_entities == 0 or not result.entities:
            return ScanPage()

        candidates = [e.entity for e in result.entities]
        logger.debug("Scanned candidate page", size=len(candidates), has_more=result.scroll_id is not None)
        return ScanPage(candidates=candidates, next_cursor=result.scroll_id)

    def pages(self) -> Iterator[ScanPage]:
        """Yield non-empty pages from a fresh scan until the index is exhausted."""
        cursor = None
        while True:
            page = self.scan(cursor)
            if not page.candidates:
                return
            yield page
            if page.is_terminal:
                return
            cursor = page.next_cursor
