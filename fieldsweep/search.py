"""
Local search service over the projected documents in the SQLite store.

Scrolling is keyset pagination ordered by urn. The scroll id is an opaque
base64 token wrapping the last urn of the previous page, so a page fetched
with the same token after concurrent repairs simply skips documents that no
longer match.
"""

import base64
import binascii
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .database import SearchDocument, get_session_factory
from .models import Condition, Criterion, Filter, ScrollResult, SearchEntity, SearchFlags

MATCH_ALL = "*"
CACHE_MAX_ENTRIES = 256


def encode_scroll_id(last_urn: str) -> str:
    raw = json.dumps({"after": last_urn}).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_scroll_id(scroll_id: str) -> str:
    try:
        data = json.loads(base64.urlsafe_b64decode(scroll_id.encode("ascii")))
        return data["after"]
    except (binascii.Error, ValueError, KeyError, TypeError, UnicodeError):
        raise ValueError(f"Invalid scroll id: {scroll_id!r}")


def _as_strings(value: Any) -> List[str]:
    values = value if isinstance(value, list) else [value]
    out = []
    for v in values:
        if isinstance(v, bool):
            out.append("true" if v else "false")
        elif v is not None:
            out.append(str(v))
    return out


def _is_null(value: Any) -> bool:
    # Matches index semantics: empty arrays are not indexed
    return value is None or value == []


def criterion_matches(document: Dict[str, Any], criterion: Criterion) -> bool:
    value = document.get(criterion.field)
    if criterion.condition == Condition.IS_NULL:
        return _is_null(value)
    if criterion.condition == Condition.EXISTS:
        return not _is_null(value)
    if criterion.condition == Condition.EQUAL:
        return any(v in criterion.values for v in _as_strings(value))
    raise ValueError(f"Unsupported condition: {criterion.condition}")


def matches_filter(document: Dict[str, Any], filter: Optional[Filter]) -> bool:
    """A document matches if any conjunctive clause fully holds (or there is no filter)."""
    if filter is None or not filter.clauses:
        return True
    return any(
        all(criterion_matches(document, c) for c in clause.criteria)
        for clause in filter.clauses
    )


def matches_query(document: Dict[str, Any], text: Optional[str]) -> bool:
    if text is None or text.strip() in ("", MATCH_ALL):
        return True
    needle = text.strip().lower()
    for value in document.values():
        if any(needle in s.lower() for s in _as_strings(value)):
            return True
    return False


class SqlSearchService:
    """Scrollable, filterable index over SearchDocument rows."""

    def __init__(self, db_path: Path):
        self._session_factory = get_session_factory(db_path)
        self._cache: Dict[tuple, ScrollResult] = {}

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
        """
        Fetch the next page of documents matching the query and filter.

        ``keep_alive`` is accepted for interface parity; keyset cursors do not
        expire. Only the default urn ordering is supported.

        Returns:
            ScrollResult whose scroll_id is None once fewer than ``size``
            documents remain
        """
        if size <= 0:
            raise ValueError(f"Page size must be positive, got {size}")
        if sort_criterion not in (None, "urn"):
            raise ValueError(f"Unsupported sort criterion: {sort_criterion}")

        flags = search_flags or SearchFlags()
        cache_key = (
            tuple(entities),
            input,
            json.dumps(filter.to_dict() if filter else None, sort_keys=True),
            scroll_id,
            size,
        )
        if not flags.skip_cache and cache_key in self._cache:
            return self._cache[cache_key]

        after = decode_scroll_id(scroll_id) if scroll_id else None
        matched: List[str] = []
        with self._session_factory() as session:
            query = (
                session.query(SearchDocument)
                .filter(SearchDocument.entity_type.in_(list(entities)))
                .order_by(SearchDocument.urn)
            )
            if after is not None:
                query = query.filter(SearchDocument.urn > after)
            for row in query.yield_per(500):
                document = json.loads(row.document_json)
                if not matches_filter(document, filter):
                    continue
                if flags.fulltext and not matches_query(document, input):
                    continue
                matched.append(row.urn)
                if len(matched) >= size:
                    break

        next_scroll_id = encode_scroll_id(matched[-1]) if len(matched) == size else None
        result = ScrollResult(
            entities=[SearchEntity(entity=urn) for urn in matched],
            scroll_id=next_scroll_id,
            num_entities=len(matched),
        )

        if not flags.skip_cache:
            if len(self._cache) >= CACHE_MAX_ENTRIES:
                self._cache.clear()
            self._cache[cache_key] = result
        return result

    def count(self, entities: List[str], filter: Optional[Filter]) -> int:
        """Number of documents of the given entity types matching the filter."""
        with self._session_factory() as session:
            rows = (
                session.query(SearchDocument.document_json)
                .filter(SearchDocument.entity_type.in_(list(entities)))
                .all()
            )
        return sum(1 for (doc,) in rows if matches_filter(json.loads(doc), filter))

    def index_document(self, urn: str, entity_type: str, document: Dict[str, Any]) -> None:
        """Write a search document directly, bypassing the projection pipeline."""
        with self._session_factory() as session:
            row = session.get(SearchDocument, urn)
            if row is None:
                session.add(SearchDocument(urn=urn, entity_type=entity_type, document_json=json.dumps(document)))
            else:
                row.entity_type = entity_type
                row.document_json = json.dumps(document)
            session.commit()
