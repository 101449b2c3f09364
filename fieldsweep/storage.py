"""
Local entity service backed by the SQLite metadata store.

Writes run the search projection synchronously, standing in for the
change-log consumer that rebuilds the index in a full deployment.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy import func

from .constants import DATAHUB_POLICY_INFO_ASPECT_NAME, POLICY_ENTITY_NAME
from .database import LATEST_VERSION, AspectRow, SearchDocument, get_session_factory
from .logger import get_logger
from .models import (
    AuditStamp,
    ChangeType,
    EntityResponse,
    EnvelopedAspect,
    MetadataChangeProposal,
    SystemMetadata,
)
from .schema import project_policy_info
from .urn import Urn, UrnParseError

logger = get_logger()

STATUS_ASPECT_NAME = "status"

Projector = Callable[[Dict[str, Any]], Dict[str, Any]]

# entity type -> aspect name -> projector
DEFAULT_PROJECTORS: Dict[str, Dict[str, Projector]] = {
    POLICY_ENTITY_NAME: {DATAHUB_POLICY_INFO_ASPECT_NAME: project_policy_info},
}


def _parse(urn) -> Urn:
    return urn if isinstance(urn, Urn) else Urn.create_from_string(urn)


def _to_enveloped(row: AspectRow) -> EnvelopedAspect:
    system_metadata = None
    if row.system_metadata_json:
        system_metadata = SystemMetadata.from_dict(json.loads(row.system_metadata_json))
    return EnvelopedAspect(
        name=row.aspect,
        value=json.loads(row.metadata_json),
        version=row.version,
        created=AuditStamp(actor=row.created_by, time=int(row.created_on.timestamp() * 1000)),
        system_metadata=system_metadata,
    )


class SqlEntityService:
    """Authoritative record store over SQLAlchemy."""

    def __init__(self, db_path: Path, projectors: Optional[Dict[str, Dict[str, Projector]]] = None):
        self._session_factory = get_session_factory(db_path)
        self._projectors = DEFAULT_PROJECTORS if projectors is None else projectors

    def get_entity_v2(
        self,
        entity_type: str,
        urn,
        aspect_names: Iterable[str],
    ) -> Optional[EntityResponse]:
        """
        Fetch the latest version of the requested aspects.

        Returns:
            EntityResponse holding whichever aspects exist, or None when the
            entity has none of them

        Raises:
            UrnParseError: If the urn is malformed or of another entity type
        """
        parsed = _parse(urn)
        if parsed.entity_type != entity_type:
            raise UrnParseError(f"Urn {parsed} is not of entity type {entity_type}")

        names = list(aspect_names)
        with self._session_factory() as session:
            rows = (
                session.query(AspectRow)
                .filter(
                    AspectRow.urn == str(parsed),
                    AspectRow.version == LATEST_VERSION,
                    AspectRow.aspect.in_(names),
                )
                .all()
            )
            if not rows:
                return None
            aspects = {row.aspect: _to_enveloped(row) for row in rows}
        return EntityResponse(urn=str(parsed), entity_name=entity_type, aspects=aspects)

    def exists(self, urn, include_soft_deleted: bool = True) -> bool:
        """True if the entity has at least one aspect (and is not soft-deleted, unless included)."""
        key = str(_parse(urn))
        with self._session_factory() as session:
            rows = (
                session.query(AspectRow)
                .filter(AspectRow.urn == key, AspectRow.version == LATEST_VERSION)
                .all()
            )
            if not rows:
                return False
            if include_soft_deleted:
                return True
            for row in rows:
                if row.aspect == STATUS_ASPECT_NAME and json.loads(row.metadata_json).get("removed"):
                    return False
            return True

    def ingest_proposal(
        self,
        proposal: MetadataChangeProposal,
        audit_stamp: AuditStamp,
        async_: bool = False,
    ) -> None:
        """
        Apply a proposal and rebuild the entity's search document.

        The local store has no event queue, so ``async_`` is accepted for
        interface parity and the projection always runs before returning.

        Raises:
            UrnParseError: If the proposal urn is malformed
            ValueError: On entity type mismatch or a CREATE over an existing aspect
        """
        parsed = _parse(proposal.entity_urn)
        if parsed.entity_type != proposal.entity_type:
            raise ValueError(
                f"Proposal entity type {proposal.entity_type} does not match urn {parsed}"
            )
        key = str(parsed)
        system_metadata_json = (
            json.dumps(proposal.system_metadata.to_dict()) if proposal.system_metadata else None
        )

        with self._session_factory() as session:
            existing = session.get(AspectRow, (key, proposal.aspect_name, LATEST_VERSION))

            if proposal.change_type == ChangeType.DELETE:
                if existing is not None:
                    session.query(AspectRow).filter(
                        AspectRow.urn == key, AspectRow.aspect == proposal.aspect_name
                    ).delete()
            else:
                payload = json.dumps(proposal.aspect.deserialize(), sort_keys=True)
                if proposal.change_type == ChangeType.CREATE and existing is not None:
                    raise ValueError(f"Aspect {proposal.aspect_name} already exists for {key}")

                if existing is None:
                    session.add(AspectRow(
                        urn=key,
                        aspect=proposal.aspect_name,
                        version=LATEST_VERSION,
                        entity_type=parsed.entity_type,
                        metadata_json=payload,
                        system_metadata_json=system_metadata_json,
                        created_by=audit_stamp.actor,
                    ))
                else:
                    # RESTATE never creates a version, even if the payload drifted
                    if proposal.change_type != ChangeType.RESTATE and existing.metadata_json != payload:
                        self._archive(session, existing)
                    existing.metadata_json = payload
                    existing.system_metadata_json = system_metadata_json
                    existing.created_by = audit_stamp.actor

            session.flush()
            self._rebuild_search_document(session, key, parsed.entity_type)
            session.commit()

        logger.debug(
            "Ingested proposal",
            urn=key,
            aspect=proposal.aspect_name,
            change_type=proposal.change_type.value,
        )

    def _archive(self, session, row: AspectRow) -> None:
        latest_archived = (
            session.query(func.max(AspectRow.version))
            .filter(AspectRow.urn == row.urn, AspectRow.aspect == row.aspect)
            .scalar()
        ) or 0
        session.add(AspectRow(
            urn=row.urn,
            aspect=row.aspect,
            version=latest_archived + 1,
            entity_type=row.entity_type,
            metadata_json=row.metadata_json,
            system_metadata_json=row.system_metadata_json,
            created_on=row.created_on,
            created_by=row.created_by,
        ))

    def _rebuild_search_document(self, session, key: str, entity_type: str) -> None:
        projectors = self._projectors.get(entity_type)
        if projectors is None:
            return  # entity type is not searchable

        rows = (
            session.query(AspectRow)
            .filter(AspectRow.urn == key, AspectRow.version == LATEST_VERSION)
            .all()
        )
        doc = session.get(SearchDocument, key)
        if not rows:
            if doc is not None:
                session.delete(doc)
            return

        document: Dict[str, Any] = {"urn": key}
        for row in rows:
            projector = projectors.get(row.aspect)
            if projector is not None:
                document.update(projector(json.loads(row.metadata_json)))

        if doc is None:
            session.add(SearchDocument(urn=key, entity_type=entity_type, document_json=json.dumps(document)))
        else:
            doc.document_json = json.dumps(document)
