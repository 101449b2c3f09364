"""
Wire-level records exchanged with the entity and search services.

Each record converts to and from the camelCase dictionaries the metadata
service speaks, so the same types serve the local SQL backend and the REST
client.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

JSON_CONTENT_TYPE = "application/json"


class ChangeType(str, Enum):
    UPSERT = "UPSERT"
    CREATE = "CREATE"
    DELETE = "DELETE"
    # Re-emit the current payload so side effects (search projection) are rebuilt
    RESTATE = "RESTATE"


class Condition(str, Enum):
    EQUAL = "EQUAL"
    EXISTS = "EXISTS"
    IS_NULL = "IS_NULL"


@dataclass
class AuditStamp:
    """Who made a change and when (epoch milliseconds)."""

    actor: str
    time: int

    def to_dict(self) -> Dict[str, Any]:
        return {"actor": self.actor, "time": self.time}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditStamp":
        return cls(actor=data["actor"], time=int(data["time"]))


@dataclass
class SystemMetadata:
    run_id: str
    last_observed: int

    def to_dict(self) -> Dict[str, Any]:
        return {"runId": self.run_id, "lastObserved": self.last_observed}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemMetadata":
        return cls(run_id=data.get("runId", ""), last_observed=int(data.get("lastObserved", 0)))


@dataclass
class GenericAspect:
    """Serialized aspect payload."""

    value: str
    content_type: str = JSON_CONTENT_TYPE

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "contentType": self.content_type}

    def deserialize(self) -> Dict[str, Any]:
        if self.content_type != JSON_CONTENT_TYPE:
            raise ValueError(f"Unsupported aspect content type: {self.content_type}")
        return json.loads(self.value)


def serialize_aspect(payload: Dict[str, Any]) -> GenericAspect:
    """Serialize an aspect payload deterministically (sorted keys)."""
    return GenericAspect(value=json.dumps(payload, sort_keys=True, separators=(",", ":")))


@dataclass
class MetadataChangeProposal:
    """A write request for one aspect of one entity."""

    entity_urn: str
    entity_type: str
    aspect_name: str
    change_type: ChangeType
    aspect: GenericAspect
    system_metadata: Optional[SystemMetadata] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "entityUrn": self.entity_urn,
            "entityType": self.entity_type,
            "aspectName": self.aspect_name,
            "changeType": self.change_type.value,
            "aspect": self.aspect.to_dict(),
        }
        if self.system_metadata is not None:
            data["systemMetadata"] = self.system_metadata.to_dict()
        return data


@dataclass
class EnvelopedAspect:
    """A versioned aspect payload as returned by the entity service."""

    name: str
    value: Optional[Dict[str, Any]]
    version: int = 0
    created: Optional[AuditStamp] = None
    system_metadata: Optional[SystemMetadata] = None

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "EnvelopedAspect":
        created = data.get("created")
        system_metadata = data.get("systemMetadata")
        return cls(
            name=data.get("name", name),
            value=data.get("value"),
            version=int(data.get("version", 0)),
            created=AuditStamp.from_dict(created) if created else None,
            system_metadata=SystemMetadata.from_dict(system_metadata) if system_metadata else None,
        )


@dataclass
class EntityResponse:
    urn: str
    entity_name: str
    aspects: Dict[str, EnvelopedAspect] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntityResponse":
        # An entry without a value carries no payload and counts as absent
        aspects = {
            name: EnvelopedAspect.from_dict(name, raw)
            for name, raw in (data.get("aspects") or {}).items()
            if raw and raw.get("value") is not None
        }
        return cls(urn=data["urn"], entity_name=data.get("entityName", ""), aspects=aspects)


@dataclass
class Criterion:
    field: str
    condition: Condition = Condition.EQUAL
    values: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "condition": self.condition.value, "values": list(self.values)}


@dataclass
class ConjunctiveCriterion:
    """All criteria must hold."""

    criteria: List[Criterion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"and": [c.to_dict() for c in self.criteria]}


@dataclass
class Filter:
    """Disjunction of conjunctions: a document matches if any clause holds."""

    clauses: List[ConjunctiveCriterion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"or": [c.to_dict() for c in self.clauses]}


@dataclass
class SearchFlags:
    fulltext: bool = False
    skip_cache: bool = False
    skip_highlighting: bool = False
    skip_aggregates: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fulltext": self.fulltext,
            "skipCache": self.skip_cache,
            "skipHighlighting": self.skip_highlighting,
            "skipAggregates": self.skip_aggregates,
        }


@dataclass
class SearchEntity:
    # Raw urn as stored in the index; parsing is left to the consumer
    entity: str


@dataclass
class ScrollResult:
    entities: List[SearchEntity] = field(default_factory=list)
    scroll_id: Optional[str] = None
    num_entities: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrollResult":
        entities = [SearchEntity(entity=e["entity"]) for e in data.get("entities") or []]
        return cls(
            entities=entities,
            scroll_id=data.get("scrollId"),
            num_entities=int(data.get("numEntities", len(entities))),
        )
