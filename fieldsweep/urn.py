"""
Entity references of the form ``urn:li:<entityType>:<key>``.
"""

from dataclasses import dataclass

URN_PREFIX = "urn:li:"


class UrnParseError(ValueError):
    """Raised when an entity reference cannot be parsed."""
    pass


@dataclass(frozen=True)
class Urn:
    """Typed entity reference: entity type plus unique key."""

    entity_type: str
    key: str

    def __str__(self) -> str:
        return f"{URN_PREFIX}{self.entity_type}:{self.key}"

    @classmethod
    def create_from_string(cls, raw: str) -> "Urn":
        """
        Parse a urn string.

        Args:
            raw: Serialized urn, e.g. ``urn:li:dataHubPolicy:admin-policy``

        Returns:
            Parsed Urn

        Raises:
            UrnParseError: If the string is not a well-formed urn
        """
        if not isinstance(raw, str):
            raise UrnParseError(f"Urn must be a string, got {type(raw).__name__}")
        if not raw.startswith(URN_PREFIX):
            raise UrnParseError(f"Urn must start with '{URN_PREFIX}': {raw!r}")

        rest = raw[len(URN_PREFIX):]
        entity_type, sep, key = rest.partition(":")
        if not sep or not entity_type or not key:
            raise UrnParseError(f"Urn is missing an entity type or key: {raw!r}")
        if any(c.isspace() for c in entity_type):
            raise UrnParseError(f"Invalid entity type in urn: {raw!r}")
        return cls(entity_type=entity_type, key=key)


def make_urn(entity_type: str, key: str) -> Urn:
    return Urn(entity_type=entity_type, key=key)
