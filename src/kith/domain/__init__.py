"""Domain layer: keys, relationships, gender vocabulary, contact documents. No outer dependencies."""

from kith.domain.body import (
    RelatedItem,
    parse_contact_section,
    parse_related_items,
    write_contact_section,
    write_related_section,
)
from kith.domain.contact_fields import ContactField
from kith.domain.entities import ContactDocument
from kith.domain.gender import Gender, GenderResolver, parse_gender
from kith.domain.keys import ParsedKey, format_key, parse_key
from kith.domain.relationships import (
    RelationshipEntry,
    RelationshipSet,
    RelationshipTarget,
)
from kith.domain.revision import RevisionClock

__all__ = [
    "ContactDocument",
    "ContactField",
    "Gender",
    "GenderResolver",
    "ParsedKey",
    "RelatedItem",
    "RelationshipEntry",
    "RelationshipSet",
    "RelationshipTarget",
    "RevisionClock",
    "format_key",
    "parse_gender",
    "parse_contact_section",
    "parse_key",
    "parse_related_items",
    "write_contact_section",
    "write_related_section",
]
