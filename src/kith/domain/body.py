"""Body text sections: the Related list, the Contact section, and trailing tag lines.

Parsing keeps every line verbatim, so rendering an unmodified layout gives back
the exact input text.
"""

import re
from dataclasses import dataclass, field

from kith.domain.contact_fields import CONTACT_FIELDS, ContactField, detect_field

RELATED_SECTION = "related"
CONTACT_SECTION = "contact"
DEFAULT_HEADING_LEVEL = 2

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*$")
_TAG_LINE_RE = re.compile(r"^\s*#[^\s#]\S*(?:\s+#[^\s#]\S*)*\s*$")

# Accepted item formats, most specific first.
_LINK_THEN_TYPE_RE = re.compile(r"^\s*[-*+]\s*\[\[([^\]]+)\]\]\s*\(([^)]+)\)")
_TYPE_THEN_LINK_RE = re.compile(r"^\s*[-*+]\s*([^\[\]:]+?)\s*:?\s*\[\[([^\]]+)\]\]")
_TYPE_COLON_TEXT_RE = re.compile(r"^\s*[-*+]\s*([^:\[\]]+):\s*([^\[\]]+?)\s*$")


@dataclass(frozen=True)
class RelatedItem:
    """One parsed line of the Related list."""

    label: str
    name: str


@dataclass
class Section:
    heading: str
    level: int
    title: str
    lines: list[str] = field(default_factory=list)

    def all_lines(self) -> list[str]:
        return [self.heading, *self.lines]

    def ends_with_blank(self) -> bool:
        return bool(self.lines) and not self.lines[-1].strip()


@dataclass
class BodyLayout:
    preamble: list[str] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    trailing_newline: bool = False

    @classmethod
    def parse(cls, text: str) -> "BodyLayout":
        text = text or ""
        trailing_newline = text.endswith("\n")
        lines = text.split("\n")
        if trailing_newline:
            lines = lines[:-1]
        if not text:
            lines = []

        cut = len(lines)
        saw_tag = False
        while cut > 0:
            line = lines[cut - 1]
            if _TAG_LINE_RE.match(line):
                saw_tag = True
            elif line.strip():
                break
            cut -= 1
        if saw_tag:
            content, tags = lines[:cut], lines[cut:]
        else:
            content, tags = lines, []

        layout = cls(tags=tags, trailing_newline=trailing_newline)
        current: Section | None = None
        for line in content:
            heading = _HEADING_RE.match(line)
            if heading:
                current = Section(
                    heading=line,
                    level=len(heading.group(1)),
                    title=heading.group(2).strip(),
                )
                layout.sections.append(current)
            elif current is None:
                layout.preamble.append(line)
            else:
                current.lines.append(line)
        return layout

    def render(self) -> str:
        lines = list(self.preamble)
        for section in self.sections:
            lines.extend(section.all_lines())
        lines.extend(self.tags)
        text = "\n".join(lines)
        if self.trailing_newline or (lines and not text.endswith("\n")):
            text += "\n"
        return text

    def index_of(self, title: str) -> int | None:
        wanted = title.strip().casefold()
        for i, section in enumerate(self.sections):
            if section.title.casefold() == wanted:
                return i
        return None

    def section(self, title: str) -> Section | None:
        i = self.index_of(title)
        return None if i is None else self.sections[i]


def parse_item(line: str) -> RelatedItem | None:
    match = _LINK_THEN_TYPE_RE.match(line)
    if match:
        name, label = match.group(1), match.group(2)
    else:
        match = _TYPE_THEN_LINK_RE.match(line) or _TYPE_COLON_TEXT_RE.match(line)
        if not match:
            return None
        label, name = match.group(1), match.group(2)
    name = name.split("|", 1)[0].strip()
    label = label.strip()
    if not label or not name:
        return None
    return RelatedItem(label=label, name=name)


def parse_related_items(body: str) -> list[RelatedItem]:
    """Items of the Related section, in body order. No section means no items."""
    section = BodyLayout.parse(body).section(RELATED_SECTION)
    if section is None:
        return []
    items = []
    for line in section.lines:
        item = parse_item(line)
        if item is not None:
            items.append(item)
    return items


def format_item(term: str, name: str) -> str:
    return f"- {term} [[{name}]]"


def has_related_section(body: str) -> bool:
    return BodyLayout.parse(body).section(RELATED_SECTION) is not None


def sections_in_order(body: str) -> bool:
    """True when Contact, if present, comes before Related."""
    layout = BodyLayout.parse(body)
    contact = layout.index_of(CONTACT_SECTION)
    related = layout.index_of(RELATED_SECTION)
    return contact is None or related is None or contact < related


def write_related_section(body: str, item_lines: list[str]) -> str:
    """Return body with the Related list replaced by item_lines.

    Lines in the Related section that are not relationship items are kept after
    the items. The Related section is created if missing (after Contact, else
    at the end), Contact is moved in front of Related when it follows it, and
    trailing tag lines stay last.
    """
    layout = BodyLayout.parse(body)

    related_i = layout.index_of(RELATED_SECTION)
    if related_i is None:
        related = Section(
            heading="#" * DEFAULT_HEADING_LEVEL + " Related",
            level=DEFAULT_HEADING_LEVEL,
            title="Related",
        )
        contact_i = layout.index_of(CONTACT_SECTION)
        insert_at = len(layout.sections) if contact_i is None else contact_i + 1
        _separate_from_previous(layout, insert_at)
        layout.sections.insert(insert_at, related)
        trailing_blanks = 1 if insert_at < len(layout.sections) - 1 else 0
        extra: list[str] = []
    else:
        related = layout.sections[related_i]
        trailing_blanks = 0
        for line in reversed(related.lines):
            if line.strip():
                break
            trailing_blanks += 1
        extra = [
            line for line in related.lines if line.strip() and parse_item(line) is None
        ]

    related.lines = [*item_lines, *extra, *([""] * trailing_blanks)]
    if not layout.tags and related is layout.sections[-1]:
        while related.lines and not related.lines[-1].strip():
            related.lines.pop()

    contact_i = layout.index_of(CONTACT_SECTION)
    related_i = layout.index_of(RELATED_SECTION)
    if contact_i is not None and related_i is not None and contact_i > related_i:
        contact = layout.sections.pop(contact_i)
        if not contact.ends_with_blank():
            contact.lines.append("")
        layout.sections.insert(related_i, contact)
        last = layout.sections[-1]
        while last.lines and not last.lines[-1].strip() and not layout.tags:
            last.lines.pop()

    if layout.tags and layout.sections:
        last = layout.sections[-1]
        if not layout.tags[0].strip():
            while last.lines and not last.lines[-1].strip():
                last.lines.pop()
        elif not last.ends_with_blank():
            last.lines.append("")

    layout.trailing_newline = True
    return layout.render()


def _separate_from_previous(layout: BodyLayout, insert_at: int) -> None:
    if insert_at == 0:
        if layout.preamble and layout.preamble[-1].strip():
            layout.preamble.append("")
        return
    previous = layout.sections[insert_at - 1]
    if not previous.ends_with_blank():
        previous.lines.append("")


_GROUP_TITLES = {"EMAIL": "Email", "TEL": "Phone", "ADR": "Address", "URL": "Website"}
_GROUP_HEADERS = {
    "email": "EMAIL",
    "emails": "EMAIL",
    "phone": "TEL",
    "phones": "TEL",
    "tel": "TEL",
    "address": "ADR",
    "addresses": "ADR",
    "website": "URL",
    "websites": "URL",
    "url": "URL",
    "urls": "URL",
}
_GROUP_HEADER_RE = re.compile(r"^\s*(?:\*\*)?([A-Za-z]+)(?:\*\*)?\s*:?\s*$")
_CONTACT_ITEM_RE = re.compile(r"^\s*[-*+]\s+(?:([A-Za-z][\w-]*):\s+)?(\S.*?)\s*$")


def _group_of(line: str) -> str | None:
    match = _GROUP_HEADER_RE.match(line)
    return _GROUP_HEADERS.get(match.group(1).lower()) if match else None


def parse_contact_item(line: str, group: str | None) -> ContactField | None:
    """A list item under a group header, or a bare item whose value shows its type."""
    match = _CONTACT_ITEM_RE.match(line)
    if not match:
        return None
    label, value = match.group(1), match.group(2)
    kind = group or detect_field(value)
    if kind is None:
        return None
    return ContactField(kind, label.upper() if label else None, value)


def parse_contact_section(body: str) -> list[ContactField]:
    """Fields listed in the Contact section, in body order."""
    section = BodyLayout.parse(body).section(CONTACT_SECTION)
    if section is None:
        return []
    fields = []
    group = None
    for line in section.lines:
        header = _group_of(line)
        if header is not None:
            group = header
            continue
        contact = parse_contact_item(line, group)
        if contact is not None:
            fields.append(contact)
    return fields


def render_contact_lines(fields: list[ContactField]) -> list[str]:
    lines = []
    for kind in CONTACT_FIELDS:
        group = [f for f in fields if f.field == kind]
        if not group:
            continue
        lines.append(_GROUP_TITLES[kind])
        for contact in group:
            label = f"{contact.selector.lower()}: " if contact.selector else ""
            lines.append(f"- {label}{contact.value}")
    return lines


def write_contact_section(body: str, lines: list[str]) -> str:
    """Return body with the Contact section's fields replaced by lines.

    Other lines of the section are kept after the fields. A missing section is
    created in front of Related, else at the end.
    """
    layout = BodyLayout.parse(body)

    contact_i = layout.index_of(CONTACT_SECTION)
    if contact_i is None:
        contact = Section(
            heading="#" * DEFAULT_HEADING_LEVEL + " Contact",
            level=DEFAULT_HEADING_LEVEL,
            title="Contact",
        )
        related_i = layout.index_of(RELATED_SECTION)
        insert_at = len(layout.sections) if related_i is None else related_i
        _separate_from_previous(layout, insert_at)
        layout.sections.insert(insert_at, contact)
        trailing_blanks = 1 if insert_at < len(layout.sections) - 1 else 0
        extra: list[str] = []
    else:
        contact = layout.sections[contact_i]
        trailing_blanks = 0
        for line in reversed(contact.lines):
            if line.strip():
                break
            trailing_blanks += 1
        extra = []
        group = None
        for line in contact.lines:
            header = _group_of(line)
            if header is not None:
                group = header
            elif line.strip() and parse_contact_item(line, group) is None:
                extra.append(line)

    contact.lines = [*lines, *extra, *([""] * trailing_blanks)]
    if not layout.tags and contact is layout.sections[-1]:
        while contact.lines and not contact.lines[-1].strip():
            contact.lines.pop()
    elif layout.tags and contact is layout.sections[-1] and not contact.ends_with_blank():
        if layout.tags[0].strip():
            contact.lines.append("")

    layout.trailing_newline = True
    return layout.render()
