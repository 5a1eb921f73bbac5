"""Gendered relationship vocabulary: display terms, canonical types, gender inference."""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from kith.domain.relationships import normalize_type


class Gender(str, Enum):
    MALE = "M"
    FEMALE = "F"
    NONBINARY = "NB"
    UNSPECIFIED = "U"


_GENDER_ALIASES = {
    "M": Gender.MALE,
    "MALE": Gender.MALE,
    "F": Gender.FEMALE,
    "FEMALE": Gender.FEMALE,
    "NB": Gender.NONBINARY,
    "NON-BINARY": Gender.NONBINARY,
    "NONBINARY": Gender.NONBINARY,
    "U": Gender.UNSPECIFIED,
    "UNSPECIFIED": Gender.UNSPECIFIED,
}


def parse_gender(value: object) -> Gender | None:
    """Parse a GENDER field value. None means unknown."""
    if isinstance(value, Gender):
        return value
    if value is None:
        return None
    return _GENDER_ALIASES.get(str(value).strip().upper())


@dataclass(frozen=True)
class GenderedTerms:
    male: str
    female: str
    neutral: str


DEFAULT_VOCABULARY: dict[str, GenderedTerms] = {
    "parent": GenderedTerms("father", "mother", "parent"),
    "child": GenderedTerms("son", "daughter", "child"),
    "sibling": GenderedTerms("brother", "sister", "sibling"),
    "grandparent": GenderedTerms("grandfather", "grandmother", "grandparent"),
    "grandchild": GenderedTerms("grandson", "granddaughter", "grandchild"),
    "auncle": GenderedTerms("uncle", "aunt", "aunt/uncle"),
    "nibling": GenderedTerms("nephew", "niece", "niece/nephew"),
    "spouse": GenderedTerms("husband", "wife", "spouse"),
}

# Informal terms: canonical type plus the gender they imply.
DEFAULT_ALIASES: dict[str, tuple[str, Gender | None]] = {
    "dad": ("parent", Gender.MALE),
    "daddy": ("parent", Gender.MALE),
    "mom": ("parent", Gender.FEMALE),
    "mommy": ("parent", Gender.FEMALE),
    "aunt-uncle": ("auncle", None),
    "niece-nephew": ("nibling", None),
}

DEFAULT_RECIPROCALS: dict[str, str] = {
    "parent": "child",
    "child": "parent",
    "grandparent": "grandchild",
    "grandchild": "grandparent",
    "auncle": "nibling",
    "nibling": "auncle",
    "sibling": "sibling",
    "spouse": "spouse",
    "partner": "partner",
    "friend": "friend",
    "colleague": "colleague",
    "relative": "relative",
    "cousin": "cousin",
}


class GenderResolver:
    """Maps canonical types to gendered terms and back.

    Types without gendered vocabulary always render as their canonical form.
    """

    def __init__(
        self,
        vocabulary: Mapping[str, GenderedTerms] | None = None,
        aliases: Mapping[str, tuple[str, Gender | None]] | None = None,
        reciprocals: Mapping[str, str] | None = None,
    ) -> None:
        # Keys are normalized; display terms keep their spelling but are matched normalized.
        self._vocabulary: dict[str, GenderedTerms] = {}
        for rel_type, terms in (DEFAULT_VOCABULARY if vocabulary is None else vocabulary).items():
            self._vocabulary[normalize_type(rel_type)] = GenderedTerms(
                terms.male.strip(), terms.female.strip(), terms.neutral.strip()
            )
        self._reciprocals = {
            normalize_type(k): normalize_type(v)
            for k, v in (DEFAULT_RECIPROCALS if reciprocals is None else reciprocals).items()
        }
        self._reverse: dict[str, tuple[str, Gender | None]] = {}
        for rel_type, terms in self._vocabulary.items():
            self._reverse[normalize_type(terms.neutral)] = (rel_type, None)
            self._reverse[normalize_type(terms.male)] = (rel_type, Gender.MALE)
            self._reverse[normalize_type(terms.female)] = (rel_type, Gender.FEMALE)
        for term, mapped in (DEFAULT_ALIASES if aliases is None else aliases).items():
            self._reverse.setdefault(normalize_type(term), mapped)

    def term_for(self, rel_type: str, gender: Gender | str | None) -> str:
        """Display term for a type given the target's gender."""
        canonical = normalize_type(rel_type)
        terms = self._vocabulary.get(canonical)
        if terms is None:
            return canonical
        gender = parse_gender(gender)
        if gender is Gender.MALE:
            return terms.male
        if gender is Gender.FEMALE:
            return terms.female
        return terms.neutral

    def canonicalize(self, term: str) -> str:
        """Genderless type for a term; unknown terms come back normalized."""
        normalized = normalize_type(term)
        mapped = self._reverse.get(normalized)
        return mapped[0] if mapped else normalized

    def infer_gender(self, term: str) -> Gender | None:
        mapped = self._reverse.get(normalize_type(term))
        return mapped[1] if mapped else None

    def reciprocal(self, rel_type: str) -> str | None:
        return self._reciprocals.get(self.canonicalize(rel_type))

    def is_gendered_type(self, rel_type: str) -> bool:
        return normalize_type(rel_type) in self._vocabulary

    def types(self) -> list[str]:
        return sorted(set(self._vocabulary) | set(self._reciprocals))
