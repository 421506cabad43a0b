"""
finding.py - Finding model for wraith

This module defines the Finding object that rules produce, the
severity/confidence/persona determinations attached to it, symbolic
locations and the builder that resolves them into concrete spans.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from functools import total_ordering
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from .locate import Document, Feature, Route, RouteComponent

if TYPE_CHECKING:
    from .models import InputKey


@total_ordering
class _OrderedEnum(Enum):
    """Enum whose members are ordered by declaration"""

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def from_str(cls, value: str) -> Any:
        """
        Look up a member by its (case-insensitive) value

        Args:
            value: Member value, e.g. ``"medium"``

        Returns:
            Enum member

        Raises:
            ValueError: If no member has that value
        """
        return cls(value.strip().lower())


class Severity(_OrderedEnum):
    """Severity levels for findings, lowest first"""

    UNKNOWN = "unknown"
    INFORMATIONAL = "informational"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Confidence(_OrderedEnum):
    """Confidence levels for findings, lowest first"""

    UNKNOWN = "unknown"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Persona(_OrderedEnum):
    """
    The audience a finding is meant for, from least to most tolerant
    of false positives
    """

    REGULAR = "regular"
    PEDANTIC = "pedantic"
    AUDITOR = "auditor"


SEVERITY_LEVELS = [level.value for level in Severity]
CONFIDENCE_LEVELS = [level.value for level in Confidence]
PERSONA_LEVELS = [level.value for level in Persona]


class FindingBuildError(Exception):
    """Exception raised when a finding is built without a primary location"""

    pass


@dataclass(frozen=True)
class SymbolicLocation:
    """A route into an input's document, plus presentation details"""

    key: "InputKey"
    route: Route = ()
    annotation: str = ""
    is_primary: bool = False

    def with_keys(self, *keys: RouteComponent) -> "SymbolicLocation":
        return replace(self, route=self.route + tuple(keys))

    def with_job(self, job_id: str) -> "SymbolicLocation":
        return self.with_keys("jobs", job_id)

    def with_step(self, index: int) -> "SymbolicLocation":
        return self.with_keys("steps", index)

    def with_composite_step(self, index: int) -> "SymbolicLocation":
        return self.with_keys("runs", "steps", index)

    def annotated(self, annotation: str) -> "SymbolicLocation":
        return replace(self, annotation=annotation)

    def primary(self) -> "SymbolicLocation":
        return replace(self, is_primary=True)

    def concretize(self, document: Document) -> "Location":
        """
        Resolve this location against its document

        Args:
            document: Document of the input this location belongs to

        Returns:
            Location pairing this symbolic location with its feature

        Raises:
            QueryError: If the route does not exist in the document
        """
        return Location(symbolic=self, concrete=document.feature(self.route))


@dataclass(frozen=True)
class Location:
    symbolic: SymbolicLocation
    concrete: Feature


@dataclass(frozen=True)
class Determinations:
    severity: Severity = Severity.UNKNOWN
    confidence: Confidence = Confidence.UNKNOWN
    persona: Persona = Persona.REGULAR


@dataclass(frozen=True)
class Finding:
    """Represents a single issue found by a rule"""

    ident: str
    desc: str
    url: str
    determinations: Determinations
    locations: Tuple[Location, ...]
    ignored: bool = False

    @property
    def severity(self) -> Severity:
        return self.determinations.severity

    @property
    def confidence(self) -> Confidence:
        return self.determinations.confidence

    @property
    def persona(self) -> Persona:
        return self.determinations.persona

    @property
    def primary_location(self) -> Location:
        return next(loc for loc in self.locations if loc.symbolic.is_primary)

    def fingerprint(self) -> Tuple[Any, ...]:
        """Identity used to collapse repeated reports of the same issue"""
        return (
            self.ident,
            tuple(
                (
                    loc.symbolic.key,
                    loc.concrete.location.offset_span,
                    loc.symbolic.annotation,
                    loc.symbolic.is_primary,
                )
                for loc in self.locations
            ),
        )


@dataclass
class FindingBuilder:
    """
    Draft of a finding, finalized by ``build``

    Setters return the builder so calls can be chained::

        finding = (
            rule.finding()
            .severity(Severity.HIGH)
            .confidence(Confidence.LOW)
            .add_location(step.location().primary())
            .build(workflow.document)
        )
    """

    ident: str
    desc: str
    url: str
    determinations: Determinations = field(default_factory=Determinations)
    locations: List[SymbolicLocation] = field(default_factory=list)
    raw_locations: List[Location] = field(default_factory=list)

    def severity(self, severity: Severity) -> "FindingBuilder":
        self.determinations = replace(self.determinations, severity=severity)
        return self

    def confidence(self, confidence: Confidence) -> "FindingBuilder":
        self.determinations = replace(self.determinations, confidence=confidence)
        return self

    def persona(self, persona: Persona) -> "FindingBuilder":
        self.determinations = replace(self.determinations, persona=persona)
        return self

    def add_location(self, location: SymbolicLocation) -> "FindingBuilder":
        self.locations.append(location)
        return self

    def add_raw_location(self, location: Location) -> "FindingBuilder":
        self.raw_locations.append(location)
        return self

    def build(self, document: Optional[Document]) -> Finding:
        """
        Resolve every symbolic location and assemble the finding

        Args:
            document: Document the symbolic locations point into; may be
                None only when every location is already concrete

        Returns:
            The finished Finding

        Raises:
            FindingBuildError: If no location is marked primary, or symbolic
                locations are given without a document
            QueryError: If a symbolic location does not resolve
        """
        if self.locations and document is None:
            raise FindingBuildError(f"{self.ident}: symbolic locations need a document")

        locations: List[Location] = []
        if document is not None:
            locations.extend(location.concretize(document) for location in self.locations)
        locations.extend(self.raw_locations)

        if not any(location.symbolic.is_primary for location in locations):
            raise FindingBuildError(
                f"{self.ident}: API misuse: at least one location must be marked with primary()"
            )

        ignored = any(
            comment.ignores(self.ident)
            for location in locations
            for comment in location.concrete.comments
        )

        return Finding(
            ident=self.ident,
            desc=self.desc,
            url=self.url,
            determinations=self.determinations,
            locations=tuple(locations),
            ignored=ignored,
        )
