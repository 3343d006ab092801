"""Items reconstructed from a Z3 trace log.

Terms, quantifiers and instantiations are stored in lists and refer to each
other by list index. Line numbers are 1-based positions in the log.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

from src.domain.exceptions import TraceParseError

_FINGERPRINT_RE = re.compile(r"^0x[0-9a-fA-F]+$")
_UNNAMED_QUANT_RE = re.compile(r"^(?P<prefix>.+)!(?P<number>\d+)$")
_RELEASE_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:[-+].*)?$")


@dataclass(frozen=True)
class TermId:
    """A term identifier `<namespace>#<number>`; the number may be absent."""

    namespace: str
    number: int | None

    @classmethod
    def parse(cls, text: str) -> "TermId":
        namespace, sep, number = text.rpartition("#")
        if not sep:
            raise TraceParseError(f"Invalid term id {text!r}")
        if not number:
            return cls(namespace, None)
        if not number.isdigit():
            raise TraceParseError(f"Invalid term id {text!r}")
        return cls(namespace, int(number))

    def __str__(self) -> str:
        number = "" if self.number is None else str(self.number)
        return f"{self.namespace}#{number}"


def parse_fingerprint(text: str) -> int:
    """Parse a match fingerprint such as `0x7f3a2c`."""
    if not _FINGERPRINT_RE.match(text):
        raise TraceParseError(f"Invalid fingerprint {text!r}")
    return int(text, 16)


@dataclass(frozen=True)
class VersionInfo:
    solver: str
    version: str

    @classmethod
    def parse(cls, solver: str, version: str) -> "VersionInfo":
        if not _RELEASE_RE.match(version):
            raise TraceParseError(f"Invalid version {version!r}")
        return cls(solver=solver, version=version)

    @property
    def release(self) -> tuple[int, int, int]:
        major, minor, patch = _RELEASE_RE.match(self.version).groups()
        return int(major), int(minor), int(patch)


@dataclass(frozen=True)
class Meaning:
    """Theory interpretation of a term, e.g. ("arith", "5")."""

    theory: str
    value: str


class TermCategory(str, Enum):
    APP = "app"
    PROOF = "proof"
    VAR = "var"
    QUANT = "quant"


@dataclass
class Term:
    id: TermId
    category: TermCategory
    name: str | None = None
    var_index: int | None = None
    quant_idx: int | None = None
    child_ids: list[int] = field(default_factory=list)
    dep_term_ids: list[int] = field(default_factory=list)
    meaning: Meaning | None = None
    resp_inst: int | None = None
    equality_expls: list["EqualityExpl"] = field(default_factory=list)


@dataclass(frozen=True)
class QuantKind:
    """How a quantifier is named in the log.

    Unnamed quantifiers get generated names such as `k!12`; discovered
    pseudo-quantifiers are named after the discovery method.
    """

    name: str
    unnamed_prefix: str | None = None
    unnamed_number: int | None = None
    discovered: bool = False

    @classmethod
    def parse(cls, name: str) -> "QuantKind":
        match = _UNNAMED_QUANT_RE.match(name)
        if match is None:
            return cls(name=name)
        return cls(
            name=name,
            unnamed_prefix=match.group("prefix"),
            unnamed_number=int(match.group("number")),
        )

    @classmethod
    def discovered_by(cls, method: str) -> "QuantKind":
        return cls(name=method, discovered=True)

    @property
    def is_named(self) -> bool:
        return self.unnamed_prefix is None and not self.discovered


@dataclass(frozen=True)
class VarNames:
    """Bound variable sorts, with names when the log records them."""

    sorts: tuple[str, ...]
    names: tuple[str, ...] | None = None


@dataclass
class Quantifier:
    kind: QuantKind
    num_vars: int
    term: int | None = None
    instances: list[int] = field(default_factory=list)
    cost: float = 0.0
    vars: VarNames | None = None


class EqualityKind(str, Enum):
    ROOT = "root"
    LITERAL = "lit"
    CONGRUENCE = "cg"
    THEORY = "th"
    AXIOM = "ax"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class EqualityExpl:
    """Why term `from_term` is equal to term `to_term` (an [eq-expl] line)."""

    kind: EqualityKind
    from_term: int
    to_term: int | None = None
    eq: int | None = None
    arg_eqs: tuple[tuple[int, int], ...] = ()
    theory: str | None = None
    raw_kind: str | None = None
    args: tuple[str, ...] = ()

    def from_to(self) -> tuple[int, int]:
        to = self.from_term if self.to_term is None else self.to_term
        return self.from_term, to


class DepType(str, Enum):
    NONE = "none"
    TERM = "term"
    EQUALITY = "equality"


@dataclass
class Dependency:
    """Edge between two instantiations, identified by their line numbers.

    from_line is None for blank dependencies, which only record that an
    instantiation depends on no other one.
    """

    from_line: int | None
    to_line: int | None
    blamed: int | None
    dep_type: DepType
    quant: int
    quant_discovered: bool


@dataclass(frozen=True)
class BlamedTerm:
    """A term (or an equal pair of terms) blamed for triggering a match."""

    term: int
    equal_to: int | None = None

    @property
    def is_pair(self) -> bool:
        return self.equal_to is not None


@dataclass
class Instantiation:
    match_line_no: int
    fingerprint: int
    quant: int
    quant_discovered: bool
    line_no: int | None = None
    resulting_term: int | None = None
    z3_gen: int | None = None
    cost: float = 1.0
    pattern: int | None = None
    yields_terms: list[int] = field(default_factory=list)
    bound_terms: list[int] = field(default_factory=list)
    blamed_terms: list[BlamedTerm] = field(default_factory=list)
    equality_expls: list[int] = field(default_factory=list)
    dep_instantiations: list[int] = field(default_factory=list)

    def copy(self) -> "Instantiation":
        return Instantiation(
            match_line_no=self.match_line_no,
            fingerprint=self.fingerprint,
            quant=self.quant,
            quant_discovered=self.quant_discovered,
            line_no=self.line_no,
            resulting_term=self.resulting_term,
            z3_gen=self.z3_gen,
            cost=self.cost,
            pattern=self.pattern,
            yields_terms=list(self.yields_terms),
            bound_terms=list(self.bound_terms),
            blamed_terms=list(self.blamed_terms),
            equality_expls=list(self.equality_expls),
            dep_instantiations=list(self.dep_instantiations),
        )
