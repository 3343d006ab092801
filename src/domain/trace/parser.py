"""Z3 trace log parser.

Z3 writes one event per line when run with `trace=true`:

    [tool-version] Z3 4.12.2
    [mk-app] #12 f #10 #11
    [mk-quant] #20 k!5 1 #18 #19
    [new-match] 0x7f2c #20 #18 #12 ; #12
    [instance] 0x7f2c #31 ; 1
    [attach-enode] #31 0
    [end-of-instance]

Lines are split on single spaces. Commands this parser does not model (push,
pop, decide-and-or, ...) are ignored. Each instantiation is linked to the
instantiations that produced the terms and equalities blamed for its match;
those links become the dependencies of the instantiation graph.
"""

import logging
import time
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from src.domain.exceptions import TraceParseError
from src.domain.trace.items import (
    BlamedTerm,
    Dependency,
    DepType,
    EqualityExpl,
    EqualityKind,
    Instantiation,
    Meaning,
    QuantKind,
    Quantifier,
    Term,
    TermCategory,
    TermId,
    VarNames,
    VersionInfo,
    parse_fingerprint,
)

logger = logging.getLogger(__name__)

# How many lines are parsed between two checks of the parse deadline
_DEADLINE_CHECK_INTERVAL = 1024


class _Words:
    """Cursor over the space-separated words of one log line."""

    def __init__(self, words: list[str]):
        self._iter: Iterator[str] = iter(words)

    def next(self) -> str:
        word = next(self._iter, None)
        if word is None:
            raise TraceParseError("Unexpected end of line")
        return word

    def next_opt(self) -> str | None:
        return next(self._iter, None)

    def until(self, end: str) -> list[str]:
        """Words up to end; end itself is consumed but not returned."""
        words = []
        for word in self._iter:
            if word == end:
                break
            words.append(word)
        return words

    def rest(self) -> list[str]:
        return list(self._iter)

    def expect_done(self) -> None:
        extra = next(self._iter, None)
        if extra is not None:
            raise TraceParseError(f"Unexpected trailing data {extra!r}")


def _parse_int(text: str) -> int:
    try:
        return int(text)
    except ValueError as e:
        raise TraceParseError(f"Expected an integer, got {text!r}") from e


def _gobble_tuples(words: Iterable[str]) -> list[tuple[str, str]]:
    """Read tuples written as `(A;B)`, `(A B)` or `(A ; B)`.

    A and B may be empty. All tuples of one line must use the same form.
    """
    it = iter(words)
    tuples: list[tuple[str, str]] = []
    form: int | None = None
    for first in it:
        if first.endswith(")"):
            parts = first.split(";")
            if len(parts) < 2:
                raise TraceParseError(f"Malformed tuple {first!r}")
            this_form, pair = 0, (parts[0], parts[1])
        else:
            middle = next(it, None)
            if middle is None:
                raise TraceParseError(f"Unterminated tuple after {first!r}")
            if middle != ";":
                this_form, pair = 1, (first, middle)
            else:
                second = next(it, None)
                if second is None:
                    raise TraceParseError(f"Unterminated tuple after {first!r}")
                this_form, pair = 2, (first, second)
        if form is None:
            form = this_form
        elif form != this_form:
            raise TraceParseError("Tuples of one line use different forms")
        left, right = pair
        if not left.startswith("(") or not right.endswith(")"):
            raise TraceParseError(f"Malformed tuple ({left} {right})")
        tuples.append((left[1:], right[:-1]))
    return tuples


def _strip_bars(text: str) -> str:
    if len(text) < 2 or not text.startswith("|") or not text.endswith("|"):
        raise TraceParseError(f"Expected a |quoted| symbol, got {text!r}")
    return text[1:-1]


def _gobble_var_names(words: Iterable[str]) -> VarNames:
    tuples = _gobble_tuples(words)
    if not tuples:
        raise TraceParseError("Empty variable list")
    if tuples[0][0] == "":
        if any(name != "" for name, _ in tuples):
            raise TraceParseError("Variable list mixes named and unnamed entries")
        return VarNames(sorts=tuple(sort for _, sort in tuples))
    names = tuple(_strip_bars(name) for name, _ in tuples)
    sorts = tuple(_strip_bars(sort) for _, sort in tuples)
    return VarNames(sorts=sorts, names=names)


class Z3TraceParser:
    """Incremental parser building terms, quantifiers and instantiations."""

    def __init__(self) -> None:
        self.version_info: VersionInfo | None = None
        self.terms: list[Term] = []
        self.quantifiers: list[Quantifier] = []
        self.instantiations: list[Instantiation] = []
        self.dependencies: list[Dependency] = []
        self.lines_read = 0
        # [fingerprint => pending instantiation]
        self.matches: dict[int, Instantiation] = {}
        self.inst_stack: list[int] = []
        # [match line number => dependencies awaiting their instantiation]
        self.temp_dependencies: dict[int, list[Dependency]] = {}
        self._term_map: dict[TermId, int] = {}
        self._discovered: dict[tuple[str, TermId | None], int] = {}
        self._handlers: dict[str, Callable[[_Words, int], None]] = {
            "[tool-version]": self._tool_version,
            "[mk-quant]": self._mk_quant,
            "[mk-lambda]": self._mk_quant,
            "[mk-var]": self._mk_var,
            "[mk-app]": self._mk_app,
            "[mk-proof]": self._mk_proof,
            "[attach-meaning]": self._attach_meaning,
            "[attach-var-names]": self._attach_var_names,
            "[attach-enode]": self._attach_enode,
            "[eq-expl]": self._eq_expl,
            "[new-match]": self._new_match,
            "[inst-discovered]": self._inst_discovered,
            "[instance]": self._instance,
            "[end-of-instance]": self._end_of_instance,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    @classmethod
    def from_str(cls, text: str) -> "Z3TraceParser":
        parser = cls()
        parser.process_lines(text.splitlines())
        return parser

    @classmethod
    def parse_file(cls, path: str | Path, timeout: float | None = None) -> tuple[bool, "Z3TraceParser"]:
        """Parse a trace log, stopping early once timeout seconds have passed.

        Returns:
            (timed_out, parser) where parser holds everything read so far
        """
        parser = cls()
        deadline = None if timeout is None else time.monotonic() + timeout
        with open(path, encoding="utf-8", errors="replace") as f:
            timed_out = parser.process_lines(f, deadline=deadline)
        if timed_out:
            logger.warning(f"Parsing {path} stopped after {timeout}s at line {parser.lines_read}")
        return timed_out, parser

    def process_lines(self, lines: Iterable[str], deadline: float | None = None) -> bool:
        """Feed lines to the parser.

        Returns:
            True if the deadline passed before all lines were processed
        """
        for line in lines:
            self.process_line(line)
            if (
                deadline is not None
                and self.lines_read % _DEADLINE_CHECK_INTERVAL == 0
                and time.monotonic() > deadline
            ):
                return True
        return False

    def process_line(self, line: str) -> None:
        self.lines_read += 1
        line_no = self.lines_read
        line = line.rstrip("\r\n")
        if not line:
            return
        words = line.split(" ")
        handler = self._handlers.get(words[0])
        if handler is None:
            return
        try:
            handler(_Words(words[1:]), line_no)
        except TraceParseError as e:
            if e.line_no is None:
                raise TraceParseError(str(e), line_no=line_no, line=line) from e
            raise

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def term_idx(self, text: str) -> int:
        """Index of the most recent term with the given id."""
        term_id = TermId.parse(text)
        idx = self._term_map.get(term_id)
        if idx is None:
            raise TraceParseError(f"Unknown term {text}")
        return idx

    def _term_list(self, words: Iterable[str]) -> list[int]:
        return [self.term_idx(word) for word in words]

    def _quant_of_term(self, idx: int) -> int:
        quant = self.terms[idx].quant_idx
        if quant is None:
            raise TraceParseError(f"Term {self.terms[idx].id} is not a quantifier")
        return quant

    def _new_term(self, term: Term) -> int:
        idx = len(self.terms)
        for child in term.child_ids:
            self.terms[child].dep_term_ids.append(idx)
        self.terms.append(term)
        # Ids may be reused; later uses refer to the newest term
        self._term_map[term.id] = idx
        return idx

    def _discovered_quant(self, method: str, ts_id: TermId | None) -> int:
        key = (method, ts_id)
        if key not in self._discovered:
            self.quantifiers.append(Quantifier(kind=QuantKind.discovered_by(method), num_vars=0))
            self._discovered[key] = len(self.quantifiers) - 1
        return self._discovered[key]

    # ------------------------------------------------------------------
    # Term construction
    # ------------------------------------------------------------------

    def _tool_version(self, w: _Words, line_no: int) -> None:
        solver = w.next()
        version = w.next()
        w.expect_done()
        self.version_info = VersionInfo.parse(solver, version)
        logger.debug(f"Trace produced by {solver} {version}")

    def _mk_quant(self, w: _Words, line_no: int) -> None:
        term_id = TermId.parse(w.next())
        kind = QuantKind.parse(w.next())
        num_vars = _parse_int(w.next())
        children = self._term_list(w.rest())
        if not children:
            raise TraceParseError("Quantifier without body")
        qidx = len(self.quantifiers)
        tidx = self._new_term(
            Term(id=term_id, category=TermCategory.QUANT, name=kind.name, quant_idx=qidx, child_ids=children)
        )
        self.quantifiers.append(Quantifier(kind=kind, num_vars=num_vars, term=tidx))

    def _mk_var(self, w: _Words, line_no: int) -> None:
        term_id = TermId.parse(w.next())
        index = _parse_int(w.next())
        w.expect_done()
        self._new_term(Term(id=term_id, category=TermCategory.VAR, var_index=index))

    def _mk_app(self, w: _Words, line_no: int) -> None:
        self._mk_proof_app(w, TermCategory.APP)

    def _mk_proof(self, w: _Words, line_no: int) -> None:
        self._mk_proof_app(w, TermCategory.PROOF)

    def _mk_proof_app(self, w: _Words, category: TermCategory) -> None:
        term_id = TermId.parse(w.next())
        name = w.next()
        children = self._term_list(w.rest())
        self._new_term(Term(id=term_id, category=category, name=name, child_ids=children))

    def _attach_meaning(self, w: _Words, line_no: int) -> None:
        idx = self.term_idx(w.next())
        theory = w.next()
        meaning = Meaning(theory=theory, value=" ".join(w.rest()))
        old = self.terms[idx].meaning
        if old is None:
            self.terms[idx].meaning = meaning
        elif old != meaning:
            raise TraceParseError(f"Conflicting meaning for {self.terms[idx].id}")

    def _attach_var_names(self, w: _Words, line_no: int) -> None:
        idx = self.term_idx(w.next())
        var_names = _gobble_var_names(w.rest())
        quant = self.quantifiers[self._quant_of_term(idx)]
        if quant.vars is not None:
            raise TraceParseError(f"Variable names attached twice to {self.terms[idx].id}")
        quant.vars = var_names

    def _attach_enode(self, w: _Words, line_no: int) -> None:
        idx = self.term_idx(w.next())
        _parse_int(w.next())  # generation
        w.expect_done()
        if self.inst_stack:
            inst = self.inst_stack[-1]
            self.terms[idx].resp_inst = inst
            self.instantiations[inst].yields_terms.append(idx)

    def _eq_expl(self, w: _Words, line_no: int) -> None:
        idx = self.term_idx(w.next())
        kind = w.next()
        if kind == "root":
            expl = EqualityExpl(kind=EqualityKind.ROOT, from_term=idx)
        else:
            info = w.until(";")
            if kind == "lit":
                if len(info) != 1:
                    raise TraceParseError("Literal explanation needs exactly one equality")
                eq = self.term_idx(info[0])
                expl = EqualityExpl(
                    kind=EqualityKind.LITERAL, from_term=idx, eq=eq, to_term=self.term_idx(w.next())
                )
            elif kind == "cg":
                arg_eqs = tuple(
                    (self.term_idx(a), self.term_idx(b)) for a, b in _gobble_tuples(info)
                )
                expl = EqualityExpl(
                    kind=EqualityKind.CONGRUENCE,
                    from_term=idx,
                    arg_eqs=arg_eqs,
                    to_term=self.term_idx(w.next()),
                )
            elif kind == "th":
                if len(info) != 1:
                    raise TraceParseError("Theory explanation needs exactly one theory")
                expl = EqualityExpl(
                    kind=EqualityKind.THEORY,
                    from_term=idx,
                    theory=info[0],
                    to_term=self.term_idx(w.next()),
                )
            elif kind == "ax":
                if info:
                    raise TraceParseError("Axiom explanation takes no arguments")
                expl = EqualityExpl(
                    kind=EqualityKind.AXIOM, from_term=idx, to_term=self.term_idx(w.next())
                )
            else:
                expl = EqualityExpl(
                    kind=EqualityKind.UNKNOWN,
                    from_term=idx,
                    raw_kind=kind,
                    args=tuple(info),
                    to_term=self.term_idx(w.next()),
                )
        w.expect_done()
        expls = self.terms[idx].equality_expls
        if expl not in expls:
            expls.append(expl)

    # ------------------------------------------------------------------
    # Instantiations
    # ------------------------------------------------------------------

    def _add_dependency(self, from_term: int, dep_type: DepType) -> tuple[int, Dependency] | None:
        """Dependency on the instantiation that produced from_term, if any.

        The target line is filled in at [end-of-instance], since a match may
        never be instantiated.
        """
        inst_idx = self.terms[from_term].resp_inst
        if inst_idx is None:
            return None
        inst = self.instantiations[inst_idx]
        dep = Dependency(
            from_line=inst.line_no,
            to_line=None,
            blamed=from_term,
            dep_type=dep_type,
            quant=inst.quant,
            quant_discovered=inst.quant_discovered,
        )
        return inst_idx, dep

    def _record_dependency(self, line_no: int, found: tuple[int, Dependency] | None, deps: list[int]) -> None:
        if found is None:
            return
        inst_idx, dep = found
        self.temp_dependencies[line_no].append(dep)
        deps.append(inst_idx)

    def _add_blank_dependency(self, quant: int, quant_discovered: bool, line_no: int) -> None:
        self.temp_dependencies[line_no].append(
            Dependency(
                from_line=None,
                to_line=None,
                blamed=None,
                dep_type=DepType.NONE,
                quant=quant,
                quant_discovered=quant_discovered,
            )
        )

    def _new_match(self, w: _Words, line_no: int) -> None:
        fingerprint = parse_fingerprint(w.next())
        quant = self._quant_of_term(self.term_idx(w.next()))
        pattern = self.term_idx(w.next())
        bound_terms = self._term_list(w.until(";"))

        self.temp_dependencies[line_no] = []
        equality_expls: list[int] = []
        blamed_terms: list[BlamedTerm] = []
        dep_instantiations: list[int] = []
        while (word := w.next_opt()) is not None:
            if word.startswith("("):
                second = w.next()
                if not second.endswith(")"):
                    raise TraceParseError(f"Unterminated blamed pair at {word!r}")
                fidx = self.term_idx(word[1:])
                sidx = self.term_idx(second[:-1])
                if fidx != sidx:
                    for eq in self.terms[fidx].equality_expls:
                        if eq.from_to() == (fidx, sidx) and eq.kind == EqualityKind.LITERAL:
                            self._record_dependency(
                                line_no,
                                self._add_dependency(eq.eq, DepType.EQUALITY),
                                dep_instantiations,
                            )
                    equality_expls.append(fidx)
                blamed_terms.append(BlamedTerm(term=fidx, equal_to=sidx))
            else:
                widx = self.term_idx(word)
                self._record_dependency(
                    line_no, self._add_dependency(widx, DepType.TERM), dep_instantiations
                )
                blamed_terms.append(BlamedTerm(term=widx))

        if not dep_instantiations:
            self._add_blank_dependency(quant, False, line_no)
        self.matches[fingerprint] = Instantiation(
            match_line_no=line_no,
            fingerprint=fingerprint,
            quant=quant,
            quant_discovered=False,
            pattern=pattern,
            bound_terms=bound_terms,
            blamed_terms=blamed_terms,
            equality_expls=equality_expls,
            dep_instantiations=dep_instantiations,
        )

    def _inst_discovered(self, w: _Words, line_no: int) -> None:
        method = w.next()
        fingerprint = parse_fingerprint(w.next())
        self.temp_dependencies[line_no] = []
        dep_instantiations: list[int] = []
        bound_terms: list[int] = []
        blamed_terms: list[BlamedTerm] = []

        if method == "theory-solving":
            ts_id = TermId.parse(w.next())
            quant = self._discovered_quant(method, ts_id)
            separator = w.next_opt()
            if separator is not None and separator != ";":
                raise TraceParseError(f"Expected ';', got {separator!r}")
            for word in w.rest():
                idx = self.term_idx(word)
                self._record_dependency(
                    line_no, self._add_dependency(idx, DepType.TERM), dep_instantiations
                )
                blamed_terms.append(BlamedTerm(term=idx))
        elif method == "MBQI":
            quant = self._discovered_quant(method, None)
            bound_terms = self._term_list(w.rest())
        else:
            raise TraceParseError(f"Unknown discovery method {method!r}")

        if not dep_instantiations:
            self._add_blank_dependency(quant, True, line_no)
        self.matches[fingerprint] = Instantiation(
            match_line_no=line_no,
            fingerprint=fingerprint,
            quant=quant,
            quant_discovered=True,
            bound_terms=bound_terms,
            blamed_terms=blamed_terms,
            dep_instantiations=dep_instantiations,
        )

    def _instance(self, w: _Words, line_no: int) -> None:
        fingerprint = parse_fingerprint(w.next())
        match = self.matches.get(fingerprint)
        if match is None:
            raise TraceParseError(f"Instance of unknown match {fingerprint:#x}")
        inst = match.copy()
        inst.line_no = line_no

        word = w.next_opt()
        if word is not None and "#" in word:
            inst.resulting_term = self.term_idx(word)
            word = w.next_opt()
        generation = w.next_opt()
        if word is None and generation is None:
            pass
        elif word == ";" and generation is not None:
            inst.z3_gen = _parse_int(generation)
        else:
            raise TraceParseError("Malformed instance line")

        iidx = len(self.instantiations)
        self.instantiations.append(inst)
        self.inst_stack.append(iidx)
        quantifier = self.quantifiers[inst.quant]
        quantifier.instances.append(iidx)
        quantifier.cost += 1.0

    def _end_of_instance(self, w: _Words, line_no: int) -> None:
        if not self.inst_stack:
            raise TraceParseError("[end-of-instance] without open instance")
        inst = self.instantiations[self.inst_stack.pop()]
        deps = self.temp_dependencies.get(inst.match_line_no)
        if deps is None:
            raise TraceParseError(f"No match recorded at line {inst.match_line_no}")
        for dep in deps:
            dep.to_line = inst.line_no
            dep.quant = inst.quant
        self.dependencies.extend(deps)
        deps.clear()
