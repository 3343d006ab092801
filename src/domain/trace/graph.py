"""
Instantiation dependency graph.

This module builds a NetworkX directed graph from the dependencies recorded by
the trace parser. Nodes are the line numbers of [instance] lines; an edge
a -> b means the instantiation at line b was matched on a term (or an
equality) produced by the instantiation at line a.
"""

import logging

import networkx as nx

from src.domain.models import QuantifierCost, TraceSummary
from src.domain.trace.parser import Z3TraceParser

logger = logging.getLogger(__name__)


class InstantiationGraph:
    """
    Directed graph of instantiations and the dependencies between them.

    Edges leaving an instantiation discovered by theory solving or MBQI are
    left out; edges into one are kept. Blank dependencies (instantiations
    that depend on nothing) only contribute their node.
    """

    def __init__(self, parser: Z3TraceParser):
        """
        Initialize graph from a parser.

        Args:
            parser: Parser that has processed (part of) a trace log
        """
        self.parser = parser
        self.graph: nx.DiGraph = self._build_graph()

    def _build_graph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        for inst in self.parser.instantiations:
            quant = self.parser.quantifiers[inst.quant]
            graph.add_node(
                inst.line_no,
                quant=inst.quant,
                quant_name=quant.kind.name,
                discovered=inst.quant_discovered,
            )

        for dep in self.parser.dependencies:
            if dep.quant_discovered or dep.from_line is None or dep.to_line is None:
                continue
            graph.add_edge(dep.from_line, dep.to_line, dep_type=dep.dep_type.value, blamed=dep.blamed)

        logger.debug(
            f"Built instantiation graph: {graph.number_of_nodes()} nodes, "
            f"{graph.number_of_edges()} edges"
        )
        return graph

    @property
    def node_count(self) -> int:
        return self.graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self.graph.number_of_edges()

    def roots(self) -> list[int]:
        """Instantiations that no other instantiation led to, by line number."""
        return sorted(n for n in self.graph.nodes if self.graph.in_degree(n) == 0)

    def children(self, line_no: int) -> list[int]:
        """Instantiations directly enabled by the one at line_no."""
        if line_no not in self.graph:
            return []
        return sorted(self.graph.successors(line_no))

    def longest_chain(self) -> list[int]:
        """
        Longest dependency chain, as line numbers from first to last.

        Every dependency points from an earlier line to a later one, so the
        graph is acyclic.
        """
        if self.node_count == 0:
            return []
        return list(nx.dag_longest_path(self.graph))

    def quantifier_costs(self, top_n: int | None = None) -> list[QuantifierCost]:
        """Quantifiers with at least one instance, most instantiated first."""
        costs = [
            QuantifierCost(name=q.kind.name, instances=len(q.instances), cost=q.cost)
            for q in self.parser.quantifiers
            if q.instances
        ]
        costs.sort(key=lambda c: (-c.instances, c.name))
        return costs if top_n is None else costs[:top_n]


def summarize(parser: Z3TraceParser, timed_out: bool = False, top_n: int = 10) -> TraceSummary:
    """Aggregate view of a parsed trace log."""
    graph = InstantiationGraph(parser)
    version_info = parser.version_info
    return TraceSummary(
        solver=version_info.solver if version_info else None,
        version=version_info.version if version_info else None,
        timed_out=timed_out,
        lines_read=parser.lines_read,
        term_count=len(parser.terms),
        quantifier_count=len(parser.quantifiers),
        instantiation_count=len(parser.instantiations),
        dependency_count=len(parser.dependencies),
        graph_nodes=graph.node_count,
        graph_edges=graph.edge_count,
        longest_chain=graph.longest_chain(),
        top_quantifiers=graph.quantifier_costs(top_n),
    )
