"""Build directed dependency graph from validated declarations."""

import networkx as nx
from typing import List, Dict, Set, Optional, Iterable, Mapping
from ..model.models import ResourceDeclaration, StateRecord, RecordStatus
from ..utils.errors import CycleError
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")


class ResourceGraph:
    """Directed dependency graph: nodes=declarations, edge A->B means A depends on B."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._declarations: Dict[str, ResourceDeclaration] = {}

    def add_declaration(self, declaration: ResourceDeclaration) -> None:
        """Add a declaration node (edges are added by build_graph once all nodes exist)."""
        self.graph.add_node(declaration.id, declaration=declaration)
        self._declarations[declaration.id] = declaration

    def add_dependency(self, dependent: str, dependency: str) -> None:
        self.graph.add_edge(dependent, dependency)
        logger.debug(f"Added dependency edge: {dependent} -> {dependency}")

    @classmethod
    def from_state(cls, records: Mapping[str, StateRecord]) -> "ResourceGraph":
        """Rebuild the prior graph from recorded dependencies (dangling ones are ignored)."""
        prior = cls()
        live = {
            decl_id: record for decl_id, record in records.items()
            if record.status != RecordStatus.DESTROYED
        }
        for decl_id in live:
            prior.graph.add_node(decl_id, record=live[decl_id])
        for decl_id, record in live.items():
            for dep in record.dependencies:
                if dep in live and dep != decl_id:
                    prior.add_dependency(decl_id, dep)
        return prior

    def node_ids(self) -> List[str]:
        return sorted(self.graph.nodes)

    def get_declaration(self, node_id: str) -> Optional[ResourceDeclaration]:
        """Get declaration by node ID."""
        return self._declarations.get(node_id)

    def get_all_declarations(self) -> List[ResourceDeclaration]:
        return [self._declarations[node_id] for node_id in self.node_ids() if node_id in self._declarations]

    def direct_dependencies(self, node_id: str) -> List[str]:
        return sorted(self.graph.successors(node_id))

    def direct_dependents(self, node_id: str) -> List[str]:
        return sorted(self.graph.predecessors(node_id))

    def dependencies_of(self, node_id: str) -> Set[str]:
        """All declarations the given one depends on, transitively."""
        if node_id not in self.graph:
            return set()
        return set(nx.descendants(self.graph, node_id))

    def dependents_of(self, node_id: str) -> Set[str]:
        """All declarations that depend on the given one, transitively."""
        if node_id not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, node_id))

    def find_cycle(self) -> Optional[List[str]]:
        """
        Depth-first search for a cycle, visiting roots and successors in id order.

        Returns:
            The cycle as the recursion-stack slice from the repeated node,
            closed by the repeated node (e.g. ``[A, B, C, A]``), or None
        """
        visited: Set[str] = set()
        for root in sorted(self.graph.nodes):
            if root in visited:
                continue
            path = [root]
            on_stack = {root}
            visited.add(root)
            pending = [iter(sorted(self.graph.successors(root)))]
            while pending:
                child = next(pending[-1], None)
                if child is None:
                    pending.pop()
                    on_stack.discard(path.pop())
                    continue
                if child in on_stack:
                    start = path.index(child)
                    return path[start:] + [child]
                if child in visited:
                    continue
                visited.add(child)
                on_stack.add(child)
                path.append(child)
                pending.append(iter(sorted(self.graph.successors(child))))
        return None

    def creation_order(self) -> List[str]:
        """Dependencies before dependents; ties broken by id."""
        return list(nx.lexicographical_topological_sort(self.graph.reverse(copy=True)))

    def deletion_order(self) -> List[str]:
        """Dependents before dependencies; ties broken by id."""
        return list(nx.lexicographical_topological_sort(self.graph))


def build_graph(declarations: Iterable[ResourceDeclaration]) -> ResourceGraph:
    """
    Build the dependency graph for a validated declaration set.

    Args:
        declarations: Declarations that already passed validate_declarations

    Returns:
        Acyclic ResourceGraph

    Raises:
        CycleError: If references or explicit dependencies form a cycle
    """
    graph = ResourceGraph()
    declarations = list(declarations)
    for declaration in declarations:
        graph.add_declaration(declaration)

    for declaration in declarations:
        for dep in sorted(declaration.dependency_ids()):
            if dep in graph.graph:
                graph.add_dependency(declaration.id, dep)

    cycle = graph.find_cycle()
    if cycle:
        raise CycleError(cycle)

    logger.info(f"Built dependency graph with {graph.graph.number_of_nodes()} nodes and {graph.graph.number_of_edges()} edges")
    return graph
