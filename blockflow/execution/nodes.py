"""
Execution graph for blockflow experiments.

The compiler expands a Sequence into a flat chain of nodes stored in an arena
(ExecutionGraph.nodes). Links between nodes are arena indices:

- StepNode: one presentation of a Step template
- BlockStartNode: entry of a block (evaluates the block's skip predicate)
- BlockEndNode: exit of a block (evaluates the block's repeat predicate)

The chain has no structural back-edges. Looping happens only because a
node's successor() returns the index of an earlier node.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .templates import Predicate, Step


@dataclass
class StepNode:
    """
    Runtime counterpart of a Step template.

    Attributes:
        index: Position of this node in the graph arena
        step: The Step template (immutable)
        level: Nesting depth (steps directly inside the Sequence are level 0)
        next: Index of the following node, None at the end of the run
    """
    index: int
    step: Step
    level: int
    next: Optional[int] = None

    kind = 'step'

    def successor(self, graph: 'ExecutionGraph', experiment) -> Optional[int]:
        """Index to run after this step completes (itself when repeated)."""
        return self.index if self.step.repeat(experiment) else self.next

    @property
    def name(self) -> str:
        return self.step.label


@dataclass
class BlockStartNode:
    """Entry of a block. Skipping jumps past the paired BlockEndNode."""
    index: int
    skip: Predicate
    level: int
    name: str
    next: Optional[int] = None
    pair: Optional[int] = None

    kind = 'block_start'

    def successor(self, graph: 'ExecutionGraph', experiment) -> Optional[int]:
        if self.skip(experiment):
            return graph[self.pair].next
        return self.next


@dataclass
class BlockEndNode:
    """Exit of a block. Repeating re-enters at the block's first child."""
    index: int
    repeat: Predicate
    level: int
    name: str
    next: Optional[int] = None
    pair: Optional[int] = None

    kind = 'block_end'

    def successor(self, graph: 'ExecutionGraph', experiment) -> Optional[int]:
        if self.repeat(experiment):
            return graph[self.pair].next
        return self.next


class ExecutionGraph:
    """
    Arena of execution nodes produced by the GraphCompiler.

    The graph is built once per run and only read afterwards; running an
    experiment moves the "current" index, it never relinks nodes.
    """

    def __init__(self, nodes: List[Any]):
        self.nodes = list(nodes)

    @property
    def first(self) -> Optional[int]:
        """Index of the root BlockStartNode (None for an empty graph)."""
        return 0 if self.nodes else None

    def __getitem__(self, index: int):
        return self.nodes[index]

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.nodes)

    def walk(self) -> Iterator[Any]:
        """Iterate nodes in chain order (following next links from first)."""
        index = self.first
        while index is not None:
            node = self.nodes[index]
            yield node
            index = node.next

    def step_nodes(self) -> List[StepNode]:
        """All StepNodes in chain order."""
        return [node for node in self.walk() if isinstance(node, StepNode)]

    def block_pairs(self) -> List[Tuple[BlockStartNode, BlockEndNode]]:
        """(start, end) pairs for every block, in chain order of their starts."""
        return [
            (node, self.nodes[node.pair])
            for node in self.walk()
            if isinstance(node, BlockStartNode)
        ]

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the graph structure for debugging.

        Predicates and step content are not serialized; only node kinds,
        links, levels and names.

        Returns:
            {'nodes': [{'index': 0, 'kind': 'block_start', ...}, ...]}
        """
        nodes = []
        for node in self.nodes:
            entry = {
                'index': node.index,
                'kind': node.kind,
                'name': node.name,
                'level': node.level,
                'next': node.next,
            }
            if not isinstance(node, StepNode):
                entry['pair'] = node.pair
            nodes.append(entry)
        return {'nodes': nodes}

    def describe(self) -> str:
        """
        Indented outline of the chain, one node per line.

        Example:
            [0] start Sequence
              [1] step Welcome (level 0)
              [2] start Trials
                [3] step Stimulus (level 1)
              [4] end Trials
            [5] end Sequence
        """
        lines = []
        for node in self.walk():
            indent = '  ' * (node.level + 1)
            if isinstance(node, StepNode):
                lines.append(f"{indent}[{node.index}] step {node.name} (level {node.level})")
            elif isinstance(node, BlockStartNode):
                lines.append(f"{indent}[{node.index}] start {node.name}")
            else:
                lines.append(f"{indent}[{node.index}] end {node.name}")
        return '\n'.join(lines)

    def __repr__(self):
        steps = sum(1 for node in self.nodes if isinstance(node, StepNode))
        return f"ExecutionGraph(nodes={len(self.nodes)}, steps={steps})"
