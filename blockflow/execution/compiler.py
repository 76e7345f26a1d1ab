"""
Graph compiler for blockflow experiments.

Expands a Sequence template into an ExecutionGraph:

    Sequence([welcome, Block([stim, rating]), goodbye])

becomes the chain

    start(Sequence) -> welcome -> start(Block) -> stim -> rating
        -> end(Block) -> goodbye -> end(Sequence) -> None
"""

import logging
from typing import List, Tuple

from ..errors import TemplateError
from .nodes import BlockEndNode, BlockStartNode, ExecutionGraph, StepNode
from .templates import Block, Sequence, Step

logger = logging.getLogger(__name__)

# The root Sequence sits one level above its direct children (level 0)
ROOT_LEVEL = -1


class GraphCompiler:
    """
    Builds a fresh ExecutionGraph from a Sequence.

    One compiler can be reused; every call to compile() starts a new arena.
    """

    def __init__(self):
        self._nodes: List = []

    def compile(self, root: Sequence) -> ExecutionGraph:
        """
        Compile the root Sequence.

        Args:
            root: Sequence template (already validated at construction)

        Returns:
            ExecutionGraph whose first node is the Sequence's BlockStartNode

        Raises:
            TemplateError: root is not a Sequence
        """
        if not isinstance(root, Sequence):
            raise TemplateError(
                f"Experiment root must be a Sequence, got {type(root).__name__}"
            )

        self._nodes = []
        start, end = self._expand_block(root, ROOT_LEVEL)
        # Nothing follows the outermost sequence
        self._nodes[end].next = None

        graph = ExecutionGraph(self._nodes)
        self._nodes = []

        logger.debug(
            f"Compiled '{root.label}': {len(graph)} nodes, "
            f"{len(graph.step_nodes())} steps, {len(graph.block_pairs())} blocks"
        )
        return graph

    def _expand_block(self, block: Block, level: int) -> Tuple[int, int]:
        """
        Expand one block into the arena.

        Args:
            block: Block (or Sequence) template
            level: Nesting level of the block itself

        Returns:
            (start_index, end_index) of the block's boundary nodes
        """
        start = self._add(BlockStartNode(
            index=len(self._nodes),
            skip=block.skip,
            level=level,
            name=block.label,
        ))
        cursor = start

        for child in block.children:
            if isinstance(child, Step):
                node = self._add(StepNode(
                    index=len(self._nodes),
                    step=child,
                    level=level + 1,
                ))
                self._nodes[cursor].next = node
                cursor = node
            else:
                child_start, child_end = self._expand_block(child, level + 1)
                self._nodes[cursor].next = child_start
                cursor = child_end

        end = self._add(BlockEndNode(
            index=len(self._nodes),
            repeat=block.repeat,
            level=level,
            name=block.label,
        ))
        self._nodes[cursor].next = end

        self._nodes[start].pair = end
        self._nodes[end].pair = start

        return start, end

    def _add(self, node) -> int:
        self._nodes.append(node)
        return node.index


def compile_sequence(root: Sequence) -> ExecutionGraph:
    """Compile a Sequence into a new ExecutionGraph."""
    return GraphCompiler().compile(root)
