"""
Execution module for the blockflow framework.

This module contains the core execution architecture:
- Step, Block, Sequence: Author-facing template tree
- GraphCompiler: Expands a Sequence into an execution graph
- ExecutionGraph: Arena of StepNode / BlockStartNode / BlockEndNode
"""

from .templates import Step, Block, Sequence, never
from .nodes import StepNode, BlockStartNode, BlockEndNode, ExecutionGraph
from .compiler import GraphCompiler, compile_sequence

__all__ = [
    'Step',
    'Block',
    'Sequence',
    'never',
    'StepNode',
    'BlockStartNode',
    'BlockEndNode',
    'ExecutionGraph',
    'GraphCompiler',
    'compile_sequence',
]
