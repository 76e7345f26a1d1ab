"""
Template tree for blockflow experiments.

Authors describe an experiment with three kinds of templates:
- Step: a single presented event (a stimulus, a fixation cross, a rating screen)
- Block: an ordered group of steps and blocks
- Sequence: the root block of an experiment

Templates are immutable values. They are never executed directly; the graph
compiler expands them into execution nodes at the start of every run.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Tuple, Union

from ..errors import TemplateError

Predicate = Callable[[Any], bool]
DelayFunction = Callable[[Any], float]


def never(experiment) -> bool:
    """Default skip/repeat predicate."""
    return False


@dataclass(frozen=True)
class Step:
    """
    A single presented event.

    Attributes:
        content: Opaque handle passed to the renderer (e.g. a callable that
                 builds a drawable, or a string). Never inspected here.
        start_delay: Blank interval in seconds before the content is shown
        start_delay_fn: Function(experiment) -> seconds, evaluated on every
                        presentation. Takes precedence over start_delay.
        skip: Predicate(experiment); when true the step is not presented
        repeat: Predicate(experiment), evaluated after completion; when true
                the step is presented again
        name: Optional label used in logs and graph outlines

    Example:
        fixation = Step(content="+", start_delay=0.5, name="Fixation")
    """
    content: Any
    start_delay: float = 0.0
    start_delay_fn: Optional[DelayFunction] = None
    skip: Predicate = never
    repeat: Predicate = never
    name: Optional[str] = None

    def __post_init__(self):
        if self.start_delay < 0:
            raise TemplateError(f"Step start_delay must be >= 0, got {self.start_delay}")
        if self.start_delay_fn is not None and not callable(self.start_delay_fn):
            raise TemplateError("Step start_delay_fn must be callable")
        _check_predicates(self)

    def resolve_start_delay(self, experiment) -> float:
        """
        Effective delay (seconds) for one presentation of this step.

        Args:
            experiment: Running Experiment, passed to start_delay_fn

        Returns:
            start_delay_fn(experiment) if set, otherwise start_delay
        """
        if self.start_delay_fn is not None:
            return self.start_delay_fn(experiment)
        return self.start_delay

    def with_options(self, **changes) -> 'Step':
        """Return a copy of this step with the given fields replaced."""
        return replace(self, **changes)

    def validate(self) -> List[str]:
        """Validate step configuration (empty list if valid)."""
        errors = []
        if self.content is None:
            errors.append("Step has no content")
        return errors

    @property
    def label(self) -> str:
        return self.name or 'Step'


@dataclass(frozen=True)
class Block:
    """
    An ordered group of steps and blocks that can be skipped or repeated as a whole.

    The children are copied into a tuple at construction, so changing the
    list passed in afterwards has no effect on the block.

    Raises:
        TemplateError: children is empty, contains a Sequence, or contains
                       something that is not a Step or Block
    """
    children: Tuple[Union[Step, 'Block'], ...]
    skip: Predicate = never
    repeat: Predicate = never
    name: Optional[str] = None

    def __post_init__(self):
        children = tuple(self.children)
        object.__setattr__(self, 'children', children)

        kind = type(self).__name__
        if not children:
            raise TemplateError(f"{kind} is empty")

        for index, child in enumerate(children):
            if isinstance(child, Sequence):
                raise TemplateError(f"Sequence nested in {kind} (child {index})")
            if not isinstance(child, (Step, Block)):
                raise TemplateError(
                    f"{kind} child {index} must be a Step or Block, got {type(child).__name__}"
                )

        _check_predicates(self)

    def with_options(self, **changes) -> 'Block':
        """Return a copy of this block with the given fields replaced."""
        return replace(self, **changes)

    def count_steps(self) -> int:
        """Number of authored steps in this block, recursively."""
        return sum(
            child.count_steps() if isinstance(child, Block) else 1
            for child in self.children
        )

    def count_blocks(self) -> int:
        """Number of authored blocks, including this one."""
        return 1 + sum(
            child.count_blocks() for child in self.children if isinstance(child, Block)
        )

    def validate(self) -> List[str]:
        """
        Validate all children.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []
        for i, child in enumerate(self.children):
            child_errors = child.validate()
            errors.extend([f"Child {i} ({child.label}): {e}" for e in child_errors])
        return errors

    @property
    def label(self) -> str:
        return self.name or type(self).__name__


@dataclass(frozen=True)
class Sequence(Block):
    """
    Root block of an experiment.

    Exactly one Sequence drives a run. Its repeat predicate decides whether
    the whole experiment loops again; returning False ends the run.

    Example:
        sequence = Sequence([welcome, Block([trial1, trial2]), goodbye])
    """
    pass


def _check_predicates(template):
    for attr in ('skip', 'repeat'):
        if not callable(getattr(template, attr)):
            raise TemplateError(f"{type(template).__name__}.{attr} must be callable")
