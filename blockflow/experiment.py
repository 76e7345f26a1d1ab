"""
Experiment class for the blockflow framework.

Top-level run orchestrator: compiles the Sequence, walks the execution graph,
waits while each step is on screen and records the step when the content
calls complete_current_step().
"""

from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional
import logging
import time

import pyglet

from .config import ExperimentSettings
from .data_collector import DataCollector
from .errors import ExperimentUsageError, TemplateError
from .execution.compiler import compile_sequence
from .execution.nodes import BlockEndNode, BlockStartNode, ExecutionGraph, StepNode
from .execution.templates import Sequence, Step
from .rendering import NullRenderer, Renderer
from .scheduling import PygletScheduler, Scheduler

logger = logging.getLogger(__name__)

# Record fields always written by the experiment (author values are replaced)
LEVEL_FIELD = 'level'
START_TIME_FIELD = 'startTime'
END_TIME_FIELD = 'endTime'
RESERVED_FIELDS = (LEVEL_FIELD, START_TIME_FIELD, END_TIME_FIELD)


class ExperimentState(Enum):
    """Run state of an Experiment."""
    IDLE = 'idle'                                # not started
    AWAITING_RENDER = 'awaiting_render'          # step start delay pending
    AWAITING_COMPLETION = 'awaiting_completion'  # step on screen
    FINISHED = 'finished'
    FAILED = 'failed'                            # a predicate or the renderer raised


def time_in_milliseconds() -> int:
    """Wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


class Experiment:
    """
    Runs a Sequence as a strictly sequential flow of steps.

    Lifecycle:
    1. __init__: Bind the Sequence and collaborators (renderer, scheduler, data)
    2. start / run: Compile a fresh execution graph and present the first step
    3. complete_current_step: Called by step content; records the step and
       moves on to the next one
    4. The run ends when the Sequence's end node is passed without repeating

    Only one step is ever on screen. The experiment does not advance past it
    until complete_current_step() is called, and never times a step out.

    Example:
        def greeting(experiment):
            ...  # build something that eventually calls experiment.complete_current_step()

        experiment = Experiment(Sequence([Step(content=greeting)]),
                                renderer=WindowRenderer(window))
        experiment.run()
    """

    def __init__(self, sequence: Sequence,
                 renderer: Optional[Renderer] = None,
                 scheduler: Optional[Scheduler] = None,
                 data_collector: Optional[DataCollector] = None,
                 settings: Optional[ExperimentSettings] = None,
                 clock: Optional[Callable[[], int]] = None,
                 on_finish: Optional[Callable[['Experiment'], None]] = None):
        """
        Initialize experiment.

        Args:
            sequence: Root Sequence template
            renderer: Renderer for step content (default: NullRenderer)
            scheduler: Scheduler for start delays (default: PygletScheduler)
            data_collector: Record store (default: new DataCollector from settings)
            settings: ExperimentSettings (default: ExperimentSettings())
            clock: Function returning the current time in milliseconds
            on_finish: Callback(experiment) called when the run ends

        Raises:
            TemplateError: sequence is not a Sequence
        """
        if not isinstance(sequence, Sequence):
            raise TemplateError(
                f"Experiment requires a Sequence, got {type(sequence).__name__}"
            )

        self.sequence = sequence
        self.settings = settings if settings is not None else ExperimentSettings()
        self.renderer = renderer if renderer is not None else NullRenderer()
        self.scheduler = scheduler if scheduler is not None else PygletScheduler()
        self.data = data_collector if data_collector is not None else DataCollector(
            output_dir=self.settings.output_directory,
            experiment_name=self.settings.name
        )
        self.on_finish = on_finish
        self._clock = clock or time_in_milliseconds

        # Runtime state
        self.graph: Optional[ExecutionGraph] = None
        self._state = ExperimentState.IDLE
        self._current_index: Optional[int] = None
        self._current_step_start_time: Optional[int] = None
        self._dispatching = False
        self._owns_event_loop = False

        # Incremented on every presentation; lets content prove which
        # presentation it is completing
        self.presentation_id: int = 0

    # ==================== PUBLIC API ====================

    def start(self):
        """
        Compile the Sequence into a fresh graph and run its first node.

        Raises:
            ExperimentUsageError: The experiment is already running
        """
        if self.is_running or self._dispatching:
            raise ExperimentUsageError("Experiment is already running")

        self.graph = compile_sequence(self.sequence)
        logger.info(
            f"Starting experiment '{self.settings.name}' "
            f"({len(self.graph.step_nodes())} steps, {len(self.graph.block_pairs())} blocks)"
        )
        logger.debug(f"Execution graph:\n{self.graph.describe()}")

        self._walk(self.graph.first)

    def run(self):
        """
        Start the experiment and run the pyglet event loop until it finishes.

        Requires a scheduler that is driven by pyglet (the default
        PygletScheduler).
        """
        self.start()
        if self.is_finished or self._state is ExperimentState.FAILED:
            return

        self._owns_event_loop = True
        try:
            logger.info("Starting pyglet event loop...")
            pyglet.app.run()
            logger.info("Pyglet event loop exited")
        finally:
            self._owns_event_loop = False

    def complete_current_step(self, fields: Optional[Mapping[str, Any]] = None,
                              presentation: Optional[int] = None):
        """
        Finish the step on screen, record it and proceed to the next step.

        This is the only way a step ends: content must call it (from a key
        handler, a timer it manages itself, etc.) or the run waits forever.

        The record is a copy of fields with three keys always set by the
        experiment, replacing any value supplied under the same name:
        - level: nesting depth of the step (0 = directly in the Sequence)
        - startTime: ms timestamp when the content was first displayed
        - endTime: ms timestamp of this call

        Args:
            fields: Data to store for this step (e.g. {'response': 'f', 'rt': 532})
            presentation: Optional presentation_id captured when the content
                          was shown; a stale id is rejected

        Raises:
            ExperimentUsageError: No step is awaiting completion, the call is
                                  re-entrant, or presentation is stale
        """
        if self._dispatching:
            raise ExperimentUsageError(
                "complete_current_step() called while the experiment is advancing"
            )
        if self._state is not ExperimentState.AWAITING_COMPLETION:
            raise ExperimentUsageError(
                f"No step is awaiting completion (state: {self._state.value})"
            )
        if presentation is not None and presentation != self.presentation_id:
            raise ExperimentUsageError(
                f"Presentation {presentation} already completed "
                f"(current presentation: {self.presentation_id})"
            )

        node = self.current_node
        end_time = self._clock()

        record = dict(fields) if fields else {}
        record[LEVEL_FIELD] = node.level
        record[START_TIME_FIELD] = self._current_step_start_time
        record[END_TIME_FIELD] = end_time
        self.data.add_record(record)

        logger.debug(
            f"Completed step [{node.index}] {node.name} "
            f"({end_time - self._current_step_start_time}ms)"
        )

        self._walk(node.index, completed=True)

    def save_data(self):
        """
        Write collected records using the settings' format and file name.

        Returns:
            Path of the written file
        """
        file_name = self.settings.get_data_file_name()
        if self.settings.data_format == 'json':
            return self.data.save_as_json(file_name)
        return self.data.save_as_csv(file_name)

    # ==================== STATE ====================

    @property
    def state(self) -> ExperimentState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in (ExperimentState.AWAITING_RENDER, ExperimentState.AWAITING_COMPLETION)

    @property
    def is_finished(self) -> bool:
        return self._state is ExperimentState.FINISHED

    @property
    def current_node(self):
        """Node being run (None before start and after the run ends)."""
        if self.graph is None or self._current_index is None:
            return None
        return self.graph[self._current_index]

    @property
    def current_step(self) -> Optional[Step]:
        """Step template of the current node, if it is a step."""
        node = self.current_node
        return node.step if isinstance(node, StepNode) else None

    @property
    def current_level(self) -> Optional[int]:
        node = self.current_node
        return node.level if node is not None else None

    def get_progress(self) -> Dict[str, Any]:
        """
        Get current experiment progress.

        Returns:
            Dictionary with progress information
        """
        node = self.current_node
        return {
            'state': self._state.value,
            'completed_records': len(self.data),
            'current_node': node.index if node is not None else None,
            'current_name': node.name if node is not None else '',
            'current_level': node.level if node is not None else None,
            'presentation_id': self.presentation_id,
        }

    # ==================== GRAPH TRAVERSAL ====================

    def _walk(self, index: Optional[int], completed: bool = False):
        """
        Advance through the graph until a step is presented or the run ends.

        Block boundaries and skipped steps are passed through in a loop, so
        any number of them can follow each other without recursion.

        Args:
            index: Node to run (or, if completed, the step that just completed)
            completed: index is a completed step; start from its successor
        """
        self._dispatching = True
        try:
            if completed:
                index = self.graph[index].successor(self.graph, self)

            while index is not None:
                node = self.graph[index]
                self._current_index = index

                if isinstance(node, StepNode):
                    if node.step.skip(self):
                        logger.debug(f"Skipping step [{node.index}] {node.name}")
                        index = node.next
                        continue
                    self._present(node)
                    return
                elif isinstance(node, (BlockStartNode, BlockEndNode)):
                    index = node.successor(self.graph, self)
                else:
                    raise TypeError(f"Unknown execution node: {type(node).__name__}")

        except Exception as e:
            self._state = ExperimentState.FAILED
            logger.error(f"Experiment failed at node {self._current_index}: {e}")
            raise

        finally:
            self._dispatching = False

        self._finish()

    def _present(self, node: StepNode):
        """Blank the screen if the step has a start delay, then schedule its display."""
        delay = node.step.resolve_start_delay(self)

        self._state = ExperimentState.AWAITING_RENDER
        self.presentation_id += 1
        presentation = self.presentation_id

        if delay > 0:
            self.renderer.clear()

        logger.debug(f"Presenting step [{node.index}] {node.name} after {delay:.3f}s")
        self.scheduler.schedule(max(delay, 0.0), lambda: self._display(presentation))

    def _display(self, presentation: int):
        """Scheduler callback: hand the step content to the renderer."""
        if presentation != self.presentation_id or self._state is not ExperimentState.AWAITING_RENDER:
            logger.debug(f"Ignoring stale display of presentation {presentation}")
            return

        node = self.current_node
        self._state = ExperimentState.AWAITING_COMPLETION
        self._current_step_start_time = self._clock()

        def on_displayed():
            if presentation == self.presentation_id and self._state is ExperimentState.AWAITING_COMPLETION:
                self._current_step_start_time = self._clock()

        try:
            self.renderer.show(node.step.content, self, on_displayed)
        except Exception as e:
            self._state = ExperimentState.FAILED
            logger.error(f"Renderer failed to show step [{node.index}] {node.name}: {e}")
            raise

    def _finish(self):
        """End of the chain: the run is over."""
        self._state = ExperimentState.FINISHED
        self._current_index = None
        self.renderer.clear()

        logger.info(f"Experiment '{self.settings.name}' finished ({len(self.data)} records)")

        if self.settings.save_on_finish:
            self.save_data()

        if self.on_finish:
            self.on_finish(self)

        if self._owns_event_loop:
            pyglet.app.exit()

    def __repr__(self):
        return (
            f"Experiment(name='{self.settings.name}', "
            f"state={self._state.value}, "
            f"records={len(self.data)})"
        )
