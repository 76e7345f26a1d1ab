"""
blockflow: build psychology experiments from nested, skippable and
repeatable blocks of steps.

Example:
    from blockflow import Block, Experiment, Sequence, Step

    sequence = Sequence([
        Step(content="Welcome", name="Welcome"),
        Block([Step(content="+", start_delay=0.5), Step(content=stimulus)],
              repeat=lambda experiment: len(experiment.data) < 20),
    ])
    Experiment(sequence, renderer=renderer).run()
"""

import logging

from .config import ExperimentSettings
from .data_collector import DataCollector
from .errors import BlockflowError, ExperimentUsageError, TemplateError
from .execution import Block, ExecutionGraph, GraphCompiler, Sequence, Step, compile_sequence
from .experiment import Experiment, ExperimentState
from .rendering import NullRenderer, Renderer, WindowRenderer, create_window
from .scheduling import ManualScheduler, PygletScheduler, Scheduler

__version__ = '0.1.0'


def configure_logging(level='INFO'):
    """
    Set up console logging for experiment scripts.

    Args:
        level: Logging level name or number (e.g. 'DEBUG', logging.INFO)
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )


__all__ = [
    'Block',
    'BlockflowError',
    'DataCollector',
    'ExecutionGraph',
    'Experiment',
    'ExperimentSettings',
    'ExperimentState',
    'ExperimentUsageError',
    'GraphCompiler',
    'ManualScheduler',
    'NullRenderer',
    'PygletScheduler',
    'Renderer',
    'Scheduler',
    'Sequence',
    'Step',
    'TemplateError',
    'WindowRenderer',
    'compile_sequence',
    'configure_logging',
    'create_window',
]
