"""
Pytest configuration and fixtures for blockflow tests.

Provides a recording renderer, a manual scheduler and a fake clock so
experiments can be run step by step without a window or real timers.
"""

import pytest
import sys
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


# ==================== PYTEST CONFIGURATION ====================

def pytest_configure(config):
    """Add custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: unit test (fast, no I/O)")
    config.addinivalue_line("markers", "integration: integration test (full experiment runs)")


# ==================== FAKE COLLABORATORS ====================

class RecordingRenderer:
    """
    Renderer that records every call.

    Reports content as displayed immediately, like a renderer whose first
    frame is drawn synchronously.
    """

    def __init__(self):
        self.events = []
        self.shown = []
        self.current = None

    def show(self, content, experiment, on_displayed):
        self.current = content
        self.shown.append(content)
        self.events.append(('show', content))
        on_displayed()

    def clear(self):
        self.current = None
        self.events.append(('clear', None))


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


# ==================== FIXTURES ====================

@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def scheduler():
    from blockflow.scheduling import ManualScheduler
    return ManualScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_experiment(renderer, scheduler, clock):
    """
    Factory for experiments wired to the fake renderer, scheduler and clock.

    Usage:
        experiment = make_experiment(Sequence([Step(content='A')]))
    """
    from blockflow.experiment import Experiment

    def factory(sequence, **kwargs):
        kwargs.setdefault('renderer', renderer)
        kwargs.setdefault('scheduler', scheduler)
        kwargs.setdefault('clock', clock)
        return Experiment(sequence, **kwargs)

    return factory


@pytest.fixture
def complete_steps(scheduler):
    """
    Helper that displays and completes steps one after another.

    Usage:
        complete_steps(experiment, 3)                      # empty records
        complete_steps(experiment, 2, lambda i: {'i': i})  # custom fields
    """
    def helper(experiment, count, fields_for=None):
        for i in range(count):
            scheduler.advance(60.0)  # longer than any start delay used in tests
            fields = fields_for(i) if fields_for else {}
            experiment.complete_current_step(fields)
        return experiment

    return helper


@pytest.fixture
def sample_sequence():
    """
    Sequence with two levels of nesting:

        Sequence
          Welcome            (level 0)
          Block "Trials"
            Fixation         (level 1)
            Block "Response"
              Stimulus       (level 2)
              Rating         (level 2)
          Goodbye            (level 0)
    """
    from blockflow.execution.templates import Block, Sequence, Step

    return Sequence([
        Step(content='welcome', name='Welcome'),
        Block([
            Step(content='+', start_delay=0.5, name='Fixation'),
            Block([
                Step(content='stimulus', name='Stimulus'),
                Step(content='rating', name='Rating'),
            ], name='Response'),
        ], name='Trials'),
        Step(content='goodbye', name='Goodbye'),
    ], name='Main')
