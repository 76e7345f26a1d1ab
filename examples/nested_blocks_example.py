"""
Example: Nested blocks with skip and repeat

Opens a window and runs a small experiment:
- the first step is shown 4 times (repeat returns True three times)
- the second step is always skipped
- an inner block is repeated once
- data is saved as CSV when the run ends

Press any key to finish each step.

Usage:
    python examples/nested_blocks_example.py
"""

import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pyglet

from blockflow import (
    Block, Experiment, ExperimentSettings, ExperimentState, Sequence, Step,
    WindowRenderer, configure_logging, create_window,
)


def counter_content(level):
    """
    Build step content that shows the number of completed steps and the level.

    Args:
        level: Nesting level shown on screen
    """
    def content(experiment):
        return f"{len(experiment.data)} - level {level}"

    return content


def attach_key_handler(window, experiment):
    """
    Finish the step on screen when any key is pressed.

    Registered once on the window; presses during a start delay are ignored.
    """
    @window.event
    def on_key_press(symbol, modifiers):
        if experiment.state is ExperimentState.AWAITING_COMPLETION:
            experiment.complete_current_step(
                {'key': pyglet.window.key.symbol_string(symbol)},
                presentation=experiment.presentation_id
            )
        return pyglet.event.EVENT_HANDLED


def build_sequence() -> Sequence:
    repeats = {'first': 0, 'inner': 0}

    def repeat_first_step(experiment):
        # Three extra presentations, four in total
        if repeats['first'] < 3:
            repeats['first'] += 1
            return True
        return False

    def repeat_inner_block_once(experiment):
        if repeats['inner'] == 0:
            repeats['inner'] = 1
            return True
        return False

    return Sequence([
        Block([
            Step(content=counter_content(1), start_delay=0.2,
                 repeat=repeat_first_step, name="Repeated step"),
            Step(content=counter_content(1),
                 start_delay_fn=lambda experiment: 0.5,
                 skip=lambda experiment: True, name="Skipped step"),
            Block([
                Block([
                    Step(content=counter_content(3), start_delay_fn=lambda experiment: 0.5),
                    Block([
                        Step(content=counter_content(4)),
                        Step(content=counter_content(4)),
                    ], repeat=repeat_inner_block_once, name="Repeated block"),
                    Block([
                        Step(content=counter_content(4)),
                        Step(content=counter_content(4)),
                    ]),
                    Step(content=counter_content(3)),
                ]),
                Step(content=counter_content(2)),
            ]),
        ]),
    ], name="Main sequence")


def main():
    settings = ExperimentSettings(name="nested_blocks", output_directory="data", save_on_finish=True)
    configure_logging(settings.log_level)

    window = create_window(settings)
    experiment = Experiment(
        build_sequence(),
        renderer=WindowRenderer(window),
        settings=settings,
        on_finish=lambda experiment: window.close()
    )
    attach_key_handler(window, experiment)
    experiment.run()


if __name__ == "__main__":
    main()
