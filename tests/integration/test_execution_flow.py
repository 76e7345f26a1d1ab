"""
Integration tests for execution flow.

Runs complete experiments (compile, present, complete, record) with a manual
scheduler and a recording renderer, so no display is required.
"""

import pytest
from blockflow import Block, Experiment, ExperimentState, Sequence, Step


def _times(n):
    """Predicate that returns True for its first n calls, then False."""
    calls = {'count': 0}

    def predicate(experiment):
        calls['count'] += 1
        return calls['count'] <= n

    return predicate


# ==================== BASIC FLOW TESTS ====================

@pytest.mark.integration
def test_single_step_run(make_experiment, scheduler, renderer, clock):
    """One step with defaults: one record, then the run ends."""
    experiment = make_experiment(Sequence([Step(content='A')]))

    experiment.start()
    scheduler.run_pending()
    clock.advance(300)
    experiment.complete_current_step({'response': 'space'})

    assert experiment.is_finished
    assert experiment.data.get_all_records() == [
        {'response': 'space', 'level': 0, 'startTime': 1000, 'endTime': 1300}
    ]
    assert renderer.shown == ['A']


@pytest.mark.integration
def test_step_repeated_until_predicate_false(make_experiment, renderer, complete_steps):
    """Repeat true for three completions, false on the fourth: four records."""
    experiment = make_experiment(Sequence([
        Step(content='A', repeat=_times(3)),
        Step(content='B'),
    ]))

    experiment.start()
    complete_steps(experiment, 4, lambda i: {'presentation': i})

    assert renderer.shown == ['A', 'A', 'A', 'A']
    assert [r['presentation'] for r in experiment.data.get_all_records()] == [0, 1, 2, 3]
    assert experiment.is_running

    complete_steps(experiment, 1)

    assert renderer.shown[-1] == 'B'
    assert experiment.is_finished
    assert len(experiment.data) == 5


@pytest.mark.integration
def test_block_repeated_once(make_experiment, renderer, complete_steps):
    """A block repeated once presents its steps in order twice."""
    experiment = make_experiment(Sequence([
        Block([Step(content='step1'), Step(content='step2')], repeat=_times(1)),
    ]))

    experiment.start()
    complete_steps(experiment, 4)

    assert renderer.shown == ['step1', 'step2', 'step1', 'step2']
    assert len(experiment.data) == 4
    assert all(r['level'] == 1 for r in experiment.data.get_all_records())
    assert experiment.is_finished


@pytest.mark.integration
def test_skipped_block_produces_no_records(make_experiment, renderer, complete_steps):
    """Nothing inside a skipped block is evaluated or presented."""
    inner_predicate_calls = []

    def inner_skip(experiment):
        inner_predicate_calls.append(True)
        return False

    experiment = make_experiment(Sequence([
        Step(content='before'),
        Block([
            Step(content='hidden1', skip=inner_skip),
            Block([Step(content='hidden2')]),
        ], skip=lambda experiment: True),
        Step(content='after'),
    ]))

    experiment.start()
    complete_steps(experiment, 2)

    assert renderer.shown == ['before', 'after']
    assert inner_predicate_calls == []
    assert [r['level'] for r in experiment.data.get_all_records()] == [0, 0]
    assert experiment.is_finished


@pytest.mark.integration
def test_delay_function_overrides_fixed_delay(make_experiment, renderer, scheduler, clock):
    """A 0.5s delay function wins over a fixed delay of 0: blank, then content."""
    experiment = make_experiment(Sequence([
        Step(content='A', start_delay=0.0, start_delay_fn=lambda experiment: 0.5),
    ]))

    experiment.start()

    assert renderer.events == [('clear', None)]
    assert experiment.state is ExperimentState.AWAITING_RENDER

    scheduler.advance(0.25)
    assert renderer.shown == []

    clock.advance(500)
    scheduler.advance(0.25)
    assert renderer.shown == ['A']
    assert experiment.state is ExperimentState.AWAITING_COMPLETION

    clock.advance(200)
    experiment.complete_current_step()

    record = experiment.data.get_last_record()
    assert record['startTime'] == 1500
    assert record['endTime'] == 1700


# ==================== NESTED FLOW TESTS ====================

@pytest.mark.integration
def test_nested_levels_recorded(make_experiment, sample_sequence, complete_steps):
    """Records carry the nesting depth of the step that produced them."""
    experiment = make_experiment(sample_sequence)

    experiment.start()
    complete_steps(experiment, 5)

    assert experiment.is_finished
    assert [r['level'] for r in experiment.data.get_all_records()] == [0, 1, 2, 2, 0]


@pytest.mark.integration
def test_repeat_inner_block_inside_repeated_outer_block(make_experiment, renderer, complete_steps):
    """Inner repeats are re-evaluated on every pass of the outer block."""
    experiment = make_experiment(Sequence([
        Block([
            Step(content='cue'),
            Block([Step(content='target')],
                  repeat=lambda experiment: experiment.data.get_last_record()['pass'] < 1),
        ], repeat=_times(1)),
    ]))

    def fields(i):
        # cue, target(pass 0), target(pass 1), cue, target(pass 0), target(pass 1)
        return {'pass': {0: 0, 1: 0, 2: 1, 3: 0, 4: 0, 5: 1}[i]}

    experiment.start()
    complete_steps(experiment, 6, fields)

    assert renderer.shown == ['cue', 'target', 'target', 'cue', 'target', 'target']
    assert experiment.is_finished


@pytest.mark.integration
def test_nested_blocks_example_flow(make_experiment, renderer, complete_steps):
    """
    Mirrors examples/nested_blocks_example.py.

    The first step is shown four times, the second step is skipped and
    the "Repeated block" runs twice.
    """
    def content(level):
        return f'level {level}'

    experiment = make_experiment(Sequence([
        Block([
            Step(content=content(1), start_delay=0.2, repeat=_times(3), name='Repeated step'),
            Step(content='skipped', start_delay_fn=lambda experiment: 0.5,
                 skip=lambda experiment: True, name='Skipped step'),
            Block([
                Block([
                    Step(content=content(3), start_delay_fn=lambda experiment: 0.5),
                    Block([
                        Step(content=content(4)),
                        Step(content=content(4)),
                    ], repeat=_times(1), name='Repeated block'),
                    Block([
                        Step(content=content(4)),
                        Step(content=content(4)),
                    ]),
                    Step(content=content(3)),
                ]),
                Step(content=content(2)),
            ]),
        ]),
    ], name='Main sequence'))

    experiment.start()
    complete_steps(experiment, 13)

    assert experiment.is_finished
    assert 'skipped' not in renderer.shown
    assert [r['level'] for r in experiment.data.get_all_records()] == [
        1, 1, 1, 1,
        3,
        4, 4, 4, 4,
        4, 4,
        3,
        2,
    ]


@pytest.mark.integration
def test_records_ordered_by_completion(make_experiment, sample_sequence, clock, complete_steps):
    """endTime never decreases across the collected records."""
    experiment = make_experiment(sample_sequence)
    clock_steps = iter([10, 20, 30, 40, 50])

    def fields_for(i):
        clock.advance(next(clock_steps))
        return {'index': i}

    experiment.start()
    complete_steps(experiment, 5, fields_for)

    records = experiment.data.get_all_records()
    assert [r['index'] for r in records] == [0, 1, 2, 3, 4]
    end_times = [r['endTime'] for r in records]
    assert end_times == sorted(end_times)
    assert all(r['startTime'] <= r['endTime'] for r in records)


@pytest.mark.integration
def test_block_level_data_filtering(make_experiment, sample_sequence, complete_steps):
    """Collected data can be filtered by level after the run."""
    experiment = make_experiment(sample_sequence)

    experiment.start()
    complete_steps(experiment, 5, lambda i: {'index': i})

    response_records = experiment.data.filter_records(lambda r: r['level'] == 2)

    assert [r['index'] for r in response_records] == [2, 3]


@pytest.mark.integration
def test_full_run_writes_csv(sample_sequence, tmp_path, scheduler, renderer, clock, complete_steps):
    """save_on_finish writes one CSV row per completed step."""
    from blockflow import ExperimentSettings

    settings = ExperimentSettings(name='nested', output_directory=str(tmp_path), save_on_finish=True)
    experiment = Experiment(sample_sequence, renderer=renderer, scheduler=scheduler,
                            settings=settings, clock=clock)

    experiment.start()
    complete_steps(experiment, 5, lambda i: {'response': f'r{i}'})

    lines = (tmp_path / 'nested_data.csv').read_text(encoding='utf-8').splitlines()
    assert lines[0] == 'response,level,startTime,endTime'
    assert len(lines) == 6
