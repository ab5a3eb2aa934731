import pytest

import chart_generator
import gameplay_models
import hand_signal
import judge
import note_scheduler
import play_space
import session_state
import timing_model


@pytest.mark.parametrize(
    "module",
    [gameplay_models, play_space, chart_generator, timing_model, hand_signal, note_scheduler, judge, session_state],
    ids=lambda module: module.__name__,
)
def test_module_self_checks(module):
    module._run_unit_tests()
