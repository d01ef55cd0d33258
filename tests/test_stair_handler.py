"""
test_stair_handler.py
---------------------

Tests for the N-up / M-down StairHandler: step rules, reversals, stopping
and response validation.
"""

import logging
import math

import pytest

from psytimeline.data import StairHandler, StepType
from psytimeline.data.stair_handler import Direction
from psytimeline.errors import ConfigurationError, InvalidResponse


def linear_stairs(**kwargs):
    options = dict(start_val=0.5, step_sizes=[0.1], step_type="lin", n_trials=10)
    options.update(kwargs)
    return StairHandler(**options)


class TestSteps:
    def test_increase_value(self):
        stairs = linear_stairs()
        stairs._correct_counter = 2
        stairs._increase_value()
        assert stairs.get_stair_value() == pytest.approx(0.6)
        assert stairs._correct_counter == 0

    def test_decrease_value(self):
        stairs = linear_stairs()
        stairs._correct_counter = -2
        stairs._decrease_value()
        assert stairs.get_stair_value() == pytest.approx(0.4)
        assert stairs._correct_counter == 0

    def test_bounds(self):
        stairs = linear_stairs(min_val=0.45, max_val=0.55)
        stairs._increase_value()
        assert stairs.intensity == pytest.approx(0.55)
        stairs._decrease_value()
        stairs._decrease_value()
        assert stairs.intensity == pytest.approx(0.45)

    @pytest.mark.parametrize(
        "step_type, step, expected",
        [("db", 20.0, 0.1), ("log", 1.0, 0.1), ("lin", 0.5, 0.5)],
    )
    def test_step_types(self, step_type, step, expected):
        stairs = StairHandler(start_val=1.0, step_sizes=step, step_type=step_type)
        stairs._decrease_value()
        assert stairs.intensity == pytest.approx(expected)

    def test_step_type_parsing(self):
        assert StepType.parse("LINEAR") is StepType.LINEAR
        assert StepType.parse("db") is StepType.DB
        with pytest.raises(ConfigurationError):
            StepType.parse("octave")


class TestRule:
    def test_initial_rule_then_three_down(self):
        stairs = linear_stairs(n_down=3)
        expected = [0.4, 0.3, 0.4, 0.5, 0.5, 0.5, 0.4]
        for response, value in zip([1, 1, 0, 0, 1, 1, 1], expected):
            stairs.add_response(response)
            assert stairs.intensity == pytest.approx(value)

        assert stairs.reversal_values == pytest.approx([0.3, 0.5])
        assert stairs.reversal_points == [2, 6]
        assert stairs.data == [1, 1, 0, 0, 1, 1, 1]
        assert stairs.values == pytest.approx([0.5, 0.4, 0.3, 0.4, 0.5, 0.5, 0.5])

    def test_without_initial_rule(self):
        stairs = linear_stairs(n_down=2, apply_initial_rule=False)
        stairs.add_response(1)
        assert stairs.intensity == pytest.approx(0.5)
        stairs.add_response(1)
        assert stairs.intensity == pytest.approx(0.4)
        assert stairs._current_direction is Direction.DOWN

    def test_step_size_follows_reversals(self):
        stairs = StairHandler(
            start_val=1.0, step_sizes=[0.4, 0.2], step_type="lin", n_down=1, n_trials=10
        )
        assert stairs.step_size_current == pytest.approx(0.4)
        stairs.add_response(1)
        stairs.add_response(0)
        assert len(stairs.reversal_values) == 1
        assert stairs.step_size_current == pytest.approx(0.2)

    def test_mean_reversal_value(self):
        stairs = linear_stairs(n_down=3)
        assert math.isnan(stairs.mean_reversal_value())
        for response in [1, 1, 0, 0, 1, 1, 1]:
            stairs.add_response(response)
        assert stairs.mean_reversal_value() == pytest.approx(0.4)
        assert stairs.mean_reversal_value(n_last=1) == pytest.approx(0.5)


class TestStopping:
    def test_finishes_after_reversals_and_trials(self):
        stairs = linear_stairs(n_down=1, n_trials=2, n_reversals=1)
        stairs.add_response(1)
        assert not stairs.finished
        stairs.add_response(0)
        assert stairs.finished
        assert stairs.next() is None

    def test_needs_both_criteria(self):
        stairs = linear_stairs(n_down=1, n_trials=4, n_reversals=1)
        stairs.add_response(1)
        stairs.add_response(0)
        assert len(stairs.reversal_values) == 1
        assert not stairs.finished

    def test_iteration_presents_current_intensity(self):
        stairs = linear_stairs(n_down=1, n_trials=3, n_reversals=1, var_name="contrast")
        presented = []
        for trial in stairs:
            presented.append(trial["contrast"])
            stairs.add_response(len(presented) % 2)

        assert presented[0] == pytest.approx(0.5)
        assert presented == pytest.approx(stairs.values)
        assert stairs.finished
        assert stairs.this_n == len(presented) - 1

    def test_n_reversals_raised_to_step_count(self, caplog):
        with caplog.at_level(logging.WARNING):
            stairs = StairHandler(start_val=1.0, step_sizes=[4, 2, 1], n_reversals=1)
        assert stairs.n_reversals == 3
        assert "n_reversals" in caplog.text

    def test_n_reversals_defaults_to_step_count(self):
        assert StairHandler(start_val=1.0, step_sizes=[4, 2]).n_reversals == 2


class TestResponses:
    @pytest.mark.parametrize("response", [2, -1, "1", None, 0.5])
    def test_invalid_response(self, response):
        stairs = linear_stairs()
        with pytest.raises(InvalidResponse, match="the response must be either 0 or 1"):
            stairs.add_response(response)
        assert stairs.data == []

    def test_bool_response(self):
        stairs = linear_stairs()
        stairs.add_response(True)
        assert stairs.data == [1]

    def test_response_is_logged(self, experiment):
        stairs = linear_stairs(name="stairs", experiment=experiment)
        stairs.add_response(1)
        assert experiment.trials_keys == ["stairs.response"]

    def test_response_not_logged_on_request(self, experiment):
        stairs = linear_stairs(name="stairs", experiment=experiment)
        stairs.add_response(1, None, False)
        assert experiment.is_entry_empty()

    def test_presented_value_overrides(self):
        stairs = linear_stairs()
        stairs.add_response(1, value=0.8)
        assert stairs.values == [0.8]


class TestConfiguration:
    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(start_val=None),
            dict(start_val=1.0, step_sizes=[0]),
            dict(start_val=1.0, n_up=0),
            dict(start_val=1.0, n_down=1.5),
            dict(start_val=1.0, min_val=2.0, max_val=1.0),
            dict(start_val=1.0, step_type="octave"),
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ConfigurationError):
            StairHandler(**kwargs)
