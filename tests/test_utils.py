"""
test_utils.py
-------------

Tests for the RNG wrappers, sequence helpers and the manual frame driver.
"""

import jax.random as jr
import pytest

from psytimeline.scheduler import FrameDriver, ManualFrameDriver
from psytimeline.utils import choice, permutation, seed, shuffled, split
from psytimeline.utils.sequences import is_empty, to_list, value_range


class TestRng:
    def test_permutation_is_reproducible(self):
        key = seed(0)
        assert permutation(key, 5) == permutation(key, 5)
        assert sorted(permutation(key, 5)) == [0, 1, 2, 3, 4]

    def test_split_keys_differ(self):
        k1, k2 = split(seed(0))
        assert not bool((k1 == k2).all())

    def test_empty_permutation(self):
        assert permutation(seed(0), 0) == []

    def test_shuffled_keeps_items(self):
        items = ["a", "b", "c", "d"]
        result = shuffled(jr.PRNGKey(3), items)
        assert sorted(result) == items
        assert result is not items

    def test_choice_in_range(self):
        keys = split(seed(1), 20)
        assert all(0 <= choice(k, 3) < 3 for k in keys)


class TestSequences:
    @pytest.mark.parametrize("value, expected", [(None, True), ([], True), ([None], True), ([0], False), ("", False)])
    def test_is_empty(self, value, expected):
        assert is_empty(value) is expected

    def test_value_range(self):
        assert value_range(3) == [0, 1, 2]
        assert value_range(1, 7, 2) == [1, 3, 5]
        with pytest.raises(TypeError):
            value_range(1.5)
        with pytest.raises(TypeError):
            value_range()

    def test_to_list(self):
        assert to_list(1) == [1]
        assert to_list((1, 2)) == [1, 2]


class TestManualFrameDriver:
    def test_is_frame_driver(self):
        assert isinstance(ManualFrameDriver(), FrameDriver)

    def test_tick_runs_registered_callbacks(self):
        driver = ManualFrameDriver()
        stamps = []
        driver.request_frame(stamps.append)
        assert driver.pending == 1
        assert driver.tick(timestamp=16.0) == 1
        assert stamps == [16.0]
        assert driver.pending == 0
        assert driver.frame_count == 1

    def test_callbacks_registered_during_a_frame_wait(self):
        driver = ManualFrameDriver(clock=lambda: 1.0)
        calls = []

        def callback(timestamp):
            calls.append(timestamp)
            driver.request_frame(callback)

        driver.request_frame(callback)
        driver.tick()
        assert calls == [1000.0]
        assert driver.pending == 1

    def test_run_bounded(self):
        driver = ManualFrameDriver()

        def callback(timestamp):
            driver.request_frame(callback)

        driver.request_frame(callback)
        assert driver.run(max_frames=5) == 5
        assert driver.pending == 1
