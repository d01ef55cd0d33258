"""
test_trial_handler.py
---------------------

Tests for TrialHandler sequencing, cursor bookkeeping and snapshots.
"""

from collections import Counter

import pytest

from psytimeline.data import Snapshot, TrialHandler, TrialMethod
from psytimeline.errors import ConfigurationError


class TestSequential:
    @pytest.fixture
    def trials(self):
        return TrialHandler(["A", "B", "C"], n_reps=2, method="sequential", name="trials")

    def test_order_then_exhaustion(self, trials):
        drawn = [trials.next() for _ in range(6)]
        assert drawn == ["A", "B", "C", "A", "B", "C"]

        assert trials.next() is None
        assert trials.this_trial is None
        assert trials.finished

    def test_cursor(self, trials):
        for _ in range(4):
            trials.next()
        assert trials.this_n == 3
        assert trials.this_rep_n == 1
        assert trials.this_trial_n == 0
        assert trials.this_index == 0
        assert trials.n_remaining == 2
        assert trials.n_total == 6
        assert trials.n_stim == 3

    def test_cursor_before_first_trial(self, trials):
        assert trials.this_n == -1
        assert trials.this_trial_n == -1
        assert trials.this_rep_n == 0
        assert not trials.finished

    def test_iteration(self):
        trials = TrialHandler(["A", "B"], n_reps=2, method=TrialMethod.SEQUENTIAL)
        assert list(trials) == ["A", "B", "A", "B"]
        assert trials.finished

    def test_neighbour_trials(self, trials):
        trials.next()
        trials.next()
        assert trials.get_earlier_trial() == "A"
        assert trials.get_future_trial() == "C"
        assert trials.get_future_trial(4) == "C"
        assert trials.get_future_trial(5) is None
        assert trials.get_earlier_trial(-5) is None


class TestEmptyAndDegenerate:
    def test_no_conditions_is_one_none_condition(self):
        trials = TrialHandler(None, n_reps=3, method="sequential")
        assert trials.trial_list == [None]
        assert trials.n_total == 3
        # None conditions do not end the iteration
        assert list(trials) == [None, None, None]

    def test_empty_list_normalized(self):
        assert TrialHandler([], method="sequential").trial_list == [None]

    def test_zero_reps(self):
        trials = TrialHandler(["A"], n_reps=0)
        assert trials.n_total == 0
        assert trials.next() is None
        assert trials.finished

    @pytest.mark.parametrize("n_reps", [-1, 1.5, "2", True])
    def test_invalid_n_reps(self, n_reps):
        with pytest.raises(ConfigurationError):
            TrialHandler(["A"], n_reps=n_reps)


class TestRandomOrders:
    conditions = ["A", "B", "C", "D"]

    def test_random_rows_are_permutations(self):
        trials = TrialHandler(self.conditions, n_reps=5, method="random", seed=7)
        for row in trials._trial_sequence:
            assert sorted(row) == [0, 1, 2, 3]

    def test_random_is_reproducible(self):
        a = TrialHandler(self.conditions, n_reps=3, method="random", seed=11)
        b = TrialHandler(self.conditions, n_reps=3, method="random", seed=11)
        assert a._trial_sequence == b._trial_sequence
        assert list(a) == list(b)

    def test_random_actually_shuffles(self):
        identity = [0, 1, 2, 3]
        rows = [
            row
            for s in range(10)
            for row in TrialHandler(self.conditions, n_reps=2, method="random", seed=s)._trial_sequence
        ]
        assert any(row != identity for row in rows)

    def test_full_random_balances_the_multiset(self):
        trials = TrialHandler(self.conditions, n_reps=3, method="fullRandom", seed=3)
        assert trials.method is TrialMethod.FULL_RANDOM
        counts = Counter(trials)
        assert counts == {c: 3 for c in self.conditions}

    def test_fresh_seed_is_recorded(self):
        trials = TrialHandler(self.conditions)
        assert isinstance(trials._rng_seed, int)


class TestMethodParsing:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("sequential", TrialMethod.SEQUENTIAL),
            ("RANDOM", TrialMethod.RANDOM),
            ("fullRandom", TrialMethod.FULL_RANDOM),
            ("full_random", TrialMethod.FULL_RANDOM),
            (TrialMethod.RANDOM, TrialMethod.RANDOM),
        ],
    )
    def test_parse(self, name, expected):
        assert TrialMethod.parse(name) is expected

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError):
            TrialHandler(["A"], method="shuffled")


class TestSnapshots:
    def test_snapshot_sees_loop_finish(self):
        trials = TrialHandler([{"x": 1}, {"x": 2}], method="sequential", name="loop")
        trials.next()
        snapshot = trials.get_snapshot()

        assert isinstance(snapshot, Snapshot)
        assert snapshot.this_n == 0
        assert snapshot.get_current_trial() == {"x": 1}
        assert snapshot.trial_attributes == ("x",)
        assert not snapshot.finished

        list(trials)
        assert trials.finished
        assert snapshot.finished
        # the cursor is frozen at snapshot time
        assert snapshot.this_n == 0

    def test_snapshots_are_kept(self):
        trials = TrialHandler(["A"], n_reps=2, method="sequential")
        first = trials.get_snapshot()
        trials.next()
        second = trials.get_snapshot()
        assert trials.snapshots == [first, second]
        assert first.get_trials() == ["A"]

    def test_snapshot_add_data_forwards(self, experiment):
        trials = TrialHandler(["A"], name="loop", experiment=experiment)
        trials.get_snapshot().add_data("loop.rt", 0.42)
        assert experiment.trials_keys == ["loop.rt"]


class TestAccessors:
    @pytest.fixture
    def trials(self):
        return TrialHandler(
            [{"ori": 0, "sf": 1}, {"ori": 90, "contrast": 0.5}], method="sequential", name="gratings"
        )

    def test_set_trial_index(self, trials):
        trials.set_trial_index(1)
        assert trials.get_trial_index() == 1
        assert trials.this_trial == {"ori": 90, "contrast": 0.5}
        with pytest.raises(IndexError):
            trials.set_trial_index(2)

    def test_get_trial(self, trials):
        assert trials.get_trial(0) == {"ori": 0, "sf": 1}
        assert trials.get_trial(5) is None

    def test_get_attributes(self, trials):
        assert trials.get_attributes() == ["ori", "sf", "contrast"]

    def test_entry_attributes(self, trials):
        trials.next()
        entry = trials.get_entry_attributes()
        assert entry["gratings.this_n"] == 0
        assert entry["gratings.this_rep_n"] == 0
        assert entry["ori"] == 0

    def test_add_data_without_recorder_is_noop(self, trials):
        trials.add_data("key", 1)

    def test_registered_attributes(self, trials):
        assert trials.get_n_reps() == 1
        assert trials.name == "gratings"
        assert "TrialHandler(" in str(trials)
