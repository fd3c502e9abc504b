import itertools
import unittest

from cidash.entities import ComparisonMode
from cidash.services.comparison import ComparisonEvent, ComparisonModeArbiter, transition
from cidash.services.exceptions import ComparisonModeConflict, ValidationFailure


class TestTransition(unittest.TestCase):
    def test_detect_from_idle(self):
        self.assertEqual(transition(None, ComparisonEvent.DETECT_BRANCH), ComparisonMode.BRANCH)
        self.assertEqual(transition(None, ComparisonEvent.DETECT_COMMIT), ComparisonMode.COMMIT)

    def test_detect_again_in_same_mode(self):
        self.assertEqual(transition(ComparisonMode.BRANCH, ComparisonEvent.DETECT_BRANCH), ComparisonMode.BRANCH)

    def test_clear_returns_to_idle(self):
        self.assertIsNone(transition(ComparisonMode.COMMIT, ComparisonEvent.CLEAR_COMMIT))
        self.assertIsNone(transition(None, ComparisonEvent.CLEAR_BRANCH))

    def test_other_mode_is_rejected(self):
        for state, event in [
            (ComparisonMode.BRANCH, ComparisonEvent.DETECT_COMMIT),
            (ComparisonMode.BRANCH, ComparisonEvent.CLEAR_COMMIT),
            (ComparisonMode.COMMIT, ComparisonEvent.DETECT_BRANCH),
            (ComparisonMode.COMMIT, ComparisonEvent.CLEAR_BRANCH),
        ]:
            with self.subTest(state=state, event=event):
                with self.assertRaises(ComparisonModeConflict):
                    transition(state, event)

    def test_conflict_is_a_validation_failure(self):
        with self.assertRaises(ValidationFailure) as ctx:
            transition(ComparisonMode.BRANCH, ComparisonEvent.DETECT_COMMIT)
        self.assertEqual(ctx.exception.title, "Comparison In Progress")

    def test_never_both_modes_for_any_sequence(self):
        events = list(ComparisonEvent)
        for sequence in itertools.product(events, repeat=4):
            arbiter = ComparisonModeArbiter()
            for event in sequence:
                try:
                    arbiter.apply(event)
                except ComparisonModeConflict:
                    pass
                enabled = [m for m in ComparisonMode if arbiter.is_enabled(m)]
                if arbiter.active is not None:
                    self.assertEqual(enabled, [arbiter.active])


class TestArbiter(unittest.TestCase):
    def test_idle_enables_both(self):
        arbiter = ComparisonModeArbiter()
        self.assertTrue(arbiter.is_idle)
        self.assertTrue(arbiter.is_enabled(ComparisonMode.BRANCH))
        self.assertTrue(arbiter.is_enabled(ComparisonMode.COMMIT))

    def test_active_mode_disables_other(self):
        arbiter = ComparisonModeArbiter()
        arbiter.apply(ComparisonEvent.DETECT_COMMIT)

        self.assertFalse(arbiter.is_enabled(ComparisonMode.BRANCH))
        with self.assertRaises(ComparisonModeConflict):
            arbiter.ensure_enabled(ComparisonMode.BRANCH)
        arbiter.ensure_enabled(ComparisonMode.COMMIT)

    def test_failed_apply_keeps_state(self):
        arbiter = ComparisonModeArbiter(ComparisonMode.BRANCH)
        with self.assertRaises(ComparisonModeConflict):
            arbiter.apply(ComparisonEvent.CLEAR_COMMIT)
        self.assertEqual(arbiter.active, ComparisonMode.BRANCH)

    def test_restore_and_reset(self):
        arbiter = ComparisonModeArbiter()
        arbiter.restore(ComparisonMode.COMMIT)
        self.assertEqual(arbiter.active, ComparisonMode.COMMIT)
        arbiter.reset()
        self.assertTrue(arbiter.is_idle)


if __name__ == "__main__":
    unittest.main()
