"""Tests for dashboard ordering."""
import random

from clinicflow.journey.prioritizer import prioritize
from clinicflow.journey.tracker import ProspectJourney


def _journey(id, stage='lead_submitted', action='approve', days=0, stalled=False):
    return ProspectJourney(
        id=id, kind='care_request', name=id, email='', phone=None, primary_concern=None,
        created_at=None, current_stage=stage, staff_action=action, days_in_pipeline=days,
        is_stalled=stalled, stall_reason=None, patient_completed=False,
    )


class TestPrioritize:

    def test_stalled_actionable_first(self):
        calm = _journey('calm', days=10)
        urgent = _journey('urgent', days=3, stalled=True)
        assert [j.id for j in prioritize([calm, urgent])] == ['urgent', 'calm']

    def test_stalled_but_waiting_is_not_urgent(self):
        waiting = _journey('waiting', stage='forms_sent', action='waiting', days=9, stalled=True)
        fresh = _journey('fresh', days=0)
        assert [j.id for j in prioritize([waiting, fresh])] == ['fresh', 'waiting']

    def test_actionable_before_passive(self):
        done = _journey('done', stage='episode_active', action='done', days=30)
        todo = _journey('todo', action='schedule', days=1)
        assert [j.id for j in prioritize([done, todo])] == ['todo', 'done']

    def test_oldest_first_within_tier(self):
        ids = [j.id for j in prioritize([_journey('a', days=1), _journey('b', days=5), _journey('c', days=3)])]
        assert ids == ['b', 'c', 'a']

    def test_stable_for_ties(self):
        first, second = _journey('first', days=2), _journey('second', days=2)
        assert [j.id for j in prioritize([first, second])] == ['first', 'second']

    def test_does_not_mutate_input(self):
        items = [_journey('a', days=1), _journey('b', days=5)]
        prioritize(items)
        assert [j.id for j in items] == ['a', 'b']

    def test_urgent_items_strictly_precede_the_rest(self):
        rng = random.Random(20260310)
        actions = ['approve', 'schedule', 'send_forms', 'waiting', 'convert', 'done']
        for _ in range(200):
            items = [
                _journey(f'j{i}', action=rng.choice(actions), days=rng.randint(0, 10), stalled=rng.random() < 0.5)
                for i in range(rng.randint(0, 12))
            ]
            ordered = prioritize(items)
            urgent = [j.is_stalled and j.staff_action not in ('waiting', 'done') for j in ordered]
            assert urgent == sorted(urgent, reverse=True)
