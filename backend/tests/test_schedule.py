"""
Tests for schedule.py - overflow check, proposal review, apply and commit.
Uses an in-memory FakeTaskStore, no SQLite.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import ScheduleEdit
from schedule import ScheduleWorkflow, overflow_for, total_duration
from fakes import FakeTaskStore, make_task


def full_day():
    """Five tasks filling exactly 24h."""
    return [
        make_task(1, "Sleeping", 8, start_time=22),
        make_task(2, "Project Work", 8, start_time=9),
        make_task(3, "Personal Time", 4, start_time=17),
        make_task(4, "Dinner", 1, start_time=21),
        make_task(5, "Commute", 3, start_time=6),
    ]


class TestOverflowFor:
    """Tests for overflow_for."""

    def test_create_adds_requested_duration(self):
        tasks = full_day()
        assert overflow_for(tasks, ScheduleEdit(name="Reading", duration=2)) == 2

    def test_create_defaults_to_one_hour(self):
        assert overflow_for(full_day(), ScheduleEdit(name="Reading")) == 1

    def test_edit_replaces_old_duration(self):
        edit = ScheduleEdit(task_id=4, duration=2.5)
        assert overflow_for(full_day(), edit) == 1.5

    def test_edit_without_duration_keeps_total(self):
        edit = ScheduleEdit(task_id=4, name="Supper")
        assert overflow_for(full_day(), edit) == 0

    def test_shrinking_edit_fits(self):
        edit = ScheduleEdit(task_id=1, duration=7)
        assert overflow_for(full_day(), edit) == -1

    def test_unknown_task(self):
        assert overflow_for(full_day(), ScheduleEdit(task_id=99, duration=1)) is None


class TestSubmit:
    """Tests for ScheduleWorkflow.submit."""

    def test_fitting_create_commits(self):
        store = FakeTaskStore([make_task(1, "Sleeping", 8)])
        workflow = ScheduleWorkflow(store)

        outcome = workflow.submit(ScheduleEdit(name="Reading", duration=2, start_time=20))

        assert outcome.status == "committed"
        assert outcome.task.name == "Reading"
        assert outcome.task.duration == 2
        assert workflow.state == "idle"
        assert store.total() == 10

    def test_create_uses_defaults(self):
        store = FakeTaskStore([])
        outcome = ScheduleWorkflow(store).submit(ScheduleEdit())

        assert outcome.task.name == "New Task"
        assert outcome.task.duration == 1
        assert outcome.task.start_time == 0
        assert outcome.task.color == "#8B5CF6"

    def test_fitting_edit_commits(self):
        store = FakeTaskStore(full_day())
        outcome = ScheduleWorkflow(store).submit(ScheduleEdit(task_id=1, duration=7.5, name="Sleep"))

        assert outcome.status == "committed"
        assert store.tasks[1].duration == 7.5
        assert store.tasks[1].name == "Sleep"
        assert store.duration_writes == []

    def test_overflow_opens_review_without_writing(self):
        store = FakeTaskStore(full_day())
        workflow = ScheduleWorkflow(store)

        outcome = workflow.submit(ScheduleEdit(task_id=4, duration=3))

        assert outcome.status == "review"
        assert workflow.state == "review"
        review = outcome.review
        assert review.overflow_hours == 2
        assert [p.task_id for p in review.proposals] == [3]
        assert review.proposals[0].new_duration == 2
        assert review.unresolved_hours == 0
        # Nothing written yet
        assert store.tasks[4].duration == 1
        assert store.total() == 24

    def test_edited_task_is_not_proposed(self):
        store = FakeTaskStore(full_day())
        outcome = ScheduleWorkflow(store).submit(ScheduleEdit(task_id=3, duration=6))

        assert 3 not in [p.task_id for p in outcome.review.proposals]

    def test_unknown_task_not_found(self):
        workflow = ScheduleWorkflow(FakeTaskStore(full_day()))
        outcome = workflow.submit(ScheduleEdit(task_id=42, duration=2))

        assert outcome.status == "not_found"
        assert workflow.state == "idle"

    def test_new_submit_replaces_pending_review(self):
        workflow = ScheduleWorkflow(FakeTaskStore(full_day()))
        workflow.submit(ScheduleEdit(task_id=4, duration=3))
        outcome = workflow.submit(ScheduleEdit(task_id=4, duration=1))

        assert outcome.status == "committed"
        assert workflow.review is None


class TestReview:
    """Tests for toggling, cancelling and unresolved overflow."""

    def test_toggle_and_select_all(self):
        workflow = ScheduleWorkflow(FakeTaskStore(full_day()))
        review = workflow.submit(ScheduleEdit(name="Gym", duration=5)).review
        # Personal Time gives 3.5h, Project Work the remaining 1.5h
        assert [p.task_id for p in review.proposals] == [3, 2]

        assert review.toggle(3) is True
        assert review.selected_reduction == 1.5
        assert review.unresolved_hours == 3.5

        review.select_all()
        assert review.selected_reduction == 5
        assert review.unresolved_hours == 0

    def test_toggle_unknown_proposal(self):
        workflow = ScheduleWorkflow(FakeTaskStore(full_day()))
        review = workflow.submit(ScheduleEdit(name="Gym", duration=1)).review
        assert review.toggle(1) is False

    def test_cancel(self):
        store = FakeTaskStore(full_day())
        workflow = ScheduleWorkflow(store)
        workflow.submit(ScheduleEdit(name="Gym", duration=1))

        assert workflow.cancel() is True
        assert workflow.state == "idle"
        assert workflow.cancel() is False
        assert store.total() == 24
        assert len(store.tasks) == 5

    def test_not_enough_slack_reports_unresolved(self):
        store = FakeTaskStore([
            make_task(1, "Sleeping", 20),
            make_task(2, "Personal Time", 1.5),
            make_task(3, "Exercise", 1.5),
        ])
        workflow = ScheduleWorkflow(store)
        review = workflow.submit(ScheduleEdit(task_id=1, duration=23.5)).review

        # 23.5 + 3 = 26.5 -> 2.5h over; only 2h of slack outside the edited task
        assert review.overflow_hours == 2.5
        assert review.selected_reduction == 2
        assert review.unresolved_hours == 0.5


class TestApply:
    """Tests for ScheduleWorkflow.apply."""

    def test_apply_writes_then_commits_edit(self):
        store = FakeTaskStore(full_day())
        workflow = ScheduleWorkflow(store)
        workflow.submit(ScheduleEdit(task_id=4, duration=3))

        result = workflow.apply()

        assert [t.id for t in result.applied] == [3]
        assert result.failed == []
        assert result.outcome.status == "committed"
        assert store.tasks[3].duration == 2
        assert store.tasks[4].duration == 3
        assert store.total() == 24
        assert workflow.state == "idle"

    def test_apply_new_task(self):
        store = FakeTaskStore(full_day())
        workflow = ScheduleWorkflow(store)
        workflow.submit(ScheduleEdit(name="Gym", duration=2, color="#EF4444"))

        result = workflow.apply()

        assert result.outcome.status == "committed"
        assert result.outcome.task.name == "Gym"
        assert len(store.tasks) == 6
        assert store.total() == 24

    def test_conservation_for_accepted_subset(self):
        """Total after adjustments = total before - accepted reductions."""
        store = FakeTaskStore(full_day())
        workflow = ScheduleWorkflow(store)
        review = workflow.submit(ScheduleEdit(name="Gym", duration=5)).review
        review.toggle(2)
        accepted = review.selected_reduction
        before = store.total()

        applied, failed = workflow.apply_adjustments(review.selected())

        assert failed == []
        assert store.total() == before - accepted

    def test_partial_selection_routes_back_to_review(self):
        store = FakeTaskStore(full_day())
        workflow = ScheduleWorkflow(store)
        review = workflow.submit(ScheduleEdit(name="Gym", duration=5)).review
        review.toggle(2)  # keep only Personal Time (3.5h of the 5h)

        result = workflow.apply()

        assert store.tasks[3].duration == 0.5
        assert result.outcome.status == "review"
        assert result.outcome.review.overflow_hours == 1.5
        assert workflow.state == "review"
        # The new task has not been created yet
        assert len(store.tasks) == 5

    def test_write_failure_skips_item_and_continues(self):
        store = FakeTaskStore(full_day(), fail_ids=(3,))
        workflow = ScheduleWorkflow(store)
        workflow.submit(ScheduleEdit(name="Gym", duration=5))

        result = workflow.apply()

        assert [f.task_id for f in result.failed] == [3]
        assert result.failed[0].reason == "store unavailable"
        assert [t.id for t in result.applied] == [2]
        assert store.tasks[2].duration == 6.5
        assert store.duration_writes == [(3, 0.5), (2, 6.5)]

    def test_deleted_task_reported_as_not_found(self):
        store = FakeTaskStore(full_day())
        workflow = ScheduleWorkflow(store)
        workflow.submit(ScheduleEdit(name="Gym", duration=5))
        del store.tasks[3]

        result = workflow.apply()

        assert result.failed[0].task_id == 3
        assert result.failed[0].reason == "not_found"
        assert [t.id for t in result.applied] == [2]

    def test_apply_without_review(self):
        assert ScheduleWorkflow(FakeTaskStore([])).apply() is None


def test_total_duration():
    assert total_duration(full_day()) == 24
    assert total_duration([]) == 0
