from datetime import date, datetime, timedelta, timezone

from django.test import SimpleTestCase

from . import reconciler
from .bulk import fill_defaults, parse_line, parse_raw_text
from .reconciler import Priority, Step, StepNotFound, StepStatus, TaskState, TaskStatus, TaskValidationError

NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def make_steps(*statuses):
    return tuple(
        Step(id=i, description=f"step {i}", status=s,
             timestamp=NOW - timedelta(days=1) if s == StepStatus.COMPLETED else None)
        for i, s in enumerate(statuses, start=1)
    )


def make_state(*step_statuses, **overrides):
    steps = make_steps(*step_statuses)
    fields = dict(
        name="Write report",
        time_estimate=60,
        date=date(2024, 1, 1),
        status=reconciler.derive_status(steps) or TaskStatus.PENDING,
        steps=steps,
        progress_percentage=reconciler.derive_progress(steps),
        next_step_id=len(steps) + 1,
    )
    fields.update(overrides)
    return TaskState(**fields)


P, C = StepStatus.PENDING, StepStatus.COMPLETED


class ProgressTests(SimpleTestCase):
    def test_no_steps_is_zero(self):
        self.assertEqual(reconciler.derive_progress(()), 0)

    def test_rounds_half_up(self):
        cases = {
            (C, P): 50,
            (C, P, P): 33,
            (C, C, P): 67,
            (C, P, P, P, P, P, P, P): 13,
            (C, C, C, C, C, C, C, P): 88,
            (C, C): 100,
            (P, P): 0,
        }
        for statuses, expected in cases.items():
            with self.subTest(statuses=statuses):
                self.assertEqual(reconciler.derive_progress(make_steps(*statuses)), expected)

    def test_matches_floor_formula_for_every_split(self):
        for total in range(1, 25):
            for completed in range(total + 1):
                steps = make_steps(*([C] * completed + [P] * (total - completed)))
                expected = int(100 * completed / total + 0.5)
                self.assertEqual(reconciler.derive_progress(steps), expected)


class DeriveStatusTests(SimpleTestCase):
    def test_status_follows_completion_count(self):
        self.assertIsNone(reconciler.derive_status(()))
        self.assertEqual(reconciler.derive_status(make_steps(P, P)), TaskStatus.PENDING)
        self.assertEqual(reconciler.derive_status(make_steps(C, P)), TaskStatus.IN_PROGRESS)
        self.assertEqual(reconciler.derive_status(make_steps(C, C)), TaskStatus.COMPLETED)


class CreateTests(SimpleTestCase):
    def payload(self, **extra):
        data = {"name": "Plan sprint", "time_estimate": 45}
        data.update(extra)
        return data

    def test_defaults(self):
        state = reconciler.create(self.payload(), now=NOW)
        self.assertEqual(state.status, TaskStatus.PENDING)
        self.assertEqual(state.priority, Priority.MEDIUM)
        self.assertEqual(state.date, date(2024, 3, 1))
        self.assertEqual(state.progress_percentage, 0)
        self.assertEqual(state.move_count, 0)
        self.assertEqual(state.steps, ())
        self.assertEqual(state.next_step_id, 1)

    def test_mixed_steps_are_in_progress(self):
        state = reconciler.create(self.payload(steps=[
            {"description": "outline", "status": "Completed"},
            {"description": "draft", "status": "Pending"},
        ]), now=NOW)
        self.assertEqual(state.status, TaskStatus.IN_PROGRESS)
        self.assertEqual(state.progress_percentage, 50)
        self.assertEqual([s.id for s in state.steps], [1, 2])
        self.assertEqual(state.steps[0].timestamp, NOW)
        self.assertIsNone(state.steps[1].timestamp)
        self.assertEqual(state.next_step_id, 3)

    def test_all_completed_steps_complete_the_task(self):
        state = reconciler.create(self.payload(steps=[
            {"description": "a", "status": "Completed"},
            {"description": "b", "status": "Completed"},
        ]), now=NOW)
        self.assertEqual(state.status, TaskStatus.COMPLETED)
        self.assertEqual(state.progress_percentage, 100)

    def test_steps_without_status_are_pending(self):
        state = reconciler.create(self.payload(steps=[{"description": "a"}]), now=NOW)
        self.assertEqual(state.status, TaskStatus.PENDING)
        self.assertEqual(state.steps[0].status, StepStatus.PENDING)

    def test_on_hold_passes_through(self):
        state = reconciler.create(self.payload(
            status="On Hold", on_hold_reason="waiting on legal",
            steps=[{"description": "a", "status": "Completed"}],
        ), now=NOW)
        self.assertEqual(state.status, TaskStatus.ON_HOLD)
        self.assertEqual(state.on_hold_reason, "waiting on legal")
        self.assertEqual(state.progress_percentage, 100)

    def test_other_requested_statuses_are_derived(self):
        state = reconciler.create(self.payload(status="Completed"), now=NOW)
        self.assertEqual(state.status, TaskStatus.PENDING)

    def test_missing_name_or_estimate_is_rejected(self):
        with self.assertRaises(TaskValidationError) as ctx:
            reconciler.create({"time_estimate": 10})
        self.assertEqual(ctx.exception.field_name, "name")

        with self.assertRaises(TaskValidationError):
            reconciler.create({"name": "   ", "time_estimate": 10})

        with self.assertRaises(TaskValidationError) as ctx:
            reconciler.create({"name": "x"})
        self.assertEqual(ctx.exception.field_name, "time_estimate")

        with self.assertRaises(TaskValidationError):
            reconciler.create({"name": "x", "time_estimate": 0})


class UpdateTests(SimpleTestCase):
    def test_date_change_counts_one_move(self):
        prior = make_state()
        moved = reconciler.apply_update(prior, {"date": date(2024, 1, 2)}, now=NOW)
        self.assertEqual(moved.move_count, 1)
        self.assertEqual(moved.date, date(2024, 1, 2))

        moved_again = reconciler.apply_update(moved, {"date": date(2024, 1, 5)}, now=NOW)
        self.assertEqual(moved_again.move_count, 2)

    def test_same_date_or_other_fields_do_not_count(self):
        prior = make_state(move_count=3)
        same = reconciler.apply_update(prior, {"date": date(2024, 1, 1), "name": "Renamed"}, now=NOW)
        self.assertEqual(same.move_count, 3)
        self.assertEqual(same.name, "Renamed")

        other = reconciler.apply_update(prior, {"priority": "High", "time_estimate": 15}, now=NOW)
        self.assertEqual(other.move_count, 3)
        self.assertEqual(other.priority, Priority.HIGH)
        self.assertEqual(other.time_estimate, 15)

    def test_completed_forces_every_step(self):
        prior = make_state(P, P)
        state = reconciler.apply_update(prior, {"status": "Completed"}, now=NOW)
        self.assertEqual(state.status, TaskStatus.COMPLETED)
        self.assertEqual(state.progress_percentage, 100)
        self.assertTrue(all(s.status == StepStatus.COMPLETED for s in state.steps))
        self.assertTrue(all(s.timestamp == NOW for s in state.steps))
        # prior snapshot is untouched
        self.assertTrue(all(s.status == StepStatus.PENDING for s in prior.steps))

    def test_completed_without_steps_sets_full_progress(self):
        state = reconciler.apply_update(make_state(), {"status": "Completed"}, now=NOW)
        self.assertEqual(state.status, TaskStatus.COMPLETED)
        self.assertEqual(state.progress_percentage, 100)
        self.assertEqual(state.steps, ())

    def test_steps_override_requested_pending_or_in_progress(self):
        prior = make_state(C, C)
        self.assertEqual(
            reconciler.apply_update(prior, {"status": "Pending"}, now=NOW).status,
            TaskStatus.COMPLETED,
        )
        prior = make_state(P, P)
        self.assertEqual(
            reconciler.apply_update(prior, {"status": "In Progress"}, now=NOW).status,
            TaskStatus.PENDING,
        )

    def test_requested_status_passes_through_without_steps(self):
        state = reconciler.apply_update(make_state(), {"status": "In Progress"}, now=NOW)
        self.assertEqual(state.status, TaskStatus.IN_PROGRESS)

    def test_on_hold_is_not_overridden(self):
        state = reconciler.apply_update(
            make_state(C, P), {"status": "On Hold", "on_hold_reason": "blocked"}, now=NOW,
        )
        self.assertEqual(state.status, TaskStatus.ON_HOLD)
        self.assertEqual(state.on_hold_reason, "blocked")
        self.assertEqual(state.progress_percentage, 50)

    def test_absent_status_keeps_prior(self):
        prior = make_state(C, P, status=TaskStatus.ON_HOLD)
        state = reconciler.apply_update(prior, {"name": "Still held"}, now=NOW)
        self.assertEqual(state.status, TaskStatus.ON_HOLD)

    def test_progress_is_recomputed_from_steps(self):
        prior = make_state(C, P, progress_percentage=7)
        state = reconciler.apply_update(prior, {}, now=NOW)
        self.assertEqual(state.progress_percentage, 50)


class AddStepTests(SimpleTestCase):
    def test_first_step_starts_the_task(self):
        state = reconciler.add_step(make_state(), "collect receipts")
        self.assertEqual(state.status, TaskStatus.IN_PROGRESS)
        self.assertEqual(len(state.steps), 1)
        step = state.steps[0]
        self.assertEqual((step.id, step.description, step.status, step.timestamp),
                         (1, "collect receipts", StepStatus.PENDING, None))
        self.assertEqual(state.next_step_id, 2)

    def test_first_step_overrides_on_hold(self):
        state = reconciler.add_step(make_state(status=TaskStatus.ON_HOLD), "a")
        self.assertEqual(state.status, TaskStatus.IN_PROGRESS)

    def test_later_steps_keep_status_and_update_progress(self):
        state = reconciler.add_step(make_state(C, P), "third")
        self.assertEqual(state.status, TaskStatus.IN_PROGRESS)
        self.assertEqual(state.progress_percentage, 33)
        self.assertEqual(state.steps[-1].id, 3)

    def test_completed_task_reopens(self):
        state = reconciler.add_step(make_state(C, C), "one more")
        self.assertEqual(state.status, TaskStatus.IN_PROGRESS)
        self.assertEqual(state.progress_percentage, 67)

    def test_blank_description_is_rejected(self):
        for description in ("", "   ", None):
            with self.subTest(description=description):
                with self.assertRaises(TaskValidationError):
                    reconciler.add_step(make_state(), description)


class EditStepTests(SimpleTestCase):
    def test_completing_last_pending_step_completes_task(self):
        state = reconciler.edit_step(make_state(C, P), 2, status="Completed", now=NOW)
        self.assertEqual(state.status, TaskStatus.COMPLETED)
        self.assertEqual(state.progress_percentage, 100)
        self.assertEqual(state.steps[1].timestamp, NOW)

    def test_reopening_a_step_clears_timestamp(self):
        state = reconciler.edit_step(make_state(C, C), 1, status="Pending", now=NOW)
        self.assertIsNone(state.steps[0].timestamp)
        self.assertEqual(state.status, TaskStatus.IN_PROGRESS)
        self.assertEqual(state.progress_percentage, 50)

    def test_description_only(self):
        prior = make_state(C, P)
        state = reconciler.edit_step(prior, 1, description="renamed", now=NOW)
        self.assertEqual(state.steps[0].description, "renamed")
        self.assertEqual(state.steps[0].timestamp, prior.steps[0].timestamp)
        self.assertEqual(state.status, TaskStatus.IN_PROGRESS)

    def test_on_hold_is_overridden(self):
        prior = make_state(C, P, status=TaskStatus.ON_HOLD)
        state = reconciler.edit_step(prior, 2, description="x", now=NOW)
        self.assertEqual(state.status, TaskStatus.IN_PROGRESS)

    def test_repeat_completion_only_refreshes_timestamp(self):
        first = reconciler.edit_step(make_state(C, P), 2, status="Completed", now=NOW)
        later = NOW + timedelta(minutes=5)
        second = reconciler.edit_step(first, 2, status="Completed", now=later)
        self.assertEqual(second.status, first.status)
        self.assertEqual(second.progress_percentage, first.progress_percentage)
        self.assertEqual(second.steps[1].status, StepStatus.COMPLETED)
        self.assertEqual(second.steps[1].timestamp, later)

    def test_unknown_step(self):
        with self.assertRaises(StepNotFound):
            reconciler.edit_step(make_state(C), 5, status="Completed")


class DeleteStepTests(SimpleTestCase):
    def test_deleting_only_step_resets_to_pending(self):
        for status in StepStatus:
            with self.subTest(status=status):
                state = reconciler.delete_step(make_state(status), 1)
                self.assertEqual(state.status, TaskStatus.PENDING)
                self.assertEqual(state.progress_percentage, 0)
                self.assertEqual(state.steps, ())

    def test_remaining_steps_decide(self):
        state = reconciler.delete_step(make_state(C, P), 2)
        self.assertEqual(state.status, TaskStatus.COMPLETED)
        self.assertEqual(state.progress_percentage, 100)

    def test_ids_are_stable_and_not_reused(self):
        state = reconciler.delete_step(make_state(C, P, P), 1)
        self.assertEqual([s.id for s in state.steps], [2, 3])
        state = reconciler.edit_step(state, 3, status="Completed", now=NOW)
        self.assertEqual(state.steps[1].status, StepStatus.COMPLETED)

        state = reconciler.delete_step(state, 3)
        state = reconciler.add_step(state, "new")
        self.assertEqual([s.id for s in state.steps], [2, 4])

    def test_move_count_untouched_by_step_changes(self):
        state = make_state(C, P, move_count=2)
        state = reconciler.add_step(state, "x")
        state = reconciler.edit_step(state, 1, status="Pending", now=NOW)
        state = reconciler.delete_step(state, 2)
        self.assertEqual(state.move_count, 2)

    def test_unknown_step(self):
        with self.assertRaises(StepNotFound):
            reconciler.delete_step(make_state(), 1)


class StepSerializationTests(SimpleTestCase):
    def test_dict_form_keeps_timestamp(self):
        step = Step(id=4, description="file", status=StepStatus.COMPLETED, timestamp=NOW)
        data = step.as_dict()
        self.assertEqual(data["status"], "Completed")
        self.assertEqual(data["timestamp"], "2024-03-01T09:30:00+00:00")
        self.assertEqual(Step.from_dict(data), step)


class BulkParsingTests(SimpleTestCase):
    def test_time_and_priority_hints(self):
        payload = parse_line("[HIGH] Pay rent (15min)", 30, "Medium")
        self.assertEqual(payload["name"], "Pay rent")
        self.assertEqual(payload["time_estimate"], 15)
        self.assertEqual(payload["priority"], "High")

    def test_trailing_dash_estimate(self):
        payload = parse_line("Call the bank - 2 hours", 30, "Low")
        self.assertEqual(payload["name"], "Call the bank")
        self.assertEqual(payload["time_estimate"], 2)
        self.assertEqual(payload["priority"], "Low")

    def test_plain_line_uses_defaults(self):
        payload = parse_line("  Water plants  ", 30, "Medium", date(2024, 5, 1))
        self.assertEqual(payload, {
            "name": "Water plants",
            "time_estimate": 30,
            "priority": "Medium",
            "steps": [],
            "date": date(2024, 5, 1),
        })

    def test_blank_lines_and_empty_names_are_skipped(self):
        payloads = parse_raw_text("Email Sam\n\n   \n[low]\nReview PR (20 minutes)\n", 30, "Medium")
        self.assertEqual([p["name"] for p in payloads], ["Email Sam", "Review PR"])
        self.assertEqual(payloads[1]["time_estimate"], 20)

    def test_fill_defaults_leaves_request_data_alone(self):
        original = {"name": "Stretch"}
        item = fill_defaults(original, 30, "Medium", date(2024, 5, 1))
        self.assertEqual(item["timeEstimate"], 30)
        self.assertEqual(item["priority"], "Medium")
        self.assertEqual(item["date"], date(2024, 5, 1))
        self.assertEqual(original, {"name": "Stretch"})
