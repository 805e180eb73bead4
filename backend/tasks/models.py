from django.conf import settings
from django.core.validators import MaxValueValidator
from django.db import models

from .reconciler import Priority, Step, TaskState, TaskStatus


class Task(models.Model):
    STATUS_CHOICES = [(s.value, s.value) for s in TaskStatus]
    PRIORITY_CHOICES = [(p.value, p.value) for p in Priority]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="tasks")
    name = models.CharField(max_length=255)
    time_estimate = models.FloatField()  # minutes
    dependency = models.CharField(max_length=255, blank=True, default="")
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default=Priority.MEDIUM.value)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=TaskStatus.PENDING.value)
    on_hold_reason = models.CharField(max_length=255, blank=True, default="")
    date = models.DateField()
    steps = models.JSONField(default=list)  # list of Step.as_dict() payloads
    next_step_id = models.PositiveIntegerField(default=1)
    progress_percentage = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(100)])
    move_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["date", "created_at"]
        indexes = [
            models.Index(fields=["user", "date"], name="tasks_user_date_idx"),
        ]

    def __str__(self):
        return self.name

    def to_state(self) -> TaskState:
        return TaskState(
            name=self.name,
            time_estimate=self.time_estimate,
            date=self.date,
            priority=Priority(self.priority),
            status=TaskStatus(self.status),
            dependency=self.dependency,
            on_hold_reason=self.on_hold_reason,
            steps=tuple(Step.from_dict(s) for s in self.steps),
            progress_percentage=self.progress_percentage,
            move_count=self.move_count,
            next_step_id=self.next_step_id,
        )

    def apply_state(self, state: TaskState) -> None:
        """Copy a reconciled state onto the model; the caller saves."""
        self.name = state.name
        self.time_estimate = state.time_estimate
        self.date = state.date
        self.priority = state.priority.value
        self.status = state.status.value
        self.dependency = state.dependency
        self.on_hold_reason = state.on_hold_reason
        self.steps = [s.as_dict() for s in state.steps]
        self.progress_percentage = state.progress_percentage
        self.move_count = state.move_count
        self.next_step_id = state.next_step_id
