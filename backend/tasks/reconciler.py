"""Task state reconciliation.

Keeps a task's derived fields consistent with its steps:
- progress percentage (share of completed steps, half-up rounded),
- status (Pending / In Progress / Completed, with On Hold as a manual override),
- move count (incremented when the task's date changes),
- per-step completion timestamps.

Every operation is a pure function: it takes the prior `TaskState`, returns a
new one and never touches the database. Callers persist the result.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"


class StepStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ReconcilerError(Exception):
    """Base class for errors raised while reconciling a task."""


class TaskValidationError(ReconcilerError, ValueError):
    """A required field is missing or malformed."""

    def __init__(self, field_name: str, message: str):
        super().__init__(message)
        self.field_name = field_name
        self.message = message


class StepNotFound(ReconcilerError, LookupError):
    """The addressed step does not exist on the task."""

    def __init__(self, step_id: Any):
        super().__init__(f"Step {step_id} not found")
        self.step_id = step_id


@dataclass(frozen=True)
class Step:
    id: int
    description: str
    status: StepStatus = StepStatus.PENDING
    timestamp: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == StepStatus.COMPLETED

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Step":
        raw_ts = data.get("timestamp")
        return cls(
            id=int(data["id"]),
            description=data.get("description", ""),
            status=StepStatus(data.get("status") or StepStatus.PENDING),
            timestamp=datetime.fromisoformat(raw_ts) if raw_ts else None,
        )


@dataclass(frozen=True)
class TaskState:
    """Snapshot of every task field the reconciler reads or writes."""

    name: str
    time_estimate: float
    date: date
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    dependency: str = ""
    on_hold_reason: str = ""
    steps: Tuple[Step, ...] = field(default_factory=tuple)
    progress_percentage: int = 0
    move_count: int = 0
    next_step_id: int = 1


# Fields a whole-task update copies verbatim when present in the payload.
OVERWRITABLE_FIELDS = (
    "name",
    "time_estimate",
    "dependency",
    "priority",
    "date",
    "on_hold_reason",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _completed_count(steps: Iterable[Step]) -> int:
    return sum(1 for s in steps if s.is_completed)


def derive_progress(steps: Sequence[Step]) -> int:
    """Percentage of completed steps, rounded half up; 0 when there are none.

    Equivalent to floor(100 * completed / total + 0.5), kept in integers.
    """
    total = len(steps)
    if total == 0:
        return 0
    completed = _completed_count(steps)
    return (200 * completed + total) // (2 * total)


def derive_status(steps: Sequence[Step]) -> Optional[TaskStatus]:
    """Status implied by step completion, or None when there are no steps."""
    total = len(steps)
    if total == 0:
        return None
    completed = _completed_count(steps)
    if completed == 0:
        return TaskStatus.PENDING
    if completed == total:
        return TaskStatus.COMPLETED
    return TaskStatus.IN_PROGRESS


def _new_step(step_id: int, description: str, status: Any, now: datetime) -> Step:
    step_status = StepStatus(status) if status else StepStatus.PENDING
    timestamp = now if step_status == StepStatus.COMPLETED else None
    return Step(id=step_id, description=description, status=step_status, timestamp=timestamp)


def _index_of(steps: Sequence[Step], step_id: Any) -> int:
    for idx, step in enumerate(steps):
        if step.id == step_id:
            return idx
    raise StepNotFound(step_id)


def _require_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise TaskValidationError("name", "Task name is required")
    return value


def _require_time_estimate(value: Any) -> float:
    if value is None or isinstance(value, bool):
        raise TaskValidationError("time_estimate", "Time estimate is required")
    try:
        estimate = float(value)
    except (TypeError, ValueError):
        raise TaskValidationError("time_estimate", "Time estimate must be a number")
    if estimate <= 0:
        raise TaskValidationError("time_estimate", "Time estimate must be positive")
    return estimate


def create(payload: Mapping[str, Any], now: Optional[datetime] = None) -> TaskState:
    """Build the initial state of a new task.

    `payload` uses snake_case keys: name, time_estimate, priority, date,
    status, steps (each a mapping with description and optional status),
    dependency, on_hold_reason.
    """
    now = now or _utcnow()
    name = _require_name(payload.get("name"))
    time_estimate = _require_time_estimate(payload.get("time_estimate"))

    steps = tuple(
        _new_step(step_id, item.get("description", ""), item.get("status"), now)
        for step_id, item in enumerate(payload.get("steps") or [], start=1)
    )

    if payload.get("status") == TaskStatus.ON_HOLD:
        status = TaskStatus.ON_HOLD
    else:
        status = derive_status(steps) or TaskStatus.PENDING

    return TaskState(
        name=name,
        time_estimate=time_estimate,
        date=payload.get("date") or now.date(),
        priority=Priority(payload.get("priority") or Priority.MEDIUM),
        status=status,
        dependency=payload.get("dependency") or "",
        on_hold_reason=payload.get("on_hold_reason") or "",
        steps=steps,
        progress_percentage=derive_progress(steps),
        move_count=0,
        next_step_id=len(steps) + 1,
    )


def apply_update(prior: TaskState, payload: Mapping[str, Any],
                 now: Optional[datetime] = None) -> TaskState:
    """Apply a whole-task update.

    A requested Completed status completes every step. A requested Pending or
    In Progress is only advisory when steps exist: the steps decide. On Hold
    and requests on step-less tasks pass through as given.
    """
    now = now or _utcnow()
    changes: Dict[str, Any] = {
        name: payload[name] for name in OVERWRITABLE_FIELDS
        if payload.get(name) is not None
    }
    if "name" in changes:
        _require_name(changes["name"])
    if "time_estimate" in changes:
        changes["time_estimate"] = _require_time_estimate(changes["time_estimate"])
    if "priority" in changes:
        changes["priority"] = Priority(changes["priority"])

    move_count = prior.move_count
    if "date" in changes and changes["date"] != prior.date:
        move_count += 1

    steps = prior.steps
    progress = derive_progress(prior.steps)
    status = prior.status
    requested = payload.get("status")

    if requested == TaskStatus.COMPLETED:
        steps = tuple(
            replace(s, status=StepStatus.COMPLETED, timestamp=now) for s in prior.steps
        )
        progress = 100
        status = TaskStatus.COMPLETED
    elif requested in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS) and prior.steps:
        status = derive_status(prior.steps)
    elif requested is not None:
        status = TaskStatus(requested)

    return replace(
        prior,
        steps=steps,
        status=status,
        progress_percentage=progress,
        move_count=move_count,
        **changes,
    )


def add_step(prior: TaskState, description: Any) -> TaskState:
    """Append a pending step.

    The first step of a task puts it In Progress whatever its status was.
    A completed task that gains a step is reopened as In Progress.
    """
    if not isinstance(description, str) or not description.strip():
        raise TaskValidationError("description", "Step description required")

    steps = prior.steps + (Step(id=prior.next_step_id, description=description),)
    status = prior.status
    if len(steps) == 1 or status == TaskStatus.COMPLETED:
        status = TaskStatus.IN_PROGRESS

    return replace(
        prior,
        steps=steps,
        status=status,
        progress_percentage=derive_progress(steps),
        next_step_id=prior.next_step_id + 1,
    )


def edit_step(prior: TaskState, step_id: int, description: Optional[str] = None,
              status: Optional[str] = None, now: Optional[datetime] = None) -> TaskState:
    """Change a step's description and/or status, then re-derive the task.

    Status and progress are always recomputed from the steps here, so an
    On Hold task leaves hold as soon as one of its steps is edited.
    """
    now = now or _utcnow()
    idx = _index_of(prior.steps, step_id)
    step = prior.steps[idx]

    if description is not None:
        step = replace(step, description=description)
    if status is not None:
        step_status = StepStatus(status)
        step = replace(
            step,
            status=step_status,
            timestamp=now if step_status == StepStatus.COMPLETED else None,
        )

    steps = prior.steps[:idx] + (step,) + prior.steps[idx + 1:]
    return replace(
        prior,
        steps=steps,
        status=derive_status(steps),
        progress_percentage=derive_progress(steps),
    )


def delete_step(prior: TaskState, step_id: int) -> TaskState:
    """Remove a step; a task left without steps falls back to Pending."""
    idx = _index_of(prior.steps, step_id)
    steps = prior.steps[:idx] + prior.steps[idx + 1:]
    return replace(
        prior,
        steps=steps,
        status=derive_status(steps) or TaskStatus.PENDING,
        progress_percentage=derive_progress(steps),
    )
