"""Bulk task import helpers.

Turns the body of a bulk-create request into a list of create payloads:
- `rawText`: one task per non-blank line, with optional time and priority hints,
- `tasks`: an array of task objects, filled in with the request defaults.

Lines may carry a time estimate, e.g. "Write report (45min)" or
"Call bank - 2 hours", and a priority tag, e.g. "[HIGH] Pay rent". The number
is taken as-is; hints are stripped from the resulting task name.
"""

import re
from datetime import date
from typing import Any, Dict, List, Optional

from .reconciler import Priority

TIME_HINT = re.compile(
    r"\((\d+)\s*(?:min|minutes?|h|hours?)\)|-\s*(\d+)\s*(?:min|minutes?|h|hours?)$",
    re.IGNORECASE,
)
PRIORITY_HINT = re.compile(r"\[(HIGH|MEDIUM|LOW)\]", re.IGNORECASE)


def parse_line(line: str, default_time_estimate: float, default_priority: str,
               default_date: Optional[date] = None) -> Dict[str, Any]:
    """Parse a single raw-text line into a create payload."""
    name = line.strip()
    time_estimate: float = default_time_estimate
    priority = default_priority

    match = TIME_HINT.search(name)
    if match:
        value = int(match.group(1) or match.group(2))
        if value:
            time_estimate = value
            name = TIME_HINT.sub("", name, count=1).strip()

    match = PRIORITY_HINT.search(name)
    if match:
        priority = Priority(match.group(1).capitalize()).value
        name = PRIORITY_HINT.sub("", name, count=1).strip()

    payload: Dict[str, Any] = {
        "name": name,
        "time_estimate": time_estimate,
        "priority": priority,
        "steps": [],
    }
    if default_date is not None:
        payload["date"] = default_date
    return payload


def parse_raw_text(raw_text: str, default_time_estimate: float, default_priority: str,
                   default_date: Optional[date] = None) -> List[Dict[str, Any]]:
    """Parse every non-blank line; lines that reduce to an empty name are dropped."""
    payloads = []
    for line in raw_text.splitlines():
        if not line.strip():
            continue
        payload = parse_line(line, default_time_estimate, default_priority, default_date)
        if payload["name"]:
            payloads.append(payload)
    return payloads


def fill_defaults(task: Dict[str, Any], default_time_estimate: float, default_priority: str,
                  default_date: Optional[date] = None) -> Dict[str, Any]:
    """Merge bulk defaults into one wire-format (camelCase) task object."""
    item = dict(task)  # shallow copy so the request data is left untouched
    if not item.get("timeEstimate"):
        item["timeEstimate"] = default_time_estimate
    if not item.get("priority"):
        item["priority"] = default_priority
    if not item.get("date") and default_date is not None:
        item["date"] = default_date
    item.setdefault("steps", [])
    return item
