"""Trace generation for binary insertion sort.

``generate_steps`` runs the sort once and records one immutable ``Step``
per event (search start, probe, resolved position, shift, insert), so a
viewer can jump to any frame without replaying the ones before it.
"""

from __future__ import annotations

import logging
import math
import numbers
import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

ARRAY_SIZE = 12
VALUE_MIN = 10
VALUE_MAX = 94

CODE_LINES = (
    "def binary_insertion_sort(arr):",
    "    for i in range(1, len(arr)):",
    "        val = arr[i]",
    "        pos = binary_search(arr, val, 0, i - 1)",
    "        # Shift and insert...",
    "        for j in range(i, pos, -1):",
    "            arr[j] = arr[j - 1]",
    "        arr[pos] = val",
    "",
    "def binary_search(arr, val, start, end):",
    "    while start <= end:",
    "        mid = (start + end) // 2",
    "        if arr[mid] < val:",
    "            start = mid + 1",
    "        else:",
    "            end = mid - 1",
    "    return start",
)

# Line of CODE_LINES highlighted for each narration.
CODE_LINE_START = 0
CODE_LINE_SEARCH = 3
CODE_LINE_PROBE = 11
CODE_LINE_RESOLVED = 16
CODE_LINE_SHIFT = 6
CODE_LINE_INSERT = 7
CODE_LINE_COMPLETE = 0

MESSAGES = {
    "start": "Start binary insertion sort: each insertion position is found with a binary search.",
    "search_start": "Search for the insertion position of {value} (index {target}) within the sorted range [{low}, {high}].",
    "probe": "Compare with the midpoint value {mid_value} at index {mid} and narrow the range.",
    "resolved": "Insertion position resolved to index {pos}.",
    "shift": "Shift {moved} from index {source} to {dest} to make room for {value}.",
    "insert": "Insert {value} at index {pos}.",
    "complete": "Sequence fully ordered.",
}


class InvalidInput(ValueError):
    """Raised when the input is not a finite sequence of finite numbers."""


class StepKind(str, Enum):
    INIT = "init"
    SEARCH = "search"
    SHIFT = "shift"
    INSERT = "insert"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Step:
    """One recorded moment of the sort.

    ``array`` is a full snapshot owned by this step. ``working_indices``
    depends on ``kind``: ``(low, mid, high)`` while probing, ``(pos,)`` once
    the search resolved, ``(dest, source)`` for a shift, ``(pos,)`` for an
    insert and every index for ``complete``.
    """

    array: tuple
    kind: StepKind
    working_indices: tuple = ()
    target_index: Optional[int] = None
    target_value: Optional[int] = None
    search_range: Optional[tuple] = None
    description: str = ""
    code_line: Optional[int] = None

    @property
    def narration(self) -> str:
        """Message key describing this step, independent of language."""
        if self.kind is StepKind.SEARCH:
            if len(self.working_indices) == 3:
                return "probe"
            if self.search_range is not None:
                return "search_start"
            return "resolved"
        if self.kind is StepKind.INIT:
            return "start"
        return self.kind.value

    def message_params(self) -> dict:
        params = {"target": self.target_index, "value": self.target_value}
        if self.search_range is not None:
            params["low"], params["high"] = self.search_range
        key = self.narration
        if key == "probe":
            mid = self.working_indices[1]
            params.update(mid=mid, mid_value=self.array[mid])
        elif key in ("resolved", "insert"):
            params["pos"] = self.working_indices[0]
        elif key == "shift":
            dest, source = self.working_indices
            params.update(dest=dest, source=source, moved=self.array[source])
        return params

    def describe(self, catalog: Optional[Mapping[str, str]] = None) -> str:
        """Render the narration with ``catalog`` (defaults to English)."""
        template = (catalog or MESSAGES)[self.narration]
        return template.format(**self.message_params())

    def to_dict(self) -> dict:
        return {
            "array": list(self.array),
            "kind": self.kind.value,
            "working_indices": list(self.working_indices),
            "target_index": self.target_index,
            "target_value": self.target_value,
            "search_range": list(self.search_range) if self.search_range else None,
            "description": self.description,
            "code_line": self.code_line,
        }


# Shown whenever there is no trace to read from.
PLACEHOLDER_STEP = Step(array=(), kind=StepKind.INIT)


# ---------------- Utilities ----------------
def snapshot(steps, arr, kind, indices=(), target=None, value=None, search_range=None, code_line=None):
    """Append a step holding a copy of ``arr`` and its English narration."""
    step = Step(
        array=tuple(arr),
        kind=kind,
        working_indices=tuple(indices),
        target_index=target,
        target_value=value,
        search_range=tuple(search_range) if search_range is not None else None,
        code_line=code_line,
    )
    steps.append(replace(step, description=step.describe()))


def validate_values(values) -> list:
    """Return ``values`` as a new list, or raise ``InvalidInput``."""
    if values is None or isinstance(values, (str, bytes, bytearray, Mapping)):
        raise InvalidInput(f"expected a sequence of numbers, got {type(values).__name__}")
    try:
        arr = list(values)
    except TypeError as e:
        raise InvalidInput(f"expected a sequence of numbers, got {type(values).__name__}") from e

    for index, value in enumerate(arr):
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise InvalidInput(f"element {index} is not a number: {value!r}")
        if not math.isfinite(value):
            raise InvalidInput(f"element {index} is not finite: {value!r}")
    return arr


def random_array(size=ARRAY_SIZE, low=VALUE_MIN, high=VALUE_MAX, rng=None):
    """``size`` integers drawn uniformly from ``[low, high]``."""
    if size < 0:
        raise InvalidInput(f"array size must not be negative, got {size}")
    if low > high:
        raise InvalidInput(f"empty value range [{low}, {high}]")
    rng = rng or random
    return [rng.randint(low, high) for _ in range(size)]


# ---------------- Trace generation ----------------
def generate_steps(values: Iterable) -> tuple:
    """Run binary insertion sort over ``values`` and return every step.

    The input is copied before the sort starts; nothing in the returned
    trace refers back to it. Equal values move the search to the left half
    (``high = mid - 1``), so an element lands in front of the equal values
    already placed.
    """
    arr = validate_values(values)
    n = len(arr)
    steps = []

    snapshot(steps, arr, StepKind.INIT, code_line=CODE_LINE_START)

    for i in range(1, n):
        val = arr[i]
        low, high = 0, i - 1
        snapshot(steps, arr, StepKind.SEARCH, target=i, value=val,
                 search_range=(low, high), code_line=CODE_LINE_SEARCH)

        while low <= high:
            mid = (low + high) // 2
            snapshot(steps, arr, StepKind.SEARCH, (low, mid, high), target=i, value=val,
                     search_range=(low, high), code_line=CODE_LINE_PROBE)
            if arr[mid] < val:
                low = mid + 1
            else:
                high = mid - 1

        pos = low
        snapshot(steps, arr, StepKind.SEARCH, (pos,), target=i, value=val,
                 code_line=CODE_LINE_RESOLVED)

        for j in range(i, pos, -1):
            snapshot(steps, arr, StepKind.SHIFT, (j, j - 1), target=i, value=val,
                     code_line=CODE_LINE_SHIFT)
            arr[j] = arr[j - 1]

        arr[pos] = val
        snapshot(steps, arr, StepKind.INSERT, (pos,), target=i, value=val,
                 code_line=CODE_LINE_INSERT)

    snapshot(steps, arr, StepKind.COMPLETE, range(n), code_line=CODE_LINE_COMPLETE)
    logger.debug("generated %d steps for %d values", len(steps), n)
    return tuple(steps)


# ---------------- Analysis ----------------
def resolved_positions(steps) -> dict:
    """Map each outer index ``i`` to the insertion position found for it."""
    return {
        step.target_index: step.working_indices[0]
        for step in steps
        if step.narration == "resolved"
    }


def trace_stats(steps) -> dict:
    stats = {"steps": len(steps), "comparisons": 0, "shifts": 0, "inserts": 0}
    for step in steps:
        if step.narration == "probe":
            stats["comparisons"] += 1
        elif step.kind is StepKind.SHIFT:
            stats["shifts"] += 1
        elif step.kind is StepKind.INSERT:
            stats["inserts"] += 1
    return stats
