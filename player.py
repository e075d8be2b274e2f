"""Playback over a precomputed binary insertion sort trace.

The ``Player`` owns one trace and a cursor into it. Autoplay ticks come
either from a scheduler with an ``asyncio``-style ``call_later`` or from
outside (the web view's meta refresh). Each armed tick carries a token;
only the most recently issued token can advance the cursor, and only once.
"""

from __future__ import annotations

import itertools
import logging
import threading
from enum import Enum

from frames import (
    ARRAY_SIZE,
    PLACEHOLDER_STEP,
    VALUE_MAX,
    VALUE_MIN,
    generate_steps,
    random_array,
)

logger = logging.getLogger(__name__)

MIN_SPEED = 100
MAX_SPEED = 980
INITIAL_SPEED = 800


def speed_to_interval(speed):
    """Speed slider value to milliseconds between ticks."""
    speed = max(MIN_SPEED, min(int(speed), MAX_SPEED))
    return 1001 - speed


DEFAULT_INTERVAL_MS = speed_to_interval(INITIAL_SPEED)


class PlayerState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


class Player:
    def __init__(self, steps=None, interval_ms=DEFAULT_INTERVAL_MS, scheduler=None, rng=None):
        self.steps = tuple(steps) if steps is not None else ()
        self.cursor = 0
        self.playing = False
        self.interval_ms = max(1, int(interval_ms))
        self.scheduler = scheduler
        self.rng = rng
        self.tick_token = None
        self._tokens = itertools.count(1)
        self._pending = None
        # Web requests for the same run may arrive on different threads.
        self._lock = threading.RLock()

    @classmethod
    def from_values(cls, values, **kwargs):
        return cls(generate_steps(values), **kwargs)

    # ---------------- Read side ----------------
    @property
    def current(self):
        if not self.steps:
            return PLACEHOLDER_STEP
        return self.steps[self.cursor]

    @property
    def last_index(self):
        return max(len(self.steps) - 1, 0)

    @property
    def at_end(self):
        return self.cursor >= self.last_index

    @property
    def state(self):
        if self.playing:
            return PlayerState.PLAYING
        if self.steps and self.at_end:
            return PlayerState.FINISHED
        if self.cursor == 0:
            return PlayerState.IDLE
        return PlayerState.PAUSED

    @property
    def progress(self):
        return self.cursor, len(self.steps)

    @property
    def speed(self):
        return 1001 - self.interval_ms

    def snapshot(self):
        """JSON-ready view of the current step and controller state."""
        return {
            "step": self.current.to_dict(),
            "cursor": self.cursor,
            "total": len(self.steps),
            "playing": self.playing,
            "state": self.state.value,
            "interval_ms": self.interval_ms,
            "tick": self.tick_token,
        }

    # ---------------- Manual navigation ----------------
    def seek(self, index):
        with self._lock:
            self.cursor = max(0, min(int(index), self.last_index))
            return self.cursor

    def step_forward(self):
        with self._lock:
            return self.seek(self.cursor + 1)

    def step_backward(self):
        with self._lock:
            return self.seek(self.cursor - 1)

    def first(self):
        return self.seek(0)

    def last(self):
        return self.seek(self.last_index)

    # ---------------- Autoplay ----------------
    def play(self):
        with self._lock:
            if self.playing:
                return
            self.playing = True
            logger.debug("play at %d/%d", self.cursor, len(self.steps))
            self._arm()

    def pause(self):
        with self._lock:
            if not self.playing:
                return
            self.playing = False
            logger.debug("pause at %d/%d", self.cursor, len(self.steps))
            self._disarm()

    def toggle_play(self):
        with self._lock:
            if self.playing:
                self.pause()
            else:
                self.play()
            return self.playing

    def set_interval(self, interval_ms):
        with self._lock:
            self.interval_ms = max(1, int(interval_ms))
            if self.playing:
                self._arm()
            return self.interval_ms

    def set_speed(self, speed):
        return self.set_interval(speed_to_interval(speed))

    def tick(self, token):
        """Apply one scheduled advancement.

        Returns True if the cursor moved. A token that is not the one
        currently pending (paused, reset, re-armed or already consumed)
        does nothing.
        """
        with self._lock:
            if token is None or token != self.tick_token or not self.playing:
                return False
            self.tick_token = None
            self._pending = None

            if self.at_end:
                self.playing = False
                return False
            self.cursor += 1
            if self.at_end:
                self.playing = False
                logger.debug("finished after %d steps", len(self.steps))
            else:
                self._arm()
            return True

    def _arm(self):
        self._disarm()
        self.tick_token = next(self._tokens)
        if self.scheduler is not None:
            self._pending = self.scheduler.call_later(
                self.interval_ms / 1000.0, self.tick, self.tick_token
            )

    def _disarm(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self.tick_token = None

    # ---------------- Regeneration ----------------
    def reset(self, values=None, size=ARRAY_SIZE, value_range=(VALUE_MIN, VALUE_MAX)):
        """Replace the trace with one built from ``values`` or a random array.

        The new trace is built before anything is discarded, so a rejected
        input leaves the current trace and cursor untouched.
        """
        if values is None:
            values = random_array(size, *value_range, rng=self.rng)
        steps = generate_steps(values)

        with self._lock:
            self._disarm()
            self.steps = steps
            self.cursor = 0
            self.playing = False
        logger.info("reset with %d values, %d steps", len(steps[0].array), len(steps))
        return self.steps
