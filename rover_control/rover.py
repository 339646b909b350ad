from __future__ import annotations

# Rover driver.
#
# The rover is a two-motor chassis driven through four output pins (BCM
# numbering). A motion is "set these pins high, wait, set them low".
#
# Motions take wall-clock time, so they run on a single worker thread. The
# broker's dispatch call only drops a motion into the pending slot and returns.
# One slot means motions never overlap: while one is pending, new ones are
# dropped (the client re-sends while a control is held anyway).

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .errors import UNKNOWN_COMMAND
from .protocol import CMD_BACK, CMD_FWD, CMD_LEFT, CMD_RIGHT

logger = logging.getLogger(__name__)

PIN_L_FWD = 17
PIN_L_BACK = 18
PIN_R_FWD = 27
PIN_R_BACK = 22
PINS = (PIN_L_FWD, PIN_L_BACK, PIN_R_FWD, PIN_R_BACK)

DUR_TURN_MS = 200
DUR_DRIVE_MS = 1000


@dataclass(frozen=True)
class Motion:
    command: str
    pins: tuple[int, ...]
    duration_ms: int


MOTIONS: dict[str, Motion] = {
    CMD_FWD: Motion(CMD_FWD, (PIN_L_FWD, PIN_R_FWD), DUR_DRIVE_MS),
    CMD_BACK: Motion(CMD_BACK, (PIN_L_BACK, PIN_R_BACK), DUR_DRIVE_MS),
    CMD_LEFT: Motion(CMD_LEFT, (PIN_L_BACK, PIN_R_FWD), DUR_TURN_MS),
    CMD_RIGHT: Motion(CMD_RIGHT, (PIN_L_FWD, PIN_R_BACK), DUR_TURN_MS),
}


class PinBackend(Protocol):
    def setup(self, pins: tuple[int, ...]) -> None: ...

    def write(self, pin: int, value: int) -> None: ...


class SimulatedPins:
    """Pin backend that only records and logs writes (no hardware needed)."""

    def __init__(self) -> None:
        self.configured: tuple[int, ...] = ()
        self.writes: list[tuple[int, int]] = []
        self.levels: dict[int, int] = {}

    def setup(self, pins: tuple[int, ...]) -> None:
        self.configured = tuple(pins)
        self.levels = {p: 0 for p in pins}

    def write(self, pin: int, value: int) -> None:
        if pin not in self.levels:
            raise ValueError(f"pin {pin} was not set up")
        self.levels[pin] = value
        self.writes.append((pin, value))
        logger.debug("pin %d -> %d", pin, value)


class Rover:
    """Serialized motion executor in front of a pin backend."""

    def __init__(
        self,
        pins: PinBackend,
        *,
        sleep: Callable[[float], None] = time.sleep,
        max_pending: int = 1,
    ) -> None:
        self._pins = pins
        self._sleep = sleep
        self._pending: "queue.Queue[Optional[Motion]]" = queue.Queue(maxsize=max_pending)
        self._worker: threading.Thread | None = None
        self._stop_requested = False

        self._pins.setup(PINS)
        logger.info("rover connected (pins %s)", ", ".join(str(p) for p in PINS))

    def start(self) -> None:
        if self._worker is not None:
            return
        self._worker = threading.Thread(target=self._run, name="rover-motions", daemon=True)
        self._worker.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Let the current motion finish, then stop the worker."""
        t = self._worker
        if t is None:
            return
        if not self._stop_requested:
            # The stop marker must get through even if the slot is occupied.
            self._pending.put(None)
            self._stop_requested = True
        t.join(timeout=timeout)
        if t.is_alive():
            logger.warning("rover worker still busy after %0.1fs", timeout)
            return
        self._worker = None
        self._stop_requested = False

    def submit(self, command: str) -> bool:
        """Queue a motion for execution. Returns False if it was dropped."""
        motion = MOTIONS.get(command)
        if motion is None:
            logger.warning("unknown command: %r (%s)", command, UNKNOWN_COMMAND)
            return False
        try:
            self._pending.put_nowait(motion)
        except queue.Full:
            logger.info("rover busy, dropping %s", command)
            return False
        return True

    def perform(self, motion: Motion) -> None:
        """Run one motion to completion on the calling thread."""
        logger.info("executing command: %s %dms", motion.command, motion.duration_ms)
        for pin in motion.pins:
            self._pins.write(pin, 1)
        try:
            self._sleep(motion.duration_ms / 1000.0)
        finally:
            for pin in motion.pins:
                self._pins.write(pin, 0)

    def _run(self) -> None:
        while True:
            motion = self._pending.get()
            if motion is None:
                return
            try:
                self.perform(motion)
            except Exception:
                logger.exception("motion %s failed", motion.command)


def dispatch_command(rover: Rover, command: object) -> None:
    """Dispatch function handed to the broker: validate and queue a motion."""
    if not isinstance(command, str) or command not in MOTIONS:
        logger.warning("unknown command: %r (%s)", command, UNKNOWN_COMMAND)
        return
    rover.submit(command)
