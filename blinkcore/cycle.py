# cycle.py
# Per-pin blink loop: High, wait, Low, wait, until stopped.

import random
import threading
from typing import Callable, Optional

from .gpio import Level, PinOutputPort
from .logging import log_event, setup_logger

cycle_logger = setup_logger('cycle', 'cycle.log')
error_logger = setup_logger('error', 'error.log')

RANDOM_MIN_MS = 300
RANDOM_MAX_MS = 1000
FIXED_INTERVAL = 0.5


def random_interval(rng=None) -> Callable[[], float]:
    """Whole milliseconds drawn uniformly from [300, 1000), in seconds"""
    rng = rng or random.Random()

    def draw():
        return rng.randrange(RANDOM_MIN_MS, RANDOM_MAX_MS) / 1000.0
    return draw


def fixed_interval(seconds=FIXED_INTERVAL) -> Callable[[], float]:
    def draw():
        return seconds
    return draw


def make_interval(mode, rng=None):
    if mode == 'random':
        return random_interval(rng)
    if mode == 'fixed':
        return fixed_interval()
    raise ValueError(f"Unknown interval mode: {mode}")


class BlinkController:
    """
    Drives one pin through the blink loop on a background thread.

    start() is a no-op while a loop is already running, so a pin never has
    two loops toggling it. stop() cancels the running loop and forces the pin
    Low; the wait between transitions is interruptible so the loop exits
    right away.
    """

    def __init__(self, pin: PinOutputPort, interval: Optional[Callable[[], float]] = None):
        self.pin = pin
        self.interval = interval or random_interval()
        self._lock = threading.Lock()
        self._cancel: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self.last_level: Optional[Level] = None
        self.write_errors = 0

    @property
    def pin_id(self):
        return self.pin.pin_id

    @property
    def running(self):
        with self._lock:
            return self._cancel is not None

    def start(self):
        with self._lock:
            if self._cancel is not None:
                log_event(cycle_logger, 'DEBUG', 'Blink loop already running', pin=self.pin_id)
                return False

            cancel = threading.Event()
            thread = threading.Thread(
                target=self._run, args=(cancel,),
                name=f"blink-{self.pin_id}", daemon=True
            )
            self._cancel = cancel
            self._thread = thread
            thread.start()

        log_event(cycle_logger, 'INFO', 'Blink loop started', pin=self.pin_id)
        return True

    def stop(self):
        with self._lock:
            was_running = self._cancel is not None
            if was_running:
                self._cancel.set()
                self._cancel = None
            # Written under the lock so no loop write can follow it
            self.pin.set_level(Level.LOW)
            self.last_level = Level.LOW

        if was_running:
            log_event(cycle_logger, 'INFO', 'Blink loop stopped', pin=self.pin_id)
        return was_running

    def join(self, timeout=None):
        """Wait for the last spawned loop thread to exit; True if it has"""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def status(self):
        with self._lock:
            return {
                'pin': self.pin_id,
                'running': self._cancel is not None,
                'level': self.last_level.name if self.last_level else None,
                'write_errors': self.write_errors,
            }

    def _run(self, cancel: threading.Event):
        level = Level.HIGH
        while True:
            with self._lock:
                if cancel.is_set():
                    break
                try:
                    self.pin.set_level(level)
                except Exception as e:
                    # One failed write must not end the loop
                    self.write_errors += 1
                    log_event(error_logger, 'ERROR', 'Pin write failed',
                              pin=self.pin_id, pin_level=level.name, error=str(e))
                else:
                    self.last_level = level

            if cancel.wait(self.interval()):
                break
            level = level.flipped()

        log_event(cycle_logger, 'DEBUG', 'Blink loop exited', pin=self.pin_id)

    def __repr__(self):
        return f"BlinkController(pin={self.pin_id}, running={self.running})"
