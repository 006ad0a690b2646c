# gpio.py
# GPIO abstraction: pin output ports over RPi.GPIO or an in-memory simulator.
# The backend is picked from settings at startup, never by import fallback.

import enum
import threading
import time
from typing import Dict, Iterable, List, Optional, Tuple

from .logging import log_event, setup_logger

gpio_logger = setup_logger('gpio', 'gpio.log')


class Level(enum.Enum):
    LOW = 0
    HIGH = 1

    def flipped(self):
        return Level.LOW if self is Level.HIGH else Level.HIGH


class GPIOInitError(RuntimeError):
    """The hardware layer could not be brought up"""


class PinWriteError(IOError):
    """A single pin level write failed"""

    def __init__(self, pin_id, message):
        super().__init__(f"pin {pin_id}: {message}")
        self.pin_id = pin_id


class PinOutputPort:
    """Something that can drive one output pin High or Low."""

    pin_id = None

    def set_level(self, level: Level) -> None:
        raise NotImplementedError


class RPiPin(PinOutputPort):
    def __init__(self, gpio, pin_id, active_low=False):
        self._gpio = gpio
        self.pin_id = pin_id
        self.active_low = active_low

    def set_level(self, level: Level) -> None:
        # For activeLow wiring the LED is lit by driving the line LOW
        energized = (level is Level.HIGH) != self.active_low
        raw = self._gpio.HIGH if energized else self._gpio.LOW
        try:
            self._gpio.output(self.pin_id, raw)
        except (RuntimeError, ValueError) as e:
            raise PinWriteError(self.pin_id, str(e)) from e

    def __repr__(self):
        return f"RPiPin({self.pin_id})"


class SimulatedPin(PinOutputPort):
    """In-memory pin that remembers every level written to it."""

    def __init__(self, pin_id, clock=time.monotonic):
        self.pin_id = pin_id
        self._clock = clock
        self._lock = threading.Lock()
        self.level = Level.LOW
        self.history: List[Tuple[float, Level]] = []

    def set_level(self, level: Level) -> None:
        with self._lock:
            self.level = level
            self.history.append((self._clock(), level))
        gpio_logger.debug(f"Sim GPIO: pin {self.pin_id} set to {level.name}")

    def transitions(self):
        """History with repeated writes of the same level collapsed"""
        with self._lock:
            history = list(self.history)
        collapsed = []
        for stamp, level in history:
            if not collapsed or collapsed[-1][1] is not level:
                collapsed.append((stamp, level))
        return collapsed

    def write_count(self):
        with self._lock:
            return len(self.history)

    def __repr__(self):
        return f"SimulatedPin({self.pin_id}, {self.level.name})"


class RPiBackend:
    """Owns RPi.GPIO setup and cleanup for a set of output pins."""

    name = 'rpi'

    def __init__(self, pins: Iterable[int], pin_mode='BCM', active_low=False):
        self.pin_ids = tuple(pins)
        self.pin_mode = pin_mode
        self.active_low = active_low
        self._gpio = None
        self._pins: Dict[int, RPiPin] = {}

    def setup(self):
        log_event(gpio_logger, 'INFO', 'Initializing GPIO', mode=self.pin_mode, pins=list(self.pin_ids))
        try:
            import RPi.GPIO as GPIO
        except ImportError as e:
            log_event(gpio_logger, 'ERROR', 'RPi.GPIO not available', error=str(e))
            raise GPIOInitError(f"RPi.GPIO not available: {e}") from e

        try:
            if self.pin_mode == 'BCM':
                GPIO.setmode(GPIO.BCM)
            elif self.pin_mode == 'BOARD':
                GPIO.setmode(GPIO.BOARD)
            else:
                raise ValueError(f"Unknown GPIO mode: {self.pin_mode}")
            GPIO.setwarnings(False)

            off = GPIO.HIGH if self.active_low else GPIO.LOW
            for pin_id in self.pin_ids:
                GPIO.setup(pin_id, GPIO.OUT, initial=off)
                self._pins[pin_id] = RPiPin(GPIO, pin_id, self.active_low)
        except Exception as e:
            log_event(gpio_logger, 'ERROR', 'GPIO initialization failed', error=str(e),
                      configured=list(self._pins))
            self._pins.clear()
            # Release the channels set up before the failure
            try:
                GPIO.cleanup()
            except Exception as cleanup_error:
                log_event(gpio_logger, 'ERROR', 'GPIO cleanup after failed init failed',
                          error=str(cleanup_error))
            raise GPIOInitError(f"GPIO initialization failed: {e}") from e

        self._gpio = GPIO
        log_event(gpio_logger, 'INFO', 'GPIO initialization completed',
                  pin_count=len(self._pins), active_low=self.active_low)
        return self

    def pin(self, pin_id) -> PinOutputPort:
        return self._pins[pin_id]

    def cleanup(self):
        if self._gpio is None:
            log_event(gpio_logger, 'INFO', 'GPIO not initialized, skipping cleanup')
            return
        try:
            self._gpio.cleanup()
            log_event(gpio_logger, 'INFO', 'GPIO cleanup completed')
        finally:
            self._gpio = None
            self._pins.clear()


class SimulatedBackend:
    """Stand-in for the board, used for development and tests."""

    name = 'simulated'

    def __init__(self, pins: Iterable[int], clock=time.monotonic):
        self.pin_ids = tuple(pins)
        self._clock = clock
        self._pins: Dict[int, SimulatedPin] = {}

    def setup(self):
        for pin_id in self.pin_ids:
            self._pins[pin_id] = SimulatedPin(pin_id, clock=self._clock)
        log_event(gpio_logger, 'INFO', 'Simulated GPIO ready', pins=list(self.pin_ids))
        return self

    def pin(self, pin_id) -> SimulatedPin:
        return self._pins[pin_id]

    def levels(self):
        return {pin_id: pin.level for pin_id, pin in self._pins.items()}

    def cleanup(self):
        log_event(gpio_logger, 'INFO', 'Simulated GPIO cleanup', levels={
            pin_id: level.name for pin_id, level in self.levels().items()})


def init_backend(settings, backend: Optional[str] = None):
    """Bring up the configured GPIO backend; raises GPIOInitError on failure."""
    name = backend or settings.backend
    if name == 'simulated':
        return SimulatedBackend(settings.pins).setup()
    if name == 'rpi':
        return RPiBackend(settings.pins, pin_mode=settings.pin_mode,
                          active_low=settings.active_low).setup()
    raise GPIOInitError(f"Unknown GPIO backend: {name}")
