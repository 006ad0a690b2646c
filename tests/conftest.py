"""Shared pytest fixtures and helpers."""

import os
import tempfile
import threading
import time

# Keep test runs from writing into the project's logs/ directory
os.environ.setdefault('BLINKME_LOG_DIR', tempfile.mkdtemp(prefix='blinkme-logs-'))

import pytest

from blinkcore.config import Settings
from blinkcore.cycle import BlinkController, fixed_interval
from blinkcore.gpio import PinWriteError, SimulatedBackend, SimulatedPin
from blinkcore.registry import ControllerRegistry

FAST = 0.02


class FlakyPin(SimulatedPin):
    """Simulated pin whose n-th writes (1-based) fail, or every write"""

    def __init__(self, pin_id, fail_on=(), fail_always=False):
        super().__init__(pin_id)
        self.fail_on = set(fail_on)
        self.fail_always = fail_always
        self.attempts = 0

    def set_level(self, level):
        self.attempts += 1
        if self.fail_always or self.attempts in self.fail_on:
            raise PinWriteError(self.pin_id, 'simulated write failure')
        super().set_level(level)


def wait_for(predicate, timeout=2.0, step=0.005):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(step)
    return predicate()


def blink_threads(pin_id):
    return [t for t in threading.enumerate() if t.name == f"blink-{pin_id}" and t.is_alive()]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith('BLINKME_') and key != 'BLINKME_LOG_DIR':
            monkeypatch.delenv(key)


@pytest.fixture
def wait():
    return wait_for


@pytest.fixture
def threads_for():
    return blink_threads


@pytest.fixture
def flaky_pin():
    return FlakyPin


@pytest.fixture
def sim_backend():
    return SimulatedBackend((14, 15, 18, 23, 24, 25)).setup()


@pytest.fixture
def make_registry():
    """Build a registry over simulated pins with a fast fixed interval"""
    registries = []

    def build(backend_or_pins, interval=FAST):
        if isinstance(backend_or_pins, SimulatedBackend):
            pins = [backend_or_pins.pin(p) for p in backend_or_pins.pin_ids]
        else:
            pins = list(backend_or_pins)
        registry = ControllerRegistry(
            BlinkController(pin, fixed_interval(interval)) for pin in pins
        )
        registries.append(registry)
        return registry

    yield build

    for registry in registries:
        for controller in registry:
            try:
                controller.stop()
            except PinWriteError:
                pass
            controller.join(1.0)


@pytest.fixture
def sim_settings():
    return Settings(backend='simulated')
