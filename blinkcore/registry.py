# registry.py
# Fixed, ordered set of blink controllers operated on as a group

import threading
import time
from typing import Iterable, List, Tuple

from .cycle import BlinkController, make_interval
from .logging import log_event, setup_logger

system_logger = setup_logger('system', 'system.log')
error_logger = setup_logger('error', 'error.log')


class RegistryClosedError(RuntimeError):
    """start_all() called after shutdown()"""


class ControllerRegistry:
    """
    One BlinkController per configured pin. Membership is fixed at startup.

    start_all() and stop_all() visit every controller even when one of them
    fails; failures come back as a list of (pin_id, exception).
    After shutdown() the registry is closed and start_all() refuses every pin.
    """

    def __init__(self, controllers: Iterable[BlinkController]):
        self._controllers = tuple(controllers)
        pin_ids = [c.pin_id for c in self._controllers]
        if len(set(pin_ids)) != len(pin_ids):
            raise ValueError(f"Duplicate pins in registry: {pin_ids}")
        self._lock = threading.RLock()
        self.closed = False

    def __iter__(self):
        return iter(self._controllers)

    def __len__(self):
        return len(self._controllers)

    def __getitem__(self, index):
        return self._controllers[index]

    @property
    def pin_ids(self):
        return [c.pin_id for c in self._controllers]

    def get(self, pin_id):
        for controller in self._controllers:
            if controller.pin_id == pin_id:
                return controller
        raise KeyError(pin_id)

    def start_all(self) -> List[Tuple[int, Exception]]:
        return self._apply('start')

    def stop_all(self) -> List[Tuple[int, Exception]]:
        return self._apply('stop')

    def _apply(self, action):
        failures = []
        with self._lock:
            if action == 'start' and self.closed:
                log_event(error_logger, 'WARN', 'Start refused, registry is shut down')
                return [(c.pin_id, RegistryClosedError('registry is shut down'))
                        for c in self._controllers]

            for controller in self._controllers:
                try:
                    getattr(controller, action)()
                except Exception as e:
                    failures.append((controller.pin_id, e))
                    log_event(error_logger, 'ERROR', f'Controller {action} failed',
                              pin=controller.pin_id, error=str(e))

        log_event(system_logger, 'INFO', f'{action.capitalize()} applied to all controllers',
                  controllers=len(self._controllers), failed=[pin for pin, _ in failures])
        return failures

    def shutdown(self, timeout=2.0):
        """Stop every controller and wait, bounded by timeout, for loops to exit"""
        with self._lock:
            self.closed = True
            failures = self.stop_all()
        deadline = time.monotonic() + timeout
        lingering = []
        for controller in self._controllers:
            remaining = max(0.0, deadline - time.monotonic())
            if not controller.join(remaining):
                lingering.append(controller.pin_id)

        if lingering:
            log_event(system_logger, 'WARN', 'Blink loops still alive after shutdown timeout',
                      pins=lingering, timeout=timeout)
        else:
            log_event(system_logger, 'INFO', 'All blink loops exited')
        return failures

    def status(self):
        return [c.status() for c in self._controllers]


def build_registry(backend, pins=None, interval='random', rng=None):
    """One controller per pin, in configured order, sharing an interval mode"""
    pins = backend.pin_ids if pins is None else pins
    controllers = [
        BlinkController(backend.pin(pin_id), make_interval(interval, rng))
        for pin_id in pins
    ]
    return ControllerRegistry(controllers)
