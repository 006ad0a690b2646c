#!/usr/bin/env python3
"""
Hold a single pin High until interrupted (wiring check for one LED)

Usage:
    python tools/pin_hold.py <pin_number> [--simulate]

Examples:
    python tools/pin_hold.py 14              # Light the LED on GPIO 14 until Ctrl+C
    python tools/pin_hold.py 18 --simulate   # Same, against the GPIO simulator
"""

import os
import sys
import signal
import argparse
import threading

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from blinkcore.config import ConfigError, load_settings
from blinkcore.gpio import GPIOInitError, Level, init_backend
from blinkcore.logging import log_event, setup_logger

tool_logger = setup_logger('pin_hold', 'system.log')


def hold_pin(backend, pin_id, stop_event):
    """Drive pin_id High, block until stop_event is set, then drive it Low"""
    pin = backend.pin(pin_id)
    pin.set_level(Level.HIGH)
    log_event(tool_logger, 'INFO', 'Pin held High', pin=pin_id)
    try:
        stop_event.wait()
    finally:
        pin.set_level(Level.LOW)
        log_event(tool_logger, 'INFO', 'Pin released Low', pin=pin_id)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Hold one GPIO pin High until interrupted")
    parser.add_argument('pin', type=int, help='Output pin number')
    parser.add_argument('--simulate', action='store_true', help='Use the GPIO simulator')
    args = parser.parse_args(argv)

    try:
        settings = load_settings(overrides={
            'pins': (args.pin,),
            'backend': 'simulated' if args.simulate else None,
        })
    except ConfigError as e:
        parser.error(str(e))

    try:
        backend = init_backend(settings)
    except GPIOInitError as e:
        log_event(tool_logger, 'CRITICAL', 'GPIO initialization failed', error=str(e))
        return 1

    stop_event = threading.Event()

    def handle_signal(signum, frame):
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        hold_pin(backend, args.pin, stop_event)
    finally:
        backend.cleanup()
    return 0


if __name__ == "__main__":
    sys.exit(main())
