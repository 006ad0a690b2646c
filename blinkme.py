#!/usr/bin/env python3
"""
BlinkMe! - LED Blink Control Server
===================================
Main entry point. It handles:
- Settings from environment and command line
- GPIO backend initialization (abort before serving if it fails)
- Building one blink controller per LED pin
- Serving the HTTP control surface
- Graceful shutdown on SIGINT/SIGTERM (all pins forced Low)

Usage:
    python blinkme.py                      # Serve on :9000 using RPi.GPIO
    python blinkme.py --simulate           # Serve with the in-memory GPIO simulator
    python blinkme.py --port 8080          # Serve on another port
    python blinkme.py --interval fixed     # Blink every 500ms instead of 300-999ms
    python blinkme.py --config             # Show effective configuration
"""

import sys
import json
import signal
import argparse

from api import create_app
from blinkcore.config import ConfigError, load_settings
from blinkcore.gpio import GPIOInitError, init_backend
from blinkcore.logging import log_event, set_level, setup_logger
from blinkcore.registry import build_registry


class BlinkMeSystem:
    """
    Process owner: GPIO backend, controller registry and the Flask app.
    """

    def __init__(self, settings):
        self.settings = settings
        self.system_logger = setup_logger('system', 'system.log')
        self.error_logger = setup_logger('error', 'error.log')
        self.backend = None
        self.registry = None
        self.app = None

    def initialize(self):
        """Bring up GPIO and controllers; GPIOInitError propagates to the caller."""
        log_event(self.system_logger, 'INFO', 'Hello World')
        log_event(self.system_logger, 'INFO', 'Initializing BlinkMe!', **self.settings.as_dict())

        self.backend = init_backend(self.settings)
        self.registry = build_registry(self.backend, self.settings.pins, self.settings.interval)

        self.app = create_app(self.registry, self.settings)
        return self

    def serve(self):
        log_event(self.system_logger, 'INFO', 'Serving control surface',
                  host=self.settings.host, port=self.settings.port)
        self.app.run(host=self.settings.host, port=self.settings.port,
                     debug=False, use_reloader=False, threaded=True)

    def shutdown(self):
        """Stop all loops, wait for them, release the GPIO"""
        log_event(self.system_logger, 'INFO', 'Shutting down')
        try:
            if self.registry is not None:
                failures = self.registry.shutdown(self.settings.shutdown_timeout)
                for pin_id, error in failures:
                    log_event(self.error_logger, 'ERROR', 'Pin not forced Low on shutdown',
                              pin=pin_id, error=str(error))
        finally:
            if self.backend is not None:
                self.backend.cleanup()
        log_event(self.system_logger, 'INFO', 'Graceful shutdown completed')

    def signal_handler(self, signum, frame):
        """Handle shutdown signals with cleanup and logging."""
        signal_name = 'SIGTERM' if signum == signal.SIGTERM else 'SIGINT' if signum == signal.SIGINT else f'Signal {signum}'
        log_event(self.system_logger, 'INFO', f'Received {signal_name}, initiating graceful shutdown')
        try:
            self.shutdown()
        except Exception as e:
            log_event(self.error_logger, 'ERROR', 'Error during graceful shutdown', error=str(e))
            sys.exit(1)
        sys.exit(0)


def build_parser():
    parser = argparse.ArgumentParser(
        description="BlinkMe! LED blink control server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python blinkme.py                    # Serve on :9000 using RPi.GPIO
  python blinkme.py --simulate         # Use the GPIO simulator
  python blinkme.py --pins 14,15       # Only drive GPIO 14 and 15
  curl 'http://localhost:9000/?mode=on'
  curl 'http://localhost:9000/?mode=off'
        """
    )
    parser.add_argument('--host', help='Address to listen on (default 0.0.0.0)')
    parser.add_argument('--port', type=int, help='TCP port to listen on (default 9000)')
    parser.add_argument('--pins', help='Comma separated output pins (default 14,15,18,23,24,25)')
    parser.add_argument('--backend', choices=['rpi', 'simulated'], help='GPIO backend')
    parser.add_argument('--simulate', action='store_true', help='Shortcut for --backend simulated')
    parser.add_argument('--interval', choices=['random', 'fixed'],
                        help='random: 300-999ms per phase, fixed: 500ms')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    parser.add_argument('--config', action='store_true', help='Show configuration and exit')
    return parser


def settings_from_args(args, environ=None):
    overrides = {
        'host': args.host,
        'port': args.port,
        'pins': args.pins,
        'backend': 'simulated' if args.simulate else args.backend,
        'interval': args.interval,
        'log_level': args.log_level,
    }
    return load_settings(environ, overrides)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = settings_from_args(args)
    except ConfigError as e:
        parser.error(str(e))

    if args.config:
        print(json.dumps(settings.as_dict(), indent=2))
        return 0

    system = BlinkMeSystem(settings)
    set_level(settings.log_level)

    try:
        system.initialize()
    except GPIOInitError as e:
        log_event(system.error_logger, 'CRITICAL', 'GPIO initialization failed, not serving', error=str(e))
        return 1

    signal.signal(signal.SIGINT, system.signal_handler)
    signal.signal(signal.SIGTERM, system.signal_handler)

    try:
        system.serve()
    except OSError as e:
        log_event(system.error_logger, 'CRITICAL', 'Could not start HTTP server', error=str(e))
        system.shutdown()
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
