# config.py
# Runtime settings: hard-coded defaults, overridden by environment, then CLI flags.
# No settings file is read; the pin list is the wiring of the LED board.

import os
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import pytz

# LEDs are wired to BCM GPIO 14, 15, 18, 23, 24 and 25
DEFAULT_PINS = (14, 15, 18, 23, 24, 25)
DEFAULT_HOST = '0.0.0.0'
DEFAULT_PORT = 9000

BACKENDS = ('rpi', 'simulated')
INTERVAL_MODES = ('random', 'fixed')
PIN_MODES = ('BCM', 'BOARD')

ENV_PREFIX = 'BLINKME_'


class ConfigError(ValueError):
    """Raised for invalid setting values"""


@dataclass(frozen=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    pins: Tuple[int, ...] = DEFAULT_PINS
    backend: str = 'rpi'
    interval: str = 'random'
    active_low: bool = False
    pin_mode: str = 'BCM'
    timezone: str = 'UTC'
    log_level: str = 'INFO'
    shutdown_timeout: float = 2.0

    @property
    def simulate(self):
        return self.backend == 'simulated'

    def as_dict(self):
        return {
            'host': self.host,
            'port': self.port,
            'pins': list(self.pins),
            'backend': self.backend,
            'interval': self.interval,
            'active_low': self.active_low,
            'pin_mode': self.pin_mode,
            'timezone': self.timezone,
            'log_level': self.log_level,
            'shutdown_timeout': self.shutdown_timeout,
        }


def parse_pins(pin_str):
    """Parse a comma separated pin list such as '14, 15,18'"""
    try:
        pins = tuple(int(p.strip()) for p in pin_str.split(',') if p.strip())
    except ValueError:
        raise ConfigError(f"Invalid pin list: {pin_str!r}")
    if not pins:
        raise ConfigError("Pin list is empty")
    if len(set(pins)) != len(pins):
        # Two controllers on one pin would double-drive it
        raise ConfigError(f"Duplicate pins in list: {pin_str!r}")
    if any(p < 0 for p in pins):
        raise ConfigError(f"Negative pin number in list: {pin_str!r}")
    return pins


def parse_port(value):
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port: {value!r}")
    if not 0 < port < 65536:
        raise ConfigError(f"Port out of range: {port}")
    return port


def parse_bool(value):
    value = str(value).strip().lower()
    if value in ('1', 'true', 'yes', 'on'):
        return True
    if value in ('0', 'false', 'no', 'off', ''):
        return False
    raise ConfigError(f"Invalid boolean: {value!r}")


def _choice(value, choices, what):
    if value not in choices:
        raise ConfigError(f"Unknown {what} {value!r}, expected one of {', '.join(choices)}")
    return value


def load_settings(environ=None, overrides: Optional[dict] = None) -> Settings:
    """Build Settings from defaults, the environment and explicit overrides.

    ``overrides`` holds values coming from the command line; keys set to None
    are ignored so unset flags fall through to the environment.
    """
    env = os.environ if environ is None else environ
    values = {}

    def get(name):
        return env.get(ENV_PREFIX + name)

    if get('HOST'):
        values['host'] = get('HOST')
    if get('PORT'):
        values['port'] = parse_port(get('PORT'))
    if get('PINS'):
        values['pins'] = parse_pins(get('PINS'))
    if get('BACKEND'):
        values['backend'] = get('BACKEND').lower()
    if get('SIMULATE') and parse_bool(get('SIMULATE')):
        values['backend'] = 'simulated'
    if get('INTERVAL'):
        values['interval'] = get('INTERVAL').lower()
    if get('ACTIVE_LOW'):
        values['active_low'] = parse_bool(get('ACTIVE_LOW'))
    if get('PIN_MODE'):
        values['pin_mode'] = get('PIN_MODE').upper()
    if get('TIMEZONE'):
        values['timezone'] = get('TIMEZONE')
    if get('LOG_LEVEL'):
        values['log_level'] = get('LOG_LEVEL').upper()
    if get('SHUTDOWN_TIMEOUT'):
        try:
            values['shutdown_timeout'] = float(get('SHUTDOWN_TIMEOUT'))
        except ValueError:
            raise ConfigError(f"Invalid shutdown timeout: {get('SHUTDOWN_TIMEOUT')!r}")

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key == 'port':
            value = parse_port(value)
        elif key == 'pins' and isinstance(value, str):
            value = parse_pins(value)
        values[key] = value

    settings = replace(Settings(), **values)
    return validate(settings)


def validate(settings: Settings) -> Settings:
    _choice(settings.backend, BACKENDS, 'backend')
    _choice(settings.interval, INTERVAL_MODES, 'interval mode')
    _choice(settings.pin_mode, PIN_MODES, 'pin mode')
    _choice(settings.log_level, ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'), 'log level')
    if settings.shutdown_timeout < 0:
        raise ConfigError("Shutdown timeout must not be negative")
    get_timezone(settings.timezone)
    return settings


def get_timezone(name):
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ConfigError(f"Unknown timezone: {name!r}")
