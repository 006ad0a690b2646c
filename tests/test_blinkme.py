"""Tests for the process entry point and the pin hold tool."""

import json
import sys
import threading

import pytest

import blinkme
from blinkcore.config import Settings
from blinkcore.gpio import Level, SimulatedBackend
from tools.pin_hold import hold_pin


def test_config_flag_prints_settings(capsys):
    assert blinkme.main(['--config', '--simulate', '--port', '9100']) == 0

    shown = json.loads(capsys.readouterr().out)
    assert shown['backend'] == 'simulated'
    assert shown['port'] == 9100
    assert shown['pins'] == [14, 15, 18, 23, 24, 25]


def test_bad_pins_flag_exits_with_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        blinkme.main(['--pins', '14,14', '--config'])
    assert excinfo.value.code == 2


def test_environment_port(monkeypatch):
    monkeypatch.setenv('BLINKME_PORT', '9200')
    args = blinkme.build_parser().parse_args([])

    assert blinkme.settings_from_args(args).port == 9200


def test_init_failure_never_serves(monkeypatch):
    monkeypatch.setitem(sys.modules, 'RPi', None)
    monkeypatch.setitem(sys.modules, 'RPi.GPIO', None)

    def serve(self):
        raise AssertionError('served after failed init')

    monkeypatch.setattr(blinkme.BlinkMeSystem, 'serve', serve)

    assert blinkme.main(['--backend', 'rpi']) == 1


def test_system_shutdown_forces_pins_low(wait):
    system = blinkme.BlinkMeSystem(Settings(backend='simulated', pins=(14, 15), interval='fixed'))
    system.initialize()
    client = system.app.test_client()

    assert client.get('/?mode=on').status_code == 200
    assert wait(lambda: system.backend.pin(14).level is Level.HIGH)

    system.shutdown()

    assert all(not c.running for c in system.registry)
    assert system.backend.levels() == {14: Level.LOW, 15: Level.LOW}


def test_hold_pin_until_stopped(wait):
    backend = SimulatedBackend((14,)).setup()
    stop_event = threading.Event()
    worker = threading.Thread(target=hold_pin, args=(backend, 14, stop_event))
    worker.start()
    try:
        assert wait(lambda: backend.pin(14).level is Level.HIGH)
        assert worker.is_alive()
    finally:
        stop_event.set()
        worker.join(1.0)

    assert [level for _, level in backend.pin(14).history] == [Level.HIGH, Level.LOW]
