"""Tests for the HTTP control surface."""

import pytest

from api import create_app
from blinkcore.config import Settings
from blinkcore.gpio import Level


@pytest.fixture
def registry(make_registry, sim_backend):
    return make_registry(sim_backend)


@pytest.fixture
def client(registry, sim_settings):
    app = create_app(registry, sim_settings)
    app.config['TESTING'] = True
    return app.test_client()


def _all_toggling(backend, wait):
    return wait(lambda: all(len(backend.pin(p).transitions()) >= 2 for p in backend.pin_ids))


def test_mode_on_then_off(client, registry, sim_backend, wait):
    response = client.get('/?mode=on')
    assert response.status_code == 200
    assert response.data == b''
    assert all(c.running for c in registry)
    assert _all_toggling(sim_backend, wait)

    response = client.get('/?mode=off')
    assert response.status_code == 200
    assert response.data == b''
    assert all(not c.running for c in registry)
    assert all(c.join(1.0) for c in registry)
    assert set(sim_backend.levels().values()) == {Level.LOW}


def test_no_query_string_stops(client, registry, sim_backend, wait):
    client.get('/?mode=on')
    assert _all_toggling(sim_backend, wait)

    response = client.get('/')
    assert response.status_code == 200
    assert all(not c.running for c in registry)
    assert set(sim_backend.levels().values()) == {Level.LOW}


@pytest.mark.parametrize('mode', ['ON', 'On', 'off', 'true', '1', ''])
def test_anything_but_on_stops(client, registry, mode):
    client.get('/?mode=on')
    response = client.get('/', query_string={'mode': mode})

    assert response.status_code == 200
    assert all(not c.running for c in registry)


def test_repeated_on_keeps_single_loops(client, registry, threads_for):
    client.get('/?mode=on')
    client.get('/?mode=on')

    assert all(len(threads_for(p)) == 1 for p in registry.pin_ids)


def test_post_is_accepted(client, registry):
    response = client.post('/?mode=on')
    assert response.status_code == 200
    assert all(c.running for c in registry)


def test_pin_failure_reports_500(make_registry, flaky_pin, sim_settings):
    good = flaky_pin(14)
    bad = flaky_pin(15, fail_always=True)
    registry = make_registry([good, bad])
    client = create_app(registry, sim_settings).test_client()

    response = client.get('/?mode=off')

    assert response.status_code == 500
    assert b'15' in response.data
    assert response.content_type.startswith('text/plain')
    assert good.level is Level.LOW
    assert all(not c.running for c in registry)


def test_status_reports_every_pin(client, registry):
    client.get('/?mode=on')
    data = client.get('/status').get_json()

    assert sorted(data) == sorted(f"pin_{p}" for p in registry.pin_ids)
    assert data['pin_14']['running'] is True
    assert data['pin_14']['pin'] == 14

    client.get('/?mode=off')
    data = client.get('/status').get_json()
    assert all(entry['running'] is False for entry in data.values())
    assert all(entry['level'] == 'LOW' for entry in data.values())


def test_health(registry):
    settings = Settings(backend='simulated', timezone='Europe/London')
    client = create_app(registry, settings).test_client()

    data = client.get('/health').get_json()

    assert data['status'] == 'ok'
    assert data['backend'] == 'simulated'
    assert data['pins'] == [14, 15, 18, 23, 24, 25]
    assert data['started_at'][-6] in '+-'


def test_cors_header(client):
    origin = 'http://example.com'
    response = client.get('/status', headers={'Origin': origin})

    # flask-cors may echo the allowed origin or send a literal wildcard
    assert response.headers.get('Access-Control-Allow-Origin') in (origin, '*')


def test_on_after_shutdown_is_refused(client, registry, sim_backend):
    registry.shutdown(timeout=1.0)

    response = client.get('/?mode=on')

    assert response.status_code == 500
    assert b'14' in response.data
    assert all(not c.running for c in registry)
    assert set(sim_backend.levels().values()) == {Level.LOW}
