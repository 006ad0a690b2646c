# api.py
# Flask control surface: GET /?mode=on starts every blink loop, anything else stops them

from datetime import datetime

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
import pytz

from blinkcore.config import Settings, get_timezone
from blinkcore.logging import log_event, setup_logger

api_logger = setup_logger('api', 'api.log')
error_logger = setup_logger('error', 'error.log')

control_bp = Blueprint('control', __name__)


def get_registry():
    return current_app.extensions['blink_registry']


def _failure_response(action, failures):
    pins = ', '.join(str(pin) for pin, _ in failures)
    log_event(error_logger, 'ERROR', f'{action} failed on some pins', pins=pins)
    return f"{action} failed for pin(s) {pins}\n", 500, {'Content-Type': 'text/plain; charset=utf-8'}


@control_bp.route('/', methods=['GET', 'POST'])
def control():
    """Start all loops for mode=on; any other mode, or none, stops them."""
    mode = request.args.get('mode')
    registry = get_registry()

    if mode == 'on':
        log_event(api_logger, 'INFO', 'On', remote=request.remote_addr)
        failures = registry.start_all()
        action = 'Start'
    else:
        log_event(api_logger, 'INFO', 'Off', remote=request.remote_addr, mode=mode)
        failures = registry.stop_all()
        action = 'Stop'

    if failures:
        return _failure_response(action, failures)
    return '', 200


@control_bp.route('/status', methods=['GET'])
def status():
    """Running state and last commanded level of every pin"""
    try:
        result = {}
        for entry in get_registry().status():
            result[f"pin_{entry['pin']}"] = entry
        return jsonify(result)
    except Exception as e:
        log_event(error_logger, 'ERROR', 'Status check failed', error=str(e))
        return jsonify({'error': str(e)}), 500


@control_bp.route('/health', methods=['GET'])
def health():
    settings = current_app.config['BLINKME_SETTINGS']
    started_at = current_app.config['BLINKME_STARTED_AT']
    return jsonify({
        'status': 'ok',
        'backend': settings.backend,
        'interval': settings.interval,
        'pins': get_registry().pin_ids,
        'started_at': started_at.isoformat(),
    })


def create_app(registry, settings=None):
    settings = settings or Settings()

    app = Flask(__name__)
    # Webhook relays and browser dashboards on the LAN call in cross-origin
    CORS(app, origins=["*"], methods=["GET", "POST", "OPTIONS"])

    app.extensions['blink_registry'] = registry
    app.config['BLINKME_SETTINGS'] = settings
    app.config['BLINKME_STARTED_AT'] = datetime.now(pytz.UTC).astimezone(get_timezone(settings.timezone))
    app.register_blueprint(control_bp)

    log_event(api_logger, 'INFO', 'Control surface ready',
              pins=registry.pin_ids, backend=settings.backend)
    return app
