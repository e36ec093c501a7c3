import logging
from pathlib import Path
from typing import Any, Dict

from flask import Flask, jsonify, request, send_file

from ..config.routing_table import RoutingTable
from ..core.errors import MalformedRequest, PortProxyError
from ..core.liveness import LivenessProber

STATIC_DIR = Path(__file__).resolve().parent / 'static'

logger = logging.getLogger('portproxy.admin')


def _text(message: str, status: int):
    return message, status, {'Content-Type': 'text/plain; charset=utf-8'}


def apply_update(table: RoutingTable, data: Dict[str, Any]) -> None:
    """Apply one add/delete/rename action from the admin page."""
    action = data.get('action')
    if action == 'add':
        table.set(data.get('endpoint'), data.get('port'))
    elif action == 'delete':
        table.delete(data.get('endpoint'))
    elif action == 'rename':
        table.rename(data.get('oldEndpoint'), data.get('newEndpoint'))
    else:
        raise MalformedRequest('Unknown action')


def create_app(table: RoutingTable, prober: LivenessProber) -> Flask:
    """Build the admin application around a shared routing table."""
    app = Flask(__name__, static_folder=None)

    @app.before_request
    def log_request():
        logger.debug(f"[GUI] {request.method} {request.path}")

    @app.errorhandler(PortProxyError)
    def handle_portproxy_error(error: PortProxyError):
        return _text(error.message, error.status)

    @app.errorhandler(404)
    def handle_not_found(error):
        return _text('Not Found', 404)

    @app.route('/')
    @app.route('/gui')
    def index():
        """Serve the admin page."""
        return send_file(STATIC_DIR / 'index.html', mimetype='text/html')

    @app.route('/get', methods=['GET'])
    @app.route('/gui/get', methods=['GET'])
    def get_mappings():
        """Return every route with a freshly probed online flag."""
        return jsonify(prober.probe_all(table.list()))

    @app.route('/update', methods=['POST'])
    @app.route('/gui/update', methods=['POST'])
    def update_mappings():
        """Add, delete or rename a route."""
        data = request.get_json(force=True, silent=True)
        if not isinstance(data, dict):
            raise MalformedRequest()

        apply_update(table, data)
        return _text('OK', 200)

    return app
