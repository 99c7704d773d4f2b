"""
Flask application for HTTP API.

Provides:
- GET /health: Service health check
- POST /config/company: Add or replace a tenant's webhook configuration
- POST /register: Enroll a person from an image path
- POST /verify/<tenant_id>: Verify the person at the sensor, returns the gate decision
"""

from typing import Any, Dict

from flask import Flask, jsonify, request
from flask_cors import CORS

from .config import Config
from .errors import FacegateError, InvalidRequest
from .logging_config import get_logger
from .service import VerificationService
from .utils import format_uptime

logger = get_logger(__name__)


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequest('Request body must be a JSON object')
    return data


def _required_str(data: Dict[str, Any], field: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest(f'Field {field} must be a non-empty string')
    return value.strip()


def create_app(service: VerificationService, config: Config) -> Flask:
    """
    Create and configure Flask application.

    Args:
        service: Assembled verification service
        config: Service configuration

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    CORS(app)

    @app.errorhandler(FacegateError)
    def handle_facegate_error(error: FacegateError):
        logger.warning(f'{request.method} {request.path} failed: {type(error).__name__}: {error}')
        return jsonify(error.to_dict()), error.http_status

    @app.route('/health')
    def health():
        """Health check endpoint."""
        state = service.health()
        return jsonify({
            'status': 'ok' if state['sensor'] else 'degraded',
            'service': config.service_name,
            'sensor': config.sensor_kind,
            'sensorRunning': state['sensor'],
            'cachedPersons': state['cached_persons'],
            'uptime': format_uptime(state['uptime_seconds']),
        })

    @app.route('/config/company', methods=['POST'])
    def configure_company():
        """Add or replace a tenant's webhook configuration."""
        data = _json_body()
        cache_expire = data.get('cache_expire_seconds', config.default_cache_expire_seconds)
        if not isinstance(cache_expire, int) or isinstance(cache_expire, bool) or cache_expire < 0:
            raise InvalidRequest('Field cache_expire_seconds must be a non-negative integer')

        stored = service.configure_tenant(
            tenant_id=_required_str(data, 'tenant_id'),
            webhook_url=_required_str(data, 'webhook_url'),
            cache_expire_seconds=cache_expire,
        )
        return jsonify({'ok': True, 'data': stored.to_dict()})

    @app.route('/register', methods=['POST'])
    def register():
        """
        Enroll a person from an image path.

        The response carries the stored feature template.
        """
        data = _json_body()
        person = service.registry.register_from_path(
            tenant_id=_required_str(data, 'tenant_id'),
            name=_required_str(data, 'name'),
            external_id=_required_str(data, 'external_id'),
            image_path=_required_str(data, 'image_path'),
        )
        return jsonify({'ok': True, 'data': person.to_dict()})

    @app.route('/verify/<tenant_id>', methods=['POST'])
    def verify(tenant_id: str):
        """Verify the person at the sensor; status 9 means open."""
        decision = service.verify(tenant_id)
        return jsonify(decision.to_dict())

    return app
