import logging
import os
from typing import Dict

from flask import Flask, request, jsonify

from .config import config
from .errors import BackofficeError, ValidationError
from .models import db
from .notifier import NotificationDispatcher, build_notifier
from .tournament_registry import TournamentRegistry
from .tournament_store import TournamentStore

logger = logging.getLogger(__name__)


def create_app(config_name: str = None, config_overrides: Dict = None) -> Flask:
    """Application factory for the tournament back office."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)

    # Initialize services
    notifier = build_notifier(app.config['NOTIFICATION_BACKEND'], app.config.get('REDIS_URL'))
    dispatcher = NotificationDispatcher(notifier)
    store = TournamentStore()
    registry = TournamentRegistry(
        store=store,
        dispatcher=dispatcher,
        policy=app.config['TRANSITION_POLICY'],
        max_retries=app.config['MAX_WRITE_RETRIES'],
        default_page_size=app.config['DEFAULT_PAGE_SIZE'],
        max_page_size=app.config['MAX_PAGE_SIZE'],
    )

    # Create tables
    with app.app_context():
        db.create_all()

    # Store services on app for access in routes
    app.notifier = notifier
    app.registry = registry

    register_error_handlers(app)
    register_api_routes(app)

    return app


def register_error_handlers(app: Flask):
    @app.errorhandler(BackofficeError)
    def handle_backoffice_error(error: BackofficeError):
        if error.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {error.message}")
        else:
            logger.debug(f"{request.method} {request.path} rejected ({error.code}): {error.message}")
        return jsonify(error.to_dict()), error.status_code


def _int_arg(name: str, default: int = None):
    value = request.args.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"Query parameter '{name}' must be an integer")


def _status_arg() -> str:
    status = request.args.get('status')
    if not status:
        status = (request.get_json(silent=True) or {}).get('status')
    if not status:
        raise ValidationError("Query parameter 'status' is required", code="missing_status")
    return status


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def register_api_routes(app: Flask):
    """Register API routes."""

    def tournaments_response(tournaments):
        return jsonify({
            'tournaments': [app.registry.tournament_payload(t) for t in tournaments],
            'count': len(tournaments)
        })

    # ==================== Tournament CRUD ====================

    @app.route('/api/v1/tournaments', methods=['GET'])
    def api_list_tournaments():
        """List tournaments with optional filtering."""
        limit = _int_arg('limit')
        offset = _int_arg('offset', 0)

        tournaments = app.registry.list_tournaments(
            status=request.args.get('status'),
            limit=limit,
            offset=offset,
            sort_by=request.args.get('sort_by', 'created_at'),
            sort_dir=request.args.get('sort_dir', 'desc')
        )

        return jsonify({
            'tournaments': [app.registry.tournament_payload(t) for t in tournaments],
            'count': len(tournaments),
            'limit': limit if limit is not None else app.registry.default_page_size,
            'offset': offset
        })

    @app.route('/api/v1/tournaments', methods=['POST'])
    def api_create_tournament():
        """Create a new tournament in draft state."""
        data = _json_body()
        name = data.pop('name', None)
        if not name:
            raise ValidationError("Tournament name is required")

        tournament = app.registry.create_tournament(name, data)
        return jsonify(app.registry.tournament_payload(tournament)), 201

    @app.route('/api/v1/tournaments/upcoming', methods=['GET'])
    def api_upcoming_tournaments():
        return tournaments_response(app.registry.list_upcoming())

    @app.route('/api/v1/tournaments/ongoing', methods=['GET'])
    def api_ongoing_tournaments():
        return tournaments_response(app.registry.list_ongoing())

    @app.route('/api/v1/tournaments/completed', methods=['GET'])
    def api_completed_tournaments():
        return tournaments_response(app.registry.list_completed())

    @app.route('/api/v1/tournaments/featured', methods=['GET'])
    def api_featured_tournaments():
        return tournaments_response(app.registry.list_featured())

    @app.route('/api/v1/tournaments/date-range', methods=['GET'])
    def api_tournaments_in_date_range():
        """Tournaments fully inside ?start=YYYY-MM-DD&end=YYYY-MM-DD."""
        return tournaments_response(app.registry.list_in_date_range(
            request.args.get('start'),
            request.args.get('end')
        ))

    @app.route('/api/v1/tournaments/<tournament_id>', methods=['GET'])
    def api_get_tournament(tournament_id: str):
        tournament = app.registry.get_tournament(tournament_id)
        return jsonify(app.registry.tournament_payload(tournament))

    @app.route('/api/v1/tournaments/<tournament_id>', methods=['PUT'])
    def api_update_tournament(tournament_id: str):
        """Update editable tournament fields."""
        tournament = app.registry.update_tournament(tournament_id, _json_body())
        return jsonify(app.registry.tournament_payload(tournament))

    @app.route('/api/v1/tournaments/<tournament_id>', methods=['DELETE'])
    def api_delete_tournament(tournament_id: str):
        """Delete a tournament without registrations."""
        app.registry.delete_tournament(tournament_id)
        return jsonify({'message': 'Tournament deleted', 'tournament_id': tournament_id})

    # ==================== Lifecycle ====================

    @app.route('/api/v1/tournaments/<tournament_id>/status', methods=['PATCH'])
    def api_update_tournament_status(tournament_id: str):
        """Move the tournament to ?status=<STATUS>."""
        tournament = app.registry.transition_status(tournament_id, _status_arg())
        return jsonify(app.registry.tournament_payload(tournament))

    # ==================== Registrations ====================

    @app.route('/api/v1/tournaments/<tournament_id>/registrations', methods=['POST'])
    def api_register_player(tournament_id: str):
        """Register a player for the tournament."""
        data = _json_body()
        registration = app.registry.register_player(
            tournament_id,
            data.get('player_id'),
            payment_amount=data.get('payment_amount'),
            payment_reference=data.get('payment_reference'),
            notes=data.get('notes')
        )
        return jsonify(app.registry.registration_payload(registration)), 201

    @app.route('/api/v1/tournaments/<tournament_id>/registrations', methods=['GET'])
    def api_list_registrations(tournament_id: str):
        registrations = app.registry.list_registrations(tournament_id)
        return jsonify({
            'registrations': app.registry.registration_payloads(registrations),
            'count': len(registrations)
        })

    @app.route('/api/v1/tournaments/<tournament_id>/registrations/<registration_id>/status', methods=['PATCH'])
    def api_update_registration_status(tournament_id: str, registration_id: str):
        registration = app.registry.update_registration_status(
            tournament_id, registration_id, _status_arg()
        )
        return jsonify(app.registry.registration_payload(registration))

    # ==================== Brackets ====================

    @app.route('/api/v1/tournaments/<tournament_id>/bracket', methods=['POST'])
    def api_generate_bracket(tournament_id: str):
        """Generate a fresh single-elimination bracket."""
        bracket = app.registry.generate_bracket(tournament_id)
        return jsonify(bracket.to_dict())

    # ==================== Health ====================

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        try:
            db.session.execute(db.text('SELECT 1'))
            db_ok = True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            db_ok = False

        notifier_ok = app.notifier.is_healthy()

        status = 'healthy' if (db_ok and notifier_ok) else 'unhealthy'
        code = 200 if status == 'healthy' else 503

        return jsonify({
            'status': status,
            'database': 'connected' if db_ok else 'disconnected',
            'notifications': 'connected' if notifier_ok else 'disconnected',
            'notification_backend': app.config['NOTIFICATION_BACKEND']
        }), code
