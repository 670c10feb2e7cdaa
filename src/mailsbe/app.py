import json
import logging
import queue
from typing import Optional

from flask import Flask, Response, jsonify, request

from .config import Settings
from .dashboard import Dashboard
from .exceptions import (
    BackendUnavailableError,
    ConfigurationError,
    MailsbeError,
    OwnerRequiredError,
    RecordNotFoundError,
    StoreError,
    ValidationError,
    format_exception_chain,
)
from .models import parse_email_id
from .pixel import PIXEL_GIF, PixelTracker, cors_headers, pixel_headers
from .stores import TrackingStore, create_store

logger = logging.getLogger(__name__)

PIXEL_PATH = '/update'
PIXEL_METHODS = ['GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
STREAM_KEEPALIVE_SECONDS = 15

ERROR_STATUS = [
    (ValidationError, 400),
    (OwnerRequiredError, 401),
    (RecordNotFoundError, 404),
    (BackendUnavailableError, 503),
    (StoreError, 502),
    (ConfigurationError, 500),
]


def create_app(settings: Optional[Settings] = None, store: Optional[TrackingStore] = None) -> Flask:
    """Factory function to create and configure Flask app.

    Args:
        settings: Application settings (defaults plus environment if omitted)
        store: Data store; built from ``settings`` if omitted

    Returns:
        Configured Flask application
    """
    settings = settings or Settings()
    app = Flask(__name__)
    app.config['MAILSBE_SETTINGS'] = settings
    app.config['DEBUG'] = settings.debug

    # Inject collaborators into the app
    app.store = store or create_store(settings)
    app.tracker = PixelTracker(app.store, logger=logging.getLogger('mailsbe.pixel'))
    app.dashboard = Dashboard(
        app.store,
        endpoint_base_url=settings.endpoint_base_url,
        poll_interval=settings.poll_interval,
    )

    def pixel_response() -> Response:
        return Response(PIXEL_GIF, status=200, headers=pixel_headers(settings.cors_origin))

    def current_owner() -> Optional[str]:
        return request.headers.get(settings.owner_header)

    @app.route(PIXEL_PATH, methods=PIXEL_METHODS)
    def update():
        """Tracking pixel endpoint - records the first open, always returns the GIF."""
        if request.method == 'OPTIONS':
            return Response(b'', status=200, headers=cors_headers(settings.cors_origin))
        try:
            outcome = app.tracker.record_open(request.args.get('text'))
            logger.debug("Pixel %s from %s: %s", request.method, _get_client_ip(), outcome.value)
        except Exception:
            logger.exception("Pixel handler failed")
        return pixel_response()

    @app.route('/health', methods=['GET'])
    def health():
        """Health check endpoint."""
        return jsonify({"status": "healthy"}), 200

    @app.route('/api/emails', methods=['GET'])
    def list_emails():
        """List the current user's tracked emails, newest first."""
        records = app.dashboard.list_emails(current_owner())
        return jsonify([record.to_dict() for record in records]), 200

    @app.route('/api/emails', methods=['POST'])
    def create_email():
        """Register a new tracked email and return its pixel URL and snippet."""
        data = request.get_json(silent=True) or {}
        created = app.dashboard.create_email(
            current_owner(),
            data.get('recipient_address') or '',
            data.get('description') or '',
        )
        return jsonify(created.to_dict()), 201

    @app.route('/api/emails/<email_id>', methods=['GET'])
    def get_email(email_id):
        """Get one tracked email."""
        record = app.dashboard.get_email(current_owner(), parse_email_id(email_id))
        return jsonify({
            **record.to_dict(),
            "pixel_url": app.dashboard.pixel_url(record.tracking_token),
        }), 200

    @app.route('/api/emails/<email_id>', methods=['DELETE'])
    def delete_email(email_id):
        """Delete a tracked email."""
        app.dashboard.delete_email(current_owner(), parse_email_id(email_id))
        return jsonify({"message": "Email deleted successfully"}), 200

    @app.route('/api/emails/stream', methods=['GET'])
    def stream_emails():
        """Server-sent events with every change to the current user's emails."""
        events: "queue.Queue" = queue.Queue()
        subscription = app.dashboard.subscribe(current_owner(), events.put)

        def generate():
            yield ": connected\n\n"
            while True:
                try:
                    event = events.get(timeout=STREAM_KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                yield f"event: change\ndata: {json.dumps(event.to_dict())}\n\n"

        response = Response(
            generate(),
            mimetype='text/event-stream',
            headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
        )
        # Also runs for HEAD and for streams closed before the first read
        response.call_on_close(subscription.close)
        return response

    @app.errorhandler(MailsbeError)
    def handle_mailsbe_error(error):
        status = next((code for cls, code in ERROR_STATUS if isinstance(error, cls)), 500)
        if status >= 500:
            logger.error("%s %s failed:\n%s", request.method, request.path, format_exception_chain(error))
        return jsonify({"error": error.message}), status

    @app.errorhandler(404)
    @app.errorhandler(405)
    def handle_unknown_route(error):
        # Mail clients hitting a mangled pixel URL still get an image
        if request.path.startswith('/api/') or request.path.startswith('/dashboard'):
            return jsonify({"error": error.description}), error.code
        return pixel_response()

    return app


def _get_client_ip() -> str:
    """Get client IP address from request."""
    if request.environ.get('HTTP_X_FORWARDED_FOR'):
        return request.environ.get('HTTP_X_FORWARDED_FOR').split(',')[0].strip()
    return request.environ.get('REMOTE_ADDR', 'unknown')
