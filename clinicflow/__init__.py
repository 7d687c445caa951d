"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints and starts
the live-update listener.
"""
import logging
import os
from datetime import datetime, timezone

from flask import Flask, jsonify, redirect, render_template_string, request, session
from werkzeug.exceptions import HTTPException

logger = logging.getLogger('clinicflow.app')


def _time_since(iso_str):
    """Jinja2 filter: convert ISO timestamp to '2m ago' style string."""
    if not iso_str:
        return ''
    try:
        if isinstance(iso_str, str):
            dt = datetime.fromisoformat(iso_str.replace('Z', '+00:00'))
        else:
            dt = iso_str
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        diff = (datetime.now(timezone.utc) - dt).total_seconds()
        if diff < 60:
            return 'just now'
        if diff < 3600:
            return f'{int(diff // 60)}m ago'
        if diff < 86400:
            return f'{int(diff // 3600)}h ago'
        return f'{int(diff // 86400)}d ago'
    except (TypeError, ValueError):
        return ''


def _register_error_handlers(app):
    """Domain exceptions → JSON error responses."""
    from clinicflow.errors import ConflictError, FunctionInvocationError, NotFoundError, ValidationError

    @app.errorhandler(ValidationError)
    def validation_error(e):
        return jsonify({'error': str(e), 'details': e.details}), 400

    @app.errorhandler(NotFoundError)
    def not_found(e):
        return jsonify({'error': str(e)}), 404

    @app.errorhandler(ConflictError)
    def conflict(e):
        return jsonify({'error': str(e)}), 409

    @app.errorhandler(FunctionInvocationError)
    def function_failed(e):
        logger.error("Notification function error: %s", e)
        return jsonify({'error': str(e)}), 502

    @app.errorhandler(Exception)
    def unexpected(e):
        if isinstance(e, HTTPException):
            return e
        logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=True)
        return jsonify({'error': 'Action failed, please try again'}), 500


def _start_live_updates(app):
    """Subscribe to intake table changes. Failure leaves manual refresh working."""
    from clinicflow.journey.listener import LiveUpdateListener

    try:
        listener = LiveUpdateListener()
        listener.start()
        app.extensions['live_updates'] = listener
    except Exception:
        logger.error("Live updates unavailable, manual refresh only", exc_info=True)


def create_app(overrides=None):
    """Create and configure the Flask application."""
    from clinicflow import config
    from clinicflow.config import STAGE_LABELS
    from clinicflow.logging_config import configure_logging

    app = Flask(
        __name__,
        template_folder=os.path.join(os.path.dirname(os.path.dirname(__file__)), 'templates'),
    )
    app.config.update(
        LIVE_UPDATES=config.LIVE_UPDATES_ENABLED,
        STREAM_MAX_POLLS=config.STREAM_MAX_POLLS,
        STREAM_POLL_SECONDS=config.STREAM_POLL_SECONDS,
    )
    app.config.update(overrides or {})

    configure_logging(app)

    # Secret key for sessions
    app.secret_key = config.SECRET_KEY

    app.jinja_env.filters['time_since'] = _time_since
    app.jinja_env.filters['stage_label'] = lambda stage: STAGE_LABELS.get(stage, stage)

    # ── Simple password auth ────────────────────────────────────────────
    LOGIN_PAGE = '''
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>Login | Prospect Journey</title>
        <script src="https://cdn.tailwindcss.com"></script>
    </head>
    <body class="min-h-screen flex items-center justify-center bg-slate-100">
        <div class="bg-white rounded-xl shadow p-10 w-full max-w-sm">
            <h1 class="text-lg font-bold mb-1 text-teal-800">Clinic Intake Dashboard</h1>
            <p class="text-sm mb-6 text-slate-500">Enter password to continue</p>
            {% if error %}
            <p class="text-xs mb-3 text-red-500">Wrong password</p>
            {% endif %}
            <form method="POST" action="/login">
                <input type="password" name="password" autofocus placeholder="Password"
                       class="w-full rounded-lg px-3 py-2.5 text-sm mb-4 border border-slate-200">
                <button type="submit" class="w-full rounded-lg py-2.5 text-sm font-medium text-white bg-teal-700">
                    Log in
                </button>
            </form>
        </div>
    </body>
    </html>
    '''

    # Patients reach the public intake form without a dashboard password
    OPEN_PATHS = {'/health', '/login', '/api/intake-forms'}

    @app.before_request
    def require_login():
        password = app.config.get('DASHBOARD_PASSWORD', config.DASHBOARD_PASSWORD)
        if not password:
            return  # No password set: open access (local dev)
        if request.path in OPEN_PATHS or request.path.startswith('/static/'):
            return
        if session.get('authenticated'):
            return
        if request.path.startswith('/api/') or request.path.startswith('/stream/'):
            return jsonify({'error': 'Authentication required'}), 401
        return redirect('/login')

    @app.route('/login', methods=['GET', 'POST'])
    def login():
        password = app.config.get('DASHBOARD_PASSWORD', config.DASHBOARD_PASSWORD)
        if request.method == 'POST':
            if request.form.get('password') == password:
                session['authenticated'] = True
                return redirect('/')
            return render_template_string(LOGIN_PAGE, error=True)
        return render_template_string(LOGIN_PAGE, error=False)

    @app.route('/logout')
    def logout():
        session.clear()
        return redirect('/login')

    _register_error_handlers(app)

    # Register blueprints
    from clinicflow.routes.dashboard import bp as dashboard_bp
    from clinicflow.routes.leads import bp as leads_bp
    from clinicflow.routes.care_requests import bp as care_requests_bp
    from clinicflow.routes.intake import bp as intake_bp

    app.register_blueprint(dashboard_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(care_requests_bp)
    app.register_blueprint(intake_bp)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic, no create_all() here.
    import importlib
    importlib.import_module('clinicflow.models.lead')
    importlib.import_module('clinicflow.models.care_request')
    importlib.import_module('clinicflow.models.pending_episode')
    importlib.import_module('clinicflow.models.intake_form')
    importlib.import_module('clinicflow.models.intake')

    if app.config['LIVE_UPDATES']:
        _start_live_updates(app)

    return app
