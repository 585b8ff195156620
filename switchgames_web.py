#!/usr/bin/env python3
"""
Switch Games web server
Serves the static site plus the JSON API for games, blog posts, careers,
team members, contact messages, job applications and staff accounts.
"""

import logging
import os
import time
from functools import wraps
from typing import Callable, Dict, Optional

from flask import (
    Blueprint, Flask, abort, current_app, g, jsonify, request, send_from_directory,
)
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
from werkzeug.middleware.proxy_fix import ProxyFix

import switchgames
from app.errors import AuthError, ForbiddenError, SiteError, ValidationError
from app.repositories import (
    AccountRepository, ApplicationRepository, CareerRepository, ContactRepository,
    GameRepository, PostRepository, StaffRepository,
)
from app.services import (
    AccountService, ApplicationService, CareerService, ContactService,
    CredentialVerifier, GameService, LoginAttemptTracker, PostService,
    SessionStore, StaffService, UploadService, role_allows,
)
from roblox_client import RobloxCatalogClient, StatsRefresher, enrich_games, newly_resolved_ids
from webhook_notifier import WebhookNotifier

web_logger = logging.getLogger('switchgames.web')

TOKEN_HEADER = 'X-Admin-Token'
EXTENSION_KEY = 'switchgames'


class SiteState:
    """Everything the routes share: repositories, services and in-memory state.

    One instance is created per app by :func:`create_app`; sessions and
    login counters start empty and disappear with the process.
    """

    def __init__(self, config: Dict, clock: Callable[[], float] = time.time) -> None:
        self.config = config
        self.data_dir = os.path.abspath(config['data_dir'])
        self.uploads_dir = os.path.abspath(config['uploads_dir'])
        self.static_dir = os.path.abspath(config['static_dir'])
        os.makedirs(self.data_dir, exist_ok=True)

        self.sessions = SessionStore(ttl_seconds=float(config['session_ttl_hours']) * 3600,
                                     clock=clock)
        self.login_attempts = LoginAttemptTracker(
            max_attempts=int(config['login_max_attempts']),
            window_seconds=float(config['login_window_minutes']) * 60,
            clock=clock,
        )

        account_repo = AccountRepository.in_directory(self.data_dir)
        self.accounts = AccountService(account_repo, self.sessions, self.login_attempts)
        self.verifier = CredentialVerifier(self.sessions, account_repo, self.login_attempts,
                                           master_hash=config.get('admin_password_hash', ''))

        self.games = GameService(GameRepository.in_directory(self.data_dir))
        self.posts = PostService(PostRepository.in_directory(self.data_dir))
        self.careers = CareerService(CareerRepository.in_directory(self.data_dir))
        self.staff = StaffService(StaffRepository.in_directory(self.data_dir))
        self.contacts = ContactService(ContactRepository.in_directory(self.data_dir))
        self.applications = ApplicationService(ApplicationRepository.in_directory(self.data_dir))

        self.uploads = UploadService(self.uploads_dir, max_bytes=int(config['upload_max_bytes']))
        self.notifier = WebhookNotifier(config)
        self.roblox = RobloxCatalogClient(timeout=int(config['roblox_timeout']))
        self.stats = StatsRefresher(self.roblox, self.stats_universe_ids,
                                    interval=float(config['stats_refresh_seconds']))

    def stats_universe_ids(self):
        """Configured universe ids plus every active game's cached universe id."""
        ids = [str(u) for u in self.config.get('stats_universe_ids') or []]
        ids.extend(g['universeId'] for g in self.games.list_public() if g.get('universeId'))
        return ids


def _state() -> SiteState:
    return current_app.extensions[EXTENSION_KEY]


def _json_body() -> Dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def require_admin(min_role: Optional[str] = 'editor'):
    """Decorator: require a valid ``X-Admin-Token`` (and optionally a role).

    The validated session is available to the view as ``g.admin_session``.
    ``min_role=None`` accepts any signed-in role.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            session = _state().sessions.validate(request.headers.get(TOKEN_HEADER))
            if session is None:
                raise AuthError()
            if min_role and not role_allows(session['role'], min_role):
                web_logger.info('%s (%s) denied %s %s', session['displayName'],
                                session['role'], request.method, request.path)
                raise ForbiddenError()
            g.admin_session = session
            return f(*args, **kwargs)
        return decorated_function
    return decorator


public_bp = Blueprint('public', __name__)
admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


# ============================================================
# PUBLIC
# ============================================================

@public_bp.route('/api/games')
def api_games():
    """Active games with live stats"""
    state = _state()
    games = state.games.list_public()
    enriched = enrich_games(state.roblox, games, int(state.config['enrichment_workers']))
    resolved = newly_resolved_ids(games, enriched)
    if resolved:
        try:
            state.games.cache_universe_ids(resolved)
        except SiteError as e:
            web_logger.warning('Could not cache universe ids: %s', e.message)
    return jsonify({'games': enriched})


@public_bp.route('/api/blog/posts')
def api_blog_posts():
    return jsonify({'posts': _state().posts.list_public()})


@public_bp.route('/api/careers')
def api_careers():
    return jsonify({'careers': _state().careers.list_public()})


@public_bp.route('/api/staff')
def api_staff():
    return jsonify({'staff': _state().staff.list_public()})


@public_bp.route('/api/get-total-visits')
def api_total_visits():
    return jsonify({'message': 'Successfully grabbed total visits',
                    'value': _state().stats.totals()['visits']})


@public_bp.route('/api/get-total-ccu')
def api_total_ccu():
    return jsonify({'message': 'Successfully grabbed total ccu',
                    'value': _state().stats.totals()['ccu']})


@public_bp.route('/api/contact', methods=['POST'])
def api_contact():
    """Store a contact message and forward it to Discord"""
    state = _state()
    contact = state.contacts.create(_json_body())
    web_logger.info('Contact message %s from %s', contact['id'], contact['email'])
    state.notifier.notify_contact(contact)
    return jsonify({'message': 'Message sent successfully'})


@public_bp.route('/api/apply', methods=['POST'])
def api_apply():
    """Store a job application and forward it to Discord"""
    state = _state()
    application = state.applications.create(_json_body())
    web_logger.info('Application %s for %s', application['id'], application['position'])
    state.notifier.notify_application(application)
    return jsonify({'message': 'Application submitted successfully'})


@public_bp.route('/api/openapi.json')
def api_openapi_spec():
    from openapi_spec import build_spec
    return jsonify(build_spec(server_url=request.host_url.rstrip('/')))


@public_bp.route('/uploads/<path:filename>')
def uploaded_file(filename):
    return send_from_directory(_state().uploads_dir, filename)


@public_bp.route('/')
def index():
    return send_from_directory(_state().static_dir, 'index.html')


@public_bp.route('/<path:filename>')
def static_file(filename):
    if filename.startswith('api/'):
        abort(404)
    return send_from_directory(_state().static_dir, filename)


# ============================================================
# ADMIN AUTH
# ============================================================

@admin_bp.route('/login', methods=['POST'])
def api_admin_login():
    data = _json_body()
    username = data.get('username')
    password = data.get('password')
    result = _state().verifier.login(
        username if isinstance(username, str) else None,
        password if isinstance(password, str) else None,
        request.remote_addr or 'unknown',
    )
    return jsonify({
        'message': 'Login successful',
        'token': result.token,
        'role': result.role,
        'displayName': result.display_name,
    })


@admin_bp.route('/logout', methods=['POST'])
def api_admin_logout():
    _state().verifier.logout(request.headers.get(TOKEN_HEADER))
    return jsonify({'message': 'Logged out'})


@admin_bp.route('/session')
@require_admin(None)
def api_admin_session():
    session = g.admin_session
    return jsonify({
        'role': session['role'],
        'displayName': session['displayName'],
        'accountId': session['accountId'],
        'expiresAt': session['expiresAt'],
    })


@admin_bp.route('/password', methods=['POST'])
@require_admin(None)
def api_admin_password():
    data = _json_body()
    _state().accounts.change_own_password(
        g.admin_session['accountId'],
        data.get('currentPassword'),
        data.get('newPassword'),
        request.remote_addr or 'unknown',
    )
    return jsonify({'message': 'Password changed, please log in again'})


@admin_bp.route('/upload', methods=['POST'])
@require_admin('editor')
def api_admin_upload():
    url = _state().uploads.save_image(request.files.get('image'))
    return jsonify({'url': url})


# ============================================================
# CONTENT (posts, careers, games, staff)
# ============================================================

# url segment -> (SiteState attribute, response key, label)
CONTENT_RESOURCES = {
    'posts': ('posts', 'post', 'Post'),
    'careers': ('careers', 'career', 'Career'),
    'games': ('games', 'game', 'Game'),
    'staff': ('staff', 'staffMember', 'Staff member'),
}


def _register_content_routes(segment: str, attr: str, key: str, label: str) -> None:
    def list_records():
        return jsonify({segment: getattr(_state(), attr).list_all()})

    def create_record():
        author = g.admin_session['displayName']
        record = getattr(_state(), attr).create(_json_body(), author=author)
        web_logger.info('%s created %s %s', author, key, record['id'])
        return jsonify({'message': f'{label} created', key: record}), 201

    def update_record(record_id):
        record = getattr(_state(), attr).update(record_id, _json_body())
        return jsonify({'message': f'{label} updated', key: record})

    def delete_record(record_id):
        getattr(_state(), attr).delete(record_id)
        web_logger.info('%s deleted %s %s', g.admin_session['displayName'], key, record_id)
        return jsonify({'message': f'{label} deleted'})

    guard = require_admin('editor')
    admin_bp.add_url_rule(f'/{segment}', f'list_{segment}', guard(list_records))
    admin_bp.add_url_rule(f'/{segment}', f'create_{segment}', guard(create_record),
                          methods=['POST'])
    admin_bp.add_url_rule(f'/{segment}/<record_id>', f'update_{segment}',
                          guard(update_record), methods=['PUT'])
    admin_bp.add_url_rule(f'/{segment}/<record_id>', f'delete_{segment}',
                          guard(delete_record), methods=['DELETE'])


for _segment, (_attr, _key, _label) in CONTENT_RESOURCES.items():
    _register_content_routes(_segment, _attr, _key, _label)


# ============================================================
# INBOX (contacts, applications)
# ============================================================

def _read_flag() -> bool:
    read = _json_body().get('read', True)
    if not isinstance(read, bool):
        raise ValidationError('read must be true or false')
    return read


@admin_bp.route('/contacts')
@require_admin('moderator')
def api_admin_contacts():
    return jsonify({'contacts': _state().contacts.list_all()})


@admin_bp.route('/contacts/<record_id>/read', methods=['PATCH'])
@require_admin('moderator')
def api_admin_contact_read(record_id):
    contact = _state().contacts.mark_read(record_id, _read_flag())
    return jsonify({'message': 'Contact updated', 'contact': contact})


@admin_bp.route('/contacts/<record_id>', methods=['DELETE'])
@require_admin('moderator')
def api_admin_contact_delete(record_id):
    _state().contacts.delete(record_id)
    return jsonify({'message': 'Contact deleted'})


@admin_bp.route('/applications')
@require_admin('moderator')
def api_admin_applications():
    return jsonify({'applications': _state().applications.list_all()})


@admin_bp.route('/applications/<record_id>/read', methods=['PATCH'])
@require_admin('moderator')
def api_admin_application_read(record_id):
    application = _state().applications.mark_read(record_id, _read_flag())
    return jsonify({'message': 'Application updated', 'application': application})


@admin_bp.route('/applications/<record_id>/status', methods=['PATCH'])
@require_admin('moderator')
def api_admin_application_status(record_id):
    status = _json_body().get('status')
    if not status:
        raise ValidationError('Status required')
    application = _state().applications.set_status(record_id, status)
    web_logger.info('%s set application %s to %s',
                    g.admin_session['displayName'], record_id, status)
    return jsonify({'message': 'Application updated', 'application': application})


@admin_bp.route('/applications/<record_id>', methods=['DELETE'])
@require_admin('moderator')
def api_admin_application_delete(record_id):
    _state().applications.delete(record_id)
    return jsonify({'message': 'Application deleted'})


# ============================================================
# STAFF ACCOUNTS
# ============================================================

@admin_bp.route('/accounts')
@require_admin('superadmin')
def api_admin_accounts():
    return jsonify({'accounts': _state().accounts.list_accounts()})


@admin_bp.route('/accounts', methods=['POST'])
@require_admin('superadmin')
def api_admin_account_create():
    account = _state().accounts.create(_json_body())
    return jsonify({'message': 'Account created', 'account': account}), 201


@admin_bp.route('/accounts/<account_id>', methods=['PUT'])
@require_admin('superadmin')
def api_admin_account_update(account_id):
    account = _state().accounts.update(account_id, _json_body(),
                                       acting_account_id=g.admin_session['accountId'])
    return jsonify({'message': 'Account updated', 'account': account})


@admin_bp.route('/accounts/<account_id>', methods=['DELETE'])
@require_admin('superadmin')
def api_admin_account_delete(account_id):
    _state().accounts.delete(account_id, acting_account_id=g.admin_session['accountId'])
    return jsonify({'message': 'Account deleted'})


# ============================================================
# APP FACTORY
# ============================================================

def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(SiteError)
    def handle_site_error(e):
        return jsonify({'message': e.message}), e.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        return jsonify({'message': 'File too large'}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if request.path.startswith('/api/'):
            return jsonify({'message': e.description}), e.code
        return e

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        web_logger.exception('Unhandled error on %s %s: %s', request.method, request.path, e)
        return jsonify({'message': 'Internal server error'}), 500


def create_app(config: Optional[Dict] = None, clock: Callable[[], float] = time.time) -> Flask:
    """Build the Flask app.

    Args:
        config: Configuration dict; missing keys fall back to
                :data:`switchgames.DEFAULT_CONFIG`.  ``None`` loads
                ``config.json`` and the environment.
        clock:  Time source for sessions and login throttling.
    """
    if config is None:
        config = switchgames.load_config()
    else:
        config = {**switchgames.DEFAULT_CONFIG, **config}
    switchgames.setup_logging(config.get('log_level', 'INFO'))

    app = Flask(__name__, static_folder=None)
    # Hard cap on request bodies; the per-file image limit is checked separately.
    app.config['MAX_CONTENT_LENGTH'] = int(config['upload_max_bytes']) * 2
    if config.get('trust_proxy'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)
    CORS(app, origins=config.get('cors_origins', '*'))

    app.extensions[EXTENSION_KEY] = SiteState(config, clock=clock)
    app.register_blueprint(admin_bp)
    app.register_blueprint(public_bp)
    _register_error_handlers(app)

    if not config.get('admin_password_hash'):
        web_logger.warning('No admin_password_hash configured; only staff accounts can log in')
    return app


def run(config: Dict) -> None:
    """Run the server with the background stats refresher."""
    app = create_app(config)
    state: SiteState = app.extensions[EXTENSION_KEY]
    try:
        os.makedirs('logs', exist_ok=True)
        fh = logging.FileHandler('logs/switchgames_web.log')
        fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
        logging.getLogger('switchgames').addHandler(fh)
    except OSError:
        web_logger.warning('Could not create log file handler')

    state.stats.start()
    host, port = config['host'], int(config['port'])
    print("\n" + "=" * 60)
    print("Switch Games server is starting...")
    print("=" * 60)
    print(f"\n  http://{host}:{port}")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60 + "\n")
    try:
        app.run(host=host, port=port, debug=False, threaded=True)
    except KeyboardInterrupt:
        print("\nServer stopped")
    finally:
        state.stats.stop()


def main():
    run(switchgames.load_config())


if __name__ == "__main__":
    main()
