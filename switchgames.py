#!/usr/bin/env python3
"""
Switch Games - studio website backend
Core helpers (logging, configuration, password hashing) and the command
line entry point used to run the server and manage staff accounts.
"""

import argparse
import copy
import getpass
import hashlib
import hmac
import json
import logging
import os
import sys
from typing import Any, Dict, Optional

from colorama import init, Fore, Style
from dotenv import load_dotenv
from werkzeug.security import check_password_hash, generate_password_hash

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root ``switchgames`` logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.WARNING)
    logger = logging.getLogger('switchgames')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


logger = logging.getLogger('switchgames')

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

RESERVED_ADMIN_NAME = 'admin'

DEFAULT_CONFIG: Dict[str, Any] = {
    'host': '127.0.0.1',
    'port': 5500,
    'log_level': 'INFO',
    'data_dir': 'data',
    'uploads_dir': 'uploads',
    'static_dir': 'public',
    'admin_password_hash': '',
    'session_ttl_hours': 8,
    'login_max_attempts': 10,
    'login_window_minutes': 15,
    'upload_max_bytes': 5 * 1024 * 1024,
    'discord_webhook_url': '',
    'roblox_timeout': 10,
    'enrichment_workers': 16,
    'stats_refresh_seconds': 30,
    'stats_universe_ids': [],
    'trust_proxy': False,
    'cors_origins': '*',
}

# env var -> (config key, converter)
_ENV_OVERRIDES = {
    'HOST': ('host', str),
    'PORT': ('port', int),
    'SWITCHGAMES_LOG_LEVEL': ('log_level', str),
    'SWITCHGAMES_DATA_DIR': ('data_dir', str),
    'SWITCHGAMES_UPLOADS_DIR': ('uploads_dir', str),
    'SWITCHGAMES_STATIC_DIR': ('static_dir', str),
    'ADMIN_PASSWORD_HASH': ('admin_password_hash', str),
    'DISCORD_WEBHOOK_URL': ('discord_webhook_url', str),
}


def is_placeholder_value(value: str) -> bool:
    """Check if a value is an unset placeholder such as ``YOUR_WEBHOOK_URL``."""
    if not value or not isinstance(value, str):
        return True
    return value.startswith('YOUR_')


def load_config(config_path: str = 'config.json') -> Dict[str, Any]:
    """Load configuration from a JSON file with environment variable support.

    Values are layered: :data:`DEFAULT_CONFIG`, then the JSON file (if it
    exists and parses), then environment variables (``.env`` is loaded
    first).  Placeholder strings are replaced with the empty string.

    Args:
        config_path: Path to the JSON config file.  A missing file is fine.

    Returns:
        The merged configuration dict.
    """
    load_dotenv()

    config = copy.deepcopy(DEFAULT_CONFIG)
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
            if isinstance(file_config, dict):
                config.update(file_config)
            else:
                logger.warning('Ignoring %s: top level is not an object', config_path)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning('Could not load config %s: %s', config_path, e)

    for env_name, (key, convert) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if not raw:
            continue
        try:
            config[key] = convert(raw)
        except ValueError:
            logger.warning('Ignoring invalid %s=%r', env_name, raw)

    for key in ('admin_password_hash', 'discord_webhook_url'):
        if is_placeholder_value(config.get(key, '')):
            config[key] = ''
    return config


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Return a salted Werkzeug hash for *password*."""
    return generate_password_hash(password)


def _is_legacy_digest(stored: str) -> bool:
    if len(stored) != 64:
        return False
    try:
        int(stored, 16)
    except ValueError:
        return False
    return True


def verify_password(stored: str, password: str) -> bool:
    """Check *password* against *stored*.

    *stored* is normally a Werkzeug hash.  A bare 64-character hex string is
    treated as a legacy unsalted SHA-256 digest and compared in constant time.
    """
    if not stored or not password:
        return False
    if _is_legacy_digest(stored):
        digest = hashlib.sha256(password.encode()).hexdigest()
        return hmac.compare_digest(digest, stored.lower())
    try:
        return check_password_hash(stored, password)
    except ValueError:
        logger.warning('Unrecognised password hash format')
        return False


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

def _read_password(supplied: Optional[str]) -> str:
    if supplied:
        return supplied
    first = getpass.getpass('Password: ')
    second = getpass.getpass('Repeat password: ')
    if first != second:
        print(f"{Fore.RED}Passwords do not match")
        sys.exit(1)
    return first


def cmd_hash_password(args) -> int:
    password = _read_password(args.password)
    if not password:
        print(f"{Fore.RED}Error: password must not be empty")
        return 1
    print(f"{Fore.GREEN}Put this value in config.json as admin_password_hash "
          f"or in the ADMIN_PASSWORD_HASH environment variable:")
    print(hash_password(password))
    return 0


def cmd_create_account(args) -> int:
    from app.errors import SiteError
    from app.repositories import AccountRepository
    from app.services import AccountService, SessionStore

    config = load_config(args.config)
    os.makedirs(config['data_dir'], exist_ok=True)
    service = AccountService(
        AccountRepository.in_directory(config['data_dir']),
        SessionStore(),
    )
    password = _read_password(args.password)
    try:
        account = service.create({
            'username': args.username,
            'password': password,
            'displayName': args.display_name or args.username,
            'role': args.role,
        })
    except SiteError as e:
        print(f"{Fore.RED}Error: {e.message}")
        return 1
    print(f"{Fore.GREEN}Created {account['role']} account "
          f"{Style.BRIGHT}{account['username']}{Style.RESET_ALL} (id {account['id']})")
    return 0


def cmd_serve(args) -> int:
    import switchgames_web

    config = load_config(args.config)
    if args.host:
        config['host'] = args.host
    if args.port:
        config['port'] = args.port
    switchgames_web.run(config)
    return 0


def main(argv=None) -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description='Switch Games website backend',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 switchgames.py serve                      # Run the web server
  python3 switchgames.py serve --port 8080          # Run on another port
  python3 switchgames.py hash-password              # Print a master password hash
  python3 switchgames.py create-account --username alice --role editor
        """
    )
    parser.add_argument(
        '--config', '-c',
        default='config.json',
        help='Path to config file (default: config.json)'
    )
    sub = parser.add_subparsers(dest='command')

    serve = sub.add_parser('serve', help='Run the web server')
    serve.add_argument('--host', help='Interface to bind (overrides config)')
    serve.add_argument('--port', type=int, help='Port to listen on (overrides config)')
    serve.set_defaults(func=cmd_serve)

    hashp = sub.add_parser('hash-password', help='Hash a password for admin_password_hash')
    hashp.add_argument('password', nargs='?', help='Password (prompted when omitted)')
    hashp.set_defaults(func=cmd_hash_password)

    create = sub.add_parser('create-account', help='Create a staff account')
    create.add_argument('--username', required=True)
    create.add_argument('--role', default='editor',
                        choices=['superadmin', 'admin', 'moderator', 'editor'])
    create.add_argument('--display-name', dest='display_name')
    create.add_argument('--password', help='Password (prompted when omitted)')
    create.set_defaults(func=cmd_create_account)

    args = parser.parse_args(argv)
    if not getattr(args, 'func', None):
        args.command = 'serve'
        args.host = None
        args.port = None
        args.func = cmd_serve
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
