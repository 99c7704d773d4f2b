"""
Facegate - Main Entry Point

Opens the store, initializes the biometric sensor and serves the HTTP
API. Startup fails if either the store or the sensor is unavailable.
"""

import os
import sys
import argparse
from dataclasses import replace
from pathlib import Path
from .app import create_app
from .config import Config, SENSOR_KINDS, load_config
from .errors import ProviderInitFailed, StorageError
from .logging_config import setup_logging, get_logger
from .service import build_service

logger = get_logger(__name__)


def _load_local_env() -> None:
    """Load environment variables from facegate/.env if present."""
    env_path = Path(__file__).resolve().parent / '.env'
    if not env_path.exists():
        return

    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, value = line.split('=', 1)
        os.environ.setdefault(key.strip(), value.strip())


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Facegate - Multi-tenant Face Verification Gateway'
    )

    parser.add_argument('--host', type=str, help='Interface to bind (or set HOST)')
    parser.add_argument('--port', type=int, help='HTTP port (or set PORT)')
    parser.add_argument('--database-url', type=str, help='SQLAlchemy store URL (or set DATABASE_URL)')
    parser.add_argument(
        '--sensor',
        choices=SENSOR_KINDS,
        help='Biometric sensor variant (or set SENSOR_KIND)'
    )
    parser.add_argument('--camera-source', type=str, help='Camera index or stream URL (or set CAMERA_SOURCE)')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    return parser.parse_args()


def apply_args(config: Config, args: argparse.Namespace) -> Config:
    """Override configuration with the command line flags that were given."""
    overrides = {
        'host': args.host,
        'port': args.port,
        'database_url': args.database_url,
        'sensor_kind': args.sensor,
        'camera_source': args.camera_source,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if args.debug:
        overrides['debug_mode'] = True
    return replace(config, **overrides)


def main() -> None:
    """Main entry point."""
    _load_local_env()
    args = parse_args()

    try:
        config = apply_args(load_config(), args)
    except ValueError as e:
        print(f'Invalid configuration: {e}', file=sys.stderr)
        sys.exit(2)

    setup_logging(config.service_name, config.debug_mode)
    logger = get_logger(__name__)

    logger.info('=' * 60)
    logger.info('Facegate - Face Verification Gateway')
    logger.info('=' * 60)
    logger.info(f'Store: {config.database_url}')
    logger.info(f'Sensor: {config.sensor_kind} ({config.camera_source})')
    logger.info(f'Listening: {config.host}:{config.port}')
    logger.info('=' * 60)

    try:
        service = build_service(config)
    except StorageError as e:
        logger.error(f'Fatal: cannot open store: {e}')
        sys.exit(1)
    except ProviderInitFailed as e:
        logger.error(f'Fatal: cannot initialize biometric provider: {e}')
        sys.exit(1)

    app = create_app(service, config)

    try:
        app.run(
            host=config.host,
            port=config.port,
            threaded=True,
            debug=False,
            use_reloader=False
        )
    except KeyboardInterrupt:
        logger.info('Received keyboard interrupt, shutting down...')
    finally:
        service.shutdown()


if __name__ == '__main__':
    main()
