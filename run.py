#!/usr/bin/env python3
"""
Entry point for the tournament back office API.

Usage:
    python run.py

Environment Variables:
    FLASK_ENV: development, production or testing (default: development)
    PORT: Port to run on (default: 5000)
    LOG_LEVEL: Root log level (default depends on FLASK_ENV)
"""
import logging
import os

from backoffice.app import create_app
from backoffice.config import config


def configure_logging(config_name: str):
    level = config[config_name].LOG_LEVEL
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )


def run_backoffice():
    """Run the back office API server."""
    config_name = os.getenv('FLASK_ENV', 'development')
    configure_logging(config_name)

    app = create_app(config_name)
    port = int(os.getenv('PORT', 5000))
    debug = config_name == 'development'

    logging.getLogger(__name__).info(f"Starting back office on port {port}...")
    app.run(host='0.0.0.0', port=port, debug=debug)


if __name__ == '__main__':
    run_backoffice()
