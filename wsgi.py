"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi run
    flask db upgrade
    flask seed-demo
"""

from bitacora import create_app

app = create_app()
