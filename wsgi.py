"""
WSGI / Flask-Migrate entry point.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi seed-categories
    flask --app wsgi cleanup-rejected --days 90
"""

from warisin import create_app

app = create_app()
