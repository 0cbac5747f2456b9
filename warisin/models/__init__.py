"""
Warisin
SQLAlchemy extension instance shared by every model module.

Usage:
    from warisin.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
