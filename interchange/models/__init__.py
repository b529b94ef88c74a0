"""
Programme Interchange Engine
Shared Flask-SQLAlchemy instance.

Usage:
    from interchange.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
