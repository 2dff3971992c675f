"""
Intranet Portal
Shared SQLAlchemy instance.

Usage:
    from app.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
