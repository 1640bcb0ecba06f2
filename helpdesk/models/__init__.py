"""
Service Desk — SQLAlchemy models package.

The shared ``db`` handle is created here (unbound) and attached to the Flask
application in ``helpdesk.create_app`` via ``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
