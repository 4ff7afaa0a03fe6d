import sqlite3
import uuid
from datetime import datetime, timezone

from flask_login import UserMixin
from sqlalchemy import event
from sqlalchemy.engine import Engine

from imagehost import db


def new_id():
    return uuid.uuid4().hex


def _utcnow():
    return datetime.now(timezone.utc)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores REFERENCES clauses unless asked per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class User(UserMixin, db.Model):
    """Registered user account."""

    __tablename__ = "users"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(200), nullable=False)  # bcrypt hash
    registered_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    last_login = db.Column(db.DateTime, nullable=False, default=_utcnow)
    ip = db.Column(db.String(64))

    uploads = db.relationship("Upload", backref="owner", lazy=True)

    def public_fields(self):
        return {"id": self.id, "username": self.username, "email": self.email}

    def __repr__(self):
        return f"<User {self.username}>"


class LoginEvent(db.Model):
    """One successful login (or registration)."""

    __tablename__ = "login_history"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=False)
    date = db.Column(db.DateTime, nullable=False, default=_utcnow)
    ip = db.Column(db.String(64))

    def __repr__(self):
        return f"<LoginEvent {self.user_id} {self.date:%Y-%m-%d %H:%M:%S}>"


class Upload(db.Model):
    """Ledger row for one upload event.

    ``key`` is namespaced per owner and upload time so it stays unique;
    ``object_key`` is the content-derived storage key and is shared by every
    row that uploaded the same bytes.
    """

    __tablename__ = "uploads"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    user_id = db.Column(db.String(32), db.ForeignKey("users.id"), nullable=False)
    key = db.Column(db.String(300), unique=True, nullable=False)
    object_key = db.Column(db.String(200), nullable=False, index=True)
    short_id = db.Column(db.String(32), unique=True)
    uploaded_at = db.Column(db.DateTime, nullable=False, default=_utcnow, index=True)
    ip = db.Column(db.String(64))

    def __repr__(self):
        return f"<Upload {self.object_key}>"
