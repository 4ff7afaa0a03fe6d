"""User accounts, credential checks and login history."""

from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from imagehost.exceptions import (
    DuplicateEmailError,
    DuplicateUsernameError,
    InvalidCredentialsError,
    NotFoundError,
    StorageIOError,
)
from imagehost.models import LoginEvent, User


class IdentityStore:
    """Registration and login against an explicit SQLAlchemy session.

    ``bcrypt`` is a Flask-Bcrypt instance (or anything exposing
    ``generate_password_hash`` / ``check_password_hash``).
    """

    def __init__(self, session, bcrypt):
        self.session = session
        self.bcrypt = bcrypt

    def register(self, username, email, password, origin_address=None):
        if self._taken(User.username, username):
            raise DuplicateUsernameError()
        if self._taken(User.email, email):
            raise DuplicateEmailError()

        hashed = self.bcrypt.generate_password_hash(password).decode("utf-8")
        now = datetime.now(timezone.utc)
        user = User(
            username=username,
            email=email,
            password=hashed,
            registered_at=now,
            last_login=now,
            ip=origin_address,
        )

        # User and first login event go in together or not at all
        try:
            self.session.add(user)
            self.session.flush()
            self.session.add(LoginEvent(user_id=user.id, date=now, ip=origin_address))
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            # Lost a race with a concurrent registration
            if self._taken(User.username, username):
                raise DuplicateUsernameError() from e
            if self._taken(User.email, email):
                raise DuplicateEmailError() from e
            raise StorageIOError() from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageIOError() from e

        return user.public_fields()

    def login(self, username_or_email, password, origin_address=None):
        user = self._first(
            User,
            or_(User.username == username_or_email, User.email == username_or_email),
        )

        # Same error either way so callers can't probe for usernames
        if user is None or not self.bcrypt.check_password_hash(user.password, password):
            raise InvalidCredentialsError()

        now = datetime.now(timezone.utc)
        try:
            user.last_login = now
            user.ip = origin_address
            self.session.add(LoginEvent(user_id=user.id, date=now, ip=origin_address))
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageIOError() from e

        return user.public_fields()

    def get_user(self, user_id):
        user = self._get(User, user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user.public_fields()

    def login_history(self, user_id, limit=20):
        try:
            return (
                self.session.query(LoginEvent)
                .filter_by(user_id=user_id)
                .order_by(LoginEvent.date.desc(), LoginEvent.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageIOError() from e

    # ── helpers ───────────────────────────────────────────────────────

    def _taken(self, column, value):
        return self._first(User, column == value) is not None

    def _first(self, model, criterion):
        try:
            return self.session.query(model).filter(criterion).first()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageIOError() from e

    def _get(self, model, ident):
        try:
            return self.session.get(model, ident)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageIOError() from e
