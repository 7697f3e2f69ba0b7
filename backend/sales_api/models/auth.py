from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

ROLE_ADMIN = "ADMIN"
ROLE_USER = "USER"


class User(db.Model):
    """
    User accounts for authentication and product ownership.

    Roles are a small closed set (ADMIN, USER) stored as a JSON list on the
    row; they are copied into token claims at login and never re-read
    during a request.
    """
    __tablename__ = "users"

    user_id = db.Column(db.String(36), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    roles = db.Column(db.JSON, nullable=False, default=list)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    date_created = db.Column(db.DateTime, nullable=False, default=utcnow)
    date_updated = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<User user_id={self.user_id} email={self.email!r} roles={self.roles!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "roles": list(self.roles or []),
            "date_created": to_utc_z(self.date_created),
            "date_updated": to_utc_z(self.date_updated),
        }
