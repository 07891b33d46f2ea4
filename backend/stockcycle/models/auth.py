from __future__ import annotations

from ..extensions import db
from stockcycle.time_utils import to_utc_z


ROLE_ADMIN = "ADMIN"
ROLE_DISTRIBUTOR = "DISTRIBUTOR"
VALID_ROLES = {ROLE_ADMIN, ROLE_DISTRIBUTOR}

# Distributor loyalty tiers; admins carry no group
DISTRIBUTOR_GROUPS = {"GOLD", "SILVER", "NEW"}


class User(db.Model):
    """
    Administrators and distributors.

    Distributors own orders and weekly reports. The User row doubles as the
    per-distributor serialization point for report submission (see
    report_service.create_report), so report writes lock it FOR UPDATE.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_group", "role", "group"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_DISTRIBUTOR)

    # Only meaningful for distributors
    group = db.Column(db.String(16), nullable=True, default="NEW")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "role": self.role,
            "group": self.group if self.role == ROLE_DISTRIBUTOR else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Bearer session tokens.

    Only the SHA-256 hash of the token is stored; the plaintext is handed to
    the client once at login.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))
