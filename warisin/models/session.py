"""
Server-side login sessions.

The browser only ever holds an opaque random token; the row stores its
SHA-256 hash together with the user it resolves to. Logout flips
``is_active``; expiry is checked on every lookup.
"""

import uuid
from datetime import datetime, timezone

from warisin.models import db


class Session(db.Model):
    __tablename__ = "sessions"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash = db.Column(db.String(64), unique=True, nullable=False)
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    expires_at = db.Column(db.DateTime, nullable=False)
    last_used_at = db.Column(db.DateTime)

    user = db.relationship("User", back_populates="sessions")

    @property
    def is_expired(self):
        # SQLite hands back naive datetimes; they were written as UTC
        deadline = self.expires_at
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        return deadline <= datetime.now(timezone.utc)

    def __repr__(self):
        return f"<Session {self.id} user={self.user_id} active={self.is_active}>"
