"""Client access grants for the read-mostly client view.

A grant is valid iff ``active`` is true and ``expires_at`` is absent or not
yet reached. Revocation and expiry edits happen outside the dashboard.
"""

from datetime import datetime, timezone

from bitacora.models import db


class ClientToken(db.Model):
    __tablename__ = "client_tokens"

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    project_name = db.Column(db.String(200), nullable=False, index=True)
    client_name = db.Column(db.String(200), nullable=False, default="")
    active = db.Column(db.Boolean, nullable=False, default=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "token": self.token,
            "project_name": self.project_name,
            "client_name": self.client_name,
            "active": self.active,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<ClientToken {self.token[:8]} project={self.project_name}>"
