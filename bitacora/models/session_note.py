"""Session notes: dated, titled summaries logged against a project."""

from datetime import datetime, timezone

from bitacora.models import db


class SessionNote(db.Model):
    """Creation-only record; never edited or deleted by the dashboard."""

    __tablename__ = "sessions"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer,
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    date = db.Column(db.Date, nullable=False)
    tag = db.Column(db.String(100), nullable=False, default="Session")
    summary = db.Column(db.Text, nullable=False)
    client_responsible = db.Column(db.String(200), nullable=True)
    client_status = db.Column(
        db.String(20), nullable=False, default="deferred",
        comment="done | deferred | not_done",
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_sessions_project_date", "project_id", "date"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "date": self.date.isoformat() if self.date else None,
            "tag": self.tag,
            "summary": self.summary,
            "client_responsible": self.client_responsible,
            "client_status": self.client_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<SessionNote {self.id}: {self.title}>"
