"""Project and project-phase models.

``projects.name`` is the human-facing join key used by ``project_phase``
and ``client_tokens`` rows.
"""

from datetime import datetime, timezone

from bitacora.models import db


class Project(db.Model):
    """A client engagement tracked on the dashboard. Read-only to the core."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, unique=True)
    client_name = db.Column(db.String(200), nullable=False, default="")
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "client_name": self.client_name,
        }

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.name}>"


class ProjectPhase(db.Model):
    """One row per project name; absent row means phase 1."""

    __tablename__ = "project_phase"

    id = db.Column(db.Integer, primary_key=True)
    project_name = db.Column(db.String(200), nullable=False, unique=True, index=True)
    current_phase = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("current_phase BETWEEN 1 AND 4", name="ck_project_phase_range"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_name": self.project_name,
            "current_phase": self.current_phase,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<ProjectPhase {self.project_name}: {self.current_phase}>"
