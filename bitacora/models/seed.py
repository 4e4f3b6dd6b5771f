"""Demo data for local development (``flask seed-demo``)."""

from datetime import date, timedelta

from bitacora.models import db
from bitacora.models.project import Project, ProjectPhase
from bitacora.models.session_note import SessionNote

DEMO_PROJECT = "Demo Retail Rollout"


def seed_demo(today: date | None = None) -> str | None:
    """Create the demo project once. Returns its name, or None if it existed."""
    if Project.query.filter_by(name=DEMO_PROJECT).first():
        return None

    today = today or date.today()
    project = Project(name=DEMO_PROJECT, client_name="Acme Stores")
    db.session.add(project)
    db.session.flush()

    db.session.add(ProjectPhase(project_name=project.name, current_phase=2))
    notes = [
        ("Kickoff", 21, "done", "Agreed scope, stakeholders and weekly cadence."),
        ("Diagnosis review", 14, "done", "Walked through findings of the store audit."),
        ("Roadmap draft", 7, "deferred", "Client to confirm budget before prioritising."),
    ]
    for title, days_ago, status, summary in notes:
        db.session.add(SessionNote(
            project_id=project.id,
            title=title,
            date=today - timedelta(days=days_ago),
            tag="Session",
            summary=summary,
            client_status=status,
        ))
    db.session.commit()
    return project.name
