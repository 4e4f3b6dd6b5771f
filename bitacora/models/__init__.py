"""SQLAlchemy models backing the ``sql`` tabular store.

Importing this package registers every table on ``db.metadata``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from bitacora.models.project import Project, ProjectPhase  # noqa: E402,F401
from bitacora.models.session_note import SessionNote  # noqa: E402,F401
from bitacora.models.client_token import ClientToken  # noqa: E402,F401

# Logical table name → model, as addressed by the store contract
TABLES = {
    Project.__tablename__: Project,
    SessionNote.__tablename__: SessionNote,
    ProjectPhase.__tablename__: ProjectPhase,
    ClientToken.__tablename__: ClientToken,
}
