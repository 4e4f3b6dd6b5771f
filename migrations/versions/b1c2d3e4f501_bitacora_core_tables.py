"""bitacora_core_tables

Create `projects`, `sessions`, `project_phase` and `client_tokens`.

Revision ID: b1c2d3e4f501
Revises:
Create Date: 2026-10-18 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "b1c2d3e4f501"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("client_name", sa.String(length=200), nullable=False, server_default=""),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name", name="uq_projects_name"),
        )

    if "sessions" not in existing_tables:
        op.create_table(
            "sessions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("tag", sa.String(length=100), nullable=False, server_default="Session"),
            sa.Column("summary", sa.Text(), nullable=False),
            sa.Column("client_responsible", sa.String(length=200), nullable=True),
            sa.Column("client_status", sa.String(length=20), nullable=False, server_default="deferred"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_sessions_project_id", "sessions", ["project_id"])
        op.create_index("ix_sessions_project_date", "sessions", ["project_id", "date"])

    if "project_phase" not in existing_tables:
        op.create_table(
            "project_phase",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_name", sa.String(length=200), nullable=False),
            sa.Column("current_phase", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint("current_phase BETWEEN 1 AND 4", name="ck_project_phase_range"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_phase_project_name", "project_phase", ["project_name"], unique=True)

    if "client_tokens" not in existing_tables:
        op.create_table(
            "client_tokens",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("token", sa.String(length=64), nullable=False),
            sa.Column("project_name", sa.String(length=200), nullable=False),
            sa.Column("client_name", sa.String(length=200), nullable=False, server_default=""),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_client_tokens_token", "client_tokens", ["token"], unique=True)
        op.create_index("ix_client_tokens_project_name", "client_tokens", ["project_name"])


def downgrade():
    op.drop_table("client_tokens")
    op.drop_table("project_phase")
    op.drop_table("sessions")
    op.drop_table("projects")
