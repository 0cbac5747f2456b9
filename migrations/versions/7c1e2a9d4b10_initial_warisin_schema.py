"""initial_warisin_schema

Create users, role profiles, heritage categories, programs, applications
and server-side sessions.

Revision ID: 7c1e2a9d4b10
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7c1e2a9d4b10"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("auth_id", sa.String(length=128), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("bio", sa.Text(), nullable=True),
            sa.Column("location", sa.String(length=200), nullable=True),
            sa.Column("profile_image_url", sa.String(length=500), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("auth_id"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_users_role", "users", ["role"])

    for table, columns in (
        ("artisan_profiles", [
            sa.Column("story", sa.Text(), nullable=True),
            sa.Column("expertise", sa.String(length=500), nullable=True),
            sa.Column("location", sa.String(length=200), nullable=True),
            sa.Column("image_url", sa.String(length=500), nullable=True),
            sa.Column("works", sa.JSON(), nullable=True),
        ]),
        ("applicant_profiles", [
            sa.Column("background", sa.Text(), nullable=True),
            sa.Column("interests", sa.Text(), nullable=True),
            sa.Column("portfolio_url", sa.String(length=500), nullable=True),
        ]),
    ):
        if table in existing_tables:
            continue
        op.create_table(
            table,
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            *columns,
            *_timestamps(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id"),
        )

    if "heritage_categories" not in existing_tables:
        op.create_table(
            "heritage_categories",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "programs" not in existing_tables:
        op.create_table(
            "programs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("duration", sa.String(length=100), nullable=False),
            sa.Column("location", sa.String(length=200), nullable=True),
            sa.Column("criteria", sa.Text(), nullable=True),
            sa.Column("category_id", sa.String(length=36), nullable=False),
            sa.Column("artisan_id", sa.String(length=36), nullable=False),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("is_open", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("program_image_url", sa.String(length=500), nullable=True),
            sa.Column("video_url", sa.String(length=500), nullable=True),
            sa.Column("video_thumbnail_url", sa.String(length=500), nullable=True),
            sa.Column("gallery_urls", sa.JSON(), nullable=True),
            sa.Column("gallery_thumbnails", sa.JSON(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["artisan_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["category_id"], ["heritage_categories.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_programs_artisan_id", "programs", ["artisan_id"])
        op.create_index("ix_programs_category_id", "programs", ["category_id"])
        op.create_index("ix_programs_is_open", "programs", ["is_open"])

    if "applications" not in existing_tables:
        op.create_table(
            "applications",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("program_id", sa.String(length=36), nullable=False),
            sa.Column("applicant_id", sa.String(length=36), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("motivation", sa.Text(), nullable=True),
            sa.Column("cv_url", sa.String(length=500), nullable=True),
            sa.Column("cv_path", sa.String(length=500), nullable=True),
            sa.Column("review_note", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["applicant_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["program_id"], ["programs.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "program_id", "applicant_id", name="uq_application_program_applicant",
            ),
        )
        op.create_index("ix_applications_applicant_id", "applications", ["applicant_id"])
        op.create_index("ix_applications_status", "applications", ["status"])

    if "sessions" not in existing_tables:
        op.create_table(
            "sessions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("token_hash", sa.String(length=64), nullable=False),
            sa.Column("ip_address", sa.String(length=45), nullable=True),
            sa.Column("user_agent", sa.String(length=500), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("last_used_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("token_hash"),
        )
        op.create_index("ix_sessions_user_id", "sessions", ["user_id"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "sessions" in existing_tables:
        op.drop_index("ix_sessions_user_id", table_name="sessions")
        op.drop_table("sessions")
    if "applications" in existing_tables:
        op.drop_index("ix_applications_status", table_name="applications")
        op.drop_index("ix_applications_applicant_id", table_name="applications")
        op.drop_table("applications")
    if "programs" in existing_tables:
        op.drop_index("ix_programs_is_open", table_name="programs")
        op.drop_index("ix_programs_category_id", table_name="programs")
        op.drop_index("ix_programs_artisan_id", table_name="programs")
        op.drop_table("programs")
    for table in ("heritage_categories", "applicant_profiles", "artisan_profiles"):
        if table in existing_tables:
            op.drop_table(table)
    if "users" in existing_tables:
        op.drop_index("ix_users_role", table_name="users")
        op.drop_table("users")
