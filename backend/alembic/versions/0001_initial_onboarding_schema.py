"""Initial onboarding schema.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-18

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Staff + lookups ──────────────────────────────────────

    op.create_table(
        "staff_users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), server_default="recruiter"),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("must_change_password", sa.Boolean(), server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_staff_users_email", "staff_users", ["email"])

    op.create_table(
        "teams",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "managers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("team_id", sa.String(36), sa.ForeignKey("teams.id")),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "recruiters",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("manager_id", sa.String(36), sa.ForeignKey("managers.id")),
        sa.Column("team_id", sa.String(36), sa.ForeignKey("teams.id")),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── Onboarding submissions ───────────────────────────────

    op.create_table(
        "onboarding_submissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("current_step", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("collect_payroll_documents", sa.Boolean(), server_default="false"),
        # basic info
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("nickname", sa.String(30)),
        sa.Column("gender", sa.String(10)),
        sa.Column("employee_role", sa.String(50)),
        sa.Column("personal_email", sa.String(255)),
        sa.Column("cell_phone", sa.String(20)),
        # mailing + shipping address
        sa.Column("street_address", sa.String(255)),
        sa.Column("city", sa.String(100)),
        sa.Column("state", sa.String(2)),
        sa.Column("zip_code", sa.String(10)),
        sa.Column("same_as_mailing", sa.Boolean(), server_default="true"),
        sa.Column("shipping_street_address", sa.String(255)),
        sa.Column("shipping_city", sa.String(100)),
        sa.Column("shipping_state", sa.String(2)),
        sa.Column("shipping_zip_code", sa.String(10)),
        # sizing
        sa.Column("shirt_size", sa.String(5)),
        sa.Column("coat_size", sa.String(5)),
        sa.Column("pant_size", sa.String(5)),
        sa.Column("shoe_size", sa.String(5)),
        sa.Column("hat_size", sa.String(5)),
        sa.Column("badge_photo_url", sa.Text()),
        # team
        sa.Column("team_id", sa.String(36)),
        sa.Column("manager_id", sa.String(36)),
        sa.Column("recruiter_id", sa.String(36)),
        # paperwork
        sa.Column("w9_completed", sa.Boolean(), server_default="false"),
        sa.Column("w9_submitted_at", sa.DateTime()),
        sa.Column("drivers_license_url", sa.String(500)),
        sa.Column("social_security_card_url", sa.String(500)),
        sa.Column("documents_uploaded_at", sa.DateTime()),
        sa.Column("bank_routing_number", sa.String(9)),
        sa.Column("bank_account_number", sa.String(17)),
        sa.Column("account_type", sa.String(10)),
        sa.Column("direct_deposit_form_url", sa.String(500)),
        sa.Column("direct_deposit_confirmed", sa.Boolean(), server_default="false"),
        sa.Column("direct_deposit_completed_at", sa.DateTime()),
        # voice + tasks
        sa.Column("voice_recording_url", sa.String(500)),
        sa.Column("voice_recording_completed_at", sa.DateTime()),
        sa.Column("acknowledged_task_ids", sa.JSON()),
        sa.Column("tasks_acknowledged_at", sa.DateTime()),
        # credentials
        sa.Column("generated_email", sa.String(255), unique=True),
        sa.Column("username", sa.String(100)),
        sa.Column("password_hash", sa.String(255)),
        sa.Column("credentials_issued_at", sa.DateTime()),
        # timestamps
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("submitted_at", sa.DateTime()),
        sa.Column("completed_at", sa.DateTime()),
    )
    op.create_index("ix_onboarding_submissions_status", "onboarding_submissions", ["status"])
    op.create_index(
        "ix_onboarding_submissions_personal_email", "onboarding_submissions", ["personal_email"]
    )
    op.create_index("ix_onboarding_submissions_team_id", "onboarding_submissions", ["team_id"])
    op.create_index(
        "ix_onboarding_submissions_manager_id", "onboarding_submissions", ["manager_id"]
    )
    op.create_index(
        "ix_onboarding_submissions_recruiter_id", "onboarding_submissions", ["recruiter_id"]
    )

    op.create_table(
        "task_assignments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id"), nullable=False),
        sa.Column(
            "onboarding_submission_id",
            sa.String(36),
            sa.ForeignKey("onboarding_submissions.id"),
            nullable=False,
        ),
        sa.Column("acknowledged_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_task_assignments_onboarding_submission_id",
        "task_assignments",
        ["onboarding_submission_id"],
    )

    op.create_table(
        "email_addresses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_email_addresses_email", "email_addresses", ["email"])

    # ── Integrations + audit ─────────────────────────────────

    op.create_table(
        "webhook_endpoints",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column("events", sa.JSON(), server_default="[]"),
        sa.Column("headers", sa.JSON()),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("actor_id", sa.String(36), nullable=False),
        sa.Column("actor_name", sa.String(200), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_actor_id", "activity_logs", ["actor_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])
    op.create_index("ix_activity_logs_entity_id", "activity_logs", ["entity_id"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("webhook_endpoints")
    op.drop_table("email_addresses")
    op.drop_table("task_assignments")
    op.drop_table("onboarding_submissions")
    op.drop_table("tasks")
    op.drop_table("recruiters")
    op.drop_table("managers")
    op.drop_table("teams")
    op.drop_table("staff_users")
