"""Client token on onboarding submissions.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18

Run with:
    alembic upgrade head
"""

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.add_column(
        "onboarding_submissions",
        sa.Column("client_token", sa.String(64), nullable=True),
    )
    op.create_unique_constraint(
        "uq_onboarding_submissions_client_token",
        "onboarding_submissions",
        ["client_token"],
    )


def downgrade() -> None:
    op.drop_constraint(
        "uq_onboarding_submissions_client_token",
        "onboarding_submissions",
        type_="unique",
    )
    op.drop_column("onboarding_submissions", "client_token")
