"""Add credential record table for Google Calendar OAuth tokens.

Revision ID: 20261018_credential_record
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_credential_record"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "credential_record",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("identity", sa.String(320), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("expiry", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("identity", name="uq_credential_record_identity"),
    )


def downgrade():
    op.drop_table("credential_record")
