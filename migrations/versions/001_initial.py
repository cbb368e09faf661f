"""Create program pipeline tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Generated program versions (append-only)
    op.create_table(
        "program_code",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.Text, nullable=False, server_default=""),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_program_code_created_at", "program_code", ["created_at"])

    # User requests, stamped with the iteration that folded them in
    op.create_table(
        "program_input",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("profile_id", sa.String(128), nullable=False),
        sa.Column("input_text", sa.Text, nullable=False),
        sa.Column(
            "iteration_id",
            sa.Integer,
            sa.ForeignKey("program_code.id"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_program_input_profile_id", "program_input", ["profile_id"])
    op.create_index("ix_program_input_iteration_id", "program_input", ["iteration_id"])
    op.create_index(
        "ix_program_input_iteration_created",
        "program_input",
        ["iteration_id", "created_at"],
    )

    # Singleton pipeline state (id = 1)
    op.create_table(
        "program_state",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("state", sa.String(20), nullable=False, server_default="INITIAL"),
        sa.Column(
            "current_iteration_id",
            sa.Integer,
            sa.ForeignKey("program_code.id"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )


def downgrade() -> None:
    op.drop_table("program_state")
    op.drop_index("ix_program_input_iteration_created", table_name="program_input")
    op.drop_index("ix_program_input_iteration_id", table_name="program_input")
    op.drop_index("ix_program_input_profile_id", table_name="program_input")
    op.drop_table("program_input")
    op.drop_index("ix_program_code_created_at", table_name="program_code")
    op.drop_table("program_code")
