"""Initial review schema: faculties, users, proposals, reviews, awards, audit_entries.

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "1a2b3c4d5e6f"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = inspector.get_table_names()

    if "faculties" not in existing_tables:
        op.create_table(
            "faculties",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("code", sa.String(), server_default="", nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_faculties_title", "faculties", ["title"], unique=True)
        op.create_index("ix_faculties_code", "faculties", ["code"])

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("role", sa.String(), server_default="researcher", nullable=False),
            sa.Column("faculty_id", sa.Uuid(), nullable=True),
            sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
            sa.Column(
                "invitation_status", sa.String(), server_default="pending", nullable=False,
            ),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["faculty_id"], ["faculties.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ix_users_role", "users", ["role"])
        op.create_index("ix_users_faculty_id", "users", ["faculty_id"])
        op.create_index("ix_users_is_active", "users", ["is_active"])
        op.create_index("ix_users_invitation_status", "users", ["invitation_status"])

    if "proposals" not in existing_tables:
        op.create_table(
            "proposals",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("submitter_id", sa.Uuid(), nullable=False),
            sa.Column("title", sa.String(), server_default="Research Proposal", nullable=False),
            sa.Column("estimated_budget", sa.Float(), nullable=True),
            sa.Column("status", sa.String(), server_default="submitted", nullable=False),
            sa.Column("review_status", sa.String(), server_default="pending", nullable=False),
            sa.Column("is_archived", sa.Boolean(), server_default="false", nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["submitter_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_proposals_submitter_id", "proposals", ["submitter_id"])
        op.create_index("ix_proposals_status", "proposals", ["status"])
        op.create_index("ix_proposals_review_status", "proposals", ["review_status"])

    if "reviews" not in existing_tables:
        op.create_table(
            "reviews",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("proposal_id", sa.Uuid(), nullable=False),
            sa.Column("reviewer_id", sa.Uuid(), nullable=True),
            sa.Column("review_type", sa.String(), server_default="human", nullable=False),
            sa.Column("status", sa.String(), server_default="in_progress", nullable=False),
            sa.Column("scores", sa.JSON(), nullable=True),
            sa.Column("comments", sa.JSON(), nullable=True),
            sa.Column("total_score", sa.Float(), server_default="0", nullable=False),
            sa.Column("due_date", sa.DateTime(), nullable=False),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["proposal_id"], ["proposals.id"]),
            sa.ForeignKeyConstraint(["reviewer_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_reviews_proposal_id", "reviews", ["proposal_id"])
        op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"])
        op.create_index("ix_reviews_review_type", "reviews", ["review_type"])
        op.create_index("ix_reviews_status", "reviews", ["status"])
        op.create_index("ix_reviews_due_date", "reviews", ["due_date"])

    if "awards" not in existing_tables:
        op.create_table(
            "awards",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("proposal_id", sa.Uuid(), nullable=False),
            sa.Column("submitter_id", sa.Uuid(), nullable=False),
            sa.Column("final_score", sa.Float(), nullable=False),
            sa.Column("status", sa.String(), server_default="pending", nullable=False),
            sa.Column("funding_amount", sa.Float(), server_default="0", nullable=False),
            sa.Column("feedback", sa.String(), server_default="", nullable=False),
            sa.Column("approved_by", sa.Uuid(), nullable=True),
            sa.Column("approved_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["proposal_id"], ["proposals.id"]),
            sa.ForeignKeyConstraint(["submitter_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["approved_by"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_awards_proposal_id", "awards", ["proposal_id"], unique=True)
        op.create_index("ix_awards_submitter_id", "awards", ["submitter_id"])
        op.create_index("ix_awards_status", "awards", ["status"])

    if "audit_entries" not in existing_tables:
        op.create_table(
            "audit_entries",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("actor_id", sa.Uuid(), nullable=True),
            sa.Column("action", sa.String(), nullable=False),
            sa.Column("target_type", sa.String(), server_default="", nullable=False),
            sa.Column("target_id", sa.Uuid(), nullable=True),
            sa.Column("payload", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_audit_entries_actor_id", "audit_entries", ["actor_id"])
        op.create_index("ix_audit_entries_action", "audit_entries", ["action"])
        op.create_index("ix_audit_entries_target_id", "audit_entries", ["target_id"])


def downgrade() -> None:
    op.drop_table("audit_entries")
    op.drop_table("awards")
    op.drop_table("reviews")
    op.drop_table("proposals")
    op.drop_table("users")
    op.drop_table("faculties")
