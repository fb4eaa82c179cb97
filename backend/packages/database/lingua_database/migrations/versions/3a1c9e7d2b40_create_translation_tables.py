"""create_translation_tables

Revision ID: 3a1c9e7d2b40
Revises:
Create Date: 2026-09-28 10:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3a1c9e7d2b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "translation_tasks",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("template_id", sa.String(length=255), nullable=False),
        sa.Column("template_version_id", sa.String(length=255), nullable=False),
        sa.Column("template_name", sa.String(length=500), nullable=False),
        sa.Column("source_language", sa.String(length=10), nullable=False),
        sa.Column("target_languages", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("total_languages", sa.Integer(), nullable=False),
        sa.Column("completed_languages", sa.Integer(), nullable=False),
        sa.Column("failed_languages", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("completion_signaled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_translation_tasks_template_id"),
        "translation_tasks",
        ["template_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_translation_tasks_status"),
        "translation_tasks",
        ["status"],
        unique=False,
    )

    op.create_table(
        "template_translations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("task_id", sa.String(length=36), nullable=False),
        sa.Column("template_id", sa.String(length=255), nullable=False),
        sa.Column("template_version_id", sa.String(length=255), nullable=False),
        sa.Column("language_code", sa.String(length=10), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("original_html", sa.Text(), nullable=False),
        sa.Column("original_subject", sa.Text(), nullable=True),
        sa.Column("translated_html", sa.Text(), nullable=True),
        sa.Column("translated_subject", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("retranslate_reason", sa.Text(), nullable=True),
        sa.Column("retranslate_attempts", sa.Integer(), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["task_id"], ["translation_tasks.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "template_id",
            "template_version_id",
            "language_code",
            "version",
            name="uq_template_translation_version",
        ),
    )
    op.create_index(
        op.f("ix_template_translations_task_id"),
        "template_translations",
        ["task_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_template_translations_template_id"),
        "template_translations",
        ["template_id"],
        unique=False,
    )
    op.create_index(
        "ix_template_translations_task_language",
        "template_translations",
        ["task_id", "language_code"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(
        "ix_template_translations_task_language",
        table_name="template_translations",
    )
    op.drop_index(
        op.f("ix_template_translations_template_id"),
        table_name="template_translations",
    )
    op.drop_index(
        op.f("ix_template_translations_task_id"),
        table_name="template_translations",
    )
    op.drop_table("template_translations")
    op.drop_index(op.f("ix_translation_tasks_status"), table_name="translation_tasks")
    op.drop_index(op.f("ix_translation_tasks_template_id"), table_name="translation_tasks")
    op.drop_table("translation_tasks")
