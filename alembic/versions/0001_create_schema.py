from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001_create_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _parameter_columns() -> list[sa.Column]:
    return [
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("short_description", sa.String(255), nullable=True),
        sa.Column("help_text", sa.Text(), nullable=True),
        sa.Column("default_value", sa.Text(), nullable=True),
    ]


def _standard_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("visible_onboarding", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("short_description", sa.String(255), nullable=True),
        sa.Column("help_text", sa.Text(), nullable=True),
        sa.Column("default_value", sa.Text(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "conversation_funnel",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_assignment", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_table(
        "company",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("social_name", sa.String(255), nullable=False),
        sa.Column("document", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("domain", sa.String(255), nullable=True, index=True),
        *_timestamps(),
    )
    op.create_table(
        "product",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("company.id"), nullable=True, index=True),
        sa.Column("subdomain", sa.String(255), nullable=True),
        sa.Column(
            "conversation_funnel_id",
            sa.Integer(),
            sa.ForeignKey("conversation_funnel.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_table(
        "account",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("social_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("document", sa.String(32), nullable=True),
        sa.Column("domain", sa.String(255), nullable=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("product.id"), nullable=False, index=True),
        sa.Column(
            "conversation_funnel_id",
            sa.Integer(),
            sa.ForeignKey("conversation_funnel.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        *_timestamps(),
    )
    op.create_table(
        "account_parameter",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "account_id", sa.Integer(), sa.ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        *_parameter_columns(),
        *_timestamps(),
        sa.UniqueConstraint("account_id", "name", name="uq_account_parameter_account_name"),
    )
    op.create_table(
        "product_parameter",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "product_id", sa.Integer(), sa.ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        *_parameter_columns(),
        *_timestamps(),
        sa.UniqueConstraint("product_id", "name", name="uq_product_parameter_product_name"),
    )
    op.create_table("account_parameters_standard", *_standard_columns())
    op.create_table("product_parameters_standard", *_standard_columns())
    op.create_table(
        "contact",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True, index=True),
        sa.Column("contact_data", postgresql.JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True),
        sa.Column("campaign_id", sa.String(64), nullable=True),
        sa.Column("external_code", sa.String(128), nullable=True, unique=True, index=True),
        sa.Column("external_status", sa.String(64), nullable=False, server_default="pending"),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("account.id"), nullable=False, index=True),
        *_timestamps(),
    )
    op.create_table(
        "conversation_funnel_step",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "conversation_funnel_id",
            sa.Integer(),
            sa.ForeignKey("conversation_funnel.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("first_step", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assign_to_team", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("kanban_code", sa.String(64), nullable=True),
        _created_at(),
    )
    op.create_table(
        "conversation_funnel_step_message",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "conversation_funnel_step_id",
            sa.Integer(),
            sa.ForeignKey("conversation_funnel_step.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("message_instruction", sa.Text(), nullable=True),
        sa.Column("fixed_message", sa.Text(), nullable=True),
        sa.Column("shipping_time", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("shipping_order", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_table(
        "user_session",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("account.id"), nullable=False, index=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("product.id"), nullable=False),
        sa.Column("contact_id", sa.Integer(), sa.ForeignKey("contact.id"), nullable=True, index=True),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "conversation_funnel_step_id",
            sa.Integer(),
            sa.ForeignKey("conversation_funnel_step.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("inbox_id", sa.Integer(), nullable=True),
        sa.Column("conversation_id", sa.Integer(), nullable=True),
        sa.Column("message_time", sa.Integer(), nullable=True),
        sa.Column("last_access", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("account_id", "phone", name="uq_user_session_account_phone"),
    )
    op.create_table(
        "user_session_conversation_funnel_step_message",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_session_id", sa.Integer(), sa.ForeignKey("user_session.id"), nullable=False, index=True),
        sa.Column(
            "conversation_funnel_step_message_id",
            sa.Integer(),
            sa.ForeignKey("conversation_funnel_step_message.id"),
            nullable=False,
            index=True,
        ),
        _created_at(),
        sa.UniqueConstraint(
            "user_session_id",
            "conversation_funnel_step_message_id",
            name="uq_delivery_session_step_message",
        ),
    )
    op.create_table(
        "conversation_funnel_register",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_session_id", sa.Integer(), sa.ForeignKey("user_session.id"), nullable=False, index=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("account.id"), nullable=False, index=True),
        sa.Column(
            "conversation_funnel_step_id", sa.Integer(), sa.ForeignKey("conversation_funnel_step.id"), nullable=True
        ),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("last_timestamptz", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_table(
        "inbox",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "account_id", sa.Integer(), sa.ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("name", sa.String(255), nullable=False),
        _created_at(),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("is_first_login", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
    )
    op.create_table(
        "access_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(64), nullable=False, unique=True),
        sa.Column("admin", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "user_access_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("access_profile_id", sa.Integer(), sa.ForeignKey("access_profiles.id"), nullable=False),
        _created_at(),
        sa.UniqueConstraint("user_id", "access_profile_id", name="uq_user_access_profile"),
    )
    op.create_table(
        "user_accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column(
            "account_id", sa.Integer(), sa.ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        _created_at(),
        sa.UniqueConstraint("user_id", "account_id", name="uq_user_account"),
    )


def downgrade() -> None:
    for table in (
        "user_accounts",
        "user_access_profiles",
        "access_profiles",
        "users",
        "inbox",
        "conversation_funnel_register",
        "user_session_conversation_funnel_step_message",
        "user_session",
        "conversation_funnel_step_message",
        "conversation_funnel_step",
        "contact",
        "product_parameters_standard",
        "account_parameters_standard",
        "product_parameter",
        "account_parameter",
        "account",
        "product",
        "company",
        "conversation_funnel",
    ):
        op.drop_table(table)
