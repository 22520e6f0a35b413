from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0002_seed_access_profiles"
down_revision = "0001_create_schema"
branch_labels = None
depends_on = None

PROFILES = (
    {"name": "Super Admin", "code": "super-admin", "admin": True},
    {"name": "Client Admin", "code": "client-admin", "admin": True},
)


def upgrade() -> None:
    access_profiles = sa.table(
        "access_profiles",
        sa.column("name", sa.String),
        sa.column("code", sa.String),
        sa.column("admin", sa.Boolean),
    )
    op.bulk_insert(access_profiles, list(PROFILES))


def downgrade() -> None:
    codes = ", ".join(f"'{profile['code']}'" for profile in PROFILES)
    op.execute(f"DELETE FROM access_profiles WHERE code IN ({codes})")
