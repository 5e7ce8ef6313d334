"""mirror_log and mirror_meta

Revision ID: 0001_mirror_tables
Revises:
Create Date: 2026-10-18
"""

from alembic import op

revision = "0001_mirror_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Deployments that predate watermarks have mirror_log without last_date/errors
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS mirror_log (
            id BIGSERIAL PRIMARY KEY,
            resource TEXT NOT NULL,
            rowcount INTEGER NOT NULL DEFAULT 0,
            synced_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            hash VARCHAR(64)
        );
        ALTER TABLE mirror_log
            ADD COLUMN IF NOT EXISTS id BIGSERIAL,
            ADD COLUMN IF NOT EXISTS last_date TIMESTAMPTZ,
            ADD COLUMN IF NOT EXISTS errors JSONB;
        CREATE INDEX IF NOT EXISTS idx_mirror_log_resource_synced
            ON mirror_log (resource, synced_at);

        CREATE TABLE IF NOT EXISTS mirror_meta (
            table_name TEXT PRIMARY KEY,
            key_fields JSONB,
            relationships JSONB,
            last_discovered TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );
        """
    )


def downgrade():
    op.execute("DROP TABLE IF EXISTS mirror_meta")
    op.execute("DROP TABLE IF EXISTS mirror_log")
