"""Documents table for planner records, with RLS by couple.

One row per record: (couple_id, collection, id) -> data jsonb.
System connections set app.couple_id to '' and see every couple.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute("""
        CREATE TABLE documents (
            couple_id UUID NOT NULL,
            collection TEXT NOT NULL,
            id TEXT NOT NULL,
            data JSONB NOT NULL DEFAULT '{}'::jsonb,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            PRIMARY KEY (couple_id, collection, id)
        );
    """)

    # Containment filters (data @> '{"eventName": ...}') in list()
    op.execute("""
        CREATE INDEX idx_documents_data ON documents USING GIN (data jsonb_path_ops);
    """)

    op.execute("ALTER TABLE documents ENABLE ROW LEVEL SECURITY;")
    # Table owner is subject to the policy too
    op.execute("ALTER TABLE documents FORCE ROW LEVEL SECURITY;")

    op.execute("""
        CREATE POLICY documents_all_own
        ON documents
        FOR ALL
        USING (
            NULLIF(current_setting('app.couple_id', true), '') IS NULL
            OR couple_id = current_setting('app.couple_id', true)::uuid
        )
        WITH CHECK (
            NULLIF(current_setting('app.couple_id', true), '') IS NULL
            OR couple_id = current_setting('app.couple_id', true)::uuid
        );
    """)


def downgrade():
    op.execute("DROP POLICY IF EXISTS documents_all_own ON documents")
    op.execute("DROP TABLE IF EXISTS documents")
