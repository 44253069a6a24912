"""Add audit_events immutability trigger.

Revision ID: 002
Revises: 001
Create Date: 2026-10-01 00:00:01.000000

PostgreSQL only. Other dialects rely on the application never issuing
UPDATE or DELETE against audit_events.
"""

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _is_postgres() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def upgrade() -> None:
    """Reject UPDATE and DELETE on audit_events."""
    if not _is_postgres():
        return

    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_audit_modification()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'Audit events are immutable. Event ID: %', OLD.id;
            RETURN NULL;
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.execute("""
        DROP TRIGGER IF EXISTS audit_immutability_trigger ON audit_events
    """)

    op.execute("""
        CREATE TRIGGER audit_immutability_trigger
        BEFORE UPDATE OR DELETE ON audit_events
        FOR EACH ROW
        EXECUTE FUNCTION prevent_audit_modification()
    """)


def downgrade() -> None:
    if not _is_postgres():
        return

    op.execute("""
        DROP TRIGGER IF EXISTS audit_immutability_trigger ON audit_events;
    """)
    op.execute("""
        DROP FUNCTION IF EXISTS prevent_audit_modification();
    """)
