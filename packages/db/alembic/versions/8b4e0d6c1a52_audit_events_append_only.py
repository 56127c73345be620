# This project was developed with assistance from AI tools.
"""append-only guard on audit_events

Revision ID: 8b4e0d6c1a52
Revises: 3f1a9c2d7e10
Create Date: 2026-10-12
"""

from alembic import op

revision = "8b4e0d6c1a52"
down_revision = "3f1a9c2d7e10"
branch_labels = None
depends_on = None

ROW_GUARD_FUNCTION = """
CREATE OR REPLACE FUNCTION credit_audit_reject_row_change()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'audit_events is append-only: % of event % refused', TG_OP, OLD.id
        USING ERRCODE = 'insufficient_privilege';
END;
$$ LANGUAGE plpgsql;
"""

ROW_GUARD_TRIGGER = """
CREATE TRIGGER audit_events_append_only
    BEFORE UPDATE OR DELETE ON audit_events
    FOR EACH ROW
    EXECUTE FUNCTION credit_audit_reject_row_change();
"""

TRUNCATE_GUARD_FUNCTION = """
CREATE OR REPLACE FUNCTION credit_audit_reject_truncate()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'audit_events is append-only: TRUNCATE refused'
        USING ERRCODE = 'insufficient_privilege';
END;
$$ LANGUAGE plpgsql;
"""

TRUNCATE_GUARD_TRIGGER = """
CREATE TRIGGER audit_events_no_truncate
    BEFORE TRUNCATE ON audit_events
    FOR EACH STATEMENT
    EXECUTE FUNCTION credit_audit_reject_truncate();
"""


def upgrade() -> None:
    for statement in (
        ROW_GUARD_FUNCTION,
        ROW_GUARD_TRIGGER,
        TRUNCATE_GUARD_FUNCTION,
        TRUNCATE_GUARD_TRIGGER,
    ):
        op.execute(statement)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS audit_events_no_truncate ON audit_events")
    op.execute("DROP TRIGGER IF EXISTS audit_events_append_only ON audit_events")
    op.execute("DROP FUNCTION IF EXISTS credit_audit_reject_truncate()")
    op.execute("DROP FUNCTION IF EXISTS credit_audit_reject_row_change()")
