"""Initial schema -- tables, indexes, seed data, and change-notify triggers.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op

from fundraiser.schema_sql import indexes, seeds, tables, triggers

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _execute_all(statements: list[str]) -> None:
    """Execute a list of SQL statements sequentially."""
    for stmt in statements:
        op.execute(stmt)


def upgrade() -> None:
    _execute_all(tables.ALL)
    _execute_all(indexes.ALL)
    _execute_all(seeds.ALL)
    _execute_all(triggers.FUNCTIONS_ALL)
    _execute_all(triggers.TRIGGERS_ALL)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_donations_notify ON donations;")
    op.execute(
        "DROP TRIGGER IF EXISTS trg_processed_webhooks_immutable "
        "ON processed_webhooks;"
    )
    op.execute("DROP FUNCTION IF EXISTS notify_donation_change();")
    op.execute("DROP FUNCTION IF EXISTS raise_immutable_error();")
    for table in ("processed_webhooks", "donations", "categories"):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE;")
