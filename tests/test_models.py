"""Tests for ORM model imports, table names, and constraints."""

import pytest

from fundraiser.models import Base, Category, Donation, ProcessedWebhook

# All model classes paired with their expected table names
MODEL_TABLE_PAIRS = [
    (Category, "categories"),
    (Donation, "donations"),
    (ProcessedWebhook, "processed_webhooks"),
]


class TestModelImports:
    """Verify all model classes are importable."""

    @pytest.mark.parametrize(
        "model_cls,expected_table",
        MODEL_TABLE_PAIRS,
        ids=[pair[1] for pair in MODEL_TABLE_PAIRS],
    )
    def test_model_importable_and_table_name(self, model_cls, expected_table):
        assert model_cls.__tablename__ == expected_table


class TestBaseMetadata:
    """Verify the Base metadata registers all 3 tables."""

    def test_all_tables_registered(self):
        registered = set(Base.metadata.tables.keys())
        expected = {pair[1] for pair in MODEL_TABLE_PAIRS}
        assert expected == registered


class TestDonationModel:

    def test_category_relationship(self):
        assert "category" in Donation.__mapper__.relationships
        assert "donations" in Category.__mapper__.relationships

    def test_category_donations_not_eager_loaded(self):
        # Loading a category must not pull its whole donation history.
        assert Category.__mapper__.relationships["donations"].lazy == "select"

    def test_category_foreign_key(self):
        fks = {fk.target_fullname for fk in Donation.__table__.c.category_id.foreign_keys}
        assert fks == {"categories.id"}

    def test_support_message_column_length(self):
        assert Donation.__table__.c.words_of_support.type.length == 150
        assert Donation.__table__.c.words_of_support.nullable

    @pytest.mark.parametrize(
        "name",
        ["ck_donation_amount_positive", "ck_donation_words_of_support"],
    )
    def test_donation_check_constraints(self, name):
        names = {c.name for c in Donation.__table__.constraints}
        assert name in names

    def test_category_total_nonnegative(self):
        names = {c.name for c in Category.__table__.constraints}
        assert "ck_category_current_nonneg" in names


class TestMigrationSyntax:
    """Verify the migration file and SQL modules are syntactically valid."""

    def test_migration_compiles(self):
        import py_compile

        py_compile.compile(
            "alembic/versions/001_initial_schema.py", doraise=True
        )

    def test_sql_modules_import(self):
        from fundraiser.schema_sql import indexes, seeds, tables, triggers

        assert len(tables.ALL) == 3
        assert len(indexes.ALL) >= 1
        assert len(seeds.ALL) >= 1
        assert triggers.FUNCTIONS_ALL
        assert triggers.TRIGGERS_ALL

    def test_donation_trigger_notifies_channel(self):
        from fundraiser.schema_sql import triggers

        assert triggers.DONATION_CHANGES_CHANNEL in triggers.FN_NOTIFY_DONATION_CHANGE
        assert any("trg_donations_notify" in sql for sql in triggers.TRIGGERS_ALL)
