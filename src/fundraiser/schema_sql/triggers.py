"""Trigger functions and trigger DDL for the initial schema."""

# Channel name used by pg_notify; the change relay LISTENs on it.
DONATION_CHANGES_CHANNEL = "donation_changes"

# ---- Trigger functions ----

FN_RAISE_IMMUTABLE = """
CREATE OR REPLACE FUNCTION raise_immutable_error()
RETURNS TRIGGER AS $$
BEGIN
    RAISE EXCEPTION 'Rows in table % are immutable', TG_TABLE_NAME;
END;
$$ LANGUAGE plpgsql;
"""

FN_NOTIFY_DONATION_CHANGE = f"""
CREATE OR REPLACE FUNCTION notify_donation_change()
RETURNS TRIGGER AS $$
BEGIN
    PERFORM pg_notify('{DONATION_CHANGES_CHANNEL}', TG_OP);
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;
"""

FUNCTIONS_ALL = [
    FN_RAISE_IMMUTABLE,
    FN_NOTIFY_DONATION_CHANGE,
]

# ---- Triggers ----

TRIGGERS_ALL = [
    "CREATE TRIGGER trg_processed_webhooks_immutable "
    "BEFORE UPDATE OR DELETE ON processed_webhooks "
    "FOR EACH ROW EXECUTE FUNCTION raise_immutable_error();",

    "CREATE TRIGGER trg_donations_notify "
    "AFTER INSERT OR UPDATE OR DELETE ON donations "
    "FOR EACH STATEMENT EXECUTE FUNCTION notify_donation_change();",
]
