"""CREATE TABLE statements for categories, donations, and the webhook ledger."""

CATEGORIES = """
CREATE TABLE categories (
    id              VARCHAR(64) PRIMARY KEY DEFAULT gen_random_uuid()::text,
    name            VARCHAR(200) NOT NULL,
    goal_amount     NUMERIC(12, 2),
    current_amount  NUMERIC(12, 2) NOT NULL DEFAULT 0
                    CONSTRAINT ck_category_current_nonneg
                    CHECK (current_amount >= 0),
    created_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

DONATIONS = """
CREATE TABLE donations (
    id               UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    category_id      VARCHAR(64) NOT NULL REFERENCES categories(id),
    donor_name       VARCHAR(200) NOT NULL,
    amount           NUMERIC(12, 2) NOT NULL
                     CONSTRAINT ck_donation_amount_positive CHECK (amount > 0),
    is_anonymous     BOOLEAN NOT NULL DEFAULT FALSE,
    words_of_support VARCHAR(150)
                     CONSTRAINT ck_donation_words_of_support
                     CHECK (
                         words_of_support IS NULL
                         OR char_length(btrim(words_of_support)) > 0
                     ),
    created_at       TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

PROCESSED_WEBHOOKS = """
CREATE TABLE processed_webhooks (
    event_id     VARCHAR(255) PRIMARY KEY,
    processed_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

ALL = [
    CATEGORIES,
    DONATIONS,
    PROCESSED_WEBHOOKS,
]
