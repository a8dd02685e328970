"""All CREATE INDEX statements for the initial schema."""

ALL = [
    # donations
    "CREATE INDEX idx_donations_category ON donations(category_id, created_at DESC);",
    "CREATE INDEX idx_donations_support_feed ON donations(created_at DESC) "
    "WHERE words_of_support IS NOT NULL;",
]
