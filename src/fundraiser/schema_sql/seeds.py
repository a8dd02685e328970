"""Seed data for local development."""

CATEGORIES = """
INSERT INTO categories (id, name, goal_amount) VALUES
    ('general', 'General Fund', 5000.00)
ON CONFLICT (id) DO NOTHING;
"""

ALL = [
    CATEGORIES,
]
