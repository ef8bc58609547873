"""
DuckDB schema for kard.

Timestamps are stored as naive UTC TIMESTAMP values; kard.db.db_utils attaches
the UTC timezone when reading them back. Decks and flashcards are linked by
`deck_id` without a declared cascade: deleting a deck removes its flashcards
explicitly first.
"""

DB_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS auth_users (
    id UUID PRIMARY KEY,
    email VARCHAR NOT NULL UNIQUE,
    password_hash VARCHAR NOT NULL,
    created_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS auth_sessions (
    token VARCHAR PRIMARY KEY,
    user_id UUID NOT NULL,
    email VARCHAR NOT NULL,
    created_at TIMESTAMP NOT NULL,
    expires_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS user_records (
    id UUID PRIMARY KEY,
    email VARCHAR NOT NULL,
    created_at TIMESTAMP NOT NULL,
    last_login TIMESTAMP
);

CREATE TABLE IF NOT EXISTS profiles (
    user_id UUID PRIMARY KEY,
    display_name VARCHAR,
    bio VARCHAR,
    created_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS decks (
    id UUID PRIMARY KEY,
    user_id UUID NOT NULL,
    name VARCHAR NOT NULL,
    description VARCHAR,
    created_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS flashcards (
    id UUID PRIMARY KEY,
    deck_id UUID NOT NULL,
    user_id UUID NOT NULL,
    front VARCHAR NOT NULL,
    back VARCHAR NOT NULL,
    created_at TIMESTAMP NOT NULL
);
"""

# Drop order for forced recreation.
ALL_TABLES = (
    "flashcards",
    "decks",
    "profiles",
    "user_records",
    "auth_sessions",
    "auth_users",
)
