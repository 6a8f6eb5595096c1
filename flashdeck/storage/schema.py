"""DDL for the durable key/value table."""

KV_TABLE = "kv_store"

DB_SCHEMA_SQL = f"""
    CREATE TABLE IF NOT EXISTS {KV_TABLE} (
        key VARCHAR PRIMARY KEY,
        value VARCHAR NOT NULL,
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL
    );
"""
