from __future__ import annotations

import logging
from typing import Any

"""Storage schema for price records.

``ux_prices_dedupe`` is the authoritative duplicate guard across import
calls; ``ON CONFLICT`` inserts in ``queries.insert_prices`` target it.
"""

logger = logging.getLogger(__name__)

PRICES_TABLE = "prices"

SCHEMA_STATEMENTS = (
    f"""
CREATE TABLE IF NOT EXISTS {PRICES_TABLE} (
  id BIGSERIAL PRIMARY KEY,
  source_id TEXT NULL,
  name TEXT NOT NULL,
  category TEXT NOT NULL,
  price NUMERIC(12,2) NOT NULL CHECK (price > 0),
  create_date DATE NOT NULL,
  CONSTRAINT ux_prices_dedupe UNIQUE (name, category, price, create_date)
)""",
    f"CREATE INDEX IF NOT EXISTS ix_prices_date ON {PRICES_TABLE}(create_date)",
    f"CREATE INDEX IF NOT EXISTS ix_prices_price ON {PRICES_TABLE}(price)",
    f"CREATE INDEX IF NOT EXISTS ix_prices_category ON {PRICES_TABLE}(category)",
)


def ensure_schema(conn: Any) -> None:
    """Create the prices table, unique constraint and indexes if absent."""
    with conn.cursor() as cur:
        for stmt in SCHEMA_STATEMENTS:
            cur.execute(stmt)
    conn.commit()
    logger.info("schema ready: table=%s", PRICES_TABLE)
