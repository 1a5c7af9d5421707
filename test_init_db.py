"""Schema script sanity checks."""
from init_db import SCHEMA_SQL, schema_statements


def test_schema_statements_skip_comments():
    statements = schema_statements()
    assert all(not s.startswith("--") for s in statements)
    tables = [s for s in statements if s.startswith("CREATE TABLE")]
    assert len(tables) == 4
    assert any("attempts" in s and "UNIQUE NULLS NOT DISTINCT (session_id, question_id, question_index, timestamp)" in s for s in tables)


def test_schema_sql_cascades_attempt_deletes():
    assert "ON DELETE CASCADE" in SCHEMA_SQL
