"""Print the Supabase schema for MCQ Prep (run it in the Supabase SQL Editor)."""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- Topics (chapters and non-chapter groupings)
CREATE TABLE IF NOT EXISTS topics (
    id VARCHAR(50) PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT DEFAULT '',
    is_general BOOLEAN DEFAULT FALSE,
    file TEXT DEFAULT ''
);

-- Question bank (read-only to the engine)
CREATE TABLE IF NOT EXISTS questions (
    row_id BIGSERIAL PRIMARY KEY,
    id TEXT,
    question_number INT,
    bank VARCHAR(20) NOT NULL DEFAULT 'chapters',
    topic_id VARCHAR(50) REFERENCES topics(id),
    question TEXT NOT NULL,
    options JSONB NOT NULL,
    correct_answer TEXT NOT NULL,
    hint TEXT DEFAULT '',
    explanation TEXT DEFAULT '',
    chapter VARCHAR(50),
    difficulty VARCHAR(20) CHECK (difficulty IS NULL OR difficulty IN ('easy', 'difficult')),
    source VARCHAR(100)
);

-- Sessions: frozen question list + running totals
CREATE TABLE IF NOT EXISTS sessions (
    session_id TEXT PRIMARY KEY,
    topic VARCHAR(100) NOT NULL,
    exam_mode VARCHAR(30),
    start_time BIGINT NOT NULL,
    end_time BIGINT,
    questions JSONB,
    total_questions INT DEFAULT 0,
    correct_answers INT DEFAULT 0,
    wrong_answers INT DEFAULT 0,
    hints_used INT DEFAULT 0,
    total_time BIGINT DEFAULT 0
);

-- Attempt ledger
CREATE TABLE IF NOT EXISTS attempts (
    id BIGSERIAL PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES sessions(session_id) ON DELETE CASCADE,
    question_id TEXT NOT NULL,
    question_index INT,
    topic VARCHAR(100),
    selected_option TEXT,
    correct BOOLEAN NOT NULL,
    time_spent BIGINT DEFAULT 0,
    hint_used BOOLEAN DEFAULT FALSE,
    explanation_viewed BOOLEAN DEFAULT FALSE,
    timestamp BIGINT NOT NULL,
    UNIQUE NULLS NOT DISTINCT (session_id, question_id, question_index, timestamp)
);

CREATE INDEX IF NOT EXISTS idx_questions_bank ON questions(bank);
CREATE INDEX IF NOT EXISTS idx_questions_topic_id ON questions(topic_id);
CREATE INDEX IF NOT EXISTS idx_sessions_start_time ON sessions(start_time);
CREATE INDEX IF NOT EXISTS idx_attempts_session_id ON attempts(session_id);
"""


def schema_statements(sql: str = SCHEMA_SQL) -> list[str]:
    """Split the schema into statements, dropping comment-only chunks."""
    statements = []
    for chunk in sql.split(";"):
        lines = [line for line in chunk.strip().splitlines() if not line.strip().startswith("--")]
        stmt = "\n".join(lines).strip()
        if stmt:
            statements.append(stmt)
    return statements


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    statements = schema_statements()
    logger.info("MCQ Prep schema: %d statements", len(statements))
    logger.info("URL: %s", os.getenv("SUPABASE_URL") or "(SUPABASE_URL not set)")
    for i, stmt in enumerate(statements, 1):
        logger.info("  %d/%d %s...", i, len(statements), stmt.splitlines()[0][:60])
    print("\nDue to Supabase client limitations, run this SQL in the Supabase SQL Editor:")
    print(SCHEMA_SQL)


if __name__ == "__main__":
    main()
