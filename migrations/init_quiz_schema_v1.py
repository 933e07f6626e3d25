# ===============================================================
# migrations/init_quiz_schema_v1.py
# Creates the daily quiz / payment / attempt tables (idempotent)
# Safe to run on a fresh Postgres DB.
# ===============================================================
import os
import json
from datetime import datetime, timezone
import psycopg2

MIGRATION_NAME = "init_quiz_schema_v1"


def main():
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL not found in env")
        return

    # psycopg2 needs sync URL
    if database_url.startswith("postgresql+asyncpg://"):
        database_url = database_url.replace("postgresql+asyncpg://", "postgresql://", 1)

    conn = psycopg2.connect(database_url, sslmode=os.environ.get("PGSSLMODE", "require"))
    cur = conn.cursor()

    try:
        # -------------------------------------------------------
        # 0) schema_migrations table
        # -------------------------------------------------------
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
                meta JSONB DEFAULT '{}'::jsonb
            );
            """
        )

        # Stop if already applied
        cur.execute("SELECT 1 FROM schema_migrations WHERE name=%s LIMIT 1;", (MIGRATION_NAME,))
        if cur.fetchone():
            print(f"✅ Migration already applied: {MIGRATION_NAME}")
            return

        print(f"🔧 Starting migration: {MIGRATION_NAME}")

        # -------------------------------------------------------
        # 1) Extensions
        # -------------------------------------------------------
        cur.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")  # gen_random_uuid()
        print("✅ pgcrypto ensured")

        # -------------------------------------------------------
        # 2) Tables
        # -------------------------------------------------------

        # USERS
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
                id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                email VARCHAR(255) NOT NULL UNIQUE,
                full_name VARCHAR(100),
                phone VARCHAR(20),
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """
        )
        print("✅ users ensured")

        # DAILY QUIZZES
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS daily_quizzes (
                id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                quiz_date DATE NOT NULL,
                title VARCHAR(200) NOT NULL,
                description TEXT,
                entry_fee NUMERIC(10, 2) NOT NULL,
                prize_amount NUMERIC(12, 2) NOT NULL DEFAULT 0,
                results_time TIME NOT NULL,
                is_active BOOLEAN NOT NULL DEFAULT TRUE,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                CONSTRAINT ck_daily_quizzes_entry_fee_positive CHECK (entry_fee > 0)
            );
            """
        )
        # One active quiz per civil date
        cur.execute(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS uq_daily_quizzes_active_date
            ON daily_quizzes (quiz_date) WHERE is_active;
            """
        )
        print("✅ daily_quizzes ensured")

        # QUIZ QUESTIONS
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS quiz_questions (
                id SERIAL PRIMARY KEY,
                quiz_id UUID NOT NULL REFERENCES daily_quizzes(id) ON DELETE CASCADE,
                question_order INTEGER NOT NULL,
                question_text TEXT NOT NULL,
                option_a TEXT NOT NULL,
                option_b TEXT NOT NULL,
                option_c TEXT NOT NULL,
                option_d TEXT NOT NULL,
                correct_option VARCHAR(1) NOT NULL,
                category VARCHAR(64),
                created_at TIMESTAMPTZ DEFAULT NOW(),
                CONSTRAINT uq_quiz_questions_order UNIQUE (quiz_id, question_order),
                CONSTRAINT ck_quiz_questions_correct_option_valid
                    CHECK (correct_option IN ('A','B','C','D'))
            );
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS ix_quiz_questions_quiz_id ON quiz_questions (quiz_id);")
        print("✅ quiz_questions ensured")

        # PAYMENTS
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS payments (
                id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                quiz_id UUID NOT NULL REFERENCES daily_quizzes(id) ON DELETE CASCADE,
                identity_key VARCHAR(160) NOT NULL,
                user_id UUID REFERENCES users(id) ON DELETE SET NULL,
                device_fingerprint VARCHAR(128),
                is_anonymous BOOLEAN NOT NULL DEFAULT FALSE,
                guest_name VARCHAR(100),
                guest_email VARCHAR(255),
                guest_phone VARCHAR(20),
                order_id VARCHAR(64) NOT NULL UNIQUE,
                payment_id VARCHAR(64) UNIQUE,
                signature VARCHAR(128),
                amount NUMERIC(10, 2) NOT NULL,
                currency VARCHAR(3) NOT NULL DEFAULT 'INR',
                status VARCHAR(16) NOT NULL DEFAULT 'pending',
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW(),
                CONSTRAINT ck_payments_status_valid
                    CHECK (status IN ('pending','success','failed'))
            );
            """
        )
        # At most one pending-or-success payment per (quiz, identity)
        cur.execute(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS uq_payments_live_identity
            ON payments (quiz_id, identity_key)
            WHERE status IN ('pending', 'success');
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS ix_payments_user_id ON payments (user_id);")
        cur.execute("CREATE INDEX IF NOT EXISTS ix_payments_device_fingerprint ON payments (device_fingerprint);")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_payments_pending_created ON payments (created_at) WHERE status = 'pending';")
        print("✅ payments ensured")

        # QUIZ ATTEMPTS
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS quiz_attempts (
                id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                quiz_id UUID NOT NULL REFERENCES daily_quizzes(id) ON DELETE CASCADE,
                payment_id UUID NOT NULL UNIQUE REFERENCES payments(id) ON DELETE RESTRICT,
                identity_key VARCHAR(160) NOT NULL,
                user_id UUID REFERENCES users(id) ON DELETE SET NULL,
                device_fingerprint VARCHAR(128),
                is_anonymous BOOLEAN NOT NULL DEFAULT FALSE,
                display_name VARCHAR(100),
                answers JSON NOT NULL,
                score INTEGER NOT NULL,
                total_questions INTEGER NOT NULL,
                time_spent_seconds INTEGER NOT NULL,
                submitted_at TIMESTAMPTZ NOT NULL,
                CONSTRAINT uq_quiz_attempts_identity UNIQUE (quiz_id, identity_key),
                CONSTRAINT ck_quiz_attempts_score_non_negative CHECK (score >= 0)
            );
            """
        )
        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS ix_quiz_attempts_ranking
            ON quiz_attempts (quiz_id, score, time_spent_seconds);
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS ix_quiz_attempts_user_id ON quiz_attempts (user_id);")
        print("✅ quiz_attempts ensured")

        # TRANSACTION LOGS
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS transaction_logs (
                id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                provider VARCHAR(32) NOT NULL,
                order_id VARCHAR(64),
                outcome VARCHAR(32) NOT NULL,
                payload JSON NOT NULL,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS ix_transaction_logs_order_id ON transaction_logs (order_id);")
        print("✅ transaction_logs ensured")

        # -------------------------------------------------------
        # 3) Record migration
        # -------------------------------------------------------
        cur.execute(
            "INSERT INTO schema_migrations (name, meta) VALUES (%s, %s::jsonb)",
            (
                MIGRATION_NAME,
                json.dumps(
                    {
                        "applied_by": "migration_script",
                        "applied_at": datetime.now(timezone.utc).isoformat(),
                        "notes": "Created quiz, payment and attempt tables from models.py",
                    }
                ),
            ),
        )

        conn.commit()
        print("🎉 Migration applied successfully!")

    except Exception as e:
        conn.rollback()
        print("❌ Migration failed, rolled back")
        print("Error:", e)
        raise
    finally:
        cur.close()
        conn.close()


if __name__ == "__main__":
    main()
