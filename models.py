#=================================================================
# models.py (daily quiz, payments, attempts)
#=================================================================
import uuid
from sqlalchemy import (
    Column, String, Integer, ForeignKey, Text, CheckConstraint, Boolean,
    JSON, Date, Time, DateTime, Numeric, Uuid, Index, UniqueConstraint, text
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from base import Base  # from base.py

PAYMENT_PENDING = "pending"
PAYMENT_SUCCESS = "success"
PAYMENT_FAILED = "failed"

OPTION_KEYS = ("A", "B", "C", "D")

# Partial-index predicates are declared for both dialects so the
# in-memory SQLite test database enforces the same rules as PostgreSQL.
_LIVE_PAYMENT = text("status IN ('pending', 'success')")
_ACTIVE_QUIZ = text("is_active")


# ================================================================
# 1. USERS (registered principals)
# ================================================================
class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    full_name = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    payments = relationship("Payment", back_populates="user")
    attempts = relationship("QuizAttempt", back_populates="user")


# ================================================================
# 2. DAILY QUIZZES
# ================================================================
class DailyQuiz(Base):
    __tablename__ = "daily_quizzes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quiz_date = Column(Date, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    entry_fee = Column(Numeric(10, 2), nullable=False)
    prize_amount = Column(Numeric(12, 2), nullable=False, default=0)
    results_time = Column(Time, nullable=False)  # civil time in RESULTS_UTC_OFFSET
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("entry_fee > 0", name="entry_fee_positive"),
        Index(
            "uq_daily_quizzes_active_date", "quiz_date",
            unique=True,
            postgresql_where=_ACTIVE_QUIZ,
            sqlite_where=_ACTIVE_QUIZ,
        ),
    )

    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        order_by="QuizQuestion.question_order",
        cascade="all, delete-orphan",
    )


# ================================================================
# 3. QUIZ QUESTIONS (authoritative answer key)
# ================================================================
class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(Uuid, ForeignKey("daily_quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    question_order = Column(Integer, nullable=False)

    question_text = Column(Text, nullable=False)
    option_a = Column(Text, nullable=False)
    option_b = Column(Text, nullable=False)
    option_c = Column(Text, nullable=False)
    option_d = Column(Text, nullable=False)
    correct_option = Column(String(1), nullable=False)
    category = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("quiz_id", "question_order", name="uq_quiz_questions_order"),
        CheckConstraint("correct_option IN ('A','B','C','D')", name="correct_option_valid"),
    )

    quiz = relationship("DailyQuiz", back_populates="questions")

    @property
    def options(self) -> dict:
        return {
            "A": self.option_a,
            "B": self.option_b,
            "C": self.option_c,
            "D": self.option_d,
        }


# ================================================================
# 4. PAYMENTS
# ================================================================
class Payment(Base):
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid, ForeignKey("daily_quizzes.id", ondelete="CASCADE"), nullable=False)

    # Identity: user_id for registered players, device_fingerprint for guests.
    identity_key = Column(String(160), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    device_fingerprint = Column(String(128), nullable=True, index=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    guest_name = Column(String(100), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(20), nullable=True)

    order_id = Column(String(64), unique=True, nullable=False)
    payment_id = Column(String(64), unique=True, nullable=True)
    signature = Column(String(128), nullable=True)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    status = Column(String(16), nullable=False, default=PAYMENT_PENDING)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','success','failed')",
            name="status_valid"
        ),
        Index(
            "uq_payments_live_identity", "quiz_id", "identity_key",
            unique=True,
            postgresql_where=_LIVE_PAYMENT,
            sqlite_where=_LIVE_PAYMENT,
        ),
    )

    user = relationship("User", back_populates="payments")
    quiz = relationship("DailyQuiz")


# ================================================================
# 5. QUIZ ATTEMPTS (terminal, one per quiz + identity)
# ================================================================
class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    quiz_id = Column(Uuid, ForeignKey("daily_quizzes.id", ondelete="CASCADE"), nullable=False)
    payment_id = Column(Uuid, ForeignKey("payments.id", ondelete="RESTRICT"), nullable=False, unique=True)

    identity_key = Column(String(160), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    device_fingerprint = Column(String(128), nullable=True)
    is_anonymous = Column(Boolean, nullable=False, default=False)
    display_name = Column(String(100), nullable=True)

    answers = Column(JSON, nullable=False, default=dict)
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    time_spent_seconds = Column(Integer, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("quiz_id", "identity_key", name="uq_quiz_attempts_identity"),
        CheckConstraint("score >= 0", name="score_non_negative"),
        Index("ix_quiz_attempts_ranking", "quiz_id", "score", "time_spent_seconds"),
    )

    user = relationship("User", back_populates="attempts")
    payment = relationship("Payment")


# ================================================================
# 6. TRANSACTION LOG (raw gateway callbacks)
# ================================================================
class TransactionLog(Base):
    __tablename__ = "transaction_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    provider = Column(String(32), nullable=False)
    order_id = Column(String(64), nullable=True, index=True)
    outcome = Column(String(32), nullable=False)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
