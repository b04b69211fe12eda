from sqlalchemy import create_engine, Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Enum, Index, CheckConstraint, UniqueConstraint, JSON
from sqlalchemy.orm import relationship, declarative_base, sessionmaker
from datetime import datetime, timezone
import uuid
from hireveno.config import get_settings
import enum
from typing import Optional

"""
Database models for the Hireveno marketplace.
Includes models for users, departments and quizzes, tutoring sessions, the wallet ledger,
session chat and moderation, reviews, withdrawals and appeals.
Uses SQLAlchemy ORM with PostgreSQL/SQLite backend.
All money columns are integers in minor units (kobo).
"""

# Base class for ORM models
Base = declarative_base()

# Enum for user roles. A "student" is a university student offering tutoring,
# an "aspirant" is the learner booking sessions.
class UserRole(enum.Enum):
    ADMIN = "admin"
    STUDENT = "student"
    ASPIRANT = "aspirant"

class UserStatus(enum.Enum):
    ACTIVE = "active"
    PENDING = "pending"
    BLOCKED = "blocked"
    BANNED = "banned"

class SessionStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class TransactionType(enum.Enum):
    PAYMENT = "payment"
    WITHDRAWAL = "withdrawal"
    EARNING = "earning"

class TransactionStatus(enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class WithdrawalStatus(enum.Enum):
    REQUESTED = "requested"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

class ReportStatus(enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"

class AppealStatus(enum.Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    REJECTED = "rejected"

# Free-text payment_status values written by the payment and settlement flows
PAYMENT_COMPLETED = "completed"
PAYMENT_SETTLING = "settling"
PAYMENT_SETTLED = "settled"
PAYMENT_SETTLEMENT_FAILED = "settlement_failed"

def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def is_valid_uuid(uuid_str: str) -> bool:
    """Validate UUID string format."""
    if not uuid_str:
        return False
    try:
        # Validate length and format
        if len(uuid_str) != 36:
            return False
        # Try to parse as UUID to validate format
        uuid_obj = uuid.UUID(uuid_str)
        return str(uuid_obj) == uuid_str.lower()
    except (ValueError, AttributeError, TypeError):
        return False

def generate_uuid() -> str:
    """Generate a string UUID."""
    return str(uuid.uuid4()).lower()

class Department(Base):
    """University department. Tutors are certified per department."""
    __tablename__ = 'departments'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Department(id={self.id}, name={self.name})>"

# User Model
class User(Base):
    """User model with role-based access control, tutor certification and payout details."""
    __tablename__ = 'users'
    id = Column(String(36), primary_key=True, default=generate_uuid)  # Same id as the auth provider's subject
    role = Column(Enum(UserRole), nullable=False)
    status = Column(Enum(UserStatus), default=UserStatus.ACTIVE, nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    bio = Column(Text)
    profile_image = Column(String(500))
    jamb_reg = Column(String(50))
    department_id = Column(String(36), ForeignKey('departments.id'), nullable=True)

    # Tutor certification
    is_verified = Column(Boolean, default=False, nullable=False)
    badge = Column(Boolean, default=False, nullable=False)
    quiz_score = Column(Integer, nullable=True)

    # Wallet and payout destination
    wallet_balance = Column(Integer, default=0, nullable=False)
    bank_name = Column(String(100))
    bank_code = Column(String(20))
    account_number = Column(String(20))
    account_name = Column(String(100))

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint('wallet_balance >= 0', name='check_wallet_balance_positive'),
    )

    # Relationships
    department = relationship("Department", lazy='joined')

    @classmethod
    def get_by_id(cls, db, user_id: str) -> Optional['User']:
        """Get user by UUID string."""
        if not is_valid_uuid(user_id):
            return None
        return db.query(cls).filter(cls.id == user_id).first()

    @property
    def has_bank_details(self) -> bool:
        return bool(self.bank_code and self.account_number and self.account_name)

    def __repr__(self):
        """String representation of the User object."""
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

class Question(Base):
    """Multiple choice question of a department's certification quiz."""
    __tablename__ = 'questions'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    department_id = Column(String(36), ForeignKey('departments.id', ondelete='CASCADE'), nullable=False)
    question = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)
    correct_answer = Column(Integer, nullable=False)  # Index into options
    created_at = Column(DateTime, default=utcnow, nullable=False)

class QuizAttempt(Base):
    __tablename__ = 'quiz_attempts'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    department_id = Column(String(36), ForeignKey('departments.id'), nullable=True)
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    passed = Column(Boolean, default=False, nullable=False)
    next_attempt_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

# Tutoring session model. Named TutoringSession to stay clear of sqlalchemy.orm.Session.
class TutoringSession(Base):
    """One booked engagement between an aspirant (client) and a student tutor."""
    __tablename__ = 'sessions'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    client_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    student_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    duration = Column(Integer, nullable=False)  # Duration in minutes
    scheduled_at = Column(DateTime, nullable=False)
    amount = Column(Integer, nullable=False)  # kobo
    status = Column(Enum(SessionStatus), default=SessionStatus.PENDING, nullable=False)
    payment_status = Column(String(30), nullable=True)
    payment_reference = Column(String(100), nullable=True, index=True)
    tx_ref = Column(String(100), nullable=True, index=True)
    escrow_released = Column(Boolean, default=False, nullable=False)  # Set once the gateway has released the hold
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint('amount > 0', name='check_session_amount_positive'),
    )

    # Relationships
    client = relationship("User", foreign_keys=[client_id], lazy='joined')
    tutor = relationship("User", foreign_keys=[student_id], lazy='joined')

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.client_id, self.student_id)

    def __repr__(self):
        """String representation of the TutoringSession object."""
        return f"<TutoringSession(id={self.id}, client_id={self.client_id}, student_id={self.student_id}, status={self.status})>"

class Transaction(Base):
    """Wallet ledger entry. Amount is always positive, direction follows from the type."""
    __tablename__ = 'transactions'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    session_id = Column(String(36), ForeignKey('sessions.id'), nullable=True)
    amount = Column(Integer, nullable=False)
    type = Column(Enum(TransactionType), nullable=False)
    status = Column(Enum(TransactionStatus), default=TransactionStatus.PENDING, nullable=False)
    reference = Column(String(100))
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint('amount > 0', name='check_transaction_amount_positive'),
    )

    def __repr__(self):
        return f"<Transaction(id={self.id}, user_id={self.user_id}, type={self.type}, amount={self.amount})>"

# Chat message model
class ChatMessage(Base):
    __tablename__ = 'chat_messages'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(String(36), ForeignKey('sessions.id', ondelete='CASCADE'), nullable=False)
    sender_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    message = Column(Text, nullable=False)
    replied_to = Column(String(36), ForeignKey('chat_messages.id'), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    is_flagged = Column(Boolean, default=False, nullable=False)  # Set by soft delete
    flagged_reason = Column(Text)
    is_flagged_content = Column(Boolean, default=False, nullable=False)  # Set by moderation
    flagged_content_reason = Column(Text)

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id], lazy='joined')

    def __repr__(self):
        """String representation of the ChatMessage object."""
        return f"<ChatMessage(id={self.id}, session_id={self.session_id}, sender_id={self.sender_id})>"

class Report(Base):
    """A user's moderation report against a chat message."""
    __tablename__ = 'reports'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    message_id = Column(String(36), ForeignKey('chat_messages.id'), nullable=False)
    flagged_by = Column(String(36), ForeignKey('users.id'), nullable=False)
    reason = Column(Text, nullable=False)
    status = Column(Enum(ReportStatus), default=ReportStatus.PENDING, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    message = relationship("ChatMessage", foreign_keys=[message_id], lazy='joined')
    reporter = relationship("User", foreign_keys=[flagged_by], lazy='joined')

    def __repr__(self):
        """String representation of the Report object."""
        return f"<Report(id={self.id}, message_id={self.message_id}, reason={self.reason})>"

class Review(Base):
    __tablename__ = 'reviews'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    session_id = Column(String(36), ForeignKey('sessions.id'), nullable=False)
    reviewer_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint('rating >= 1 AND rating <= 5', name='check_review_rating_range'),
        UniqueConstraint('session_id', 'reviewer_id', name='uq_review_session_reviewer'),
    )

    # Relationships
    session = relationship("TutoringSession", lazy='joined')
    reviewer = relationship("User", foreign_keys=[reviewer_id], lazy='joined')

class Withdrawal(Base):
    __tablename__ = 'withdrawals'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    amount = Column(Integer, nullable=False)
    bank_code = Column(String(20), nullable=False)
    account_number = Column(String(20), nullable=False)
    account_name = Column(String(100), nullable=False)
    status = Column(Enum(WithdrawalStatus), default=WithdrawalStatus.REQUESTED, nullable=False)
    reference = Column(String(100))
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint('amount > 0', name='check_withdrawal_amount_positive'),
    )

    user = relationship("User", lazy='joined')

class Appeal(Base):
    __tablename__ = 'appeals'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id'), nullable=False)
    type = Column(String(50), nullable=False)
    subject = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(Enum(AppealStatus), default=AppealStatus.PENDING, nullable=False)
    admin_response = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

class RestrictedContent(Base):
    """Academic keyword allow-list used by the chat content filter."""
    __tablename__ = 'restricted_content'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    keyword = Column(String(100), nullable=False, unique=True)
    category = Column(String(50), nullable=False, default="academic")
    created_at = Column(DateTime, default=utcnow, nullable=False)

# Add indexes for frequently queried columns
Index('idx_user_role_badge', User.role, User.badge)
Index('idx_session_client', TutoringSession.client_id)
Index('idx_session_student', TutoringSession.student_id)
Index('idx_session_status_scheduled', TutoringSession.status, TutoringSession.scheduled_at)
Index('idx_chat_message_session_created', ChatMessage.session_id, ChatMessage.created_at)
Index('idx_transaction_user', Transaction.user_id)

def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_size": 5, "max_overflow": 10, "pool_timeout": 30}

# Database setup
DATABASE_URL = get_settings().db_url
engine = create_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine)

def init_db(bind=None):
    """Create all tables on the given engine (defaults to the configured one)."""
    Base.metadata.create_all(bind or engine)

# Dependency to get DB session
def get_db():
    """Provides a transactional scope around a series of operations."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
