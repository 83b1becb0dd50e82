# models.py
# Role: SQLAlchemy ORM models for PocketPlan.
#       Transactions and goals are stored per user (user_id column); the
#       user_profiles table keeps the starting balance of each user.

from sqlalchemy import Column, Float, Integer, String, Text

from db import Base


class TransactionRow(Base):
    """
    One income/expense entry of one user.

    `date` is stored as text exactly as the client sent it (normally an ISO
    'YYYY-MM-DD' day); it is only interpreted when charts are built.
    """

    __tablename__ = "transactions"

    # Opaque identifier (uuid4 hex) handed out to clients
    id = Column(String(64), primary_key=True)

    # Owner of the record
    user_id = Column(String(128), nullable=False, index=True)

    # Free-text label, e.g. "Food", "Salary"
    category = Column(String, nullable=False, default="")

    # "Income" or "Expense"
    type = Column(String(16), nullable=False)

    # Whole currency units (float, no minor-unit arithmetic)
    amount = Column(Float, nullable=False, default=0.0)

    # Calendar date as supplied by the client
    date = Column(String(64), nullable=True)

    # Optional free-text notes
    description = Column(Text, nullable=True)

    # ISO UTC timestamp set at creation
    created_at = Column(String(32), nullable=True)


class GoalRow(Base):
    """A saving (or planned expense) goal with a target amount."""

    __tablename__ = "goals"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)

    name = Column(String, nullable=False, default="")

    # "Saving" or "Expense"
    type = Column(String(16), nullable=False)

    # Amount collected so far
    amount = Column(Float, nullable=False, default=0.0)

    target = Column(Float, nullable=False, default=0.0)

    created_at = Column(String(32), nullable=True)


class UserProfileRow(Base):
    """Per-user settings; currently only the starting balance."""

    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), nullable=False, unique=True)
    base_balance = Column(Float, nullable=False, default=0.0)
