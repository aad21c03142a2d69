"""SQLAlchemy models for the fundledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Index,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


Base = declarative_base()


class Account(Base):
    """Ledger account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    account_type = Column(String, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    # Cached projection of the transaction log, rewritten by full replay only
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class Category(Base):
    """Category model with hierarchical structure."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    parent = relationship("Category", remote_side=[id], backref="children")


class Budget(Base):
    """Budget model."""

    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    amount = Column(Numeric(14, 2), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class Transaction(Base):
    """Transaction model. One row carries both sides of a transfer."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    source_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    destination_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    destination_name = Column(String, nullable=True)
    description = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    category = Column(String, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    budget_id = Column(Integer, ForeignKey("budgets.id"), nullable=True)
    transaction_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_transactions_source_date", "source_account_id", "transaction_date"),
        Index("ix_transactions_destination_date", "destination_account_id", "transaction_date"),
        Index("ix_transactions_date", "transaction_date"),
    )


class Rule(Base):
    """Categorization rule model."""

    __tablename__ = "rules"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    priority = Column(Integer, default=100, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    conditions = relationship(
        "RuleCondition",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="RuleCondition.position",
    )
    actions = relationship(
        "RuleAction",
        back_populates="rule",
        cascade="all, delete-orphan",
        order_by="RuleAction.position",
    )


class RuleCondition(Base):
    """Rule condition model."""

    __tablename__ = "rule_conditions"

    id = Column(Integer, primary_key=True)
    rule_id = Column(Integer, ForeignKey("rules.id"), nullable=False)
    position = Column(Integer, nullable=False)
    condition_type = Column(String, nullable=False)
    value = Column(String, nullable=False)

    # Relationships
    rule = relationship("Rule", back_populates="conditions")


class RuleAction(Base):
    """Rule action model."""

    __tablename__ = "rule_actions"

    id = Column(Integer, primary_key=True)
    rule_id = Column(Integer, ForeignKey("rules.id"), nullable=False)
    position = Column(Integer, nullable=False)
    action_type = Column(String, nullable=False)
    value = Column(String, nullable=False)

    # Relationships
    rule = relationship("Rule", back_populates="actions")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
