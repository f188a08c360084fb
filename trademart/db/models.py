"""
SQLAlchemy ORM models for the TradeMart marketplace.
"""
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Float,
    ForeignKey, Enum, JSON, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from trademart.db.session import Base


# ============= ENUMS =============

class UserRole(str, enum.Enum):
    BUYER = "buyer"
    SUPPLIER = "supplier"
    ADMIN = "admin"


class RFQStatus(str, enum.Enum):
    OPEN = "open"
    QUOTED = "quoted"
    CLOSED = "closed"


class QuoteStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TransactionStatus(str, enum.Enum):
    HELD = "held"
    RELEASED = "released"


class OrderStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class EscrowStatus(str, enum.Enum):
    PENDING = "pending"
    FUNDED = "funded"
    HELD = "held"
    RELEASED = "released"
    DISPUTED = "disputed"
    REFUNDED = "refunded"


class QCStatus(str, enum.Enum):
    PASSED = "passed"
    FAILED = "failed"


# Statuses stored as VARCHAR with a CHECK constraint so the schema is the
# same on PostgreSQL and SQLite. values_callable keeps the lowercase values.
def enum_values(enum_cls):
    return [e.value for e in enum_cls]


def _status_type(enum_cls, name):
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=20,
        values_callable=enum_values,
        validate_strings=True,
    )


UserRoleType = _status_type(UserRole, 'userrole')
RFQStatusType = _status_type(RFQStatus, 'rfqstatus')
QuoteStatusType = _status_type(QuoteStatus, 'quotestatus')
TransactionStatusType = _status_type(TransactionStatus, 'transactionstatus')
OrderStatusType = _status_type(OrderStatus, 'orderstatus')
EscrowStatusType = _status_type(EscrowStatus, 'escrowstatus')
QCStatusType = _status_type(QCStatus, 'qcstatus')

# Escrow states from which a passing QC report may release funds
RELEASABLE_ESCROW_STATUSES = (EscrowStatus.FUNDED, EscrowStatus.HELD)
REFUNDABLE_ESCROW_STATUSES = (EscrowStatus.FUNDED, EscrowStatus.HELD, EscrowStatus.DISPUTED)
# RFQ states a quote may still be accepted from
ACCEPTING_RFQ_STATUSES = (RFQStatus.OPEN, RFQStatus.QUOTED)


# ============= ACCOUNTS =============

class User(Base):
    """Marketplace accounts (buyers, suppliers, admins)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255))
    phone = Column(String(50))
    role = Column(UserRoleType, nullable=False, default=UserRole.BUYER)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login = Column(DateTime(timezone=True))

    # Relationships
    supplier = relationship("Supplier", back_populates="user", uselist=False)
    rfqs = relationship("RFQ", back_populates="buyer")
    audit_logs = relationship("AuditLog", back_populates="user")


class Supplier(Base):
    """Supplier profile. Required before a user can quote."""
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    company_name = Column(String(255), nullable=False)
    industry = Column(String(100))
    description = Column(Text)
    country = Column(String(100))
    verified = Column(Boolean, default=False)
    rating = Column(Float, default=0.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="supplier")
    quotes = relationship("Quote", back_populates="supplier")
    products = relationship("Product", back_populates="supplier", order_by="Product.id")


# ============= CATALOG =============

class Product(Base):
    """Catalog listing owned by a supplier profile."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, index=True)
    subcategory = Column(String(100))
    price = Column(Float, nullable=False)
    currency = Column(String(10), default="INR")
    min_order_quantity = Column(Integer, nullable=False, default=1)
    unit = Column(String(50), nullable=False)
    specifications = Column(JSON, default=dict)
    features = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    images = Column(JSON, default=list)
    in_stock = Column(Boolean, default=True, nullable=False)
    stock_quantity = Column(Integer)
    lead_time = Column(String(100))
    views = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    supplier = relationship("Supplier", back_populates="products")


# ============= AUDIT LOG =============

class AuditLog(Base):
    """Audit trail of business actions."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(100), index=True)
    entity_id = Column(Integer)
    details = Column(JSON)
    ip_address = Column(String(50))

    # Relationships
    user = relationship("User", back_populates="audit_logs")


# ============= SOURCING =============

class RFQ(Base):
    """Buyer's request for quotation."""
    __tablename__ = "rfqs"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), index=True)
    quantity = Column(Float)
    unit = Column(String(50))
    budget = Column(Float)
    currency = Column(String(10), default="INR")
    status = Column(RFQStatusType, nullable=False, default=RFQStatus.OPEN, index=True)
    expires_at = Column(DateTime(timezone=True))
    closed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    buyer = relationship("User", back_populates="rfqs")
    quotes = relationship("Quote", back_populates="rfq", order_by="Quote.id")


class Quote(Base):
    """Supplier's priced response to an RFQ."""
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    rfq_id = Column(Integer, ForeignKey("rfqs.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    price = Column(Float, nullable=False)
    currency = Column(String(10), default="INR")
    lead_time_days = Column(Integer, nullable=False)
    notes = Column(Text)
    status = Column(QuoteStatusType, nullable=False, default=QuoteStatus.PENDING)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    rfq = relationship("RFQ", back_populates="quotes")
    supplier = relationship("Supplier", back_populates="quotes")

    __table_args__ = (
        UniqueConstraint('rfq_id', 'supplier_id', name='uq_quote_rfq_supplier'),
    )


# ============= SETTLEMENT =============

class Transaction(Base):
    """Commercial record created once, when a quote is accepted."""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    rfq_id = Column(Integer, ForeignKey("rfqs.id"), unique=True, nullable=False)
    quote_id = Column(Integer, ForeignKey("quotes.id"), unique=True, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(10), default="INR")
    status = Column(TransactionStatusType, nullable=False, default=TransactionStatus.HELD)
    released_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    buyer = relationship("User")
    supplier = relationship("Supplier")
    rfq = relationship("RFQ")
    quote = relationship("Quote")
    order = relationship("Order", back_populates="transaction", uselist=False)


class Order(Base):
    """Fulfillment unit for an accepted quote."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), unique=True, nullable=False)
    rfq_id = Column(Integer, ForeignKey("rfqs.id"), nullable=False)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(10), default="INR")
    status = Column(OrderStatusType, nullable=False, default=OrderStatus.CONFIRMED)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    transaction = relationship("Transaction", back_populates="order")
    rfq = relationship("RFQ")
    buyer = relationship("User")
    supplier = relationship("Supplier")
    escrow = relationship("EscrowAccount", back_populates="order", uselist=False)
    qc_reports = relationship("QCReport", back_populates="order")


class EscrowAccount(Base):
    """Funds held against an order until QC passes."""
    __tablename__ = "escrow_accounts"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), unique=True, nullable=False)
    account_number = Column(String(20), unique=True, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(10), default="INR")
    status = Column(EscrowStatusType, nullable=False, default=EscrowStatus.PENDING, index=True)
    qc_passed = Column(Boolean, default=False)
    payment_method = Column(String(50))
    payment_reference = Column(String(255))
    funded_at = Column(DateTime(timezone=True))
    released_at = Column(DateTime(timezone=True))
    refunded_at = Column(DateTime(timezone=True))
    refund_reason = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    order = relationship("Order", back_populates="escrow")


class QCReport(Base):
    """Append-only inspection record for an order."""
    __tablename__ = "qc_reports"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    submitted_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    photos = Column(JSON, default=list)
    videos = Column(JSON, default=list)
    notes = Column(Text)
    score = Column(Float, nullable=False)
    status = Column(QCStatusType, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    order = relationship("Order", back_populates="qc_reports")

    __table_args__ = (
        Index('ix_qc_reports_order_created', 'order_id', 'created_at'),
    )


# ============= NOTIFICATIONS =============

class Notification(Base):
    """Delivered notification, written by the notification worker."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('ix_notifications_user_read', 'user_id', 'read'),
    )
