import uuid
from sqlalchemy import Column, String, Text, Integer, Float, DateTime, Boolean, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from .base import Base, now_utc


class BudgetStockItem(Base):
    __tablename__ = 'budget_stock_items'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(160), nullable=False)
    category = Column(String(80), nullable=False, default='Misc')
    unit = Column(String(40), nullable=False, default='each')
    on_hand = Column(Integer, nullable=False, default=0)
    par_level = Column(Integer, nullable=False, default=0)
    reorder_point = Column(Integer, nullable=True)
    cost_per_unit = Column(Float, nullable=True)
    vendor = Column(String(160), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('idx_budget_stock_items_organization_id', 'organization_id'),
    )


class BudgetStockCategory(Base):
    __tablename__ = 'budget_stock_categories'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(80), nullable=False)
    monthly_limit = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        UniqueConstraint('organization_id', 'name', name='uq_budget_stock_categories_name'),
    )


class BudgetStockExpense(Base):
    __tablename__ = 'budget_stock_expenses'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    category = Column(String(80), nullable=False)
    category_id = Column(UUID(as_uuid=True), ForeignKey('budget_stock_categories.id', ondelete='SET NULL'), nullable=True)
    amount = Column(Float, nullable=False)
    vendor = Column(String(160), nullable=True)
    note = Column(Text, nullable=True)
    linked_item_id = Column(UUID(as_uuid=True), ForeignKey('budget_stock_items.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        Index('idx_budget_stock_expenses_organization_id_date', 'organization_id', 'date'),
    )


class BudgetStockSale(Base):
    __tablename__ = 'budget_stock_sales'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    item_id = Column(UUID(as_uuid=True), ForeignKey('budget_stock_items.id', ondelete='CASCADE'), nullable=False)
    qty = Column(Integer, nullable=False)
    sell_price_per_unit = Column(Float, nullable=False)
    revenue = Column(Float, nullable=False)
    cost_basis = Column(Float, nullable=False)
    profit = Column(Float, nullable=False)
    resident_name = Column(String(160), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)

    __table_args__ = (
        Index('idx_budget_stock_sales_organization_id_date', 'organization_id', 'date'),
    )
