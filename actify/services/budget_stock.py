"""
Budget + stock: supply inventory, monthly category budgets, expenses, and
resident store sales.
"""
from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from actify.db import models
from actify.errors import ConflictError, NotFoundError, ValidationError
from actify.utils.timezones import (
    as_utc,
    format_in_time_zone,
    iso_utc,
    now_utc,
    parse_month_key,
    resolve_time_zone,
    start_of_zoned_month_shift,
    to_zoned,
)

logger = logging.getLogger(__name__)

BUDGET_STOCK_CATEGORY_OPTIONS = (
    "Activity Supplies",
    "Snacks",
    "Drinks",
    "Craft Supplies",
    "Prizes",
    "Events",
    "Misc",
)
FALLBACK_CATEGORY = "Misc"
LOW_STOCK_PAR_RATIO = 0.3
DEFAULT_UNIT = "each"

_CATEGORY_ALIASES = {
    "activity": "Activity Supplies",
    "activities": "Activity Supplies",
    "activity supply": "Activity Supplies",
    "supplies": "Activity Supplies",
    "supply": "Activity Supplies",
    "snack": "Snacks",
    "food": "Snacks",
    "drink": "Drinks",
    "beverage": "Drinks",
    "beverages": "Drinks",
    "craft": "Craft Supplies",
    "crafts": "Craft Supplies",
    "craft supply": "Craft Supplies",
    "art": "Craft Supplies",
    "prize": "Prizes",
    "reward": "Prizes",
    "rewards": "Prizes",
    "event": "Events",
    "party": "Events",
    "parties": "Events",
    "other": "Misc",
    "miscellaneous": "Misc",
    "general": "Misc",
}


def normalize_budget_category(name: Optional[str]) -> str:
    """Map a free-form category onto its canonical option.

    Canonical names and known aliases match case-insensitively. Blank input
    becomes ``Misc``; unknown names are kept as trimmed.
    """
    trimmed = " ".join((name or "").split())
    if not trimmed:
        return FALLBACK_CATEGORY
    lowered = trimmed.lower()
    for option in BUDGET_STOCK_CATEGORY_OPTIONS:
        if option.lower() == lowered:
            return option
    return _CATEGORY_ALIASES.get(lowered, trimmed)


def _money(value: float) -> float:
    return round(float(value), 2)


def round_count(value: float) -> int:
    """Round half up, so 0.5 becomes 1 and -0.5 becomes 0."""
    return int(math.floor(float(value) + 0.5))


def compute_low_threshold(par_level: int, reorder_point: Optional[int] = None) -> int:
    if reorder_point is not None:
        return max(int(math.floor(reorder_point)), 0)
    return max(int(math.floor(par_level * LOW_STOCK_PAR_RATIO)), 0)


def is_low_stock(on_hand: int, par_level: int, reorder_point: Optional[int] = None) -> bool:
    return on_hand <= compute_low_threshold(par_level, reorder_point)


def serialize_item(item: models.BudgetStockItem) -> Dict[str, Any]:
    threshold = compute_low_threshold(item.par_level or 0, item.reorder_point)
    return {
        "id": str(item.id),
        "name": item.name,
        "category": item.category,
        "unit": item.unit,
        "onHand": item.on_hand,
        "parLevel": item.par_level,
        "reorderPoint": item.reorder_point,
        "costPerUnit": item.cost_per_unit,
        "vendor": item.vendor,
        "isActive": bool(item.is_active),
        "status": "low" if is_low_stock(item.on_hand, item.par_level or 0, item.reorder_point) else "ok",
        "suggestedReorderQty": max((item.par_level or 0) - item.on_hand, 0),
        "threshold": threshold,
        "updatedAt": iso_utc(item.updated_at),
    }


def serialize_expense(expense: models.BudgetStockExpense, linked_item_name: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": str(expense.id),
        "date": iso_utc(expense.date),
        "category": expense.category,
        "amount": expense.amount,
        "vendor": expense.vendor,
        "note": expense.note,
        "linkedItemId": str(expense.linked_item_id) if expense.linked_item_id else None,
        "linkedItemName": linked_item_name,
        "createdAt": iso_utc(expense.created_at),
    }


def serialize_sale(sale: models.BudgetStockSale, item_name: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": str(sale.id),
        "date": iso_utc(sale.date),
        "itemId": str(sale.item_id),
        "itemName": item_name,
        "qty": sale.qty,
        "sellPricePerUnit": sale.sell_price_per_unit,
        "revenue": sale.revenue,
        "costBasis": sale.cost_basis,
        "profit": sale.profit,
        "residentName": sale.resident_name,
        "note": sale.note,
        "createdAt": iso_utc(sale.created_at),
    }


def serialize_category(category: models.BudgetStockCategory) -> Dict[str, Any]:
    return {
        "id": str(category.id),
        "name": category.name,
        "monthlyLimit": _money(category.monthly_limit or 0),
        "createdAt": iso_utc(category.created_at),
    }


def _item_names(db: Session, item_ids: Sequence[Optional[uuid.UUID]]) -> Dict[uuid.UUID, str]:
    ids = {item_id for item_id in item_ids if item_id}
    if not ids:
        return {}
    rows = db.query(models.BudgetStockItem.id, models.BudgetStockItem.name).filter(
        models.BudgetStockItem.id.in_(list(ids))
    )
    return {item_id: name for item_id, name in rows}


def _clean(value: Optional[str]) -> Optional[str]:
    trimmed = (value or "").strip()
    return trimmed or None


def ensure_categories(db: Session, facility_id: uuid.UUID, monthly_budget: float = 0) -> None:
    """Seed the default categories once. The first category carries the settings budget."""
    existing = db.query(models.BudgetStockCategory).filter(
        models.BudgetStockCategory.organization_id == facility_id
    ).count()
    if existing:
        return
    for index, name in enumerate(BUDGET_STOCK_CATEGORY_OPTIONS):
        db.add(models.BudgetStockCategory(
            organization_id=facility_id,
            name=name,
            monthly_limit=max(float(monthly_budget or 0), 0) if index == 0 else 0,
        ))
    db.commit()
    logger.info("budget_categories_seeded: facility=%s", facility_id)


def ensure_category_name(db: Session, facility_id: uuid.UUID, name: str) -> models.BudgetStockCategory:
    normalized = normalize_budget_category(name)
    category = (
        db.query(models.BudgetStockCategory)
        .filter(
            models.BudgetStockCategory.organization_id == facility_id,
            models.BudgetStockCategory.name == normalized,
        )
        .first()
    )
    if category is None:
        category = models.BudgetStockCategory(organization_id=facility_id, name=normalized, monthly_limit=0)
        db.add(category)
        db.flush()
    return category


def canonicalize_categories(db: Session, facility_id: uuid.UUID) -> None:
    """Fold alias-named categories into their canonical row, summing limits."""
    rows = (
        db.query(models.BudgetStockCategory)
        .filter(models.BudgetStockCategory.organization_id == facility_id)
        .order_by(models.BudgetStockCategory.created_at.asc(), models.BudgetStockCategory.name.asc())
        .all()
    )
    groups: Dict[str, List[models.BudgetStockCategory]] = {}
    for row in rows:
        groups.setdefault(normalize_budget_category(row.name), []).append(row)

    changed = False
    for canonical, group in groups.items():
        if len(group) == 1 and group[0].name == canonical:
            continue
        keeper = next((row for row in group if row.name == canonical), group[0])
        aliases = [row for row in group if row.id != keeper.id]
        alias_names = [row.name for row in aliases]
        keeper.monthly_limit = _money(sum(row.monthly_limit or 0 for row in group))

        db.query(models.BudgetStockExpense).filter(
            models.BudgetStockExpense.organization_id == facility_id,
            models.BudgetStockExpense.category.in_([keeper.name, canonical] + alias_names),
        ).update({"category": canonical, "category_id": keeper.id}, synchronize_session=False)
        if alias_names:
            db.query(models.BudgetStockItem).filter(
                models.BudgetStockItem.organization_id == facility_id,
                models.BudgetStockItem.category.in_(alias_names),
            ).update({"category": canonical}, synchronize_session=False)
        for row in aliases:
            db.delete(row)
        db.flush()
        keeper.name = canonical
        changed = True

    if changed:
        db.commit()
        logger.info("budget_categories_canonicalized: facility=%s", facility_id)


def _category_cards(categories: Sequence[models.BudgetStockCategory],
                    expenses: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    spent_by_category: Dict[str, float] = {}
    for expense in expenses:
        spent_by_category[expense["category"]] = spent_by_category.get(expense["category"], 0) + expense["amount"]

    cards = []
    for category in categories:
        limit = category.monthly_limit or 0
        spent = _money(spent_by_category.get(category.name, 0))
        progress = min(100.0, max(0.0, spent / limit * 100)) if limit > 0 else 0
        cards.append({
            "id": str(category.id),
            "name": category.name,
            "monthlyLimit": _money(limit),
            "spent": spent,
            "remaining": _money(limit - spent),
            "progressPercent": round(progress, 1),
        })
    return cards


def get_hub_snapshot(db: Session, facility_id: uuid.UUID, time_zone: str, month_key: Optional[str] = None,
                     monthly_budget: float = 0) -> Dict[str, Any]:
    month_key, start, end_exclusive = parse_month_key(month_key, time_zone)
    ensure_categories(db, facility_id, monthly_budget)
    canonicalize_categories(db, facility_id)

    items = (
        db.query(models.BudgetStockItem)
        .filter(models.BudgetStockItem.organization_id == facility_id, models.BudgetStockItem.is_active.is_(True))
        .order_by(models.BudgetStockItem.category.asc(), models.BudgetStockItem.name.asc())
        .all()
    )
    categories = (
        db.query(models.BudgetStockCategory)
        .filter(models.BudgetStockCategory.organization_id == facility_id)
        .order_by(models.BudgetStockCategory.name.asc())
        .all()
    )
    expenses = (
        db.query(models.BudgetStockExpense)
        .filter(
            models.BudgetStockExpense.organization_id == facility_id,
            models.BudgetStockExpense.date >= as_utc(start),
            models.BudgetStockExpense.date < as_utc(end_exclusive),
        )
        .order_by(models.BudgetStockExpense.date.desc(), models.BudgetStockExpense.created_at.desc())
        .all()
    )
    sales = (
        db.query(models.BudgetStockSale)
        .filter(
            models.BudgetStockSale.organization_id == facility_id,
            models.BudgetStockSale.date >= as_utc(start),
            models.BudgetStockSale.date < as_utc(end_exclusive),
        )
        .order_by(models.BudgetStockSale.date.desc(), models.BudgetStockSale.created_at.desc())
        .all()
    )
    names = _item_names(db, [e.linked_item_id for e in expenses] + [s.item_id for s in sales])

    item_rows = [serialize_item(item) for item in items]
    expense_rows = [serialize_expense(e, names.get(e.linked_item_id)) for e in expenses]
    sale_rows = [serialize_sale(s, names.get(s.item_id)) for s in sales]
    cards = _category_cards(categories, expense_rows)

    spent = _money(sum(row["amount"] for row in expense_rows))
    limit_total = _money(sum(card["monthlyLimit"] for card in cards))
    sales_revenue = _money(sum(row["revenue"] for row in sale_rows))
    sales_cost_basis = _money(sum(row["costBasis"] for row in sale_rows))
    return {
        "summary": {
            "monthKey": month_key,
            "spent": spent,
            "remaining": _money(limit_total - spent),
            "lowStockCount": sum(1 for row in item_rows if row["status"] == "low"),
            "categoryLimitTotal": limit_total,
            "salesRevenue": sales_revenue,
            "salesCostBasis": sales_cost_basis,
            "salesProfit": _money(sales_revenue - sales_cost_basis),
        },
        "items": item_rows,
        "categories": cards,
        "expenses": expense_rows,
        "sales": sale_rows,
    }


def filter_items(items: Sequence[Dict[str, Any]], search: str = "", low_only: bool = False,
                 categories: Sequence[str] = ()) -> List[Dict[str, Any]]:
    needle = (search or "").strip().lower()
    rows = list(items)
    if needle:
        rows = [
            row for row in rows
            if needle in row["name"].lower()
            or needle in row["category"].lower()
            or needle in (row["vendor"] or "").lower()
        ]
    if low_only:
        rows = [row for row in rows if row["status"] == "low"]
    wanted = {value.strip().lower() for value in categories if value.strip()}
    if wanted:
        rows = [row for row in rows if row["category"].lower() in wanted]
    return rows


def build_month_options(time_zone: str, count: int = 12, now: Optional[datetime] = None) -> List[Dict[str, str]]:
    zone = resolve_time_zone(time_zone)
    _, current_start, _ = parse_month_key(None, zone, now=now)
    options = []
    for index in range(count):
        start = start_of_zoned_month_shift(current_start, zone, -index)
        options.append({
            "key": to_zoned(start, zone).strftime("%Y-%m"),
            "label": format_in_time_zone(start, zone, "%B %Y"),
        })
    return options


def _record_auto_expense(db: Session, facility_id: uuid.UUID, item: models.BudgetStockItem, quantity: int,
                         note: str) -> None:
    category = ensure_category_name(db, facility_id, item.category)
    db.add(models.BudgetStockExpense(
        organization_id=facility_id,
        date=now_utc(),
        category=category.name,
        category_id=category.id,
        amount=_money(quantity * item.cost_per_unit),
        vendor=item.vendor,
        note=note,
        linked_item_id=item.id,
    ))


def get_item(db: Session, facility_id: uuid.UUID, item_id: uuid.UUID,
             active_only: bool = False) -> models.BudgetStockItem:
    query = db.query(models.BudgetStockItem).filter(
        models.BudgetStockItem.id == item_id,
        models.BudgetStockItem.organization_id == facility_id,
    )
    if active_only:
        query = query.filter(models.BudgetStockItem.is_active.is_(True))
    item = query.first()
    if item is None:
        raise NotFoundError("Inventory item not found.")
    return item


def create_item(db: Session, facility_id: uuid.UUID, data: Dict[str, Any]) -> models.BudgetStockItem:
    """Create an inventory item. Initial stock with a unit cost books an expense."""
    on_hand = max(round_count(data.get("onHand") or 0), 0)
    cost = data.get("costPerUnit")
    reorder_point = data.get("reorderPoint")
    item = models.BudgetStockItem(
        organization_id=facility_id,
        name=data["name"].strip(),
        category=normalize_budget_category(data.get("category")),
        unit=_clean(data.get("unit")) or DEFAULT_UNIT,
        on_hand=on_hand,
        par_level=max(round_count(data.get("parLevel") or 0), 0),
        reorder_point=None if reorder_point is None else max(round_count(reorder_point), 0),
        cost_per_unit=None if cost is None else float(cost),
        vendor=_clean(data.get("vendor")),
    )
    try:
        db.add(item)
        db.flush()
        if on_hand > 0 and item.cost_per_unit and item.cost_per_unit > 0:
            _record_auto_expense(
                db, facility_id, item, on_hand,
                f"Auto inventory cost for initial stock ({on_hand} @ {item.cost_per_unit:.2f})",
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(item)
    return item


def update_item(db: Session, facility_id: uuid.UUID, item_id: uuid.UUID,
                changes: Dict[str, Any]) -> models.BudgetStockItem:
    item = get_item(db, facility_id, item_id)
    if "name" in changes and changes["name"] is not None:
        item.name = changes["name"].strip()
    if "category" in changes and changes["category"] is not None:
        item.category = normalize_budget_category(changes["category"])
    if "unit" in changes:
        item.unit = _clean(changes["unit"]) or DEFAULT_UNIT
    if changes.get("onHand") is not None:
        item.on_hand = max(round_count(changes["onHand"]), 0)
    if changes.get("parLevel") is not None:
        item.par_level = max(round_count(changes["parLevel"]), 0)
    if "reorderPoint" in changes:
        value = changes["reorderPoint"]
        item.reorder_point = None if value is None else max(round_count(value), 0)
    if "costPerUnit" in changes:
        value = changes["costPerUnit"]
        item.cost_per_unit = None if value is None else float(value)
    if "vendor" in changes:
        item.vendor = _clean(changes["vendor"])
    if changes.get("isActive") is not None:
        item.is_active = bool(changes["isActive"])
    db.commit()
    db.refresh(item)
    return item


def deactivate_item(db: Session, facility_id: uuid.UUID, item_id: uuid.UUID) -> None:
    db.query(models.BudgetStockItem).filter(
        models.BudgetStockItem.id == item_id,
        models.BudgetStockItem.organization_id == facility_id,
    ).update({"is_active": False}, synchronize_session=False)
    db.commit()


def adjust_item_quantity(db: Session, facility_id: uuid.UUID, item_id: uuid.UUID,
                         delta: float) -> models.BudgetStockItem:
    """Apply a stock delta. Restocks with a unit cost book an expense; stock floors at zero."""
    if delta is None or not math.isfinite(delta) or round_count(delta) == 0:
        raise ValidationError("Adjustment delta must be non-zero.")
    rounded = round_count(delta)
    item = get_item(db, facility_id, item_id, active_only=True)
    try:
        item.on_hand = max(item.on_hand + rounded, 0)
        if rounded > 0 and item.cost_per_unit and item.cost_per_unit > 0:
            _record_auto_expense(
                db, facility_id, item, rounded,
                f"Auto inventory cost from stock adjustment (+{rounded} @ {item.cost_per_unit:.2f})",
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(item)
    return item


def create_sale(db: Session, facility_id: uuid.UUID, data: Dict[str, Any]) -> Dict[str, Any]:
    qty = max(round_count(data.get("qty") or 0), 0)
    if qty < 1:
        raise ValidationError("Quantity must be at least 1.")
    price = data.get("sellPricePerUnit")
    if price is None or not math.isfinite(price) or price < 0:
        raise ValidationError("Sell price must be 0 or greater.")

    item = get_item(db, facility_id, data["itemId"], active_only=True)
    if item.on_hand < qty:
        raise ConflictError(f"Not enough stock for {item.name}. On hand: {item.on_hand}, requested: {qty}.")

    revenue = _money(qty * price)
    cost_basis = _money(qty * (item.cost_per_unit or 0))
    sale = models.BudgetStockSale(
        organization_id=facility_id,
        item_id=item.id,
        date=as_utc(data.get("date")) or now_utc(),
        qty=qty,
        sell_price_per_unit=_money(price),
        revenue=revenue,
        cost_basis=cost_basis,
        profit=_money(revenue - cost_basis),
        resident_name=_clean(data.get("residentName")),
        note=_clean(data.get("note")),
    )
    try:
        item.on_hand = item.on_hand - qty
        db.add(sale)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(item)
    db.refresh(sale)
    logger.info("budget_sale_recorded: facility=%s item=%s qty=%s", facility_id, item.id, qty)
    return {"item": serialize_item(item), "sale": serialize_sale(sale, item.name)}


def list_categories(db: Session, facility_id: uuid.UUID, monthly_budget: float = 0) -> List[models.BudgetStockCategory]:
    ensure_categories(db, facility_id, monthly_budget)
    return (
        db.query(models.BudgetStockCategory)
        .filter(models.BudgetStockCategory.organization_id == facility_id)
        .order_by(models.BudgetStockCategory.name.asc())
        .all()
    )


def create_category(db: Session, facility_id: uuid.UUID, name: str,
                    monthly_limit: Optional[float] = None) -> models.BudgetStockCategory:
    """Upsert by canonical name; an existing row only takes the new limit."""
    category = ensure_category_name(db, facility_id, name)
    if monthly_limit is not None:
        category.monthly_limit = max(float(monthly_limit), 0)
    db.commit()
    db.refresh(category)
    return category


def update_category(db: Session, facility_id: uuid.UUID, category_id: uuid.UUID,
                    name: Optional[str] = None, monthly_limit: Optional[float] = None) -> models.BudgetStockCategory:
    category = (
        db.query(models.BudgetStockCategory)
        .filter(
            models.BudgetStockCategory.id == category_id,
            models.BudgetStockCategory.organization_id == facility_id,
        )
        .first()
    )
    if category is None:
        raise NotFoundError("Budget category not found.")
    if name is not None:
        category.name = normalize_budget_category(name)
    if monthly_limit is not None:
        category.monthly_limit = max(float(monthly_limit), 0)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, facility_id: uuid.UUID, category_id: uuid.UUID) -> bool:
    """Delete a category and move its expenses to Misc. Missing rows are a no-op."""
    category = (
        db.query(models.BudgetStockCategory)
        .filter(
            models.BudgetStockCategory.id == category_id,
            models.BudgetStockCategory.organization_id == facility_id,
        )
        .first()
    )
    if category is None:
        return False
    db.query(models.BudgetStockExpense).filter(
        models.BudgetStockExpense.organization_id == facility_id,
        models.BudgetStockExpense.category_id == category.id,
    ).update({"category_id": None, "category": FALLBACK_CATEGORY}, synchronize_session=False)
    db.delete(category)
    db.commit()
    return True


def get_expense(db: Session, facility_id: uuid.UUID, expense_id: uuid.UUID) -> models.BudgetStockExpense:
    expense = (
        db.query(models.BudgetStockExpense)
        .filter(
            models.BudgetStockExpense.id == expense_id,
            models.BudgetStockExpense.organization_id == facility_id,
        )
        .first()
    )
    if expense is None:
        raise NotFoundError("Expense not found.")
    return expense


def serialize_expense_row(db: Session, expense: models.BudgetStockExpense) -> Dict[str, Any]:
    names = _item_names(db, [expense.linked_item_id])
    return serialize_expense(expense, names.get(expense.linked_item_id))


def create_expense(db: Session, facility_id: uuid.UUID, data: Dict[str, Any]) -> models.BudgetStockExpense:
    category = ensure_category_name(db, facility_id, data.get("category"))
    expense = models.BudgetStockExpense(
        organization_id=facility_id,
        date=as_utc(data["date"]),
        category=category.name,
        category_id=category.id,
        amount=_money(max(data["amount"], 0)),
        vendor=_clean(data.get("vendor")),
        note=_clean(data.get("note")),
        linked_item_id=data.get("linkedItemId"),
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return expense


def update_expense(db: Session, facility_id: uuid.UUID, expense_id: uuid.UUID,
                   changes: Dict[str, Any]) -> models.BudgetStockExpense:
    expense = get_expense(db, facility_id, expense_id)
    if changes.get("category"):
        category = ensure_category_name(db, facility_id, changes["category"])
        expense.category = category.name
        expense.category_id = category.id
    if changes.get("date") is not None:
        expense.date = as_utc(changes["date"])
    if changes.get("amount") is not None:
        expense.amount = _money(max(changes["amount"], 0))
    if "vendor" in changes:
        expense.vendor = _clean(changes["vendor"])
    if "note" in changes:
        expense.note = _clean(changes["note"])
    if "linkedItemId" in changes:
        expense.linked_item_id = changes["linkedItemId"]
    db.commit()
    db.refresh(expense)
    return expense


def delete_expense(db: Session, facility_id: uuid.UUID, expense_id: uuid.UUID) -> None:
    db.query(models.BudgetStockExpense).filter(
        models.BudgetStockExpense.id == expense_id,
        models.BudgetStockExpense.organization_id == facility_id,
    ).delete(synchronize_session=False)
    db.commit()


def count_below_reorder(db: Session, facility_id: uuid.UUID) -> int:
    """Active items strictly under their reorder threshold (the notification feed's rule)."""
    items = (
        db.query(models.BudgetStockItem)
        .filter(models.BudgetStockItem.organization_id == facility_id, models.BudgetStockItem.is_active.is_(True))
        .order_by(models.BudgetStockItem.name.asc())
        .all()
    )
    return sum(1 for item in items if item.on_hand < compute_low_threshold(item.par_level or 0, item.reorder_point))
