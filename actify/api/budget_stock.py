"""
Budget + stock endpoints: inventory items, categories, expenses, and sales.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from actify.api.deps import FacilityContext, module_context, module_writer
from actify.audit import AuditAction, log_facility_change
from actify.db.database import get_db
from actify.db.schemas import budget_stock as budget_schemas
from actify.db.schemas.common import parse_payload
from actify.errors import ActifyError, to_http_exception
from actify.services import budget_stock as budget_service

router = APIRouter(prefix="/budget-stock", tags=["budget-stock"])

budget_reader = module_context("inventory")
budget_writer = module_writer("inventory", "budget/stock data")


def _monthly_budget(ctx: FacilityContext) -> float:
    return ctx.settings["inventory"]["budgetTracking"]["monthlyBudget"]


def _snapshot(db: Session, ctx: FacilityContext, month: Optional[str]):
    return budget_service.get_hub_snapshot(
        db, ctx.facility_id, ctx.timezone, month_key=month, monthly_budget=_monthly_budget(ctx)
    )


@router.get("")
def get_hub(
    month: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_reader),
):
    return _snapshot(db, ctx, month)


@router.get("/months")
def list_month_options(ctx: FacilityContext = Depends(budget_reader)):
    return {"months": budget_service.build_month_options(ctx.timezone)}


@router.get("/items")
def list_items(
    month: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    lowOnly: Optional[str] = Query(default=None),
    categories: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_reader),
):
    snapshot = _snapshot(db, ctx, month)
    rows = budget_service.filter_items(
        snapshot["items"],
        search=search or "",
        low_only=lowOnly == "true",
        categories=(categories or "").split(","),
    )
    return {"items": rows}


@router.post("/items", status_code=status.HTTP_201_CREATED)
def create_item(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    try:
        data = parse_payload(budget_schemas.InventoryItemCreate, payload, "Invalid inventory item payload.")
        item = budget_service.create_item(db, ctx.facility_id, data.model_dump())
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.BUDGET_ITEM_CREATE,
                        target_type="budget_stock_item", target_id=item.id, metadata={"name": item.name})
    return {"item": budget_service.serialize_item(item)}


@router.patch("/items/{item_id}")
def update_item(
    item_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    try:
        data = parse_payload(budget_schemas.InventoryItemUpdate, payload, "Invalid inventory update payload.")
        changes = {key: getattr(data, key) for key in data.model_fields_set}
        item = budget_service.update_item(db, ctx.facility_id, item_id, changes)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.BUDGET_ITEM_UPDATE,
                        target_type="budget_stock_item", target_id=item.id, metadata={"fields": sorted(changes)})
    return {"item": budget_service.serialize_item(item)}


@router.delete("/items/{item_id}")
def delete_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    budget_service.deactivate_item(db, ctx.facility_id, item_id)
    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.BUDGET_ITEM_DELETE,
                        target_type="budget_stock_item", target_id=item_id)
    return {"ok": True}


@router.post("/items/{item_id}/adjust")
def adjust_item(
    item_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    try:
        data = parse_payload(budget_schemas.StockAdjust, payload, "Invalid stock adjustment payload.")
        item = budget_service.adjust_item_quantity(db, ctx.facility_id, item_id, data.delta)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.BUDGET_ITEM_ADJUST,
                        target_type="budget_stock_item", target_id=item.id,
                        metadata={"delta": int(round(data.delta)), "onHand": item.on_hand})
    return {"item": budget_service.serialize_item(item)}


@router.get("/sales")
def list_sales(
    month: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_reader),
):
    snapshot = _snapshot(db, ctx, month)
    summary = snapshot["summary"]
    return {
        "sales": snapshot["sales"],
        "summary": {
            "salesRevenue": summary["salesRevenue"],
            "salesCostBasis": summary["salesCostBasis"],
            "salesProfit": summary["salesProfit"],
        },
    }


@router.post("/sales", status_code=status.HTTP_201_CREATED)
def create_sale(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    try:
        data = parse_payload(budget_schemas.SaleCreate, payload, "Invalid sale payload.")
        result = budget_service.create_sale(db, ctx.facility_id, data.model_dump())
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.BUDGET_SALE_CREATE,
                        target_type="budget_stock_sale", target_id=uuid.UUID(result["sale"]["id"]),
                        metadata={"itemId": result["sale"]["itemId"], "qty": result["sale"]["qty"]})
    return result


@router.get("/categories")
def list_categories(
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_reader),
):
    categories = budget_service.list_categories(db, ctx.facility_id, _monthly_budget(ctx))
    return {"categories": [budget_service.serialize_category(category) for category in categories]}


@router.post("/categories", status_code=status.HTTP_201_CREATED)
def create_category(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    try:
        data = parse_payload(budget_schemas.CategoryCreate, payload, "Invalid budget category payload.")
        category = budget_service.create_category(db, ctx.facility_id, data.name, data.monthlyLimit)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.BUDGET_CATEGORY_CREATE,
                        target_type="budget_stock_category", target_id=category.id,
                        metadata={"name": category.name})
    return {"category": budget_service.serialize_category(category)}


@router.patch("/categories/{category_id}")
def update_category(
    category_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    try:
        data = parse_payload(budget_schemas.CategoryUpdate, payload, "Invalid budget category update payload.")
        category = budget_service.update_category(db, ctx.facility_id, category_id, data.name, data.monthlyLimit)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.BUDGET_CATEGORY_UPDATE,
                        target_type="budget_stock_category", target_id=category.id,
                        metadata={"fields": sorted(data.model_fields_set)})
    return {"category": budget_service.serialize_category(category)}


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    if budget_service.delete_category(db, ctx.facility_id, category_id):
        log_facility_change(db, facility=ctx.facility, actor=ctx.user,
                            action=AuditAction.BUDGET_CATEGORY_DELETE,
                            target_type="budget_stock_category", target_id=category_id)
    return {"ok": True}


@router.get("/expenses")
def list_expenses(
    month: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_reader),
):
    snapshot = _snapshot(db, ctx, month)
    return {"expenses": snapshot["expenses"], "categories": snapshot["categories"]}


@router.post("/expenses", status_code=status.HTTP_201_CREATED)
def create_expense(
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    try:
        data = parse_payload(budget_schemas.ExpenseCreate, payload, "Invalid expense payload.")
        expense = budget_service.create_expense(db, ctx.facility_id, data.model_dump())
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.BUDGET_EXPENSE_CREATE,
                        target_type="budget_stock_expense", target_id=expense.id,
                        metadata={"category": expense.category, "amount": expense.amount})
    return {"expense": budget_service.serialize_expense_row(db, expense)}


@router.patch("/expenses/{expense_id}")
def update_expense(
    expense_id: uuid.UUID,
    payload: dict,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    try:
        data = parse_payload(budget_schemas.ExpenseUpdate, payload, "Invalid expense update payload.")
        changes = {key: getattr(data, key) for key in data.model_fields_set}
        expense = budget_service.update_expense(db, ctx.facility_id, expense_id, changes)
    except ActifyError as exc:
        raise to_http_exception(exc)

    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.BUDGET_EXPENSE_UPDATE,
                        target_type="budget_stock_expense", target_id=expense.id,
                        metadata={"fields": sorted(changes)})
    return {"expense": budget_service.serialize_expense_row(db, expense)}


@router.delete("/expenses/{expense_id}")
def delete_expense(
    expense_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: FacilityContext = Depends(budget_writer),
):
    budget_service.delete_expense(db, ctx.facility_id, expense_id)
    log_facility_change(db, facility=ctx.facility, actor=ctx.user, action=AuditAction.BUDGET_EXPENSE_DELETE,
                        target_type="budget_stock_expense", target_id=expense_id)
    return {"ok": True}
