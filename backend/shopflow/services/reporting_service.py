# Overview: Service-layer operations for reporting; pure aggregations plus snapshot loaders.

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shopflow.extensions import db
from shopflow.models import Product
from shopflow.services import sales_service
from shopflow.time_utils import local_date, parse_iso_datetime, to_utc_z


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


# =============================================================================
# PURE AGGREGATIONS
# =============================================================================
# These take any objects shaped like Product / Sale / SaleItem and never touch
# the database. Returned lines stay visible in the inputs but contribute
# nothing to revenue or profit.

def stock_summary(products: Iterable) -> dict:
    total_stock = 0
    total_buying_cost = 0
    total_selling_value = 0
    count = 0
    for product in products:
        count += 1
        total_stock += product.quantity
        total_buying_cost += product.quantity * (product.purchase_price_cents or 0)
        total_selling_value += product.quantity * product.selling_price_cents
    return {
        "product_count": count,
        "total_stock": total_stock,
        "total_buying_cost_cents": total_buying_cost,
        "total_selling_value_cents": total_selling_value,
    }


def _item_revenue_profit(item) -> tuple[int, int]:
    if item.returned:
        return 0, 0
    revenue = item.selling_price_cents * item.quantity
    profit = (item.selling_price_cents - (item.purchase_price_cents or 0)) * item.quantity
    return revenue, profit


def sales_summary(sales: Iterable) -> dict:
    revenue = 0
    profit = 0
    sale_count = 0
    items_sold = 0
    returned_items = 0
    for sale in sales:
        sale_count += 1
        for item in sale.items:
            if item.returned:
                returned_items += 1
                continue
            item_revenue, item_profit = _item_revenue_profit(item)
            revenue += item_revenue
            profit += item_profit
            items_sold += item.quantity
    return {
        "sale_count": sale_count,
        "items_sold": items_sold,
        "returned_items": returned_items,
        "revenue_cents": revenue,
        "profit_cents": profit,
    }


def daily_buckets(sales: Iterable, tz_name: str = "UTC") -> list[dict]:
    """Revenue/profit per local calendar day of created_at, oldest day first."""
    buckets: dict[date, dict] = {}
    for sale in sales:
        day = local_date(sale.created_at, tz_name)
        bucket = buckets.get(day)
        if bucket is None:
            bucket = {"date": day.isoformat(), "revenue_cents": 0, "profit_cents": 0, "sale_count": 0}
            buckets[day] = bucket
        bucket["sale_count"] += 1
        for item in sale.items:
            item_revenue, item_profit = _item_revenue_profit(item)
            bucket["revenue_cents"] += item_revenue
            bucket["profit_cents"] += item_profit
    return [buckets[day] for day in sorted(buckets)]


def enrich_sale(sale, include_costs: bool = True) -> dict:
    """Sale payload for the history view: per-line profit, returned lines flagged."""
    data = sale.to_dict(include_costs=include_costs)
    total_profit = 0
    for item_data, item in zip(data["items"], sale.items):
        _, profit = _item_revenue_profit(item)
        total_profit += profit
        if include_costs:
            item_data["profit_cents"] = profit
    if include_costs:
        data["total_profit_cents"] = total_profit
    return data


# =============================================================================
# SNAPSHOT LOADERS
# =============================================================================

def _day_bounds_utc(day: date, tz_name: str) -> tuple[datetime, datetime]:
    tz = ZoneInfo(tz_name)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return (
        start.astimezone(timezone.utc).replace(tzinfo=None),
        end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def parse_range(start: str | None, end: str | None, tz_name: str = "UTC") -> tuple[datetime | None, datetime | None]:
    """
    Parse report range bounds.

    A bare date (YYYY-MM-DD) means the whole local day: start of day for the
    lower bound, end of day for the upper bound. Full datetimes are taken
    as given (UTC unless they carry an offset).
    """
    def _parse(value: str | None, upper: bool) -> datetime | None:
        if not value:
            return None
        value = value.strip()
        try:
            if len(value) == 10:
                first, last = _day_bounds_utc(date.fromisoformat(value), tz_name)
                return last if upper else first
            return parse_iso_datetime(value)
        except ValueError:
            raise ReportError(f"Invalid date: {value}")

    start_dt = _parse(start, upper=False)
    end_dt = _parse(end, upper=True)
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must be before end")
    return start_dt, end_dt


def load_products() -> list[Product]:
    return db.session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()


def load_sales(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    created_by: str | None = None,
    created_by_role: str | None = None,
) -> list:
    return sales_service.list_sales(
        start=start,
        end=end,
        created_by=created_by,
        created_by_role=created_by_role,
        newest_first=False,
    )


# =============================================================================
# REPORTS
# =============================================================================

def stock_report() -> dict:
    return stock_summary(load_products())


def profit_report(
    *,
    start: str | None,
    end: str | None,
    tz_name: str = "UTC",
    created_by_role: str | None = None,
) -> dict:
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ReportError(f"Unknown timezone: {tz_name}")

    start_dt, end_dt = parse_range(start, end, tz_name)
    sales = load_sales(start=start_dt, end=end_dt, created_by_role=created_by_role)
    return {
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "timezone": tz_name,
        "created_by_role": created_by_role,
        "summary": sales_summary(sales),
        "daily": daily_buckets(sales, tz_name),
    }
