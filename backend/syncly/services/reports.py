"""Aggregation assemblers for dashboard reports, stats and conversations.

WHAT:
    Pure helpers (period windows, growth, best-seller ranking, status
    histogram, daily chart, conversation grouping, cart formatting) plus
    `build_report`, which runs the scoped queries for one report and combines
    them into an explicit `ReportResponse`.

WHY:
    The helpers take plain values so the arithmetic is unit-testable without a
    database (see tests_unit/test_reports_math.py). Any failing query simply
    propagates; the global handler turns it into a generic 500, since no
    partial report is ever returned.

REFERENCES:
    - syncly/routers/dashboard.py (endpoints)
    - syncly/services/shop_scope.py (queries)
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models import Cart, ChatHistory, Customer, OrderItem, OrderStatusEnum, Product
from ..schemas import (
    ActiveCart,
    BestSeller,
    CartCustomer,
    CartItemOut,
    ChartPoint,
    Conversation,
    ConversationMessage,
    CustomerSummary,
    ReportResponse,
    RevenueSummary,
)
from .shop_scope import ShopScope

logger = logging.getLogger(__name__)


PERIOD_DAYS = {"today": 1, "week": 7, "month": 30, "year": 365}
DEFAULT_PERIOD = "month"
BEST_SELLER_LIMIT = 10
GUEST_NAME = "Зочин"


def normalize_period(period: Optional[str]) -> str:
    if period in PERIOD_DAYS:
        return period
    return DEFAULT_PERIOD


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _one_year_before(value: datetime) -> datetime:
    try:
        return value.replace(year=value.year - 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return value.replace(year=value.year - 1, day=28)


def period_start(period: str, now: datetime) -> datetime:
    """Start of the reporting window (naive UTC)."""
    period = normalize_period(period)
    if period == "year":
        return _one_year_before(now)
    if period == "today":
        return _start_of_day(now)
    return _start_of_day(now) - timedelta(days=PERIOD_DAYS[period])


def previous_period(period: str, start: datetime) -> Tuple[datetime, datetime]:
    """Window of the same length immediately before `start`."""
    days = PERIOD_DAYS[normalize_period(period)]
    return start - timedelta(days=days), start


def growth_pct(current: float, previous: float) -> int:
    """Rounded percent change; 100 when growing from zero, 0 when flat at zero."""
    if previous > 0:
        return round((current - previous) / previous * 100)
    if current > 0:
        return 100
    return 0


def rank_best_sellers(
    sold: Iterable[Tuple[OrderItem, Optional[Product]]],
    limit: int = BEST_SELLER_LIMIT,
) -> List[BestSeller]:
    """Rank products by units sold (descending).

    `percent` is the product's share of all units sold in the window,
    including products that fall outside the top `limit`.
    """
    totals: Dict[object, Dict] = {}
    for item, product in sold:
        if product is None:
            continue
        entry = totals.get(product.id)
        if entry is None:
            entry = {
                "id": product.id,
                "name": product.name,
                "image": (product.images or [None])[0],
                "quantity": 0,
                "revenue": 0.0,
            }
            totals[product.id] = entry
        quantity = int(item.quantity or 0)
        entry["quantity"] += quantity
        entry["revenue"] += quantity * float(item.unit_price or 0)

    total_quantity = sum(entry["quantity"] for entry in totals.values())
    ranked = sorted(totals.values(), key=lambda e: (-e["quantity"], -e["revenue"], e["name"]))[:limit]

    return [
        BestSeller(
            id=entry["id"],
            name=entry["name"],
            image=entry["image"],
            quantity=entry["quantity"],
            revenue=round(entry["revenue"], 2),
            rank=index + 1,
            percent=round(entry["quantity"] / total_quantity * 100) if total_quantity else 0,
        )
        for index, entry in enumerate(ranked)
    ]


def status_histogram(statuses: Iterable[str]) -> Dict[str, int]:
    """Count orders per status; all six statuses are always present."""
    histogram = {status.value: 0 for status in OrderStatusEnum}
    for status in statuses:
        if status in histogram:
            histogram[status] += 1
    return histogram


def chart_label(day: date) -> str:
    return f"{day.month}-р сар {day.day}"


def build_chart_data(
    revenue_rows: Iterable[Tuple[datetime, float]],
    start: datetime,
    today: date,
) -> List[ChartPoint]:
    """Daily revenue from `start` to `today` inclusive, zero-filled."""
    daily: "OrderedDict[date, float]" = OrderedDict()
    day = start.date()
    while day <= today:
        daily[day] = 0.0
        day += timedelta(days=1)

    for created_at, amount in revenue_rows:
        key = created_at.date()
        if key in daily:
            daily[key] += amount

    return [
        ChartPoint(date=day.isoformat(), revenue=round(revenue), label=chart_label(day))
        for day, revenue in daily.items()
    ]


def build_report(scope: ShopScope, period: Optional[str], now: Optional[datetime] = None) -> ReportResponse:
    """Run the report queries for one shop and assemble the response."""
    now = now or datetime.utcnow()
    period = normalize_period(period)
    start = period_start(period, now)
    prev_start, prev_end = previous_period(period, start)

    revenue_rows = scope.revenue_orders(start)
    total = sum(amount for _, amount in revenue_rows)
    order_count = len(revenue_rows)
    previous_total = scope.revenue(prev_start, prev_end)

    revenue = RevenueSummary(
        total=round(total, 2),
        order_count=order_count,
        avg_order_value=round(total / order_count) if order_count else 0,
        growth=growth_pct(total, previous_total),
        prev_period_total=round(previous_total, 2),
    )

    customers = CustomerSummary(
        total=scope.count_customers(),
        new=scope.count_customers(start=start),
        vip=scope.count_customers(vip_only=True),
    )

    logger.info(
        f"[REPORTS] shop={scope.shop_id} period={period} orders={order_count} revenue={total}"
    )

    return ReportResponse(
        period=period,
        period_start=start,
        revenue=revenue,
        best_sellers=rank_best_sellers(scope.sold_items(start)),
        chart_data=build_chart_data(revenue_rows, start, now.date()),
        customers=customers,
        order_status=status_histogram(scope.order_statuses(start)),
    )


def summarize_conversations(rows: Sequence[ChatHistory]) -> List[Conversation]:
    """Group chat rows (newest first) into one conversation per customer.

    `answered` is True when the customer's latest row carries a response.
    Messages are returned oldest first.
    """
    grouped: "OrderedDict[object, List[ChatHistory]]" = OrderedDict()
    for row in rows:
        if row.customer_id is None:
            continue
        grouped.setdefault(row.customer_id, []).append(row)

    conversations = []
    for customer_id, chats in grouped.items():
        latest = chats[0]
        customer: Optional[Customer] = latest.customer

        messages: List[ConversationMessage] = []
        for chat in reversed(chats):
            if chat.message:
                messages.append(ConversationMessage(role="user", content=chat.message, created_at=chat.created_at, intent=chat.intent))
            if chat.response:
                messages.append(ConversationMessage(role="assistant", content=chat.response, created_at=chat.created_at, intent=chat.intent))

        conversations.append(
            Conversation(
                id=customer_id,
                customer_name=(customer.name if customer and customer.name else GUEST_NAME),
                last_message=latest.message or latest.response or "",
                last_message_at=latest.created_at,
                answered=bool(latest.response),
                unread_count=0,
                messages=messages,
            )
        )
    return conversations


def format_active_carts(carts: Sequence[Cart]) -> List[ActiveCart]:
    """Shape carts for the dashboard; totals are recomputed from the items."""
    formatted = []
    for cart in carts:
        items = list(cart.items or [])
        customer = cart.customer
        formatted.append(
            ActiveCart(
                id=customer.id if customer else cart.id,
                cart_id=cart.id,
                customer=CartCustomer(
                    id=customer.id if customer else None,
                    name=(customer.name if customer and customer.name else "Guest"),
                    facebook_id=customer.facebook_id if customer else None,
                    is_vip=customer.is_vip if customer else None,
                ),
                last_active=cart.updated_at,
                item_count=sum(int(item.quantity or 0) for item in items),
                total_amount=sum(int(item.quantity or 0) * float(item.unit_price or 0) for item in items),
                items=[
                    CartItemOut(
                        id=item.id,
                        name=item.product.name if item.product else "Unknown Product",
                        price=float(item.unit_price or 0),
                        quantity=int(item.quantity or 0),
                        image=(item.product.images or [None])[0] if item.product else None,
                    )
                    for item in items
                ],
            )
        )
    return formatted
