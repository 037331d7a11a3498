"""Plan/limit gate.

WHAT:
    Static capability table per subscription plan and the pure allow/deny
    helpers built on it (shop count, monthly AI message quota, model tier,
    Instagram access).

WHY:
    Limits are configuration, not data: they never need a query and every
    caller sees the same answer for the same plan string. Unknown or missing
    plans resolve to `trial`, the most restrictive tier.

REFERENCES:
    - syncly/routers/user_shops.py (can_add_shop on shop creation)
    - syncly/routers/facebook_oauth.py (can_use_instagram)
    - syncly/routers/chat.py (check_message_limit, model selection)
"""

from dataclasses import dataclass
from typing import Dict, Optional


DEFAULT_PLAN = "trial"


@dataclass(frozen=True)
class PlanLimits:
    plan: str
    model: str
    max_tokens: int
    messages_per_month: int
    max_shops: int
    instagram: bool
    price_mnt: int
    trial_days: Optional[int] = None


@dataclass(frozen=True)
class LimitCheck:
    allowed: bool
    remaining: int
    limit: int


PLAN_LIMITS: Dict[str, PlanLimits] = {
    "trial": PlanLimits(
        plan="trial",
        model="gpt-5-mini",
        max_tokens=600,
        messages_per_month=1000,
        max_shops=1,
        instagram=False,
        price_mnt=0,
        trial_days=14,
    ),
    "starter": PlanLimits(
        plan="starter",
        model="gpt-5-nano",
        max_tokens=500,
        messages_per_month=2000,
        max_shops=1,
        instagram=False,
        price_mnt=149000,
    ),
    "pro": PlanLimits(
        plan="pro",
        model="gpt-5-mini",
        max_tokens=800,
        messages_per_month=25000,
        max_shops=3,
        instagram=True,
        price_mnt=349000,
    ),
    "ultimate": PlanLimits(
        plan="ultimate",
        model="gpt-5",
        max_tokens=1500,
        messages_per_month=50000,
        max_shops=1000,
        instagram=True,
        price_mnt=999000,
    ),
}

# Legacy plan names still stored on older shops
PLAN_ALIASES = {
    "professional": "pro",
    "enterprise": "ultimate",
    "basic": "starter",
}

UNPAID_PLANS = {"", "free", "trial"}


def normalize_plan(plan: Optional[str]) -> str:
    """Map any stored plan string to a key of PLAN_LIMITS (unknown -> trial)."""
    key = (plan or "").strip().lower()
    key = PLAN_ALIASES.get(key, key)
    if key not in PLAN_LIMITS:
        return DEFAULT_PLAN
    return key


def get_plan_limits(plan: Optional[str]) -> PlanLimits:
    return PLAN_LIMITS[normalize_plan(plan)]


def max_shops(plan: Optional[str]) -> int:
    return get_plan_limits(plan).max_shops


def can_add_shop(plan: Optional[str], current_count: int) -> bool:
    """True iff one more shop fits under the plan's shop limit."""
    return current_count < max_shops(plan)


def can_use_instagram(plan: Optional[str]) -> bool:
    return get_plan_limits(plan).instagram


def _check(limit: int, used: int) -> LimitCheck:
    return LimitCheck(allowed=used < limit, remaining=max(0, limit - used), limit=limit)


def check_shop_limit(plan: Optional[str], current_count: int) -> LimitCheck:
    return _check(max_shops(plan), current_count)


def check_message_limit(plan: Optional[str], used_this_month: int) -> LimitCheck:
    return _check(get_plan_limits(plan).messages_per_month, used_this_month)


def is_paid_plan(plan: Optional[str]) -> bool:
    # Unrecognised non-empty plan strings count as paid
    key = (plan or "").strip().lower()
    return key not in UNPAID_PLANS
