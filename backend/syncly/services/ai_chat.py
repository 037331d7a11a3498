"""AI chat replies for a shop.

WHAT:
    Builds the shop-aware system prompt (shop profile, owner instructions,
    active products) and asks the plan's model for a reply.

WHY:
    The dashboard's "test your assistant" panel and future channel handlers
    share one prompt so owners preview exactly what customers will get.

REFERENCES:
    - syncly/plans.py (model and max_tokens per plan)
    - syncly/routers/chat.py
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from ..errors import UpstreamError
from ..models import Product, Shop
from ..plans import PlanLimits
from ..telemetry import capture_exception

logger = logging.getLogger(__name__)

# Products listed in the prompt; keeps the prompt bounded for large catalogs
MAX_PROMPT_PRODUCTS = 30


def get_async_openai_client(api_key: Optional[str]) -> AsyncOpenAI:
    """Get async OpenAI client so the event loop is not blocked."""
    if not api_key:
        raise ValueError("OPENAI_API_KEY environment variable not set")
    return AsyncOpenAI(api_key=api_key)


def _format_product(product: Product) -> str:
    price = f"{float(product.price or 0):,.0f}₮"
    parts = [f"- {product.name}: {price}"]
    if product.discount_percent:
        parts.append(f"(-{product.discount_percent}%)")
    if product.stock is not None:
        parts.append(f"үлдэгдэл {product.stock}")
    if product.colors:
        parts.append("өнгө: " + ", ".join(product.colors))
    if product.sizes:
        parts.append("хэмжээ: " + ", ".join(product.sizes))
    return " ".join(parts)


def build_system_prompt(
    shop: Shop,
    products: Sequence[Product],
    extra_context: Optional[Dict[str, Any]] = None,
) -> str:
    lines = [
        f"Та бол {shop.name} дэлгүүрийн AI туслах. Харилцагчдад Монгол хэлээр туслана.",
        "",
        "Дүрэм:",
        "- Эелдэг, туслахад бэлэн байна",
        "- Богино, тодорхой хариулт өгнө",
        "- Бүтээгдэхүүний талаар асуувал жагсаалт өгнө",
        "- Захиалга хийхэд тусална",
    ]
    if shop.ai_emotion:
        lines.append(f"- Харилцааны өнгө аяс: {shop.ai_emotion}")
    if shop.description:
        lines += ["", f"Дэлгүүрийн тухай: {shop.description}"]
    if shop.ai_instructions:
        lines += ["", "Эзэмшигчийн заавар:", shop.ai_instructions]
    if products:
        lines += ["", "Бүтээгдэхүүн:"]
        lines += [_format_product(p) for p in products[:MAX_PROMPT_PRODUCTS]]
    if extra_context:
        lines += ["", f"Нэмэлт мэдээлэл: {json.dumps(extra_context, ensure_ascii=False)}"]
    return "\n".join(lines)


async def generate_reply(
    *,
    api_key: Optional[str],
    limits: PlanLimits,
    system_prompt: str,
    message: str,
    history: Optional[List[Dict[str, str]]] = None,
) -> str:
    """Ask the plan's model for a reply to `message`."""
    try:
        client = get_async_openai_client(api_key)
    except ValueError as exc:
        logger.error("[AI_CHAT] OpenAI client not configured")
        raise UpstreamError("AI assistant is not configured", provider="openai") from exc

    messages = [{"role": "system", "content": system_prompt}]
    messages += history or []
    messages.append({"role": "user", "content": message})

    try:
        response = await client.chat.completions.create(
            model=limits.model,
            max_completion_tokens=limits.max_tokens,
            messages=messages,
        )
    except OpenAIError as exc:
        logger.exception(f"[AI_CHAT] Completion failed (model={limits.model})")
        capture_exception(exc, {"model": limits.model})
        raise UpstreamError("AI processing failed", provider="openai") from exc

    content = response.choices[0].message.content or ""
    logger.info(f"[AI_CHAT] Reply generated (model={limits.model}, length={len(content)})")
    return content.strip()
