"""ORM -> response record conversion shared by several routers."""

from ..models import ChatHistory, Order
from ..schemas import ChatOut, OrderCustomer, OrderItemOut, OrderItemProduct, OrderOut, RecentChat


def serialize_order(order: Order) -> OrderOut:
    """Order with embedded `customers` and `order_items[].products`."""
    customer = order.customer
    return OrderOut(
        id=order.id,
        customer_id=order.customer_id,
        status=order.status,
        total_amount=float(order.total_amount or 0),
        notes=order.notes,
        created_at=order.created_at,
        updated_at=order.updated_at,
        customers=(
            OrderCustomer(id=customer.id, name=customer.name, phone=customer.phone, address=customer.address)
            if customer
            else None
        ),
        order_items=[
            OrderItemOut(
                id=item.id,
                quantity=item.quantity,
                unit_price=float(item.unit_price or 0),
                products=(
                    OrderItemProduct(id=item.product.id, name=item.product.name) if item.product else None
                ),
            )
            for item in order.items
        ],
    )


def serialize_chat(chat: ChatHistory) -> ChatOut:
    return ChatOut(
        id=chat.id,
        customer_id=chat.customer_id,
        customer_name=chat.customer.name if chat.customer else None,
        message=chat.message,
        response=chat.response,
        intent=chat.intent,
        created_at=chat.created_at,
    )


def serialize_recent_chat(chat: ChatHistory) -> RecentChat:
    return RecentChat(**serialize_chat(chat).model_dump())
