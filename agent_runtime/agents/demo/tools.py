"""Order desk tools backed by an in-memory order book."""

from typing import Any

from agent_runtime.platform.agent.tools import Tool, ToolError

STATUSES = ("open", "provisioning", "active", "cancelled")


def _build_orders(count: int = 120) -> dict[str, dict[str, Any]]:
    orders = {}
    for n in range(1, count + 1):
        order_id = f"SO-{n:04d}"
        orders[order_id] = {
            "id": order_id,
            "customer": f"customer-{(n % 17) + 1}",
            "status": STATUSES[n % len(STATUSES)],
            "monthly_commit": 500 + (n % 9) * 250,
        }
    return orders


ORDERS = _build_orders()


def list_orders(arguments: dict[str, Any], exec_context: Any) -> list[dict[str, Any]]:
    status = arguments.get("status")
    if status is not None and status not in STATUSES:
        raise ToolError(f"unknown status {status!r}, expected one of {', '.join(STATUSES)}")
    return [order for order in ORDERS.values() if status is None or order["status"] == status]


def get_order(arguments: dict[str, Any], exec_context: Any) -> dict[str, Any]:
    order_id = arguments.get("order_id")
    if not order_id:
        raise ToolError("order_id is required")
    order = ORDERS.get(order_id)
    if order is None:
        raise ToolError(f"order {order_id} not found")
    return order


def build_tools() -> list[Tool]:
    return [
        Tool(
            name="list_orders",
            description="List service orders, optionally filtered by status.",
            function=list_orders,
            parameters={
                "type": "object",
                "properties": {
                    "status": {"type": "string", "enum": list(STATUSES)},
                },
            },
        ),
        Tool(
            name="get_order",
            description="Fetch a single service order by ID (e.g. SO-0042).",
            function=get_order,
            parameters={
                "type": "object",
                "properties": {"order_id": {"type": "string"}},
                "required": ["order_id"],
            },
        ),
    ]
