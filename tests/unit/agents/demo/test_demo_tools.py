"""Unit tests for the order desk tools.

This module tests the in-memory order book and the tool definitions.
"""

import pytest

from agent_runtime.agents.demo.prompt import build_system_prompt
from agent_runtime.agents.demo.tools import ORDERS, STATUSES, build_tools, get_order, list_orders
from agent_runtime.platform.agent.tools import ToolError, ToolRegistry


class TestOrderBook:
    """Tests for the generated order book."""

    def test_size(self):
        """120 orders are generated with sequential IDs."""
        assert len(ORDERS) == 120
        assert "SO-0001" in ORDERS
        assert "SO-0120" in ORDERS

    def test_statuses_are_known(self):
        """Every order has a known status."""
        assert {order["status"] for order in ORDERS.values()} == set(STATUSES)


class TestListOrders:
    """Tests for list_orders."""

    def test_all(self):
        """Without a status every order is listed."""
        assert len(list_orders({}, None)) == 120

    def test_filtered(self):
        """A status filter keeps matching orders only."""
        orders = list_orders({"status": "open"}, None)
        assert len(orders) == 30
        assert all(order["status"] == "open" for order in orders)

    def test_unknown_status(self):
        """Unknown statuses are tool errors."""
        with pytest.raises(ToolError, match="unknown status 'closed'"):
            list_orders({"status": "closed"}, None)


class TestGetOrder:
    """Tests for get_order."""

    def test_found(self):
        """Existing orders are returned."""
        assert get_order({"order_id": "SO-0042"}, None)["id"] == "SO-0042"

    def test_missing_id(self):
        """order_id is required."""
        with pytest.raises(ToolError, match="order_id is required"):
            get_order({}, None)

    def test_not_found(self):
        """Unknown IDs are tool errors."""
        with pytest.raises(ToolError, match="order SO-9999 not found"):
            get_order({"order_id": "SO-9999"}, None)


class TestBuildTools:
    """Tests for build_tools."""

    def test_registry(self):
        """Tools register without conflicts and expose schemas."""
        registry = ToolRegistry(build_tools())
        assert list(registry) == ["list_orders", "get_order"]
        schema = registry.schemas()[1]
        assert schema["function"]["parameters"]["required"] == ["order_id"]


class TestBuildSystemPrompt:
    """Tests for build_system_prompt function."""

    def test_mentions_tools(self):
        """The prompt documents both tools."""
        result = build_system_prompt()
        assert "list_orders" in result
        assert "get_order" in result
        assert "total_count" in result
