"""Order desk demo agent module.

A small tool-calling agent over an in-memory order book, showing tools,
progressive disclosure hooks and offline runs with the mock provider.
"""

from .agent import OrderDeskAgentBuilder
from .hooks import OrderDeskHooks

__all__ = ["OrderDeskAgentBuilder", "OrderDeskHooks"]
