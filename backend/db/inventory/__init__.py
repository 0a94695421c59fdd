"""
Stock ledger tables (warehouse + three bar locations).

Models:
- WarehouseInventory (one quantity row per product)
- BarInventory (quantity per product per bar location)
- StockTransfer (append-only warehouse -> bar movements)
- StockAlert (low-stock alerts with a resolved/unresolved lifecycle)
"""

from .stock import BarInventory, WarehouseInventory
from .transfer import StockTransfer
from .alert import StockAlert

__all__ = ["WarehouseInventory", "BarInventory", "StockTransfer", "StockAlert"]
