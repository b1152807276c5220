"""
Stock Services - procurement and inventory reconciliation

Usage:
    from stock.services import PurchaseOrderService, GoodsReceiptService

    # Turn intend lines into a PO
    result = PurchaseOrderService.generate_from_intend(intend_id=1, vendor_id=2, items=[...])

    # Receive part of it
    GoodsReceiptService.receive(po_id=result["po_id"], items=[...])
"""

# Base utilities
from stock.services.base_service import (
    ServiceError,
    ValidationError,
    NotFoundError,
    BusinessRuleError,
    InsufficientStockError,
    success_response,
    to_id,
    paginate_queryset,
    to_decimal,
    require_decimal,
    round_decimal,
    to_date,
    BaseService,
)
# Settings
from .settings_service import StockSettingsService

# Infrastructure
from .numbering_service import NumberingService
from .side_effects import SideEffectRunner, SideEffectOutcome

# Stock ledger
from .movement_service import StockMovementService

# Procurement
from .intend_service import IntendService, IntendFulfillmentService
from .purchase_service import PurchaseOrderService
from .receiving_service import GoodsReceiptService
from .payment_service import PaymentService

# Counts
from .adjustment_service import StockAdjustmentService


__all__ = [
    # Base
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "BusinessRuleError",
    "InsufficientStockError",
    "success_response",
    "to_id",
    "paginate_queryset",
    "to_decimal",
    "require_decimal",
    "round_decimal",
    "to_date",
    "BaseService",

    # Settings
    "StockSettingsService",

    # Infrastructure
    "NumberingService",
    "SideEffectRunner",
    "SideEffectOutcome",

    # Stock ledger
    "StockMovementService",

    # Procurement
    "IntendService",
    "IntendFulfillmentService",
    "PurchaseOrderService",
    "GoodsReceiptService",
    "PaymentService",

    # Counts
    "StockAdjustmentService",
]
