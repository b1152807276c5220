import logging
from typing import Dict, Any, Optional, List
from decimal import Decimal
from datetime import date
from django.db import transaction
from django.db.models import Q, Sum

from stock.models import (
    PurchaseOrder, POItem, Intend, IntendItem, Vendor, PendingSideEffect
)
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, BusinessRuleError,
    require_decimal, round_decimal, to_date, to_id
)
from stock.services.numbering_service import NumberingService
from stock.services.intend_service import IntendFulfillmentService, IntendService
from stock.services.side_effects import SideEffectRunner

logger = logging.getLogger(__name__)


class PurchaseOrderService(BaseService):

    model = PurchaseOrder

    # Manual transitions; receipt statuses are computed by recalculate_receipt
    TRANSITIONS = {
        PurchaseOrder.Status.PENDING: [PurchaseOrder.Status.CONFIRMED],
        PurchaseOrder.Status.CONFIRMED: [PurchaseOrder.Status.RECEIVED],
    }

    STATUS_RANK = {
        PurchaseOrder.Status.PENDING: 0,
        PurchaseOrder.Status.CONFIRMED: 1,
        PurchaseOrder.Status.PARTIALLY_RECEIVED: 2,
        PurchaseOrder.Status.RECEIVED: 3,
    }

    @classmethod
    def serialize_item(cls, item: POItem) -> Dict[str, Any]:
        return {
            "id": item.id,
            "ingredient_id": item.ingredient_id,
            "ingredient_name": item.ingredient.name,
            "unit": item.ingredient.unit,
            "intend_item_id": item.intend_item_id,
            "quantity_ordered": str(item.quantity_ordered),
            "quantity_received": str(item.quantity_received),
            "quantity_pending": str(item.quantity_pending),
            "unit_price": str(item.unit_price),
            "total_price": str(item.total_price),
            "is_fully_received": item.is_fully_received,
        }

    @classmethod
    def serialize(cls, po: PurchaseOrder,
                  include_items: bool = True,
                  include_documents: bool = False) -> Dict[str, Any]:
        data = {
            "id": po.id,
            "uuid": str(po.uuid),
            "po_number": po.po_number,
            "intend_id": po.intend_id,
            "vendor_id": po.vendor_id,
            "vendor_name": po.vendor.name,
            "order_date": po.order_date.isoformat(),
            "expected_delivery_date": po.expected_delivery_date.isoformat() if po.expected_delivery_date else None,

            "status": po.status,
            "status_display": po.get_status_display(),
            "total_amount": str(po.total_amount),
            "total_items_count": po.total_items_count,
            "received_items_count": po.received_items_count,
            "received_percentage": str(po.received_percentage),

            "payment_status": po.payment_status,
            "payment_status_display": po.get_payment_status_display(),
            "total_paid": str(po.total_paid),
            "actual_receivable_amount": (
                str(po.actual_receivable_amount) if po.actual_receivable_amount is not None else None
            ),
            "outstanding_amount": str(po.outstanding_amount),

            "notes": po.notes,
            "created_at": po.created_at.isoformat(),
            "updated_at": po.updated_at.isoformat(),
        }

        if include_items:
            data["items"] = [
                cls.serialize_item(item)
                for item in po.items.select_related("ingredient")
            ]

        if include_documents:
            data["grns"] = [
                {
                    "id": grn.id,
                    "grn_number": grn.grn_number,
                    "received_date": grn.received_date.isoformat(),
                    "status": grn.status,
                }
                for grn in po.grns.all()
            ]
            data["payments"] = [
                {
                    "id": payment.id,
                    "payment_number": payment.payment_number,
                    "payment_date": payment.payment_date.isoformat(),
                    "amount": str(payment.amount),
                    "payment_method": payment.payment_method,
                }
                for payment in po.payments.all()
            ]

        return data

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             search: str = None,
             vendor_id: int = None,
             intend_id: int = None,
             status: str = None,
             payment_status: str = None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("vendor")

        if search:
            queryset = queryset.filter(
                Q(po_number__icontains=search) |
                Q(vendor__name__icontains=search)
            )

        if vendor_id:
            queryset = queryset.filter(vendor_id=vendor_id)

        if intend_id:
            queryset = queryset.filter(intend_id=intend_id)

        if status:
            queryset = queryset.filter(status=status)

        if payment_status:
            queryset = queryset.filter(payment_status=payment_status)

        orders, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "orders": [cls.serialize(po, include_items=False) for po in orders],
            "pagination": pagination,
            "statuses": [{"value": c[0], "label": c[1]} for c in PurchaseOrder.Status.choices],
            "payment_statuses": [{"value": c[0], "label": c[1]} for c in PurchaseOrder.PaymentStatus.choices],
        })

    @classmethod
    def get(cls, po_id: int) -> Dict[str, Any]:
        po = cls.model.objects.select_related("vendor").filter(id=po_id).first()

        if not po:
            raise NotFoundError("Purchase order", po_id)

        return success_response({
            "order": cls.serialize(po, include_documents=True)
        })

    @classmethod
    def _prepare_lines(cls, intend: Intend, items: List[Dict]) -> List[Dict[str, Any]]:
        """Validate every requested line up front; one bad line rejects the whole PO."""
        lines = []
        seen = set()

        for index, data in enumerate(items):
            field = f"items[{index}]"
            intend_item_id = to_id(data.get("intend_item_id"), f"{field}.intend_item_id")

            if intend_item_id in seen:
                raise ValidationError(
                    f"Intend item {intend_item_id} is listed more than once", f"{field}.intend_item_id"
                )
            seen.add(intend_item_id)

            intend_item = IntendItem.objects.select_related("ingredient").filter(
                id=intend_item_id
            ).first()
            if not intend_item or intend_item.intend_id != intend.id:
                raise ValidationError(
                    f"Intend item {intend_item_id} does not belong to intend {intend.intend_number}",
                    f"{field}.intend_item_id",
                )

            ingredient_id = to_id(data.get("ingredient_id"), f"{field}.ingredient_id", required=False)
            if ingredient_id and ingredient_id != intend_item.ingredient_id:
                raise ValidationError(
                    f"Ingredient {ingredient_id} does not match intend item {intend_item_id}",
                    f"{field}.ingredient_id",
                )

            po_item = IntendService.linked_po_item(intend_item)
            if po_item:
                raise BusinessRuleError(
                    f"{intend_item.ingredient.name} is already on purchase order "
                    f"{po_item.purchase_order.po_number}",
                    "intend_item_linked",
                    {"intend_item_id": intend_item.id, "po_id": po_item.purchase_order_id},
                )

            quantity = require_decimal(data.get("quantity"), f"{field}.quantity")
            if quantity <= 0:
                raise ValidationError("Quantity must be greater than 0", f"{field}.quantity")

            unit_price = require_decimal(data.get("unit_price"), f"{field}.unit_price")
            if unit_price < 0:
                raise ValidationError("Unit price cannot be negative", f"{field}.unit_price")

            lines.append({
                "intend_item": intend_item,
                "ingredient": intend_item.ingredient,
                "quantity": quantity,
                "unit_price": unit_price,
                "total_price": round_decimal(quantity * unit_price),
            })

        return lines

    @classmethod
    @transaction.atomic
    def generate_from_intend(cls,
                             intend_id: int,
                             vendor_id: int,
                             items: List[Dict] = None,
                             expected_delivery_date: date = None,
                             notes: str = "") -> Dict[str, Any]:
        if not items:
            raise ValidationError("At least one item is required", "items")

        intend = Intend.objects.select_for_update().filter(id=intend_id).first()
        if not intend:
            raise NotFoundError("Intend", intend_id)

        vendor = Vendor.objects.filter(id=vendor_id).first()
        if not vendor:
            raise NotFoundError("Vendor", vendor_id)

        lines = cls._prepare_lines(intend, items)
        total_amount = sum((line["total_price"] for line in lines), Decimal("0"))

        po = NumberingService.create_numbered(
            NumberingService.PURCHASE_ORDER, cls.model, "po_number",
            intend=intend,
            vendor=vendor,
            expected_delivery_date=to_date(expected_delivery_date, "expected_delivery_date", required=False),
            total_amount=total_amount,
            total_items_count=len(lines),
            received_items_count=0,
            received_percentage=Decimal("0"),
            notes=notes or "",
        )

        for line in lines:
            POItem.objects.create(
                purchase_order=po,
                ingredient=line["ingredient"],
                intend_item=line["intend_item"],
                quantity_ordered=line["quantity"],
                unit_price=line["unit_price"],
                total_price=line["total_price"],
            )

        outcomes = [
            SideEffectRunner.run(
                PendingSideEffect.Kind.LAST_PRICE,
                {"ingredient_id": line["ingredient"].id, "price": str(line["unit_price"])},
                source_type="purchase_order",
                source_id=po.id,
            )
            for line in lines
        ]

        intend_status = IntendFulfillmentService.recompute(intend.id)

        logger.info(
            f"PO {po.po_number} generated from intend {intend.intend_number}: "
            f"{len(lines)} items, total {total_amount}, intend now {intend_status}"
        )

        return success_response({
            "po_id": po.id,
            "po_number": po.po_number,
            "total_amount": str(total_amount),
            "intend_status": intend_status,
            "order": cls.serialize(po),
            "warnings": SideEffectRunner.warnings(outcomes),
        }, f"Purchase order {po.po_number} created")

    @classmethod
    @transaction.atomic
    def update_status(cls, po_id: int, status: str) -> Dict[str, Any]:
        po = cls.model.objects.select_for_update().filter(id=po_id).first()
        if not po:
            raise NotFoundError("Purchase order", po_id)

        valid = [c[0] for c in PurchaseOrder.Status.choices]
        if status not in valid:
            raise ValidationError(f"Invalid status. Valid: {valid}", "status")

        allowed = cls.TRANSITIONS.get(po.status, [])
        if status not in allowed:
            raise BusinessRuleError(
                f"Cannot change purchase order from {po.status} to {status}",
                "po_status_transition",
                {"current_status": po.status, "allowed": [str(s) for s in allowed]},
            )

        previous = po.status
        po.status = status
        po.save(update_fields=["status", "updated_at"])

        logger.info(f"PO {po.po_number} status {previous} -> {status}")

        return success_response({
            "order": cls.serialize(po)
        }, f"Purchase order {po.status}")

    @classmethod
    @transaction.atomic
    def set_receivable_amount(cls, po_id: int, amount: Any = None) -> Dict[str, Any]:
        """
        Record the renegotiated amount actually owed. ``None`` clears the
        override so total_amount applies again.
        """
        po = cls.model.objects.select_for_update().filter(id=po_id).first()
        if not po:
            raise NotFoundError("Purchase order", po_id)

        if amount is None or amount == "":
            po.actual_receivable_amount = None
        else:
            amount = require_decimal(amount, "actual_receivable_amount")
            if amount < 0:
                raise ValidationError("Receivable amount cannot be negative", "actual_receivable_amount")
            if amount < po.total_paid:
                raise BusinessRuleError(
                    "Receivable amount cannot be less than the amount already paid",
                    "receivable_below_paid",
                    {"actual_receivable_amount": str(amount), "total_paid": str(po.total_paid)},
                )
            po.actual_receivable_amount = amount

        po.save(update_fields=["actual_receivable_amount", "updated_at"])
        cls.recalculate_payments(po)

        return success_response({
            "order": cls.serialize(po, include_items=False)
        }, "Receivable amount updated")

    @classmethod
    def recalculate_receipt(cls, po: PurchaseOrder) -> Dict[str, Any]:
        """
        Recompute receipt caches from the PO lines. Status only moves forward:
        a computed status ranking below the current one is ignored.
        """
        items = list(po.items.all())
        total = len(items)
        received = sum(1 for item in items if item.is_fully_received)
        any_received = any(item.quantity_received > 0 for item in items)

        if total:
            percentage = round_decimal(Decimal(received) * 100 / Decimal(total), 2)
        else:
            percentage = Decimal("0.00")

        if total and received == total:
            computed = PurchaseOrder.Status.RECEIVED
        elif any_received:
            computed = PurchaseOrder.Status.PARTIALLY_RECEIVED
        else:
            computed = PurchaseOrder.Status.PENDING

        if cls.STATUS_RANK[computed] > cls.STATUS_RANK[po.status]:
            po.status = computed

        po.total_items_count = total
        po.received_items_count = received
        po.received_percentage = percentage
        po.save(update_fields=[
            "status", "total_items_count", "received_items_count",
            "received_percentage", "updated_at",
        ])

        return {
            "status": po.status,
            "total_items_count": total,
            "received_items_count": received,
            "received_percentage": str(percentage),
        }

    @classmethod
    def recalculate_payments(cls, po: PurchaseOrder) -> Dict[str, Any]:
        total_paid = po.payments.aggregate(total=Sum("amount"))["total"] or Decimal("0")

        if total_paid <= 0:
            payment_status = PurchaseOrder.PaymentStatus.UNPAID
        elif total_paid >= po.receivable_amount:
            payment_status = PurchaseOrder.PaymentStatus.PAID
        else:
            payment_status = PurchaseOrder.PaymentStatus.PARTIAL

        po.total_paid = total_paid
        po.payment_status = payment_status
        po.save(update_fields=["total_paid", "payment_status", "updated_at"])

        return {
            "total_paid": str(total_paid),
            "payment_status": payment_status,
        }
