import logging
from typing import Dict, Any
from decimal import Decimal
from datetime import date
from django.db import transaction

from stock.models import PurchaseOrder, Payment
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, BusinessRuleError,
    require_decimal, to_date
)
from stock.services.numbering_service import NumberingService
from stock.services.purchase_service import PurchaseOrderService
from stock.services.receiving_service import GoodsReceiptService

logger = logging.getLogger(__name__)


class PaymentService(BaseService):
    """
    Vendor payments against a purchase order. A payment may not exceed what
    is still owed on the PO, and once anything has been received, cumulative
    payments may not exceed the value of the goods received.
    """

    model = Payment

    @classmethod
    def serialize(cls, payment: Payment) -> Dict[str, Any]:
        return {
            "id": payment.id,
            "uuid": str(payment.uuid),
            "payment_number": payment.payment_number,
            "po_id": payment.purchase_order_id,
            "po_number": payment.purchase_order.po_number,
            "vendor_id": payment.vendor_id,
            "vendor_name": payment.vendor.name,
            "payment_date": payment.payment_date.isoformat(),
            "amount": str(payment.amount),
            "payment_method": payment.payment_method,
            "payment_method_display": payment.get_payment_method_display(),
            "transaction_reference": payment.transaction_reference,
            "transaction_date": payment.transaction_date.isoformat() if payment.transaction_date else None,
            "bank_name": payment.bank_name,
            "remarks": payment.remarks,
            "status": payment.status,
            "created_at": payment.created_at.isoformat(),
        }

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             po_id: int = None,
             vendor_id: int = None,
             payment_method: str = None,
             date_from: date = None,
             date_to: date = None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("purchase_order", "vendor")

        if po_id:
            queryset = queryset.filter(purchase_order_id=po_id)

        if vendor_id:
            queryset = queryset.filter(vendor_id=vendor_id)

        if payment_method:
            queryset = queryset.filter(payment_method=payment_method)

        if date_from:
            queryset = queryset.filter(payment_date__gte=date_from)

        if date_to:
            queryset = queryset.filter(payment_date__lte=date_to)

        payments, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "payments": [cls.serialize(p) for p in payments],
            "pagination": pagination,
            "methods": [{"value": c[0], "label": c[1]} for c in Payment.Method.choices],
        })

    @classmethod
    def get(cls, payment_id: int) -> Dict[str, Any]:
        payment = cls.model.objects.select_related(
            "purchase_order", "vendor"
        ).filter(id=payment_id).first()

        if not payment:
            raise NotFoundError("Payment", payment_id)

        return success_response({"payment": cls.serialize(payment)})

    @classmethod
    def outstanding(cls, vendor_id: int = None) -> Dict[str, Any]:
        queryset = PurchaseOrder.objects.select_related("vendor").filter(
            payment_status__in=[
                PurchaseOrder.PaymentStatus.UNPAID,
                PurchaseOrder.PaymentStatus.PARTIAL,
            ]
        ).order_by("order_date", "id")

        if vendor_id:
            queryset = queryset.filter(vendor_id=vendor_id)

        orders = []
        total_outstanding = Decimal("0")
        for po in queryset:
            total_outstanding += po.outstanding_amount
            orders.append({
                "po_id": po.id,
                "po_number": po.po_number,
                "vendor_id": po.vendor_id,
                "vendor_name": po.vendor.name,
                "status": po.status,
                "payment_status": po.payment_status,
                "total_amount": str(po.total_amount),
                "actual_receivable_amount": (
                    str(po.actual_receivable_amount) if po.actual_receivable_amount is not None else None
                ),
                "total_paid": str(po.total_paid),
                "outstanding_amount": str(po.outstanding_amount),
            })

        return success_response({
            "orders": orders,
            "count": len(orders),
            "total_outstanding": str(total_outstanding),
        })

    @classmethod
    @transaction.atomic
    def record(cls,
               po_id: int,
               amount: Any,
               payment_method: str,
               payment_date: date = None,
               transaction_reference: str = "",
               transaction_date: date = None,
               bank_name: str = "",
               remarks: str = "") -> Dict[str, Any]:
        amount = require_decimal(amount, "amount")
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0", "amount")

        valid_methods = [c[0] for c in Payment.Method.choices]
        if payment_method not in valid_methods:
            raise ValidationError(f"Invalid payment method. Valid: {valid_methods}", "payment_method")

        payment_date = to_date(payment_date, "payment_date")
        transaction_date = to_date(transaction_date, "transaction_date", required=False)

        po = PurchaseOrder.objects.select_for_update().select_related("vendor").filter(id=po_id).first()
        if not po:
            raise NotFoundError("Purchase order", po_id)

        receivable = po.receivable_amount
        outstanding = receivable - po.total_paid

        if amount > outstanding:
            raise BusinessRuleError(
                f"Payment amount {amount} exceeds outstanding amount {outstanding}",
                "exceeds_outstanding",
                {
                    "outstanding_amount": str(outstanding),
                    "actual_receivable_amount": str(receivable),
                    "total_paid": str(po.total_paid),
                    "payment_amount": str(amount),
                },
            )

        grn_count = po.grns.count()
        if grn_count:
            grn_value = GoodsReceiptService.total_value(po.id)
            if po.total_paid + amount > grn_value:
                raise BusinessRuleError(
                    f"Total payments {po.total_paid + amount} would exceed the value "
                    f"of goods received {grn_value}",
                    "exceeds_grn_value",
                    {
                        "grn_total_value": str(grn_value),
                        "current_total_paid": str(po.total_paid),
                        "payment_amount": str(amount),
                        "total_paid_after_payment": str(po.total_paid + amount),
                        "grn_count": grn_count,
                    },
                )

        payment = NumberingService.create_numbered(
            NumberingService.PAYMENT, cls.model, "payment_number",
            on_date=payment_date,
            purchase_order=po,
            vendor=po.vendor,
            payment_date=payment_date,
            amount=amount,
            payment_method=payment_method,
            transaction_reference=transaction_reference or "",
            transaction_date=transaction_date,
            bank_name=bank_name or "",
            remarks=remarks or "",
            status=Payment.Status.COMPLETED,
        )

        totals = PurchaseOrderService.recalculate_payments(po)

        logger.info(
            f"Payment {payment.payment_number} of {amount} recorded for PO {po.po_number}, "
            f"total paid {totals['total_paid']} ({totals['payment_status']})"
        )

        return success_response({
            "payment_id": payment.id,
            "payment_number": payment.payment_number,
            "total_paid": totals["total_paid"],
            "payment_status": totals["payment_status"],
            "outstanding_amount": str(po.outstanding_amount),
            "payment": cls.serialize(payment),
        }, f"Payment {payment.payment_number} recorded")
