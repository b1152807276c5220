from decimal import Decimal

from django.test import TestCase

from stock.models import Payment, PurchaseOrder
from stock.services import (
    PaymentService, PurchaseOrderService, ValidationError, BusinessRuleError,
)
from stock.tests.base import ProcurementFixtures


class PaymentTests(ProcurementFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.po = self.create_po()

    def pay(self, amount, method="bank_transfer"):
        return PaymentService.record(
            po_id=self.po.id,
            amount=amount,
            payment_method=method,
            payment_date=self.TODAY,
            transaction_reference="NEFT-1",
        )

    def test_overpayment_rejected(self):
        self.receive_all(self.po)

        with self.assertRaises(BusinessRuleError) as ctx:
            self.pay("331")

        self.assertEqual(ctx.exception.rule, "exceeds_outstanding")
        self.assertEqual(Decimal(ctx.exception.details["outstanding_amount"]), Decimal("330"))
        self.assertFalse(Payment.objects.exists())

    def test_full_payment(self):
        self.receive_all(self.po)

        result = self.pay("330")

        self.assertEqual(Decimal(result["total_paid"]), Decimal("330"))
        self.assertEqual(result["payment_status"], PurchaseOrder.PaymentStatus.PAID)
        self.assertEqual(result["payment_number"], "PAY-20261018-001")
        self.assertEqual(Decimal(result["outstanding_amount"]), Decimal("0"))

    def test_partial_then_full(self):
        self.receive_all(self.po)

        self.assertEqual(self.pay("100")["payment_status"], PurchaseOrder.PaymentStatus.PARTIAL)
        self.assertEqual(self.pay("230")["payment_status"], PurchaseOrder.PaymentStatus.PAID)

    def test_payment_capped_by_received_value(self):
        self.receive(self.po, [(self.flour, "2")])

        with self.assertRaises(BusinessRuleError) as ctx:
            self.pay("150")

        self.assertEqual(ctx.exception.rule, "exceeds_grn_value")
        self.assertEqual(Decimal(ctx.exception.details["grn_total_value"]), Decimal("100"))
        self.assertEqual(ctx.exception.details["grn_count"], 1)
        self.assertFalse(Payment.objects.exists())

        self.pay("100")
        self.po.refresh_from_db()
        self.assertEqual(self.po.total_paid, Decimal("100"))

    def test_advance_payment_before_receipt(self):
        result = self.pay("50")

        self.assertEqual(result["payment_status"], PurchaseOrder.PaymentStatus.PARTIAL)

    def test_renegotiated_receivable(self):
        self.receive_all(self.po)
        PurchaseOrderService.set_receivable_amount(self.po.id, "300")

        with self.assertRaises(BusinessRuleError):
            self.pay("310")

        self.assertEqual(self.pay("300")["payment_status"], PurchaseOrder.PaymentStatus.PAID)

    def test_validation(self):
        with self.assertRaises(ValidationError):
            self.pay("0")
        with self.assertRaises(ValidationError):
            self.pay("10", method="barter")
        with self.assertRaises(ValidationError):
            PaymentService.record(po_id=self.po.id, amount="10", payment_method="cash")

    def test_outstanding(self):
        self.receive_all(self.po)
        self.pay("100")

        result = PaymentService.outstanding()

        self.assertEqual(result["count"], 1)
        self.assertEqual(Decimal(result["total_outstanding"]), Decimal("230"))

        self.pay("230")
        self.assertEqual(PaymentService.outstanding()["count"], 0)
