from decimal import Decimal

from django.test import TestCase

from stock.models import Intend, PurchaseOrder, POItem, Ingredient
from stock.services import (
    PurchaseOrderService, IntendService, PaymentService, ValidationError, BusinessRuleError,
)
from stock.tests.base import ProcurementFixtures


class GenerateFromIntendTests(ProcurementFixtures, TestCase):

    def test_generate_full_intend(self):
        intend = self.create_intend()

        po = self.create_po(intend)

        self.assertEqual(po.total_amount, Decimal("330"))
        self.assertEqual(po.total_items_count, 2)
        self.assertEqual(po.status, PurchaseOrder.Status.PENDING)
        self.assertEqual(po.payment_status, PurchaseOrder.PaymentStatus.UNPAID)
        self.assertTrue(po.po_number.startswith("PO-"))
        self.assertEqual(Intend.objects.get(id=intend["id"]).status, Intend.Status.FULFILLED)

    def test_partial_generation(self):
        intend = self.create_intend()

        result = PurchaseOrderService.generate_from_intend(
            intend_id=intend["id"],
            vendor_id=self.vendor.id,
            items=[{
                "intend_item_id": self.intend_item_id(intend, self.flour),
                "quantity": "5",
                "unit_price": "50",
            }],
        )

        self.assertEqual(result["intend_status"], Intend.Status.PARTIALLY_FULFILLED)
        self.assertEqual(Decimal(result["total_amount"]), Decimal("250"))

    def test_last_price_updated(self):
        self.create_po()

        self.flour.refresh_from_db()
        self.assertEqual(self.flour.last_price, Decimal("50"))
        self.assertEqual(self.flour.stock_quantity, Decimal("0"))

    def test_item_from_other_intend_rejected(self):
        intend = self.create_intend()
        other = IntendService.create(items=[{"ingredient_id": self.flour.id, "quantity": "1"}])["intend"]

        with self.assertRaises(ValidationError):
            PurchaseOrderService.generate_from_intend(
                intend_id=intend["id"],
                vendor_id=self.vendor.id,
                items=[{
                    "intend_item_id": other["items"][0]["id"],
                    "quantity": "1",
                    "unit_price": "50",
                }],
            )

        self.assertFalse(PurchaseOrder.objects.exists())

    def test_ingredient_mismatch_rejected(self):
        intend = self.create_intend()

        with self.assertRaises(ValidationError):
            PurchaseOrderService.generate_from_intend(
                intend_id=intend["id"],
                vendor_id=self.vendor.id,
                items=[{
                    "intend_item_id": self.intend_item_id(intend, self.flour),
                    "ingredient_id": self.sugar.id,
                    "quantity": "5",
                    "unit_price": "50",
                }],
            )

    def test_item_already_on_po_rejected(self):
        intend = self.create_intend()
        self.create_po(intend)

        with self.assertRaises(BusinessRuleError) as ctx:
            PurchaseOrderService.generate_from_intend(
                intend_id=intend["id"],
                vendor_id=self.vendor.id,
                items=[{
                    "intend_item_id": self.intend_item_id(intend, self.flour),
                    "quantity": "1",
                    "unit_price": "50",
                }],
            )

        self.assertEqual(ctx.exception.rule, "intend_item_linked")
        self.assertEqual(PurchaseOrder.objects.count(), 1)

    def test_duplicate_line_with_string_id_rejected(self):
        intend = self.create_intend()
        item_id = self.intend_item_id(intend, self.flour)

        with self.assertRaises(ValidationError) as ctx:
            PurchaseOrderService.generate_from_intend(
                intend_id=intend["id"],
                vendor_id=self.vendor.id,
                items=[
                    {"intend_item_id": item_id, "quantity": "5", "unit_price": "50"},
                    {"intend_item_id": str(item_id), "quantity": "3", "unit_price": "50"},
                ],
            )
        self.assertEqual(ctx.exception.field, "items[1].intend_item_id")

        self.assertFalse(PurchaseOrder.objects.exists())
        self.assertEqual(Intend.objects.get(id=intend["id"]).status, Intend.Status.PENDING)

    def test_non_numeric_ingredient_id_rejected(self):
        intend = self.create_intend()

        with self.assertRaises(ValidationError) as ctx:
            PurchaseOrderService.generate_from_intend(
                intend_id=intend["id"],
                vendor_id=self.vendor.id,
                items=[{
                    "intend_item_id": self.intend_item_id(intend, self.flour),
                    "ingredient_id": "flour",
                    "quantity": "5",
                    "unit_price": "50",
                }],
            )
        self.assertEqual(ctx.exception.field, "items[0].ingredient_id")
        self.assertFalse(PurchaseOrder.objects.exists())

    def test_bad_line_leaves_no_po(self):
        intend = self.create_intend()

        with self.assertRaises(ValidationError):
            PurchaseOrderService.generate_from_intend(
                intend_id=intend["id"],
                vendor_id=self.vendor.id,
                items=[
                    {"intend_item_id": self.intend_item_id(intend, self.flour), "quantity": "5", "unit_price": "50"},
                    {"intend_item_id": self.intend_item_id(intend, self.sugar), "quantity": "2", "unit_price": "-1"},
                ],
            )

        self.assertFalse(PurchaseOrder.objects.exists())
        self.assertFalse(POItem.objects.exists())
        self.assertEqual(Intend.objects.get(id=intend["id"]).status, Intend.Status.PENDING)
        self.assertEqual(Ingredient.objects.get(id=self.flour.id).last_price, Decimal("0"))


class PurchaseOrderStatusTests(ProcurementFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.po = self.create_po()

    def test_manual_transitions(self):
        PurchaseOrderService.update_status(self.po.id, "confirmed")
        PurchaseOrderService.update_status(self.po.id, "received")

        self.po.refresh_from_db()
        self.assertEqual(self.po.status, PurchaseOrder.Status.RECEIVED)

    def test_backwards_transition_rejected(self):
        PurchaseOrderService.update_status(self.po.id, "confirmed")

        with self.assertRaises(BusinessRuleError) as ctx:
            PurchaseOrderService.update_status(self.po.id, "pending")

        self.assertEqual(ctx.exception.rule, "po_status_transition")

    def test_receipt_keeps_confirmed_until_goods_arrive(self):
        PurchaseOrderService.update_status(self.po.id, "confirmed")

        PurchaseOrderService.recalculate_receipt(self.po)

        self.po.refresh_from_db()
        self.assertEqual(self.po.status, PurchaseOrder.Status.CONFIRMED)

    def test_receivable_override(self):
        PurchaseOrderService.set_receivable_amount(self.po.id, "300")

        self.po.refresh_from_db()
        self.assertEqual(self.po.receivable_amount, Decimal("300"))
        self.assertEqual(self.po.outstanding_amount, Decimal("300"))

        PurchaseOrderService.set_receivable_amount(self.po.id, None)

        self.po.refresh_from_db()
        self.assertIsNone(self.po.actual_receivable_amount)
        self.assertEqual(self.po.receivable_amount, Decimal("330"))

    def test_receivable_below_paid_rejected(self):
        self.receive_all(self.po)
        PaymentService.record(self.po.id, "200", "cash", payment_date=self.TODAY)

        with self.assertRaises(BusinessRuleError) as ctx:
            PurchaseOrderService.set_receivable_amount(self.po.id, "150")

        self.assertEqual(ctx.exception.rule, "receivable_below_paid")
