from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.test import TestCase

from stock.models import (
    PurchaseOrder, GRN, GRNItem, StockMovement, PendingSideEffect, StockSettings,
)
from stock.services import (
    GoodsReceiptService, PurchaseOrderService, SideEffectRunner, ValidationError, BusinessRuleError,
)
from stock.tests.base import ProcurementFixtures


class GoodsReceiptTests(ProcurementFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.po = self.create_po()

    def test_partial_deliveries_accumulate(self):
        first = self.receive(self.po, [(self.flour, "3")])

        self.assertEqual(first["po_status"], PurchaseOrder.Status.PARTIALLY_RECEIVED)
        self.assertEqual(Decimal(first["received_percentage"]), Decimal("0"))

        second = self.receive(self.po, [(self.flour, "2")])

        self.assertEqual(self.po_item(self.po, self.flour).quantity_received, Decimal("5"))
        self.assertEqual(Decimal(second["received_percentage"]), Decimal("50"))
        self.assertEqual(second["po_status"], PurchaseOrder.Status.PARTIALLY_RECEIVED)

        third = self.receive(self.po, [(self.sugar, "2")])

        self.assertEqual(third["po_status"], PurchaseOrder.Status.RECEIVED)
        self.assertEqual(Decimal(third["received_percentage"]), Decimal("100"))
        self.assertEqual(GRN.objects.filter(purchase_order=self.po).count(), 3)

    def test_stock_and_ledger_updated(self):
        result = self.receive_all(self.po)

        self.flour.refresh_from_db()
        self.assertEqual(self.flour.stock_quantity, Decimal("5"))

        movement = StockMovement.objects.get(ingredient=self.flour)
        self.assertEqual(movement.movement_type, StockMovement.MovementType.IN)
        self.assertEqual(movement.reference_type, StockMovement.ReferenceType.GRN)
        self.assertEqual(movement.reference_id, result["grn_id"])
        self.assertEqual(movement.remarks, f"Purchase: PO {self.po.po_number}, GRN {result['grn_number']}")
        self.assertEqual(result["warnings"], [])

    def test_snapshots_and_actual_price(self):
        result = self.receive(self.po, [(self.flour, "5", "55")])

        item = GRNItem.objects.get(grn_id=result["grn_id"])
        self.assertEqual(item.quantity_ordered, Decimal("5"))
        self.assertEqual(item.unit_price_ordered, Decimal("50"))
        self.assertEqual(item.unit_price_actual, Decimal("55"))
        self.assertEqual(item.total_amount, Decimal("275"))
        self.assertEqual(GoodsReceiptService.total_value(self.po.id), Decimal("275"))

        self.flour.refresh_from_db()
        self.assertEqual(self.flour.last_price, Decimal("55"))

    def test_recalculation_is_idempotent(self):
        self.receive(self.po, [(self.flour, "5")])
        self.po.refresh_from_db()
        before = (self.po.status, self.po.received_items_count, self.po.received_percentage)

        PurchaseOrderService.recalculate_receipt(self.po)
        self.po.refresh_from_db()

        self.assertEqual(before, (self.po.status, self.po.received_items_count, self.po.received_percentage))

    def test_over_receipt_tolerated_by_default(self):
        self.receive(self.po, [(self.flour, "6")])

        self.assertEqual(self.po_item(self.po, self.flour).quantity_received, Decimal("6"))

    def test_over_receipt_can_be_forbidden(self):
        settings = StockSettings.load()
        settings.allow_over_receipt = False
        settings.save()

        with self.assertRaises(BusinessRuleError) as ctx:
            self.receive(self.po, [(self.flour, "6")])

        self.assertEqual(ctx.exception.rule, "over_receipt")
        self.assertFalse(GRN.objects.exists())

    def test_item_from_other_po_rejected(self):
        other_po = self.create_po()

        with self.assertRaises(ValidationError):
            GoodsReceiptService.receive(
                po_id=self.po.id,
                items=[{"po_item_id": self.po_item(other_po, self.flour).id, "quantity_received": "1"}],
            )

        self.assertFalse(GRN.objects.exists())

    def test_duplicate_line_rejected(self):
        po_item_id = self.po_item(self.po, self.flour).id

        with self.assertRaises(ValidationError):
            GoodsReceiptService.receive(
                po_id=self.po.id,
                items=[
                    {"po_item_id": po_item_id, "quantity_received": "1"},
                    {"po_item_id": po_item_id, "quantity_received": "1"},
                ],
            )

    def test_duplicate_line_with_string_id_rejected(self):
        po_item = self.po_item(self.po, self.flour)

        with self.assertRaises(ValidationError) as ctx:
            GoodsReceiptService.receive(
                po_id=self.po.id,
                items=[
                    {"po_item_id": po_item.id, "quantity_received": "1"},
                    {"po_item_id": str(po_item.id), "quantity_received": "2"},
                ],
            )
        self.assertEqual(ctx.exception.field, "items[1].po_item_id")

        self.assertFalse(GRN.objects.exists())
        po_item.refresh_from_db()
        self.assertEqual(po_item.quantity_received, Decimal("0"))

    def test_non_numeric_ingredient_id_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            GoodsReceiptService.receive(
                po_id=self.po.id,
                items=[{
                    "po_item_id": self.po_item(self.po, self.flour).id,
                    "ingredient_id": "flour",
                    "quantity_received": "1",
                }],
            )
        self.assertEqual(ctx.exception.field, "items[0].ingredient_id")
        self.assertFalse(GRN.objects.exists())


class ReceiptSideEffectTests(ProcurementFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.po = self.create_po()

    def failing_ledger(self):
        return mock.patch.dict(SideEffectRunner.HANDLERS, {
            PendingSideEffect.Kind.STOCK_MOVEMENT: mock.Mock(side_effect=RuntimeError("ledger down")),
        })

    def test_movement_failure_keeps_receipt(self):
        with self.failing_ledger():
            result = self.receive(self.po, [(self.flour, "5")])

        self.assertTrue(GRN.objects.filter(id=result["grn_id"]).exists())
        self.assertEqual(self.po_item(self.po, self.flour).quantity_received, Decimal("5"))
        self.assertEqual(len(result["warnings"]), 1)
        self.assertEqual(result["warnings"][0]["kind"], PendingSideEffect.Kind.STOCK_MOVEMENT)

        pending = PendingSideEffect.objects.get()
        self.assertEqual(pending.source_type, "grn")
        self.assertEqual(pending.source_id, result["grn_id"])
        self.assertIn("ledger down", pending.last_error)

        self.flour.refresh_from_db()
        self.assertEqual(self.flour.stock_quantity, Decimal("0"))

    def test_retry_command_replays_queue(self):
        with self.failing_ledger():
            self.receive(self.po, [(self.flour, "5")])

        out = StringIO()
        call_command("retry_side_effects", stdout=out)

        self.assertIn("Resolved: 1, Failed: 0", out.getvalue())
        self.assertTrue(PendingSideEffect.objects.get().is_resolved)
        self.flour.refresh_from_db()
        self.assertEqual(self.flour.stock_quantity, Decimal("5"))
        self.assertEqual(StockMovement.objects.filter(ingredient=self.flour).count(), 1)

    def test_queue_disabled(self):
        settings = StockSettings.load()
        settings.queue_failed_side_effects = False
        settings.save()

        with self.failing_ledger():
            result = self.receive(self.po, [(self.flour, "5")])

        self.assertIsNone(result["warnings"][0]["pending_id"])
        self.assertFalse(PendingSideEffect.objects.exists())

    def test_retry_command_with_empty_queue(self):
        out = StringIO()
        call_command("retry_side_effects", stdout=out)

        self.assertIn("No pending side effects.", out.getvalue())
