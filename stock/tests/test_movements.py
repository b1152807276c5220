from decimal import Decimal

from django.test import TestCase

from stock.models import Ingredient, StockMovement, StockSettings
from stock.services import (
    StockMovementService, ValidationError, InsufficientStockError,
)


class StockMovementServiceTests(TestCase):

    def setUp(self):
        self.milk = Ingredient.objects.create(name="Milk", unit="l", stock_quantity=Decimal("10"))

    def refresh(self):
        self.milk.refresh_from_db()
        return self.milk.stock_quantity

    def test_inbound_adds_absolute_quantity(self):
        movement = StockMovementService.record(self.milk.id, "in", "-4", reference_type="manual")

        self.assertEqual(movement.quantity, Decimal("4"))
        self.assertEqual(movement.quantity_before, Decimal("10"))
        self.assertEqual(movement.quantity_after, Decimal("14"))
        self.assertEqual(self.refresh(), Decimal("14"))

    def test_outbound_is_negative(self):
        movement = StockMovementService.record(self.milk.id, "out", "3")

        self.assertEqual(movement.quantity, Decimal("-3"))
        self.assertEqual(self.refresh(), Decimal("7"))

    def test_zero_quantity_rejected(self):
        with self.assertRaises(ValidationError):
            StockMovementService.record(self.milk.id, "adjustment", "0")

        self.assertFalse(StockMovement.objects.exists())

    def test_negative_stock_blocked_by_default(self):
        with self.assertRaises(InsufficientStockError):
            StockMovementService.record(self.milk.id, "out", "11")

        self.assertEqual(self.refresh(), Decimal("10"))
        self.assertFalse(StockMovement.objects.exists())

    def test_negative_stock_allowed_by_setting(self):
        settings = StockSettings.load()
        settings.allow_negative_stock = True
        settings.save()

        StockMovementService.record(self.milk.id, "out", "11")

        self.assertEqual(self.refresh(), Decimal("-1"))

    def test_set_quantity_records_difference(self):
        movement = StockMovementService.set_quantity(self.milk.id, "6", reference_type="adjustment")

        self.assertEqual(movement.movement_type, StockMovement.MovementType.ADJUSTMENT)
        self.assertEqual(movement.quantity, Decimal("-4"))
        self.assertEqual(self.refresh(), Decimal("6"))

    def test_set_quantity_unchanged_writes_nothing(self):
        self.assertIsNone(StockMovementService.set_quantity(self.milk.id, "10"))
        self.assertFalse(StockMovement.objects.exists())

    def test_consume_records_sale(self):
        result = StockMovementService.consume(self.milk.id, "2", reference_id=55)

        self.assertTrue(result["success"])
        self.assertEqual(result["movement"]["reference_type"], "sale")
        self.assertEqual(Decimal(result["movement"]["quantity"]), Decimal("-2"))
        self.assertEqual(self.refresh(), Decimal("8"))

    def test_verify_reconstructs_on_hand(self):
        StockMovementService.record(self.milk.id, "in", "5")
        StockMovementService.record(self.milk.id, "out", "2")
        StockMovementService.set_quantity(self.milk.id, "20")

        report = StockMovementService.verify(self.milk.id)

        self.assertTrue(report["consistent"])
        self.assertEqual(report["movement_count"], 3)
        self.assertEqual(Decimal(report["reconstructed_quantity"]), Decimal("20"))

    def test_verify_detects_direct_edit(self):
        StockMovementService.record(self.milk.id, "in", "5")
        Ingredient.objects.filter(id=self.milk.id).update(stock_quantity=Decimal("99"))

        report = StockMovementService.verify(self.milk.id)

        self.assertFalse(report["consistent"])

    def test_history_is_newest_first(self):
        StockMovementService.record(self.milk.id, "in", "1")
        StockMovementService.record(self.milk.id, "out", "2")

        history = StockMovementService.history(self.milk.id)

        self.assertEqual([m["movement_type"] for m in history["movements"]], ["out", "in"])
