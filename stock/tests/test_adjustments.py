from decimal import Decimal
from unittest import mock

from django.test import TestCase

from stock.models import Ingredient, StockAdjustment, StockMovement
from stock.services import StockAdjustmentService, StockMovementService, ValidationError


class StockAdjustmentTests(TestCase):

    def setUp(self):
        self.flour = Ingredient.objects.create(name="Flour", unit="kg", stock_quantity=Decimal("100"))
        self.sugar = Ingredient.objects.create(name="Sugar", unit="kg", stock_quantity=Decimal("20"))

    def test_physical_count(self):
        result = StockAdjustmentService.adjust(
            "physical_count",
            items=[{"ingredient_id": self.flour.id, "system_quantity": "100", "actual_quantity": "92"}],
            notes="Monthly count",
        )

        self.flour.refresh_from_db()
        self.assertEqual(self.flour.stock_quantity, Decimal("92"))

        movement = StockMovement.objects.get()
        self.assertEqual(movement.movement_type, StockMovement.MovementType.ADJUSTMENT)
        self.assertEqual(movement.quantity, Decimal("-8"))
        self.assertEqual(movement.reference_type, StockMovement.ReferenceType.ADJUSTMENT)
        self.assertEqual(movement.reference_id, result["adjustment_id"])
        self.assertEqual(movement.remarks, f"Adjustment {result['adjustment_number']}: Monthly count")
        self.assertEqual(Decimal(result["adjustment"]["items"][0]["variance"]), Decimal("-8"))

    def test_zero_variance_writes_no_movement(self):
        result = StockAdjustmentService.adjust(
            "physical_count",
            items=[{"ingredient_id": self.sugar.id, "actual_quantity": "20"}],
        )

        self.assertEqual(result["movements"], [])
        self.assertTrue(StockAdjustment.objects.exists())
        self.assertFalse(StockMovement.objects.exists())

    def test_stale_snapshot_uses_current_stock(self):
        StockMovementService.record(self.flour.id, "out", "10")

        StockAdjustmentService.adjust(
            "wastage",
            items=[{"ingredient_id": self.flour.id, "system_quantity": "100", "actual_quantity": "85"}],
        )

        movement = StockMovement.objects.filter(reference_type="adjustment").get()
        self.assertEqual(movement.quantity_before, Decimal("90"))
        self.assertEqual(movement.quantity, Decimal("-5"))

    def test_invalid_line_rejects_batch(self):
        with self.assertRaises(ValidationError):
            StockAdjustmentService.adjust(
                "loss",
                items=[
                    {"ingredient_id": self.flour.id, "actual_quantity": "90"},
                    {"ingredient_id": self.sugar.id, "actual_quantity": "-1"},
                ],
            )

        self.flour.refresh_from_db()
        self.assertEqual(self.flour.stock_quantity, Decimal("100"))
        self.assertFalse(StockAdjustment.objects.exists())
        self.assertFalse(StockMovement.objects.exists())

    def test_invalid_type(self):
        with self.assertRaises(ValidationError):
            StockAdjustmentService.adjust(
                "theft", items=[{"ingredient_id": self.flour.id, "actual_quantity": "1"}]
            )

    def test_failure_midway_rolls_back_batch(self):
        original = StockMovementService.set_quantity
        calls = []

        def flaky(*args, **kwargs):
            calls.append(kwargs["ingredient_id"])
            if len(calls) == 2:
                raise RuntimeError("db hiccup")
            return original(*args, **kwargs)

        with mock.patch.object(StockMovementService, "set_quantity", side_effect=flaky):
            with self.assertRaises(RuntimeError):
                StockAdjustmentService.adjust(
                    "physical_count",
                    items=[
                        {"ingredient_id": self.flour.id, "actual_quantity": "90"},
                        {"ingredient_id": self.sugar.id, "actual_quantity": "18"},
                    ],
                )

        self.flour.refresh_from_db()
        self.assertEqual(self.flour.stock_quantity, Decimal("100"))
        self.assertFalse(StockAdjustment.objects.exists())
        self.assertFalse(StockMovement.objects.exists())
