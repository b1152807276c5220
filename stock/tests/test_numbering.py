from datetime import date

from django.test import TestCase

from stock.models import Intend, DailySequence, StockSettings
from stock.services import NumberingService, IntendService
from stock.tests.base import ProcurementFixtures


class NumberingServiceTests(TestCase):

    def test_sequence_is_per_kind_and_day(self):
        day = date(2026, 10, 18)

        self.assertEqual(NumberingService.next(NumberingService.GRN, day), 1)
        self.assertEqual(NumberingService.next(NumberingService.GRN, day), 2)
        self.assertEqual(NumberingService.next(NumberingService.PAYMENT, day), 1)
        self.assertEqual(NumberingService.next(NumberingService.GRN, date(2026, 10, 19)), 1)
        self.assertEqual(DailySequence.objects.count(), 3)

    def test_format(self):
        self.assertEqual(
            NumberingService.format(NumberingService.PURCHASE_ORDER, date(2026, 1, 5), 7),
            "PO-20260105-007",
        )

    def test_unknown_kind_rejected(self):
        with self.assertRaises(ValueError):
            NumberingService.next("XYZ")


class NumberCollisionTests(ProcurementFixtures, TestCase):

    def test_taken_number_is_skipped(self):
        Intend.objects.create(intend_number="IND-20261018-001", intend_date=self.TODAY)

        intend = self.create_intend()

        self.assertEqual(intend["intend_number"], "IND-20261018-002")

    def test_fallback_after_retries_exhausted(self):
        settings = StockSettings.load()
        settings.number_retry_attempts = 1
        settings.save()
        Intend.objects.create(intend_number="IND-20261018-001", intend_date=self.TODAY)

        intend = self.create_intend()

        number = intend["intend_number"]
        self.assertTrue(number.startswith("IND-20261018-"))
        self.assertNotEqual(number, "IND-20261018-001")
        self.assertEqual(len(number.rsplit("-", 1)[1]), 9)

    def test_numbers_follow_document_date(self):
        result = IntendService.create(
            items=[{"ingredient_id": self.flour.id, "quantity": "1"}],
            intend_date="2026-03-02",
        )

        self.assertEqual(result["intend_number"], "IND-20260302-001")
