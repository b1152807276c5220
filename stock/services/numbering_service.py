"""
Document numbers: <PREFIX>-<YYYYMMDD>-<NNN>.

The daily counter row hands out sequence values; the unique constraint on the
number column is the final guard. Collisions (rows numbered outside the
counter, or a counter reset) are retried a bounded number of times before
falling back to a timestamp-derived suffix.
"""
import logging
import random
import time
from datetime import date
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import Model
from django.utils import timezone

from stock.models import DailySequence, StockSettings

logger = logging.getLogger(__name__)


class NumberingService:
    INTEND = "IND"
    PURCHASE_ORDER = "PO"
    GRN = "GRN"
    PAYMENT = "PAY"
    ADJUSTMENT = "ADJ"

    KINDS = [INTEND, PURCHASE_ORDER, GRN, PAYMENT, ADJUSTMENT]

    @classmethod
    def next(cls, kind: str, on_date: date = None) -> int:
        """Return the next sequence value for ``kind`` on ``on_date``."""
        if kind not in cls.KINDS:
            raise ValueError(f"Unknown number kind: {kind}")
        on_date = on_date or timezone.localdate()

        with transaction.atomic():
            counter = DailySequence.objects.select_for_update().filter(
                kind=kind, date=on_date
            ).first()

            if counter is None:
                try:
                    with transaction.atomic():
                        counter = DailySequence.objects.create(
                            kind=kind, date=on_date, last_value=0
                        )
                except IntegrityError:
                    # Another request created today's counter first
                    counter = DailySequence.objects.select_for_update().get(
                        kind=kind, date=on_date
                    )

            counter.last_value += 1
            counter.save(update_fields=["last_value"])

        logger.debug(f"Allocated {kind} sequence {counter.last_value} for {on_date}")
        return counter.last_value

    @staticmethod
    def format(kind: str, on_date: date, sequence: int) -> str:
        return f"{kind}-{on_date:%Y%m%d}-{sequence:03d}"

    @staticmethod
    def fallback(kind: str, on_date: date) -> str:
        timestamp = str(int(time.time() * 1000))[-6:]
        return f"{kind}-{on_date:%Y%m%d}-{timestamp}{random.randint(0, 999):03d}"

    @classmethod
    def create_numbered(cls,
                        kind: str,
                        model: type,
                        field: str,
                        on_date: date = None,
                        **values: Any) -> Model:
        """
        Insert a ``model`` row numbered from the ``kind`` sequence.

        Each attempt runs in its own savepoint so a uniqueness violation on
        ``field`` only discards that attempt. Any other integrity error is
        re-raised.
        """
        on_date = on_date or timezone.localdate()
        attempts = max(1, StockSettings.load().number_retry_attempts)

        for attempt in range(1, attempts + 1):
            number = cls.format(kind, on_date, cls.next(kind, on_date))
            try:
                with transaction.atomic():
                    return model.objects.create(**{field: number}, **values)
            except IntegrityError:
                if not model.objects.filter(**{field: number}).exists():
                    raise
                logger.warning(f"Number {number} already taken (attempt {attempt}/{attempts})")

        number = cls.fallback(kind, on_date)
        logger.warning(f"Sequence retries exhausted for {kind}, using {number}")
        with transaction.atomic():
            return model.objects.create(**{field: number}, **values)
