"""
Advisory side effects.

Integrity rows (PO, POItem, GRN, GRNItem, Payment) commit together or not at
all. Writes that only keep derived data fresh (an ingredient's last price,
the stock movement of a receipt) run through SideEffectRunner instead: each
one gets its own savepoint, and a failure is logged, queued as a
PendingSideEffect and reported back as an outcome rather than aborting the
operation. ``python manage.py retry_side_effects`` replays the queue.
"""
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from stock.models import Ingredient, PendingSideEffect, StockSettings
from stock.services.base_service import NotFoundError, require_decimal

logger = logging.getLogger(__name__)


@dataclass
class SideEffectOutcome:
    kind: str
    ok: bool
    error: str = ""
    pending_id: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


def update_last_price(payload: Dict[str, Any]) -> None:
    price = require_decimal(payload.get("price"), "price")
    updated = Ingredient.objects.filter(id=payload["ingredient_id"]).update(
        last_price=price, updated_at=timezone.now()
    )
    if not updated:
        raise NotFoundError("Ingredient", payload["ingredient_id"])


def record_stock_movement(payload: Dict[str, Any]) -> None:
    from .movement_service import StockMovementService
    StockMovementService.record(**payload)


class SideEffectRunner:
    HANDLERS = {
        PendingSideEffect.Kind.LAST_PRICE: update_last_price,
        PendingSideEffect.Kind.STOCK_MOVEMENT: record_stock_movement,
    }

    @classmethod
    def apply(cls, kind: str, payload: Dict[str, Any]) -> None:
        handler = cls.HANDLERS.get(kind)
        if handler is None:
            raise ValueError(f"Unknown side effect: {kind}")
        with transaction.atomic():
            handler(payload)

    @classmethod
    def run(cls,
            kind: str,
            payload: Dict[str, Any],
            source_type: str = "",
            source_id: int = None) -> SideEffectOutcome:
        try:
            cls.apply(kind, payload)
            return SideEffectOutcome(kind=kind, ok=True)
        except Exception as e:
            logger.warning(f"Side effect {kind} failed for {source_type}#{source_id}: {e}")

            pending = None
            if StockSettings.load().queue_failed_side_effects:
                pending = PendingSideEffect.objects.create(
                    kind=kind,
                    payload=payload,
                    source_type=source_type,
                    source_id=source_id,
                    last_error=str(e),
                )
                logger.info(f"Queued pending side effect #{pending.id} ({kind})")

            return SideEffectOutcome(
                kind=kind, ok=False, error=str(e),
                pending_id=pending.id if pending else None,
            )

    @staticmethod
    def warnings(outcomes: List[SideEffectOutcome]) -> List[dict]:
        return [o.to_dict() for o in outcomes if not o.ok]

    @classmethod
    def pending_count(cls) -> int:
        return PendingSideEffect.objects.filter(resolved_at__isnull=True).count()

    @classmethod
    def retry_pending(cls, limit: int = 100) -> Tuple[int, int]:
        resolved, failed = 0, 0
        queue = PendingSideEffect.objects.filter(resolved_at__isnull=True)[:limit]

        for effect in queue:
            try:
                cls.apply(effect.kind, effect.payload)
            except Exception as e:
                effect.attempts += 1
                effect.last_error = str(e)
                effect.save(update_fields=["attempts", "last_error", "updated_at"])
                failed += 1
                logger.warning(f"Pending side effect #{effect.id} still failing: {e}")
                continue

            effect.resolved_at = timezone.now()
            effect.save(update_fields=["resolved_at", "updated_at"])
            resolved += 1
            logger.info(f"Pending side effect #{effect.id} ({effect.kind}) resolved")

        return resolved, failed
