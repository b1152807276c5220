import logging
from typing import Dict, Any, Optional
from decimal import Decimal
from datetime import datetime, date, time
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from django.utils.dateparse import parse_datetime, parse_date

from stock.models import Ingredient, StockMovement, StockSettings
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, InsufficientStockError,
    to_decimal, require_decimal
)

logger = logging.getLogger(__name__)


def to_movement_datetime(value) -> datetime:
    if value is None or value == "":
        return timezone.now()
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            parsed_date = parse_date(value)
            if parsed_date is None:
                raise ValidationError(f"Invalid movement date: {value}", "movement_date")
            value = parsed_date
        else:
            value = parsed
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


class StockMovementService(BaseService):
    """
    The only writer of Ingredient.stock_quantity. Every change locks the
    ingredient row and appends exactly one StockMovement whose signed
    quantity equals quantity_after - quantity_before.
    """
    model = StockMovement

    @classmethod
    def serialize(cls, movement: StockMovement) -> Dict[str, Any]:
        return {
            "id": movement.id,
            "uuid": str(movement.uuid),
            "ingredient_id": movement.ingredient_id,
            "ingredient_name": movement.ingredient.name,
            "movement_type": movement.movement_type,
            "movement_type_display": movement.get_movement_type_display(),
            "quantity": str(movement.quantity),
            "quantity_before": str(movement.quantity_before),
            "quantity_after": str(movement.quantity_after),
            "unit_cost": str(movement.unit_cost) if movement.unit_cost is not None else None,
            "reference_type": movement.reference_type,
            "reference_id": movement.reference_id,
            "remarks": movement.remarks,
            "movement_date": movement.movement_date.isoformat(),
        }

    @classmethod
    def _lock_ingredient(cls, ingredient_id: int) -> Ingredient:
        ingredient = Ingredient.objects.select_for_update().filter(id=ingredient_id).first()
        if not ingredient:
            raise NotFoundError("Ingredient", ingredient_id)
        return ingredient

    @classmethod
    def _write(cls,
               ingredient: Ingredient,
               movement_type: str,
               delta: Decimal,
               reference_type: str,
               reference_id: Optional[int],
               unit_cost: Optional[Decimal],
               remarks: str,
               movement_date) -> StockMovement:
        quantity_before = ingredient.stock_quantity
        quantity_after = quantity_before + delta

        if quantity_after < 0 and not StockSettings.load().allow_negative_stock:
            raise InsufficientStockError(ingredient.name, abs(delta), quantity_before)

        ingredient.stock_quantity = quantity_after
        ingredient.save(update_fields=["stock_quantity", "updated_at"])

        movement = cls.model.objects.create(
            ingredient=ingredient,
            movement_type=movement_type,
            quantity=delta,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            unit_cost=to_decimal(unit_cost) if unit_cost is not None else None,
            reference_type=reference_type or "",
            reference_id=reference_id,
            remarks=remarks or "",
            movement_date=to_movement_datetime(movement_date),
        )

        logger.info(
            f"Stock {movement_type} {delta:+} {ingredient.unit} for {ingredient.name} "
            f"({quantity_before} -> {quantity_after}), ref {reference_type}#{reference_id}"
        )
        return movement

    @classmethod
    @transaction.atomic
    def record(cls,
               ingredient_id: int,
               movement_type: str,
               quantity: Any,
               reference_type: str = "",
               reference_id: int = None,
               unit_cost: Any = None,
               remarks: str = "",
               movement_date: Any = None) -> StockMovement:
        """
        Apply a relative change. ``in`` adds |quantity|, ``out`` removes
        |quantity|, ``adjustment`` applies quantity with its sign.
        """
        valid_types = [c[0] for c in StockMovement.MovementType.choices]
        if movement_type not in valid_types:
            raise ValidationError(f"Invalid movement type. Valid: {valid_types}", "movement_type")

        quantity = require_decimal(quantity, "quantity")

        if movement_type == StockMovement.MovementType.IN:
            delta = abs(quantity)
        elif movement_type == StockMovement.MovementType.OUT:
            delta = -abs(quantity)
        else:
            delta = quantity

        if delta == 0:
            raise ValidationError("Movement quantity must be non-zero", "quantity")

        ingredient = cls._lock_ingredient(ingredient_id)
        return cls._write(
            ingredient, movement_type, delta,
            reference_type, reference_id, unit_cost, remarks, movement_date,
        )

    @classmethod
    @transaction.atomic
    def set_quantity(cls,
                     ingredient_id: int,
                     quantity: Any,
                     reference_type: str = "",
                     reference_id: int = None,
                     remarks: str = "",
                     movement_date: Any = None) -> Optional[StockMovement]:
        """
        Overwrite on-hand to an absolute quantity. The difference is recorded
        as an ``adjustment`` movement; no row is written when nothing changes.
        """
        quantity = require_decimal(quantity, "quantity")
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative", "quantity")

        ingredient = cls._lock_ingredient(ingredient_id)
        delta = quantity - ingredient.stock_quantity
        if delta == 0:
            return None

        return cls._write(
            ingredient, StockMovement.MovementType.ADJUSTMENT, delta,
            reference_type, reference_id, None, remarks, movement_date,
        )

    @classmethod
    def consume(cls,
                ingredient_id: int,
                quantity: Any,
                reference_id: int = None,
                remarks: str = "") -> Dict[str, Any]:
        """Outbound movement for sales consumption."""
        movement = cls.record(
            ingredient_id=ingredient_id,
            movement_type=StockMovement.MovementType.OUT,
            quantity=quantity,
            reference_type=StockMovement.ReferenceType.SALE,
            reference_id=reference_id,
            remarks=remarks,
        )
        return success_response({
            "movement": cls.serialize(movement),
        }, f"Stock consumed: {movement.quantity} {movement.ingredient.unit}")

    @classmethod
    def history(cls,
                ingredient_id: int,
                movement_type: str = None,
                page: int = 1,
                per_page: int = 50) -> Dict[str, Any]:
        ingredient = Ingredient.objects.filter(id=ingredient_id).first()
        if not ingredient:
            raise NotFoundError("Ingredient", ingredient_id)

        queryset = cls.model.objects.filter(
            ingredient_id=ingredient_id
        ).select_related("ingredient")

        if movement_type:
            queryset = queryset.filter(movement_type=movement_type)

        movements, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "ingredient_id": ingredient.id,
            "ingredient_name": ingredient.name,
            "stock_quantity": str(ingredient.stock_quantity),
            "movements": [cls.serialize(m) for m in movements],
            "pagination": pagination,
        })

    @classmethod
    def for_reference(cls, reference_type: str, reference_id: int) -> Dict[str, Any]:
        movements = cls.model.objects.filter(
            reference_type=reference_type, reference_id=reference_id
        ).select_related("ingredient").order_by("id")

        return success_response({
            "movements": [cls.serialize(m) for m in movements],
            "count": movements.count(),
        })

    @classmethod
    def verify(cls, ingredient_id: int) -> Dict[str, Any]:
        """
        Rebuild on-hand from the ledger: opening balance of the first movement
        plus the sum of all signed quantities must equal stock_quantity, and
        each movement must start where the previous one ended.
        """
        ingredient = Ingredient.objects.filter(id=ingredient_id).first()
        if not ingredient:
            raise NotFoundError("Ingredient", ingredient_id)

        movements = list(cls.model.objects.filter(
            ingredient_id=ingredient_id
        ).order_by("id").values_list("quantity_before", "quantity_after", "quantity"))

        if not movements:
            return success_response({
                "ingredient_id": ingredient.id,
                "consistent": True,
                "stock_quantity": str(ingredient.stock_quantity),
                "reconstructed_quantity": str(ingredient.stock_quantity),
                "movement_count": 0,
                "chain_breaks": 0,
            })

        opening = movements[0][0]
        total = cls.model.objects.filter(
            ingredient_id=ingredient_id
        ).aggregate(total=Sum("quantity"))["total"] or Decimal("0")
        reconstructed = opening + total

        chain_breaks = sum(
            1 for previous, current in zip(movements, movements[1:])
            if current[0] != previous[1]
        )

        return success_response({
            "ingredient_id": ingredient.id,
            "consistent": reconstructed == ingredient.stock_quantity and chain_breaks == 0,
            "stock_quantity": str(ingredient.stock_quantity),
            "reconstructed_quantity": str(reconstructed),
            "movement_count": len(movements),
            "chain_breaks": chain_breaks,
        })
