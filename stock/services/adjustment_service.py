import logging
from typing import Dict, Any, List
from datetime import date
from django.db import transaction
from django.utils import timezone

from stock.models import StockAdjustment, StockAdjustmentItem, StockMovement, Ingredient
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError,
    require_decimal, to_date, to_id
)
from stock.services.numbering_service import NumberingService
from stock.services.movement_service import StockMovementService

logger = logging.getLogger(__name__)


class StockAdjustmentService(BaseService):
    """
    Reconciles recorded stock with a physical count. Each item overwrites the
    ingredient's on-hand quantity with actual_quantity; the whole batch commits
    or rolls back together.
    """

    model = StockAdjustment

    @classmethod
    def serialize_item(cls, item: StockAdjustmentItem) -> Dict[str, Any]:
        return {
            "id": item.id,
            "ingredient_id": item.ingredient_id,
            "ingredient_name": item.ingredient.name,
            "unit": item.ingredient.unit,
            "system_quantity": str(item.system_quantity),
            "actual_quantity": str(item.actual_quantity),
            "variance": str(item.variance),
            "remarks": item.remarks,
        }

    @classmethod
    def serialize(cls, adjustment: StockAdjustment, include_items: bool = True) -> Dict[str, Any]:
        data = {
            "id": adjustment.id,
            "uuid": str(adjustment.uuid),
            "adjustment_number": adjustment.adjustment_number,
            "adjustment_type": adjustment.adjustment_type,
            "adjustment_type_display": adjustment.get_adjustment_type_display(),
            "adjustment_date": adjustment.adjustment_date.isoformat(),
            "notes": adjustment.notes,
            "created_by": adjustment.created_by,
            "created_at": adjustment.created_at.isoformat(),
        }

        if include_items:
            data["items"] = [
                cls.serialize_item(item)
                for item in adjustment.items.select_related("ingredient")
            ]

        return data

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             adjustment_type: str = None,
             date_from: date = None,
             date_to: date = None) -> Dict[str, Any]:
        queryset = cls.model.objects.all()

        if adjustment_type:
            queryset = queryset.filter(adjustment_type=adjustment_type)

        if date_from:
            queryset = queryset.filter(adjustment_date__gte=date_from)

        if date_to:
            queryset = queryset.filter(adjustment_date__lte=date_to)

        adjustments, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "adjustments": [cls.serialize(a, include_items=False) for a in adjustments],
            "pagination": pagination,
            "types": [{"value": c[0], "label": c[1]} for c in StockAdjustment.AdjustmentType.choices],
        })

    @classmethod
    def get(cls, adjustment_id: int) -> Dict[str, Any]:
        adjustment = cls.get_or_404(adjustment_id, "Stock adjustment")
        return success_response({"adjustment": cls.serialize(adjustment)})

    @classmethod
    def _prepare_lines(cls, items: List[Dict]) -> List[Dict[str, Any]]:
        lines = []
        seen = set()

        for index, data in enumerate(items):
            field = f"items[{index}]"
            ingredient_id = to_id(data.get("ingredient_id"), f"{field}.ingredient_id")
            ingredient = Ingredient.objects.filter(id=ingredient_id).first()
            if not ingredient:
                raise NotFoundError("Ingredient", ingredient_id)

            if ingredient.id in seen:
                raise ValidationError(
                    f"{ingredient.name} appears more than once", f"{field}.ingredient_id"
                )
            seen.add(ingredient.id)

            actual = require_decimal(data.get("actual_quantity"), f"{field}.actual_quantity")
            if actual < 0:
                raise ValidationError("Actual quantity cannot be negative", f"{field}.actual_quantity")

            system = data.get("system_quantity")
            if system is None or system == "":
                system = ingredient.stock_quantity
            else:
                system = require_decimal(system, f"{field}.system_quantity")
                if system < 0:
                    raise ValidationError("System quantity cannot be negative", f"{field}.system_quantity")

            lines.append({
                "ingredient": ingredient,
                "system_quantity": system,
                "actual_quantity": actual,
                "remarks": data.get("remarks") or "",
            })

        return lines

    @classmethod
    @transaction.atomic
    def adjust(cls,
               adjustment_type: str,
               items: List[Dict] = None,
               adjustment_date: date = None,
               notes: str = "",
               created_by: str = "") -> Dict[str, Any]:
        valid_types = [c[0] for c in StockAdjustment.AdjustmentType.choices]
        if adjustment_type not in valid_types:
            raise ValidationError(f"Invalid adjustment type. Valid: {valid_types}", "adjustment_type")

        if not items:
            raise ValidationError("At least one item is required", "items")

        adjustment_date = to_date(adjustment_date, "adjustment_date", required=False) or timezone.localdate()
        lines = cls._prepare_lines(items)

        adjustment = NumberingService.create_numbered(
            NumberingService.ADJUSTMENT, cls.model, "adjustment_number",
            on_date=adjustment_date,
            adjustment_type=adjustment_type,
            adjustment_date=adjustment_date,
            notes=notes or "",
            created_by=created_by or "",
        )

        StockAdjustmentItem.objects.bulk_create([
            StockAdjustmentItem(
                adjustment=adjustment,
                ingredient=line["ingredient"],
                system_quantity=line["system_quantity"],
                actual_quantity=line["actual_quantity"],
                remarks=line["remarks"],
            )
            for line in lines
        ])

        movements = []
        for line in lines:
            ingredient = line["ingredient"]
            remarks = line["remarks"] or notes or adjustment.get_adjustment_type_display()

            movement = StockMovementService.set_quantity(
                ingredient_id=ingredient.id,
                quantity=line["actual_quantity"],
                reference_type=StockMovement.ReferenceType.ADJUSTMENT,
                reference_id=adjustment.id,
                remarks=f"Adjustment {adjustment.adjustment_number}: {remarks}",
                movement_date=adjustment_date,
            )

            if movement is None:
                continue

            if movement.quantity_before != line["system_quantity"]:
                logger.warning(
                    f"Adjustment {adjustment.adjustment_number}: {ingredient.name} counted against "
                    f"{line['system_quantity']} but stock was {movement.quantity_before}; "
                    f"recorded change {movement.quantity:+}"
                )
            movements.append(movement)

        logger.info(
            f"Adjustment {adjustment.adjustment_number} ({adjustment_type}) applied: "
            f"{len(lines)} items, {len(movements)} movements"
        )

        return success_response({
            "adjustment_id": adjustment.id,
            "adjustment_number": adjustment.adjustment_number,
            "adjustment": cls.serialize(adjustment),
            "movements": [StockMovementService.serialize(m) for m in movements],
        }, f"Stock adjustment {adjustment.adjustment_number} applied")
