import logging
from typing import Dict, Any, List
from decimal import Decimal
from datetime import date
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from stock.models import (
    PurchaseOrder, POItem, GRN, GRNItem, StockMovement, StockSettings, PendingSideEffect
)
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, BusinessRuleError,
    require_decimal, round_decimal, to_date, to_id
)
from stock.services.numbering_service import NumberingService
from stock.services.purchase_service import PurchaseOrderService
from stock.services.side_effects import SideEffectRunner

logger = logging.getLogger(__name__)


class GoodsReceiptService(BaseService):
    """
    Records deliveries against a purchase order.

    GRN, GRN items and the additive POItem.quantity_received update commit
    together. The ingredient last price and the inbound stock movement are
    advisory and go through SideEffectRunner.
    """

    model = GRN

    @classmethod
    def serialize_item(cls, item: GRNItem) -> Dict[str, Any]:
        return {
            "id": item.id,
            "po_item_id": item.po_item_id,
            "ingredient_id": item.ingredient_id,
            "ingredient_name": item.ingredient.name,
            "quantity_ordered": str(item.quantity_ordered),
            "quantity_received": str(item.quantity_received),
            "variance": str(item.variance),
            "unit_price_ordered": str(item.unit_price_ordered),
            "unit_price_actual": str(item.unit_price_actual),
            "price_variance": str(item.price_variance),
            "total_amount": str(item.total_amount),
            "remarks": item.remarks,
        }

    @classmethod
    def serialize(cls, grn: GRN, include_items: bool = True) -> Dict[str, Any]:
        data = {
            "id": grn.id,
            "uuid": str(grn.uuid),
            "grn_number": grn.grn_number,
            "po_id": grn.purchase_order_id,
            "po_number": grn.purchase_order.po_number,
            "vendor_name": grn.purchase_order.vendor.name,
            "received_date": grn.received_date.isoformat(),
            "received_by": grn.received_by,
            "status": grn.status,
            "notes": grn.notes,
            "created_at": grn.created_at.isoformat(),
        }

        if include_items:
            items = list(grn.items.select_related("ingredient"))
            data["items"] = [cls.serialize_item(item) for item in items]
            data["total_value"] = str(sum((item.total_amount for item in items), Decimal("0")))

        return data

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             po_id: int = None,
             date_from: date = None,
             date_to: date = None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("purchase_order", "purchase_order__vendor")

        if po_id:
            queryset = queryset.filter(purchase_order_id=po_id)

        if date_from:
            queryset = queryset.filter(received_date__gte=date_from)

        if date_to:
            queryset = queryset.filter(received_date__lte=date_to)

        grns, pagination = paginate_queryset(queryset, page, per_page)

        return success_response({
            "grns": [cls.serialize(grn, include_items=False) for grn in grns],
            "pagination": pagination,
        })

    @classmethod
    def get(cls, grn_id: int) -> Dict[str, Any]:
        grn = cls.get_or_404(grn_id, "GRN")
        return success_response({"grn": cls.serialize(grn)})

    @classmethod
    def total_value(cls, po_id: int) -> Decimal:
        """Value physically received so far: sum of quantity_received × unit_price_actual."""
        return GRNItem.objects.filter(
            grn__purchase_order_id=po_id
        ).aggregate(total=Sum("total_amount"))["total"] or Decimal("0")

    @classmethod
    def _prepare_lines(cls, po: PurchaseOrder, items: List[Dict]) -> List[Dict[str, Any]]:
        settings = StockSettings.load()
        lines = []
        seen = set()

        for index, data in enumerate(items):
            field = f"items[{index}]"
            po_item_id = to_id(data.get("po_item_id"), f"{field}.po_item_id")

            if po_item_id in seen:
                raise ValidationError(
                    f"PO item {po_item_id} is listed more than once", f"{field}.po_item_id"
                )
            seen.add(po_item_id)

            po_item = POItem.objects.select_for_update().select_related("ingredient").filter(
                id=po_item_id, purchase_order=po
            ).first()
            if not po_item:
                raise ValidationError(
                    f"PO item {po_item_id} does not belong to purchase order {po.po_number}",
                    f"{field}.po_item_id",
                )

            ingredient_id = to_id(data.get("ingredient_id"), f"{field}.ingredient_id", required=False)
            if ingredient_id and ingredient_id != po_item.ingredient_id:
                raise ValidationError(
                    f"Ingredient {ingredient_id} does not match PO item {po_item_id}",
                    f"{field}.ingredient_id",
                )

            quantity = require_decimal(data.get("quantity_received"), f"{field}.quantity_received")
            if quantity <= 0:
                raise ValidationError("Quantity received must be greater than 0", f"{field}.quantity_received")

            unit_price_actual = data.get("unit_price_actual")
            if unit_price_actual is None or unit_price_actual == "":
                unit_price_actual = po_item.unit_price
            else:
                unit_price_actual = require_decimal(unit_price_actual, f"{field}.unit_price_actual")
                if unit_price_actual < 0:
                    raise ValidationError("Unit price cannot be negative", f"{field}.unit_price_actual")

            received_after = po_item.quantity_received + quantity
            if received_after > po_item.quantity_ordered:
                if not settings.allow_over_receipt:
                    raise BusinessRuleError(
                        f"Receiving {quantity} {po_item.ingredient.unit} of {po_item.ingredient.name} "
                        f"exceeds the ordered quantity",
                        "over_receipt",
                        {
                            "po_item_id": po_item.id,
                            "quantity_ordered": str(po_item.quantity_ordered),
                            "quantity_received": str(po_item.quantity_received),
                            "quantity_requested": str(quantity),
                        },
                    )
                logger.warning(
                    f"Over-receipt on PO {po.po_number}: {po_item.ingredient.name} "
                    f"{received_after} received of {po_item.quantity_ordered} ordered"
                )

            lines.append({
                "po_item": po_item,
                "quantity": quantity,
                "unit_price_actual": unit_price_actual,
                "remarks": data.get("remarks") or "",
            })

        return lines

    @classmethod
    @transaction.atomic
    def receive(cls,
                po_id: int,
                items: List[Dict] = None,
                received_date: date = None,
                received_by: str = "",
                notes: str = "") -> Dict[str, Any]:
        if not items:
            raise ValidationError("At least one item is required", "items")

        received_date = to_date(received_date, "received_date", required=False) or timezone.localdate()

        po = PurchaseOrder.objects.select_for_update().select_related("vendor").filter(id=po_id).first()
        if not po:
            raise NotFoundError("Purchase order", po_id)

        lines = cls._prepare_lines(po, items)

        grn = NumberingService.create_numbered(
            NumberingService.GRN, cls.model, "grn_number",
            on_date=received_date,
            purchase_order=po,
            received_date=received_date,
            received_by=received_by or "",
            notes=notes or "",
            status=GRN.Status.COMPLETED,
        )

        outcomes = []
        for line in lines:
            po_item = line["po_item"]
            quantity = line["quantity"]
            unit_price_actual = line["unit_price_actual"]

            GRNItem.objects.create(
                grn=grn,
                po_item=po_item,
                ingredient=po_item.ingredient,
                quantity_ordered=po_item.quantity_ordered,
                unit_price_ordered=po_item.unit_price,
                quantity_received=quantity,
                unit_price_actual=unit_price_actual,
                total_amount=round_decimal(quantity * unit_price_actual),
                remarks=line["remarks"],
            )

            # Additive: partial deliveries accumulate across GRNs
            po_item.quantity_received += quantity
            po_item.save(update_fields=["quantity_received"])

            outcomes.append(SideEffectRunner.run(
                PendingSideEffect.Kind.LAST_PRICE,
                {"ingredient_id": po_item.ingredient_id, "price": str(unit_price_actual)},
                source_type="grn",
                source_id=grn.id,
            ))
            outcomes.append(SideEffectRunner.run(
                PendingSideEffect.Kind.STOCK_MOVEMENT,
                {
                    "ingredient_id": po_item.ingredient_id,
                    "movement_type": StockMovement.MovementType.IN.value,
                    "quantity": str(quantity),
                    "reference_type": StockMovement.ReferenceType.GRN.value,
                    "reference_id": grn.id,
                    "unit_cost": str(unit_price_actual),
                    "remarks": f"Purchase: PO {po.po_number}, GRN {grn.grn_number}",
                    "movement_date": received_date.isoformat(),
                },
                source_type="grn",
                source_id=grn.id,
            ))

        receipt = PurchaseOrderService.recalculate_receipt(po)

        logger.info(
            f"GRN {grn.grn_number} recorded for PO {po.po_number}: {len(lines)} items, "
            f"PO {receipt['status']} ({receipt['received_percentage']}%)"
        )

        return success_response({
            "grn_id": grn.id,
            "grn_number": grn.grn_number,
            "po_status": receipt["status"],
            "received_percentage": receipt["received_percentage"],
            "grn": cls.serialize(grn),
            "warnings": SideEffectRunner.warnings(outcomes),
        }, f"GRN {grn.grn_number} recorded")
