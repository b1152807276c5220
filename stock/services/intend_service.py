import logging
from typing import Dict, Any, Optional, List, Tuple
from datetime import date
from django.db import transaction
from django.db.models import Q, Count
from django.utils import timezone

from stock.models import Intend, IntendItem, Ingredient, Vendor
from stock.services.base_service import (
    BaseService, success_response, paginate_queryset,
    ValidationError, NotFoundError, BusinessRuleError,
    require_decimal, to_date
)
from stock.services.numbering_service import NumberingService

logger = logging.getLogger(__name__)


class IntendFulfillmentService:
    """
    An intend's status is derived from how many of its items are referenced
    by a POItem. Nothing else sets it.
    """

    @staticmethod
    def derive_status(total: int, linked: int) -> str:
        if linked == 0 or total == 0:
            return Intend.Status.PENDING
        if linked < total:
            return Intend.Status.PARTIALLY_FULFILLED
        return Intend.Status.FULFILLED

    @classmethod
    def counts(cls, intend_id: int) -> Tuple[int, int]:
        items = IntendItem.objects.filter(intend_id=intend_id)
        return items.count(), items.filter(po_item__isnull=False).count()

    @classmethod
    def recompute(cls, intend_id: int) -> str:
        total, linked = cls.counts(intend_id)
        status = cls.derive_status(total, linked)

        changed = Intend.objects.filter(id=intend_id).exclude(status=status).update(
            status=status, updated_at=timezone.now()
        )
        if changed:
            logger.info(f"Intend #{intend_id} status -> {status} ({linked}/{total} items in PO)")

        return status


class IntendService(BaseService):
    model = Intend

    @staticmethod
    def linked_po_item(item: IntendItem):
        return item.po_item if hasattr(item, "po_item") else None

    @classmethod
    def serialize_item(cls, item: IntendItem) -> Dict[str, Any]:
        po_item = cls.linked_po_item(item)
        po = po_item.purchase_order if po_item else None
        return {
            "id": item.id,
            "ingredient_id": item.ingredient_id,
            "ingredient_name": item.ingredient.name,
            "unit": item.ingredient.unit,
            "quantity": str(item.quantity),
            "remarks": item.remarks,
            "in_po": po_item is not None,
            "po_item_id": po_item.id if po_item else None,
            "po_id": po.id if po else None,
            "po_number": po.po_number if po else None,
            "po_status": po.status if po else None,
        }

    @classmethod
    def serialize(cls, intend: Intend, include_items: bool = True) -> Dict[str, Any]:
        data = {
            "id": intend.id,
            "uuid": str(intend.uuid),
            "intend_number": intend.intend_number,
            "vendor_id": intend.vendor_id,
            "vendor_name": intend.vendor.name if intend.vendor else None,
            "intend_date": intend.intend_date.isoformat(),
            "status": intend.status,
            "status_display": intend.get_status_display(),
            "notes": intend.notes,
            "created_by": intend.created_by,
            "created_at": intend.created_at.isoformat(),
        }

        if include_items:
            items = intend.items.select_related(
                "ingredient", "po_item__purchase_order"
            ).order_by("id")
            data["items"] = [cls.serialize_item(item) for item in items]
            data["total_items"] = len(data["items"])
            data["items_in_po"] = sum(1 for item in data["items"] if item["in_po"])

        return data

    @classmethod
    def list(cls,
             page: int = 1,
             per_page: int = 20,
             status: str = None,
             vendor_id: int = None,
             search: str = None) -> Dict[str, Any]:
        queryset = cls.model.objects.select_related("vendor").annotate(
            total_items=Count("items", distinct=True),
            items_in_po=Count("items__po_item", distinct=True),
        )

        if status:
            queryset = queryset.filter(status=status)

        if vendor_id:
            queryset = queryset.filter(vendor_id=vendor_id)

        if search:
            queryset = queryset.filter(
                Q(intend_number__icontains=search) |
                Q(notes__icontains=search)
            )

        intends, pagination = paginate_queryset(queryset, page, per_page)

        rows = []
        for intend in intends:
            row = cls.serialize(intend, include_items=False)
            row["total_items"] = intend.total_items
            row["items_in_po"] = intend.items_in_po
            rows.append(row)

        return success_response({
            "intends": rows,
            "pagination": pagination,
            "statuses": [{"value": c[0], "label": c[1]} for c in Intend.Status.choices],
        })

    @classmethod
    def get(cls, intend_id: int) -> Dict[str, Any]:
        intend = cls.model.objects.select_related("vendor").filter(id=intend_id).first()
        if not intend:
            raise NotFoundError("Intend", intend_id)

        return success_response({"intend": cls.serialize(intend)})

    @classmethod
    def _get_vendor(cls, vendor_id: Optional[int]) -> Optional[Vendor]:
        if not vendor_id:
            return None
        vendor = Vendor.objects.filter(id=vendor_id).first()
        if not vendor:
            raise NotFoundError("Vendor", vendor_id)
        return vendor

    @classmethod
    def _get_ingredient(cls, ingredient_id: int) -> Ingredient:
        if not ingredient_id:
            raise ValidationError("ingredient_id is required", "ingredient_id")
        ingredient = Ingredient.objects.filter(id=ingredient_id).first()
        if not ingredient:
            raise NotFoundError("Ingredient", ingredient_id)
        return ingredient

    @classmethod
    def _positive_quantity(cls, value: Any, field: str = "quantity"):
        quantity = require_decimal(value, field)
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0", field)
        return quantity

    @classmethod
    def _ensure_editable(cls, intend: Intend):
        total, linked = IntendFulfillmentService.counts(intend.id)
        if total and linked == total:
            raise BusinessRuleError(
                f"Intend {intend.intend_number} is fully converted to purchase orders",
                "intend_fulfilled",
            )

    @classmethod
    def _lock_intend(cls, intend_id: int) -> Intend:
        # PO generation locks the same row before linking items
        intend = cls.model.objects.select_for_update().filter(id=intend_id).first()
        if not intend:
            raise NotFoundError("Intend", intend_id)
        return intend

    @classmethod
    def _get_item(cls, intend_id: int, item_id: int) -> IntendItem:
        item = IntendItem.objects.select_related("intend", "ingredient").filter(
            id=item_id, intend_id=intend_id
        ).first()
        if not item:
            raise NotFoundError("Intend item", item_id)
        return item

    @classmethod
    def _ensure_unlinked(cls, item: IntendItem):
        po_item = cls.linked_po_item(item)
        if po_item:
            raise BusinessRuleError(
                f"{item.ingredient.name} is already on purchase order "
                f"{po_item.purchase_order.po_number}",
                "intend_item_linked",
                {"intend_item_id": item.id, "po_id": po_item.purchase_order_id},
            )

    @classmethod
    @transaction.atomic
    def create(cls,
               items: List[Dict] = None,
               vendor_id: int = None,
               intend_date: date = None,
               notes: str = "",
               created_by: str = "") -> Dict[str, Any]:
        if not items:
            raise ValidationError("At least one item is required", "items")

        vendor = cls._get_vendor(vendor_id)
        intend_date = to_date(intend_date, "intend_date", required=False) or timezone.localdate()

        prepared = []
        seen = set()
        for index, item_data in enumerate(items):
            ingredient = cls._get_ingredient(item_data.get("ingredient_id"))
            if ingredient.id in seen:
                raise ValidationError(
                    f"{ingredient.name} appears more than once", f"items[{index}].ingredient_id"
                )
            seen.add(ingredient.id)
            quantity = cls._positive_quantity(item_data.get("quantity"), f"items[{index}].quantity")
            prepared.append((ingredient, quantity, item_data.get("remarks") or ""))

        intend = NumberingService.create_numbered(
            NumberingService.INTEND, cls.model, "intend_number",
            on_date=intend_date,
            vendor=vendor,
            intend_date=intend_date,
            notes=notes or "",
            created_by=created_by or "",
        )

        IntendItem.objects.bulk_create([
            IntendItem(intend=intend, ingredient=ingredient, quantity=quantity, remarks=remarks)
            for ingredient, quantity, remarks in prepared
        ])

        logger.info(f"Intend {intend.intend_number} created with {len(prepared)} items")

        return success_response({
            "id": intend.id,
            "intend_number": intend.intend_number,
            "intend": cls.serialize(intend),
        }, f"Intend {intend.intend_number} created")

    @classmethod
    @transaction.atomic
    def update(cls, intend_id: int, **kwargs) -> Dict[str, Any]:
        intend = cls.model.objects.select_for_update().filter(id=intend_id).first()
        if not intend:
            raise NotFoundError("Intend", intend_id)

        cls._ensure_editable(intend)

        update_fields = ["updated_at"]

        if "vendor_id" in kwargs:
            intend.vendor = cls._get_vendor(kwargs["vendor_id"])
            update_fields.append("vendor")

        if "intend_date" in kwargs:
            intend.intend_date = to_date(kwargs["intend_date"], "intend_date")
            update_fields.append("intend_date")

        if "notes" in kwargs:
            intend.notes = kwargs["notes"] or ""
            update_fields.append("notes")

        intend.save(update_fields=update_fields)

        return success_response({"intend": cls.serialize(intend)}, "Intend updated")

    @classmethod
    @transaction.atomic
    def add_item(cls,
                 intend_id: int,
                 ingredient_id: int,
                 quantity: Any,
                 remarks: str = "") -> Dict[str, Any]:
        intend = cls.model.objects.select_for_update().filter(id=intend_id).first()
        if not intend:
            raise NotFoundError("Intend", intend_id)

        cls._ensure_editable(intend)

        ingredient = cls._get_ingredient(ingredient_id)
        quantity = cls._positive_quantity(quantity)

        if intend.items.filter(ingredient=ingredient).exists():
            raise ValidationError(
                f"{ingredient.name} is already on this intend", "ingredient_id"
            )

        item = IntendItem.objects.create(
            intend=intend, ingredient=ingredient, quantity=quantity, remarks=remarks or ""
        )
        IntendFulfillmentService.recompute(intend.id)

        return success_response({
            "id": item.id,
            "item": cls.serialize_item(item),
        }, "Item added to intend")

    @classmethod
    @transaction.atomic
    def update_item(cls, intend_id: int, item_id: int, **kwargs) -> Dict[str, Any]:
        cls._lock_intend(intend_id)
        item = cls._get_item(intend_id, item_id)
        cls._ensure_unlinked(item)

        update_fields = []

        if "quantity" in kwargs:
            item.quantity = cls._positive_quantity(kwargs["quantity"])
            update_fields.append("quantity")

        if "remarks" in kwargs:
            item.remarks = kwargs["remarks"] or ""
            update_fields.append("remarks")

        if update_fields:
            item.save(update_fields=update_fields)

        return success_response({"item": cls.serialize_item(item)}, "Intend item updated")

    @classmethod
    @transaction.atomic
    def remove_item(cls, intend_id: int, item_id: int) -> Dict[str, Any]:
        cls._lock_intend(intend_id)
        item = cls._get_item(intend_id, item_id)
        cls._ensure_unlinked(item)

        item.delete()
        status = IntendFulfillmentService.recompute(intend_id)

        return success_response({"intend_status": status}, "Intend item removed")
