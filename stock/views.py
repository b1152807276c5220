import json
import logging

from django.http import JsonResponse
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator
from rest_framework.decorators import api_view

from stock.models import StockMovement

from stock.services import (
    ValidationError, NotFoundError, BusinessRuleError, InsufficientStockError,
    to_date,
    StockSettingsService,
    StockMovementService,
    IntendService,
    PurchaseOrderService,
    GoodsReceiptService,
    PaymentService,
    StockAdjustmentService,
)

logger = logging.getLogger(__name__)


def error_response(message: str, code: str = "error", status: int = 400, details: dict = None):
    data = {"success": False, "error": {"code": code, "message": message}}
    if details:
        data["error"]["details"] = details
    return JsonResponse(data, status=status)


def handle_service_error(e: Exception):
    if isinstance(e, ValidationError):
        return error_response(str(e), "validation_error", 400, {"field": e.field, **e.details})
    elif isinstance(e, NotFoundError):
        return error_response(str(e), "not_found", 404, e.details)
    elif isinstance(e, InsufficientStockError):
        return error_response(str(e), "insufficient_stock", 400, e.details)
    elif isinstance(e, BusinessRuleError):
        return error_response(str(e), "business_rule", 400, e.details)
    elif isinstance(e, KeyError):
        field = e.args[0] if e.args else None
        return error_response(f"{field} is required", "validation_error", 400, {"field": field})
    else:
        logger.exception(f"Unhandled error: {e}")
        return error_response(str(e), "server_error", 500)


class BaseStockView(View):
    @method_decorator(csrf_exempt)
    def dispatch(self, request, *args, **kwargs):
        return super().dispatch(request, *args, **kwargs)

    def get_json_body(self, request):
        try:
            data = json.loads(request.body) if request.body else {}
        except json.JSONDecodeError:
            raise ValidationError("Request body must be valid JSON", "body")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object", "body")
        return data

    def get_int(self, request, name, default=None):
        value = request.GET.get(name)
        if value in (None, ""):
            return default
        try:
            return int(value)
        except ValueError:
            raise ValidationError(f"{name} must be an integer", name)

    def get_user_name(self, request, data: dict) -> str:
        if request.user.is_authenticated:
            return request.user.get_username()
        return data.get("created_by") or data.get("received_by") or ""

    def success(self, data: dict, status: int = 200):
        return JsonResponse({"success": True, **data}, status=status)


# ==================== SETTINGS ====================

@csrf_exempt
@api_view(["GET", "PUT"])
def stock_settings(request):
    """GET/PUT /api/stock/settings/"""
    try:
        if request.method == "PUT":
            result = StockSettingsService.update(**request.data)
            return JsonResponse(result)
        return JsonResponse({"success": True, "settings": StockSettingsService.get_all()})
    except Exception as e:
        return handle_service_error(e)


# ==================== INTENDS ====================

class IntendListView(BaseStockView):
    """GET/POST /api/stock/intends/"""

    def get(self, request):
        try:
            result = IntendService.list(
                page=self.get_int(request, "page", 1),
                per_page=self.get_int(request, "per_page", 20),
                status=request.GET.get("status"),
                vendor_id=self.get_int(request, "vendor_id"),
                search=request.GET.get("search"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = IntendService.create(
                items=data.get("items", []),
                vendor_id=data.get("vendor_id"),
                intend_date=data.get("intend_date"),
                notes=data.get("notes", ""),
                created_by=self.get_user_name(request, data),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class IntendDetailView(BaseStockView):
    """GET/PUT /api/stock/intends/<id>/"""

    def get(self, request, intend_id):
        try:
            result = IntendService.get(intend_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, intend_id):
        try:
            data = self.get_json_body(request)
            fields = {k: v for k, v in data.items() if k in ["vendor_id", "intend_date", "notes"]}
            result = IntendService.update(intend_id, **fields)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class IntendItemView(BaseStockView):
    """POST /api/stock/intends/<id>/items/"""

    def post(self, request, intend_id):
        try:
            data = self.get_json_body(request)
            result = IntendService.add_item(
                intend_id=intend_id,
                ingredient_id=data["ingredient_id"],
                quantity=data["quantity"],
                remarks=data.get("remarks", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class IntendItemDetailView(BaseStockView):
    """PUT/DELETE /api/stock/intends/<id>/items/<item_id>/"""

    def put(self, request, intend_id, item_id):
        try:
            data = self.get_json_body(request)
            fields = {k: v for k, v in data.items() if k in ["quantity", "remarks"]}
            result = IntendService.update_item(intend_id, item_id, **fields)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def delete(self, request, intend_id, item_id):
        try:
            result = IntendService.remove_item(intend_id, item_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== PURCHASE ORDERS ====================

class PurchaseOrderListView(BaseStockView):
    """GET /api/stock/purchase-orders/"""

    def get(self, request):
        try:
            result = PurchaseOrderService.list(
                page=self.get_int(request, "page", 1),
                per_page=self.get_int(request, "per_page", 20),
                vendor_id=self.get_int(request, "vendor_id"),
                intend_id=self.get_int(request, "intend_id"),
                status=request.GET.get("status"),
                payment_status=request.GET.get("payment_status"),
                search=request.GET.get("search"),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class PurchaseOrderGenerateView(BaseStockView):
    """POST /api/stock/purchase-orders/generate-from-intend/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = PurchaseOrderService.generate_from_intend(
                intend_id=data["intend_id"],
                vendor_id=data["vendor_id"],
                items=data.get("items", []),
                expected_delivery_date=data.get("expected_delivery_date"),
                notes=data.get("notes", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class PurchaseOrderDetailView(BaseStockView):
    """GET/PUT /api/stock/purchase-orders/<id>/"""

    def get(self, request, po_id):
        try:
            result = PurchaseOrderService.get(po_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def put(self, request, po_id):
        try:
            data = self.get_json_body(request)
            result = PurchaseOrderService.update_status(po_id, data["status"])
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class PurchaseOrderReceivableView(BaseStockView):
    """POST /api/stock/purchase-orders/<id>/receivable/"""

    def post(self, request, po_id):
        try:
            data = self.get_json_body(request)
            result = PurchaseOrderService.set_receivable_amount(
                po_id, data.get("actual_receivable_amount")
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== GOODS RECEIPT ====================

class GRNListView(BaseStockView):
    """GET/POST /api/stock/grns/"""

    def get(self, request):
        try:
            result = GoodsReceiptService.list(
                page=self.get_int(request, "page", 1),
                per_page=self.get_int(request, "per_page", 20),
                po_id=self.get_int(request, "po_id"),
                date_from=to_date(request.GET.get("date_from"), "date_from", required=False),
                date_to=to_date(request.GET.get("date_to"), "date_to", required=False),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = GoodsReceiptService.receive(
                po_id=data["po_id"],
                items=data.get("items", []),
                received_date=data.get("received_date"),
                received_by=self.get_user_name(request, data),
                notes=data.get("notes", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class GRNDetailView(BaseStockView):
    """GET /api/stock/grns/<id>/"""

    def get(self, request, grn_id):
        try:
            result = GoodsReceiptService.get(grn_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== PAYMENTS ====================

class PaymentListView(BaseStockView):
    """GET/POST /api/stock/payments/"""

    def get(self, request):
        try:
            result = PaymentService.list(
                page=self.get_int(request, "page", 1),
                per_page=self.get_int(request, "per_page", 20),
                po_id=self.get_int(request, "po_id"),
                vendor_id=self.get_int(request, "vendor_id"),
                payment_method=request.GET.get("payment_method"),
                date_from=to_date(request.GET.get("date_from"), "date_from", required=False),
                date_to=to_date(request.GET.get("date_to"), "date_to", required=False),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = PaymentService.record(
                po_id=data["po_id"],
                amount=data["amount"],
                payment_method=data["payment_method"],
                payment_date=data["payment_date"],
                transaction_reference=data.get("transaction_reference", ""),
                transaction_date=data.get("transaction_date"),
                bank_name=data.get("bank_name", ""),
                remarks=data.get("remarks", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class PaymentDetailView(BaseStockView):
    """GET /api/stock/payments/<id>/"""

    def get(self, request, payment_id):
        try:
            result = PaymentService.get(payment_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class PaymentOutstandingView(BaseStockView):
    """GET /api/stock/payments/outstanding/"""

    def get(self, request):
        try:
            result = PaymentService.outstanding(vendor_id=self.get_int(request, "vendor_id"))
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


# ==================== ADJUSTMENTS & MOVEMENTS ====================

class StockAdjustView(BaseStockView):
    """POST /api/stock/adjust/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = StockAdjustmentService.adjust(
                adjustment_type=data["adjustment_type"],
                items=data.get("items", []),
                adjustment_date=data.get("adjustment_date"),
                notes=data.get("notes", ""),
                created_by=self.get_user_name(request, data),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class AdjustmentListView(BaseStockView):
    """GET /api/stock/adjustments/"""

    def get(self, request):
        try:
            result = StockAdjustmentService.list(
                page=self.get_int(request, "page", 1),
                per_page=self.get_int(request, "per_page", 20),
                adjustment_type=request.GET.get("type"),
                date_from=to_date(request.GET.get("date_from"), "date_from", required=False),
                date_to=to_date(request.GET.get("date_to"), "date_to", required=False),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class AdjustmentDetailView(BaseStockView):
    """GET /api/stock/adjustments/<id>/"""

    def get(self, request, adjustment_id):
        try:
            result = StockAdjustmentService.get(adjustment_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class StockConsumeView(BaseStockView):
    """POST /api/stock/consume/"""

    def post(self, request):
        try:
            data = self.get_json_body(request)
            result = StockMovementService.consume(
                ingredient_id=data["ingredient_id"],
                quantity=data["quantity"],
                reference_id=data.get("reference_id"),
                remarks=data.get("remarks", ""),
            )
            return self.success(result, 201)
        except Exception as e:
            return handle_service_error(e)


class MovementReferenceView(BaseStockView):
    """GET /api/stock/movements/?reference_type=grn&reference_id=<id>"""

    def get(self, request):
        try:
            reference_type = request.GET.get("reference_type")
            valid = [c[0] for c in StockMovement.ReferenceType.choices]
            if reference_type not in valid:
                raise ValidationError(f"Invalid reference type. Valid: {valid}", "reference_type")
            reference_id = self.get_int(request, "reference_id")
            if reference_id is None:
                raise ValidationError("reference_id is required", "reference_id")

            result = StockMovementService.for_reference(reference_type, reference_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class MovementHistoryView(BaseStockView):
    """GET /api/stock/movements/<ingredient_id>/"""

    def get(self, request, ingredient_id):
        try:
            result = StockMovementService.history(
                ingredient_id,
                movement_type=request.GET.get("type"),
                page=self.get_int(request, "page", 1),
                per_page=self.get_int(request, "per_page", 50),
            )
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)


class MovementVerifyView(BaseStockView):
    """GET /api/stock/movements/<ingredient_id>/verify/"""

    def get(self, request, ingredient_id):
        try:
            result = StockMovementService.verify(ingredient_id)
            return self.success(result)
        except Exception as e:
            return handle_service_error(e)
