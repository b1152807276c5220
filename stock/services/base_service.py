from typing import Dict, Any, Optional, List, Tuple
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import datetime, date
from django.db.models import Model


class ServiceError(Exception):
    def __init__(self, message: str, code: str = "ERROR", details: Dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    def __init__(self, message: str, field: str = None, details: Dict = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class NotFoundError(ServiceError):
    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            "NOT_FOUND",
            {"resource": resource, "identifier": str(identifier)}
        )


class BusinessRuleError(ServiceError):
    def __init__(self, message: str, rule: str = None, details: Dict = None):
        super().__init__(message, "BUSINESS_RULE_VIOLATION", {"rule": rule, **(details or {})})
        self.rule = rule


class InsufficientStockError(ServiceError):
    def __init__(self, item_name: str, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient stock for {item_name}: required {required}, available {available}",
            "INSUFFICIENT_STOCK",
            {"item": item_name, "required": str(required), "available": str(available)}
        )


def success_response(data: Any = None, message: str = "Success") -> Dict:
    response = {"success": True, "message": message}
    if data is not None:
        if isinstance(data, dict):
            response.update(data)
        else:
            response["data"] = data
    return response


def paginate_queryset(queryset, page: int = 1, per_page: int = 20) -> Tuple[List, Dict]:
    page = max(1, page)
    per_page = min(max(1, per_page), 100)

    total = queryset.count()
    total_pages = (total + per_page - 1) // per_page

    offset = (page - 1) * per_page
    items = list(queryset[offset:offset + per_page])

    return items, {
        "page": page,
        "per_page": per_page,
        "total_items": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1
    }


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def require_decimal(value: Any, field: str) -> Decimal:
    """Like to_decimal, but a missing or unparseable value is a validation error."""
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", field)
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number", field)
    return result


def to_id(value: Any, field: str, required: bool = True) -> Optional[int]:
    """Primary key from client input: 5 and "5" are the same id."""
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", field)
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id", field)
    try:
        result = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field} must be an integer id", field)
    if result <= 0:
        raise ValidationError(f"{field} must be a positive id", field)
    return result


def round_decimal(value: Decimal, places: int = 4) -> Decimal:
    if value is None:
        return Decimal("0")
    quantize_str = "0." + "0" * places
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)


def to_date(value: Any, field: str = "date", required: bool = True) -> Optional[date]:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", field)
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", field)


class BaseService:
    model = None

    @classmethod
    def get_by_id(cls, id: int) -> Optional[Model]:
        try:
            return cls.model.objects.get(id=id)
        except (cls.model.DoesNotExist, ValueError, TypeError):
            return None

    @classmethod
    def get_or_404(cls, id: int, resource: str = None) -> Model:
        obj = cls.get_by_id(id)
        if not obj:
            raise NotFoundError(resource or cls.model._meta.verbose_name.capitalize(), id)
        return obj
