from typing import Dict, Any
from django.db import transaction

from stock.models import StockSettings
from stock.services.base_service import BaseService, success_response, ValidationError


class StockSettingsService(BaseService):
    model = StockSettings

    BOOLEAN_FIELDS = [
        "allow_negative_stock",
        "allow_over_receipt",
        "queue_failed_side_effects",
    ]

    @classmethod
    def load(cls) -> StockSettings:
        return StockSettings.load()

    @classmethod
    def get_all(cls) -> Dict[str, Any]:
        settings = cls.load()

        return {
            "allow_negative_stock": settings.allow_negative_stock,
            "allow_over_receipt": settings.allow_over_receipt,
            "number_retry_attempts": settings.number_retry_attempts,
            "queue_failed_side_effects": settings.queue_failed_side_effects,
        }

    @classmethod
    @transaction.atomic
    def update(cls, **kwargs) -> Dict[str, Any]:
        settings = cls.load()
        update_fields = ["updated_at"]

        for field in cls.BOOLEAN_FIELDS:
            if field in kwargs:
                if not isinstance(kwargs[field], bool):
                    raise ValidationError(f"{field} must be true or false", field)
                setattr(settings, field, kwargs[field])
                update_fields.append(field)

        if "number_retry_attempts" in kwargs:
            try:
                attempts = int(kwargs["number_retry_attempts"])
            except (TypeError, ValueError):
                raise ValidationError("number_retry_attempts must be an integer", "number_retry_attempts")
            if not 1 <= attempts <= 10:
                raise ValidationError("number_retry_attempts must be between 1 and 10", "number_retry_attempts")
            settings.number_retry_attempts = attempts
            update_fields.append("number_retry_attempts")

        settings.save(update_fields=update_fields)

        return success_response({"settings": cls.get_all()}, "Settings updated")
