"""
Input validation schemas for API endpoints using marshmallow.
"""

import logging
from typing import Any, Dict, Optional

from marshmallow import (Schema, ValidationError, fields, validate,
                         validates_schema)

logger = logging.getLogger(__name__)


class AutomationCreateSchema(Schema):
    """Schema for creating a recurring pot deposit"""
    name = fields.String(required=True, validate=validate.Length(min=1, max=200))
    source_credit_card_id = fields.String(
        required=False, allow_none=True, validate=validate.Length(min=1, max=100)
    )
    destination_pot_id = fields.String(required=True, validate=validate.Length(min=1, max=100))
    amount = fields.Integer(
        required=True,
        strict=True,
        validate=validate.Range(min=1, max=100000000)  # 1p to £1M in pence
    )
    frequency = fields.String(required=True, validate=validate.OneOf(["weekly", "monthly"]))
    day_of_week = fields.Integer(
        required=False, allow_none=True, strict=True, validate=validate.Range(min=0, max=6)
    )
    day_of_month = fields.Integer(
        required=False, allow_none=True, strict=True, validate=validate.Range(min=1, max=31)
    )

    @validates_schema
    def validate_recurrence(self, data, **kwargs):
        """Exactly the parameter matching the frequency must be set."""
        frequency = data.get("frequency")
        day_of_week = data.get("day_of_week")
        day_of_month = data.get("day_of_month")
        if frequency == "weekly":
            if day_of_week is None:
                raise ValidationError("Weekly automations need day_of_week", "day_of_week")
            if day_of_month is not None:
                raise ValidationError("Weekly automations cannot set day_of_month", "day_of_month")
        elif frequency == "monthly":
            if day_of_month is None:
                raise ValidationError("Monthly automations need day_of_month", "day_of_month")
            if day_of_week is not None:
                raise ValidationError("Monthly automations cannot set day_of_week", "day_of_week")


class AutomationToggleSchema(Schema):
    """Schema for activating or pausing an automation"""
    is_active = fields.Boolean(required=True)


class LoggingConfigSchema(Schema):
    """Schema for logging configuration"""
    level = fields.String(
        required=True,
        validate=validate.OneOf(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    )
    logger_name = fields.String(
        required=False,
        validate=validate.Length(min=1, max=100)
    )


def validate_request_json(schema_class: type, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate request JSON data against a marshmallow schema.

    Args:
        schema_class: The marshmallow schema class to use for validation
        data: The JSON data to validate

    Returns:
        Validated and cleaned data

    Raises:
        ValidationError: If validation fails
    """
    if data is None:
        raise ValidationError("No JSON data provided")

    try:
        return schema_class().load(data)
    except ValidationError as e:
        logger.warning(f"Input validation failed: {e.messages}")
        raise


def create_validation_error_response(error: ValidationError) -> tuple:
    """
    Create a standardized error response for validation failures.

    Args:
        error: The ValidationError instance

    Returns:
        Tuple of (response_dict, status_code)
    """
    return {
        "error": "Invalid input data",
        "validation_errors": error.messages,
        "message": "Please check your input and try again"
    }, 400
