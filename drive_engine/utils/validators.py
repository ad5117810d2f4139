"""Validation utilities for request payloads."""
from typing import Any, Dict, List, Optional, Tuple

from drive_engine.utils.errors import ValidationError


class Validator:
    """Validation helper class."""
    
    DIRECTIONS = ('up', 'down')
    
    @staticmethod
    def require_json(data: Optional[Dict]) -> Dict:
        """Ensure the request carried a JSON object."""
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data
    
    @staticmethod
    def validate_required_fields(data: Dict, required_fields: List[str]) -> None:
        """Validate required fields in data."""
        missing = [field for field in required_fields if data.get(field) in (None, '')]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")
    
    @staticmethod
    def validate_round_name(name: Any) -> str:
        """Validate and normalise a round name."""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Round name is required")
        name = name.strip()
        if len(name) > 120:
            raise ValidationError("Round name is too long")
        return name
    
    @staticmethod
    def validate_order(order: Any) -> int:
        """Round order must be a positive integer."""
        if isinstance(order, bool) or not isinstance(order, int) or order < 1:
            raise ValidationError("Round order must be a positive integer")
        return order
    
    @staticmethod
    def validate_direction(direction: Any) -> str:
        """Reorder direction must be 'up' or 'down'."""
        if not isinstance(direction, str) or direction.lower() not in Validator.DIRECTIONS:
            raise ValidationError("Direction must be 'up' or 'down'")
        return direction.lower()
    
    @staticmethod
    def validate_pagination(page: Any, limit: Any, default_limit: int, max_limit: int) -> Tuple[int, int]:
        """Clamp page and limit query parameters."""
        try:
            page = int(page) if page is not None else 1
            limit = int(limit) if limit is not None else default_limit
        except (TypeError, ValueError):
            raise ValidationError("page and limit must be integers")
        if page < 1:
            raise ValidationError("page must be >= 1")
        if limit < 1:
            raise ValidationError("limit must be >= 1")
        return page, min(limit, max_limit)
