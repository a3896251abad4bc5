from enum import Enum


class StockErrorCode(Enum):
    INSUFFICIENT_STOCK = "insufficient_stock"
    INVALID = "invalid"
    INVALID_QUANTITY = "invalid_quantity"
    NOT_FOUND = "not_found"
    REQUIRED = "required"


class InventoryErrorCode(Enum):
    INVALID = "invalid"
    INVALID_ACTION = "invalid_action"
    INVALID_QUANTITY = "invalid_quantity"
    INVALID_DATE_RANGE = "invalid_date_range"
    INVALID_TYPE = "invalid_type"
    NOT_FOUND = "not_found"
    REQUIRED = "required"
