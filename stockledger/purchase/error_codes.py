from enum import Enum


class PurchaseErrorCode(Enum):
    BINDING_EXCEEDS_DEMAND = "binding_exceeds_demand"
    DUPLICATED_INPUT_ITEM = "duplicated_input_item"
    INVALID = "invalid"
    INVALID_PRICE = "invalid_price"
    INVALID_QUANTITY = "invalid_quantity"
    INVALID_STATUS = "invalid_status"
    NOT_FOUND = "not_found"
    ONLY_PENDING_DELETABLE = "only_pending_deletable"
    PURCHASE_LOCKED = "purchase_locked"
    REQUIRED = "required"
    UNIQUE = "unique"
