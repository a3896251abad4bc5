from enum import Enum


class TransferErrorCode(Enum):
    INVALID = "invalid"
    INVALID_QUANTITY = "invalid_quantity"
    INVALID_STATUS = "invalid_status"
    NOT_FOUND = "not_found"
    REQUIRED = "required"
    SAME_STORE = "same_store"
    TRANSFER_LOCKED = "transfer_locked"
