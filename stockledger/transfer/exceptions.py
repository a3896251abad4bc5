from typing import TYPE_CHECKING

from .error_codes import TransferErrorCode

if TYPE_CHECKING:
    from .models import InventoryTransfer


class TransferLocked(Exception):
    """Raised when changing a transfer that is already completed or cancelled."""

    def __init__(self, transfer: "InventoryTransfer"):
        self.transfer = transfer
        self.code = TransferErrorCode.TRANSFER_LOCKED
        super().__init__(
            f"Transfer {transfer.pk} has status {transfer.status}, "
            "cannot change its status"
        )
