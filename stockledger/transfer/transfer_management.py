"""Store-to-store stock transfers.

Ledger effects per transition:

    pending -> in_transit      debit source (transfer_out)
    pending -> completed       debit source, credit destination (transfer_in)
    in_transit -> completed    credit destination
    pending -> cancelled       nothing
    in_transit -> cancelled    credit source back (transfer_cancel)

A debit the source cannot cover raises InsufficientStock and the transfer keeps
its previous status.
"""

import logging

from attrs import frozen
from django.core.exceptions import ValidationError
from django.db import transaction

from ..core.exceptions import NotFound
from ..inventory import InventoryTransactionType
from ..inventory.stock_management import apply_stock_change, get_or_create_inventory
from ..product.models import ProductVariant
from ..store.models import Store
from . import TransferStatus
from .error_codes import TransferErrorCode
from .exceptions import TransferLocked
from .models import InventoryTransfer

logger = logging.getLogger(__name__)


@frozen
class TransferInput:
    from_store_id: int
    to_store_id: int
    variant_id: int
    quantity: int
    notes: str = ""
    status: str = TransferStatus.PENDING


def get_transfer(transfer_id) -> InventoryTransfer:
    try:
        return InventoryTransfer.objects.get(pk=transfer_id)
    except InventoryTransfer.DoesNotExist:
        raise NotFound("InventoryTransfer", transfer_id) from None


def _lock_transfer(transfer: InventoryTransfer) -> InventoryTransfer:
    return InventoryTransfer.objects.select_for_update().get(pk=transfer.pk)


def _validate_transfer_input(transfer_input: TransferInput):
    errors = {}
    if transfer_input.from_store_id == transfer_input.to_store_id:
        errors["to_store_id"] = ValidationError(
            "Source and destination stores must differ.",
            code=TransferErrorCode.SAME_STORE.value,
        )
    if transfer_input.quantity is None or transfer_input.quantity <= 0:
        errors["quantity"] = ValidationError(
            "Quantity must be greater than 0.",
            code=TransferErrorCode.INVALID_QUANTITY.value,
        )
    if transfer_input.status not in TransferStatus.INITIAL_STATUSES:
        errors["status"] = ValidationError(
            f"Transfer cannot be created with status '{transfer_input.status}'.",
            code=TransferErrorCode.INVALID_STATUS.value,
        )
    if errors:
        raise ValidationError(errors)

    for field, store_id in [
        ("from_store_id", transfer_input.from_store_id),
        ("to_store_id", transfer_input.to_store_id),
    ]:
        if not Store.objects.filter(pk=store_id).exists():
            raise NotFound("Store", store_id, field=field)
    if not ProductVariant.objects.filter(pk=transfer_input.variant_id).exists():
        raise NotFound("ProductVariant", transfer_input.variant_id, field="variant_id")


def _debit_source(transfer: InventoryTransfer, user=None):
    inventory = get_or_create_inventory(
        transfer.from_store_id, transfer.product_variant_id
    )
    apply_stock_change(
        inventory,
        -transfer.quantity,
        InventoryTransactionType.TRANSFER_OUT,
        user=user,
        notes=f"Transfer #{transfer.pk} to store {transfer.to_store_id}",
    )


def _credit_destination(transfer: InventoryTransfer, user=None):
    inventory = get_or_create_inventory(
        transfer.to_store_id, transfer.product_variant_id
    )
    apply_stock_change(
        inventory,
        transfer.quantity,
        InventoryTransactionType.TRANSFER_IN,
        user=user,
        notes=f"Transfer #{transfer.pk} from store {transfer.from_store_id}",
    )


def _credit_source_back(transfer: InventoryTransfer, user=None):
    inventory = get_or_create_inventory(
        transfer.from_store_id, transfer.product_variant_id
    )
    apply_stock_change(
        inventory,
        transfer.quantity,
        InventoryTransactionType.TRANSFER_CANCEL,
        user=user,
        notes=f"Transfer #{transfer.pk} cancelled",
    )


@transaction.atomic
def create_transfer(transfer_input: TransferInput, user=None) -> InventoryTransfer:
    """Create a transfer, applying the ledger effects of its initial status.

    Raises:
        ValidationError: For identical stores, a non-positive quantity or a
            `cancelled` initial status.
        NotFound: If a store or the variant does not exist.
        InsufficientStock: If the source cannot cover an `in_transit` or
            `completed` transfer. No transfer is saved then.

    """
    _validate_transfer_input(transfer_input)

    transfer = InventoryTransfer.objects.create(
        from_store_id=transfer_input.from_store_id,
        to_store_id=transfer_input.to_store_id,
        product_variant_id=transfer_input.variant_id,
        quantity=transfer_input.quantity,
        status=transfer_input.status,
        notes=transfer_input.notes or "",
        user=user,
    )
    if transfer.status in TransferStatus.DEBITED_STATUSES:
        _debit_source(transfer, user=user)
    if transfer.status == TransferStatus.COMPLETED:
        _credit_destination(transfer, user=user)

    logger.info(
        "Created transfer %s: %s x variant %s from store %s to store %s (%s)",
        transfer.pk,
        transfer.quantity,
        transfer.product_variant_id,
        transfer.from_store_id,
        transfer.to_store_id,
        transfer.status,
    )
    return transfer


@transaction.atomic
def create_transfers(
    transfer_inputs: list[TransferInput], user=None
) -> list[InventoryTransfer]:
    """Create several transfers at once; if one fails none is saved."""
    if not transfer_inputs:
        raise ValidationError(
            {
                "transfers": ValidationError(
                    "Provide at least one transfer.",
                    code=TransferErrorCode.REQUIRED.value,
                )
            }
        )
    transfers = [
        create_transfer(transfer_input, user=user)
        for transfer_input in transfer_inputs
    ]
    logger.info("Created %s transfers in one batch", len(transfers))
    return transfers


@transaction.atomic
def transition_transfer_status(
    transfer: InventoryTransfer, new_status: str, notes=None, user=None
) -> InventoryTransfer:
    """Move a transfer to `new_status`, applying the matching ledger effects.

    Asking for the current status changes nothing. `notes`, when given,
    replace the transfer notes; for `cancelled` they are the cancellation
    reason.

    Raises:
        TransferLocked: If the transfer is completed or cancelled.
        InvalidStatusTransition: If the transition table does not allow it.
        InsufficientStock: If the source cannot cover the debit.

    """
    if new_status not in dict(TransferStatus.CHOICES):
        raise ValidationError(
            {
                "status": ValidationError(
                    f"Unknown transfer status '{new_status}'.",
                    code=TransferErrorCode.INVALID_STATUS.value,
                )
            }
        )

    transfer = _lock_transfer(transfer)
    if new_status == transfer.status:
        logger.info("Transfer %s status unchanged (%s)", transfer.pk, new_status)
        return transfer
    if transfer.is_locked:
        raise TransferLocked(transfer)
    if new_status == TransferStatus.CANCELLED:
        return _cancel(transfer, reason=notes, user=user)
    TransferStatus.validate_transition(transfer.status, new_status, instance=transfer)

    old_status = transfer.status
    if old_status == TransferStatus.PENDING:
        _debit_source(transfer, user=user)
    if new_status == TransferStatus.COMPLETED:
        _credit_destination(transfer, user=user)

    transfer.status = new_status
    update_fields = ["status", "updated_at"]
    if notes is not None:
        transfer.notes = notes
        update_fields.append("notes")
    transfer.save(update_fields=update_fields)
    logger.info(
        "Transfer %s status changed from %s to %s", transfer.pk, old_status, new_status
    )
    return transfer


def _cancel(transfer: InventoryTransfer, reason, user) -> InventoryTransfer:
    if transfer.status == TransferStatus.IN_TRANSIT:
        _credit_source_back(transfer, user=user)

    cancellation_note = f"Cancelled. Reason: {reason or 'not given'}"
    transfer.notes = (
        f"{cancellation_note}\n{transfer.notes}"
        if transfer.notes
        else cancellation_note
    )
    old_status = transfer.status
    transfer.status = TransferStatus.CANCELLED
    transfer.save(update_fields=["status", "notes", "updated_at"])
    logger.info("Cancelled transfer %s (was %s): %s", transfer.pk, old_status, reason)
    return transfer


@transaction.atomic
def cancel_transfer(
    transfer: InventoryTransfer, reason: str | None = None, user=None
) -> InventoryTransfer:
    """Cancel a pending or in transit transfer.

    An in transit transfer credits its quantity back to the source store.

    Raises:
        TransferLocked: If the transfer is completed or cancelled.

    """
    transfer = _lock_transfer(transfer)
    if transfer.is_locked:
        raise TransferLocked(transfer)
    return _cancel(transfer, reason=reason, user=user)
