class InventoryTransactionType:
    """Kind of change recorded on the stock ledger."""

    ADDITION = "addition"  # Stock received, e.g. a purchase or a manual top-up
    REDUCTION = "reduction"  # Stock removed manually
    ADJUSTMENT = "adjustment"  # Quantity overwritten after a count
    TRANSFER_IN = "transfer_in"  # Credit at the destination of a transfer
    TRANSFER_OUT = "transfer_out"  # Debit at the source of a transfer
    TRANSFER_CANCEL = "transfer_cancel"  # Source credited back on cancellation

    CHOICES = [
        (ADDITION, "Addition"),
        (REDUCTION, "Reduction"),
        (ADJUSTMENT, "Adjustment"),
        (TRANSFER_IN, "Transfer in"),
        (TRANSFER_OUT, "Transfer out"),
        (TRANSFER_CANCEL, "Transfer cancelled"),
    ]


class InventoryAdjustmentAction:
    """Manual adjustment modes."""

    ADD = "add"
    REDUCE = "reduce"
    SET = "set"

    CHOICES = [
        (ADD, "Add"),
        (REDUCE, "Reduce"),
        (SET, "Set"),
    ]


class StockAlertType:
    LOW_STOCK = "low_stock"
    STOCK_EXHAUSTED = "stock_exhausted"

    CHOICES = [
        (LOW_STOCK, "Low stock"),
        (STOCK_EXHAUSTED, "Stock exhausted"),
    ]
