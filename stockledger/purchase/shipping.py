"""Shipping cost allocation across purchase lines."""


def allocate_shipping_cost(total_cost: int, quantities: list[int]) -> list[int]:
    """Split `total_cost` across lines in proportion to their quantities.

    Every line but the last gets `total_cost * quantity // total_quantity`; the
    last line takes whatever is left, so the shares always add up to
    `total_cost` exactly:

        >>> allocate_shipping_cost(100000, [1, 1, 1])
        [33333, 33333, 33334]

    When there is no quantity to spread the cost over every share is 0 and the
    shipping cost stays unallocated.

    Raises:
        ValueError: If `total_cost` or any quantity is negative.

    """
    if total_cost < 0:
        raise ValueError(f"Shipping cost cannot be negative, got {total_cost}")
    if any(quantity < 0 for quantity in quantities):
        raise ValueError("Line quantities cannot be negative")

    total_quantity = sum(quantities)
    if not quantities or total_quantity == 0:
        return [0] * len(quantities)

    shares = [total_cost * quantity // total_quantity for quantity in quantities[:-1]]
    shares.append(total_cost - sum(shares))
    return shares
