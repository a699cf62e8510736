def calculate_cart_total(lines) -> float:
    """
    Calculate the total value of a cart from its lines' current prices.
    """
    total = 0.0
    for line in lines:
        total += float(line.price)
    return round(total, 2)


def format_eur(amount: float) -> str:
    """
    Format a number as Euro currency.
    """
    return f"€{amount:.2f}"
