from decimal import Decimal, ROUND_HALF_UP

CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£"}


def format_price(amount, currency: str = "EUR", precision: int = 2) -> str:
    """Render an amount the way the booking site shows it (nl-NL): "€ 1.234,56"."""
    value = Decimal(str(amount)).quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    text = f"{abs(value):,.{precision}f}"
    # swap separators: 1,234.56 -> 1.234,56
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f"{sign}{symbol} {text}"


def format_price_breakdown(breakdown) -> str:
    currency = breakdown.currency
    lines = [f"Base fare: {format_price(breakdown.base_price, currency)}"]

    if breakdown.distance_price > 0:
        lines.append(f"Distance: {format_price(breakdown.distance_price, currency)}")
    if breakdown.time_price > 0:
        lines.append(f"Time: {format_price(breakdown.time_price, currency)}")
    for surcharge in breakdown.surcharges:
        lines.append(f"{surcharge.description}: {format_price(surcharge.amount, currency)}")
    if breakdown.tax > 0:
        lines.append(f"Tax: {format_price(breakdown.tax, currency)}")

    lines.append(f"Total: {format_price(breakdown.total, currency)}")

    if breakdown.estimated_only:
        lines.append("(Estimate - final price may vary)")
    return "\n".join(lines)
