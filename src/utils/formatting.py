from __future__ import annotations

from decimal import Decimal

CURRENCY_SYMBOLS = {"USD": "$", "CAD": "CA$", "EUR": "€", "GBP": "£"}

INVOICE_STATUS_LABELS = {
    "Draft": "📝 Draft",
    "Sent": "📤 Sent",
    "Paid": "✅ Paid",
    "Overdue": "⚠️ Overdue",
    "Disputed": "⚡ Disputed",
    "Cancelled": "❌ Cancelled",
}


def format_currency(value: Decimal, currency: str = "USD") -> str:
    cents = value.quantize(Decimal("0.01"))
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    sign = "-" if cents < 0 else ""
    return f"{sign}{symbol}{abs(cents):,.2f}"


def format_whole_currency(value: Decimal, currency: str = "USD") -> str:
    formatted = format_currency(value, currency)
    # Drop zero cents only; "$1,234.50" keeps its fraction.
    if formatted.endswith(".00"):
        return formatted[:-3]
    return formatted


def format_invoice_status(status: str) -> str:
    return INVOICE_STATUS_LABELS.get(str(status), str(status))
