from __future__ import annotations

from typing import Any, Dict, NamedTuple

from app.services.common import safe_float

DEFAULT_CURRENCY = "USD"
DEFAULT_LOCALE = "en-US"


class _LocaleFormat(NamedTuple):
    group: str
    decimal: str
    symbol_after: bool
    indian_grouping: bool = False


_LOCALES: Dict[str, _LocaleFormat] = {
    "en-US": _LocaleFormat(",", ".", False),
    "en-GB": _LocaleFormat(",", ".", False),
    "en-IN": _LocaleFormat(",", ".", False, indian_grouping=True),
    "ja-JP": _LocaleFormat(",", ".", False),
    "de-DE": _LocaleFormat(".", ",", True),
    "es-ES": _LocaleFormat(".", ",", True),
    "vi-VN": _LocaleFormat(".", ",", True),
    "fr-FR": _LocaleFormat(" ", ",", True),
}

_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "JPY": "¥",
    "VND": "₫",
    "CAD": "CA$",
    "AUD": "A$",
}

_ZERO_DECIMAL_CURRENCIES = {"JPY", "VND", "KRW"}


def _group_digits(digits: str, separator: str, indian: bool) -> str:
    if len(digits) <= 3:
        return digits
    if not indian:
        head = len(digits) % 3 or 3
        parts = [digits[:head]] + [digits[i : i + 3] for i in range(head, len(digits), 3)]
        return separator.join(parts)
    last_three = digits[-3:]
    rest = digits[:-3]
    head = len(rest) % 2 or 2
    parts = [rest[:head]] + [rest[i : i + 2] for i in range(head, len(rest), 2)]
    return separator.join(parts + [last_three])


def _resolve_locale(locale: str | None) -> _LocaleFormat:
    key = (locale or DEFAULT_LOCALE).strip().replace("_", "-")
    if key in _LOCALES:
        return _LOCALES[key]
    language = key.split("-", 1)[0].lower()
    for name, fmt in _LOCALES.items():
        if name.split("-", 1)[0] == language:
            return fmt
    return _LOCALES[DEFAULT_LOCALE]


def format_number(value: Any, locale: str | None = DEFAULT_LOCALE, fraction_digits: int = 2) -> str:
    numeric = safe_float(value)
    fmt = _resolve_locale(locale)
    rendered = f"{abs(numeric):.{fraction_digits}f}"
    whole, _, fraction = rendered.partition(".")
    text = _group_digits(whole, fmt.group, fmt.indian_grouping)
    if fraction:
        text = f"{text}{fmt.decimal}{fraction}"
    if numeric < 0 and float(rendered) != 0:
        text = f"-{text}"
    return text


def format_currency(value: Any, currency: str | None = DEFAULT_CURRENCY, locale: str | None = DEFAULT_LOCALE) -> str:
    """Render ``value`` as money, e.g. ``format_currency(1234.5) == "$1,234.50"``.

    Unknown currency codes fall back to ``"<CODE> 1,234.50"``; anything that is
    not a number renders as zero.
    """
    code = (currency or DEFAULT_CURRENCY).strip().upper() or DEFAULT_CURRENCY
    digits = 0 if code in _ZERO_DECIMAL_CURRENCIES else 2
    number = format_number(value, locale, digits)
    negative = number.startswith("-")
    magnitude = number[1:] if negative else number
    sign = "-" if negative else ""
    symbol = _SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {magnitude}"
    if _resolve_locale(locale).symbol_after:
        return f"{sign}{magnitude} {symbol}"
    return f"{sign}{symbol}{magnitude}"
