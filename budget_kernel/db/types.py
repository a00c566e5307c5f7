"""
Module: budget_kernel.db.types
Responsibility: Column types and helper functions for money and
    percentages.  Centralizes precision, rounding and currency
    validation so that every model, engine and service uses identical
    definitions.
Architecture position: Kernel > DB.  May be imported by domain/, engines,
    modules.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the engine.  All monetary amounts and percentages
      use Decimal with explicit precision.
    - Percentages come from percent_of() only: 4 decimals, 0 over a zero base.
    - Floats are rejected by to_decimal().
    - validate_currency() rejects anything that is not an ISO 4217 code.

Failure modes:
    - InvalidCurrencyError on invalid ISO 4217 code.
    - TypeError from to_decimal() on a float.
"""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Numeric

from budget_kernel.exceptions import InvalidCurrencyError

# Variance percentages (stored with 6 decimals, computed to 4)
PERCENT_COLUMN = Numeric(18, 6)

PERCENT_DECIMAL_PLACES = 4

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an int, str or Decimal to Decimal.

    Floats are rejected: binary floating point cannot represent most
    currency amounts exactly.
    """
    if isinstance(value, float):
        raise TypeError(f"Float amounts are not allowed: {value!r}")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = ROUND_HALF_UP,
) -> Decimal:
    """Half-up rounding of an amount or percentage to ``decimal_places``."""
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=rounding)


def percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """
    Express ``part`` as a percentage of ``whole``, rounded to
    PERCENT_DECIMAL_PLACES.  Returns 0 when ``whole`` is zero.
    """
    if whole == ZERO:
        return ZERO
    return round_money(part / whole * HUNDRED, PERCENT_DECIMAL_PLACES)


# ISO 4217 Currency Codes
ISO_4217_CURRENCIES: set[str] = {
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BOV", "BRL", "BSD", "BTN", "BWP", "BYN", "BZD",
    "CDF", "CHE", "CHW", "CLF", "CLP", "CNY", "COP", "COU", "CRC", "CUC", "CUP", "CVE", "CZK",
    "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB",
    "FJD", "FKP",
    "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD",
    "HKD", "HNL", "HRK", "HTG", "HUF",
    "IDR", "ILS", "INR", "IQD", "IRR", "ISK",
    "JMD", "JOD",
    "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD", "KZT",
    "LAK", "LBP", "LKR", "LRD", "LSL", "LYD",
    "MAD", "MDL", "MGA", "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MXV", "MYR", "MZN",
    "NAD", "NGN", "NIO", "NOK", "NPR",
    "OMR",
    "PAB", "PEN", "PGK", "PHP", "PKR", "PLN", "PYG",
    "QAR",
    "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SLL", "SOS", "SRD", "SSP", "STN", "SVC", "SYP", "SZL",
    "THB", "TJS", "TMT", "TND", "TOP", "TRY", "TTD", "TWD", "TZS",
    "UAH", "UGX", "USN", "UYI", "UYU", "UYW", "UZS",
    "VED", "VES", "VND", "VUV",
    "WST",
    "XAF", "XAG", "XAU", "XBA", "XBB", "XBC", "XBD", "XCD", "XDR", "XOF", "XPD", "XPF", "XPT", "XSU", "XTS", "XUA", "XXX",
    "YER",
    "ZAR", "ZMW", "ZWL",
}


def validate_currency(currency: str) -> str:
    """
    Validate that a currency code is a valid ISO 4217 code.

    Returns:
        The validated currency code (uppercase, trimmed).

    Raises:
        InvalidCurrencyError: If the currency code is not valid.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidCurrencyError(str(currency))

    normalized = currency.upper().strip()

    if len(normalized) != 3 or normalized not in ISO_4217_CURRENCIES:
        raise InvalidCurrencyError(currency)

    return normalized


def is_valid_currency(currency: str) -> bool:
    """Check if a currency code is a valid ISO 4217 code."""
    try:
        validate_currency(currency)
        return True
    except InvalidCurrencyError:
        return False
