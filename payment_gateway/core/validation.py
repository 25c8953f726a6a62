"""
Payment request validation.

Requests are checked by an ordered list of predicates before they reach the
orchestrator. Every check runs, so a rejected request reports all of its
violations at once.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from .exceptions import PaymentValidationError, Violation

CARD_NUMBER_MIN_LENGTH = 14
CARD_NUMBER_MAX_LENGTH = 19
CVV_MIN_LENGTH = 3
CVV_MAX_LENGTH = 4
DEFAULT_CURRENCIES = ("USD", "GBP", "EUR")


@dataclass(frozen=True)
class ValidatedPaymentRequest:
    """A payment request that passed every validation check."""

    card_number: str = field(repr=False)
    expiry_month: int
    expiry_year: int
    currency: str
    amount: int
    cvv: str = field(repr=False)

    @property
    def card_last_four(self) -> int:
        return int(self.card_number[-4:])

    @property
    def expiry_date(self) -> str:
        """Expiry in the bank's MM/YYYY format."""
        return f"{self.expiry_month:02d}/{self.expiry_year}"


Check = Callable[[Mapping[str, Any], "ValidationContext"], Optional[Violation]]


@dataclass(frozen=True)
class ValidationContext:
    today: date
    supported_currencies: Sequence[str]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _digits_field(
    name: str, label: str, min_length: int, max_length: int
) -> List[Check]:
    def required(payload: Mapping[str, Any], ctx: ValidationContext) -> Optional[Violation]:
        if _is_blank(payload.get(name)):
            return Violation(name, f"{label} is required")
        return None

    def length(payload: Mapping[str, Any], ctx: ValidationContext) -> Optional[Violation]:
        value = payload.get(name)
        if not _is_blank(value) and not min_length <= len(value) <= max_length:
            return Violation(
                name, f"{label} must be between {min_length} and {max_length} characters"
            )
        return None

    def digits(payload: Mapping[str, Any], ctx: ValidationContext) -> Optional[Violation]:
        value = payload.get(name)
        if not _is_blank(value) and not (value.isascii() and value.isdigit()):
            return Violation(name, f"{label} must contain only digits")
        return None

    return [required, length, digits]


def _check_expiry_month(payload: Mapping[str, Any], ctx: ValidationContext) -> Optional[Violation]:
    month = payload.get("expiry_month")
    if month is None or not 1 <= month <= 12:
        return Violation("expiry_month", "Expiry month must be between 1 and 12")
    return None


def _check_expiry_not_past(payload: Mapping[str, Any], ctx: ValidationContext) -> Optional[Violation]:
    month = payload.get("expiry_month")
    year = payload.get("expiry_year")
    if month is None or not 1 <= month <= 12:
        # reported by the month range check
        return None
    if year is None:
        return Violation("expiry_year", "Expiry year is required")
    if (year, month) < (ctx.today.year, ctx.today.month):
        return Violation("expiry_date", "Card expiry date must not be in the past")
    return None


def _check_currency(payload: Mapping[str, Any], ctx: ValidationContext) -> Optional[Violation]:
    currency = payload.get("currency")
    if _is_blank(currency):
        return Violation("currency", "Currency is required")
    if currency not in ctx.supported_currencies:
        return Violation(
            "currency",
            f"Currency must be one of: {', '.join(ctx.supported_currencies)}",
        )
    return None


def _check_amount(payload: Mapping[str, Any], ctx: ValidationContext) -> Optional[Violation]:
    amount = payload.get("amount")
    if amount is None:
        return Violation("amount", "Amount is required")
    if amount < 0:
        return Violation("amount", "Amount must not be negative")
    return None


CHECKS: List[Check] = [
    *_digits_field("card_number", "Card number", CARD_NUMBER_MIN_LENGTH, CARD_NUMBER_MAX_LENGTH),
    _check_expiry_month,
    _check_expiry_not_past,
    _check_currency,
    _check_amount,
    *_digits_field("cvv", "CVV", CVV_MIN_LENGTH, CVV_MAX_LENGTH),
]


def collect_violations(
    payload: Mapping[str, Any],
    today: Optional[date] = None,
    supported_currencies: Iterable[str] = DEFAULT_CURRENCIES,
) -> List[Violation]:
    """Run every check in order and return the violations found."""
    ctx = ValidationContext(
        today=today or date.today(),
        supported_currencies=tuple(supported_currencies),
    )
    violations: List[Violation] = []
    seen_fields = set()
    for check in CHECKS:
        violation = check(payload, ctx)
        # one violation per field, the first failing check wins
        if violation is not None and violation.field not in seen_fields:
            seen_fields.add(violation.field)
            violations.append(violation)
    return violations


def validate_payment_request(
    payload: Mapping[str, Any],
    today: Optional[date] = None,
    supported_currencies: Iterable[str] = DEFAULT_CURRENCIES,
) -> ValidatedPaymentRequest:
    """
    Validate a decoded payment request.

    Args:
        payload: Mapping with card_number, expiry_month, expiry_year,
            currency, amount and cvv (types already decoded)
        today: Reference date for the expiry check (defaults to today)
        supported_currencies: Accepted currency codes

    Returns:
        ValidatedPaymentRequest: The request, safe to hand to the orchestrator

    Raises:
        PaymentValidationError: If any check fails
    """
    violations = collect_violations(payload, today, supported_currencies)
    if violations:
        raise PaymentValidationError(violations)

    return ValidatedPaymentRequest(
        card_number=payload["card_number"],
        expiry_month=payload["expiry_month"],
        expiry_year=payload["expiry_year"],
        currency=payload["currency"],
        amount=payload["amount"],
        cvv=payload["cvv"],
    )
