"""Address validation that reports every failing field at once."""

from __future__ import annotations

import re
from typing import Final

from .errors import ValidationFailed
from .schemas import AddressPayload, CheckoutRequest

_PHONE_DIGITS: Final = re.compile(r"^\d{10}$")
_NON_DIGITS: Final = re.compile(r"\D")
_POSTAL_CODE: Final = re.compile(r"^\d{6}$")
_EMAIL: Final = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ADDRESS_FIELDS: Final = ("name", "phone", "email", "street", "city", "state", "postal_code")

_LABELS: Final = {
    "name": "Name",
    "phone": "Phone number",
    "email": "Email",
    "street": "Street address",
    "city": "City",
    "state": "State",
    "postal_code": "Postal code",
}

_OUTPUT_KEYS: Final = {"postal_code": "postalCode"}


def _field_errors(address: AddressPayload) -> dict[str, str]:
    errors: dict[str, str] = {}
    values = {field: getattr(address, field).strip() for field in ADDRESS_FIELDS}

    for field, value in values.items():
        if not value:
            errors[field] = f"{_LABELS[field]} is required"

    if "phone" not in errors and not _PHONE_DIGITS.match(_NON_DIGITS.sub("", values["phone"])):
        errors["phone"] = "Please enter a valid 10-digit phone number"
    if "email" not in errors and not _EMAIL.match(values["email"]):
        errors["email"] = "Please enter a valid email address"
    if "postal_code" not in errors and not _POSTAL_CODE.match(values["postal_code"]):
        errors["postal_code"] = "Please enter a valid 6-digit postal code"
    return errors


def normalize_address(address: AddressPayload) -> dict[str, str]:
    """Stored shape of an address: stripped values under camelCase keys."""

    return {_OUTPUT_KEYS.get(field, field): getattr(address, field).strip() for field in ADDRESS_FIELDS}


def validate_checkout_addresses(payload: CheckoutRequest) -> tuple[dict[str, str], dict[str, str]]:
    """Return ``(shipping, billing)`` or raise ``ValidationFailed`` with every field error.

    Billing is validated only when the caller says it differs from shipping;
    otherwise the shipping address is reused as billing.
    """

    errors = {
        f"shipping.{_OUTPUT_KEYS.get(field, field)}": message
        for field, message in _field_errors(payload.shipping_address).items()
    }

    billing_source = payload.shipping_address
    if not payload.billing_same_as_shipping:
        billing_source = payload.billing_address or AddressPayload()
        errors.update(
            {
                f"billing.{_OUTPUT_KEYS.get(field, field)}": message
                for field, message in _field_errors(billing_source).items()
            }
        )

    if errors:
        raise ValidationFailed(errors)

    return normalize_address(payload.shipping_address), normalize_address(billing_source)
