"""Read-side views of a submission record.

Every read that leaves the service goes through `submission_view`: the
bank account number is masked, the password hash is dropped, and the
shipping address falls back to the mailing address while
`same_as_mailing` is set.
"""

from typing import Any, Mapping

HIDDEN_FIELDS = frozenset({"password_hash"})


def mask_account_number(value: str | None) -> str | None:
    """`123456789` → `****6789`; anything shorter than 5 characters is fully masked."""
    if not value:
        return value
    if len(value) <= 4:
        return "*" * len(value)
    return "****" + value[-4:]


def effective_shipping_address(record: Mapping[str, Any]) -> dict:
    # Unanswered (None) counts as same-as-mailing, like the step sequence
    if record.get("same_as_mailing") is not False:
        return {
            "street_address": record.get("street_address"),
            "city": record.get("city"),
            "state": record.get("state"),
            "zip_code": record.get("zip_code"),
        }
    return {
        "street_address": record.get("shipping_street_address"),
        "city": record.get("shipping_city"),
        "state": record.get("shipping_state"),
        "zip_code": record.get("shipping_zip_code"),
    }


def submission_view(record: Mapping[str, Any]) -> dict:
    view = {k: v for k, v in record.items() if k not in HIDDEN_FIELDS}
    view["bank_account_number"] = mask_account_number(record.get("bank_account_number"))
    view["effective_shipping_address"] = effective_shipping_address(record)
    return view
