"""Reusable validators for onboarding step input.

Each validator takes the raw value, returns the normalized value, and
raises ValueError with a user-facing message.  They are wired into the
pydantic step schemas with `field_validator`, so a failure becomes a
field-level error rather than an exception.
"""

import re

# Regex patterns
EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
ZIP_REGEX = re.compile(r"^\d{5}(-\d{4})?$")
URL_REGEX = re.compile(
    r"^https?://"  # http:// or https://
    r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,6}\.?|"  # domain
    r"localhost|"  # localhost
    r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"  # IP
    r"(?::\d+)?"  # optional port
    r"(?:/?|[/?]\S+)$",
    re.IGNORECASE,
)

XSS_PATTERNS = [
    r"<script[^>]*>.*?</script>",
    r"javascript:",
    r"on\w+\s*=",
    r"<iframe",
]

US_STATES = {
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
}

MIN_SHOE_SIZE = 6.0
MAX_SHOE_SIZE = 15.0

# Substring match on the letters-only, lowercased nickname
INAPPROPRIATE_WORDS = [
    "damn", "hell", "shit", "fuck", "bitch", "ass", "asshole", "bastard", "crap", "piss",
    "whore", "slut", "retard", "idiot", "stupid", "dumb", "moron", "loser", "freak",
    "nazi", "hitler", "terrorist", "kill", "murder", "death", "suicide", "bomb",
    "drug", "cocaine", "heroin", "meth", "weed", "marijuana", "porn", "sex", "nude",
]


def sanitize_string(value: str, max_length: int = 1000) -> str:
    """Trim, bound the length, and reject obvious script injection."""
    if not isinstance(value, str):
        raise ValueError("Must be a string")

    value = value.strip()

    if len(value) > max_length:
        raise ValueError(f"Must be at most {max_length} characters")

    for pattern in XSS_PATTERNS:
        if re.search(pattern, value, re.IGNORECASE):
            raise ValueError("Invalid characters detected")

    return value


def validate_email(value: str) -> str:
    """Return the lowercased address or raise on a malformed one."""
    value = value.strip().lower()

    if len(value) > 254:  # RFC 5321
        raise ValueError("Email address too long")

    if not EMAIL_REGEX.match(value):
        raise ValueError("Enter a valid email address")

    return value


def normalize_phone(value: str) -> str:
    """Strip formatting; a leading US country code is dropped."""
    digits = re.sub(r"\D", "", value)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    return digits


def validate_us_phone(value: str) -> str:
    digits = normalize_phone(value)
    if len(digits) != 10:
        raise ValueError("Please enter a valid 10-digit phone number")
    return digits


def format_phone(value: str | None) -> str:
    """Display format: (555) 123-4567. Partial input is formatted progressively."""
    digits = re.sub(r"\D", "", value or "")
    if not digits:
        return ""
    if len(digits) <= 3:
        return f"({digits}"
    if len(digits) <= 6:
        return f"({digits[:3]}) {digits[3:]}"
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:10]}"


def validate_zip(value: str) -> str:
    value = value.strip()
    if not ZIP_REGEX.match(value):
        raise ValueError("Valid zip code is required")
    return value


def validate_state(value: str) -> str:
    value = value.strip().upper()
    if value not in US_STATES:
        raise ValueError("Select a valid US state")
    return value


def validate_shoe_size(value: str | float) -> str:
    """Shoe sizes run 6 to 15 in half sizes; stored as "9" / "9.5"."""
    try:
        size = float(value)
    except (TypeError, ValueError):
        raise ValueError("Shoe size must be a number") from None

    if not MIN_SHOE_SIZE <= size <= MAX_SHOE_SIZE:
        raise ValueError(f"Shoe size must be between {MIN_SHOE_SIZE:g} and {MAX_SHOE_SIZE:g}")
    if (size * 2) != int(size * 2):
        raise ValueError("Shoe size must be a whole or half size")

    return f"{size:g}"


def is_inappropriate(text: str) -> bool:
    letters = re.sub(r"[^a-z]", "", text.lower())
    return any(word in letters for word in INAPPROPRIATE_WORDS)


def validate_nickname(value: str) -> str:
    value = sanitize_string(value, max_length=30)
    if value and is_inappropriate(value):
        raise ValueError(
            "Nickname contains inappropriate content. Please choose a different nickname."
        )
    return value


def validate_routing_number(value: str) -> str:
    """ABA routing number: 9 digits with a valid 3-7-1 checksum."""
    digits = re.sub(r"\D", "", value)
    if len(digits) != 9:
        raise ValueError("Routing number must be 9 digits")

    weights = (3, 7, 1) * 3
    if sum(int(d) * w for d, w in zip(digits, weights)) % 10 != 0:
        raise ValueError("Routing number is not valid")

    return digits


def validate_account_number(value: str) -> str:
    """5 to 17 digits, so the masked form always ends in the real last four."""
    digits = re.sub(r"[\s-]", "", value)
    if not digits.isdigit() or not 5 <= len(digits) <= 17:
        raise ValueError("Account number must be 5 to 17 digits")
    return digits


def validate_url(value: str) -> str:
    """Webhook target URL; HTTPS required except for localhost."""
    value = value.strip()

    if not URL_REGEX.match(value):
        raise ValueError("Invalid URL format")

    if not value.startswith("https://") and not value.startswith("http://localhost"):
        raise ValueError("URL must use HTTPS")

    return value
