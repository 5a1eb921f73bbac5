"""Phone number normalization to E.164, used by the phone_normalize curator."""

import phonenumbers


def normalize_phone(raw: str, default_region: str | None = None) -> str | None:
    """Return the E.164 form of raw, or None if it is not a valid number.

    default_region applies to numbers written without a leading +
    ("202 555 1234" with "US"); numbers with a country code ignore it.
    """
    if raw is None or not str(raw).strip():
        return None
    text = str(raw).strip()
    if text.lower().startswith("tel:"):
        text = text[4:].strip()
    try:
        parsed = phonenumbers.parse(text, default_region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def phone_normalizer(default_region: str | None):
    """One-argument normalizer bound to a region, as the curator expects."""

    def normalize(raw: str) -> str | None:
        return normalize_phone(raw, default_region)

    return normalize
