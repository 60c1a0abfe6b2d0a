"""Structural email check shared by the storefront and the store API."""

_FORBIDDEN = (";", ",", "(", ")", '"', ":", "<", ">", "[", "]", "\\")


def is_valid_email(address: str | None) -> bool:
    """Exactly one @, non-empty local and dotted domain parts, no stray characters."""
    if not address or len(address) > 254:
        return False
    if any(ch.isspace() for ch in address) or address.count("@") != 1:
        return False

    local_part, domain_part = address.split("@", 1)
    if not local_part or local_part.startswith(".") or local_part.endswith("."):
        return False
    if not domain_part or domain_part.startswith(".") or domain_part.endswith("."):
        return False
    if "." not in domain_part or ".." in local_part or ".." in domain_part:
        return False
    if any(label.startswith("-") or label.endswith("-") for label in domain_part.split(".")):
        return False
    return not any(ch in address for ch in _FORBIDDEN)
