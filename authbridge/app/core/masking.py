"""Masking helpers for sensitive values in log output."""


def mask_ip(ip: str | None) -> str:
    """Mask a client address for logging.

    IPv4 keeps the first two octets (``192.168.*.*``), IPv6 keeps the
    first segment (``2001:****``).
    """
    if not ip:
        return "unknown"
    if "." in ip and ":" not in ip:
        parts = ip.split(".")
        if len(parts) < 2:
            return "*.*.*.*"
        return f"{parts[0]}.{parts[1]}.*.*"
    if ":" in ip:
        return f"{ip.split(':')[0]}:****"
    # Not an address (e.g. "unknown" or a hostname)
    return mask_identifier(ip, visible=3)


def mask_email(email: str | None) -> str:
    """Mask an email address, keeping the first local character and the domain."""
    if not email or "@" not in email:
        return "***"
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def mask_identifier(value: str | None, visible: int = 8) -> str:
    """Show only the first ``visible`` characters of an identifier."""
    if not value:
        return "***"
    if len(value) <= visible:
        return f"{value[:1]}..."
    return f"{value[:visible]}..."
