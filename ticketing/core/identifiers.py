"""
Human-facing identifiers: order numbers, ticket numbers, payment references
and URL slugs.
"""

import re
import secrets
import string
import time

_ALPHABET = string.ascii_uppercase + string.digits


def _random_chars(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_order_number() -> str:
    return f"TKT-{_now_ms()}-{_random_chars(6)}"


def generate_ticket_number() -> str:
    return f"T{_now_ms()}{_random_chars(8)}"


def generate_payment_reference() -> str:
    return f"TKT-{_now_ms()}-{_random_chars(8)}"


def generate_free_reference(order_id: int) -> str:
    return f"FREE-{order_id}-{_random_chars(8)}"


def slugify(text: str) -> str:
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-") or "event"


def generate_payout_reference() -> str:
    return f"PO-{_now_ms()}-{_random_chars(8)}"
