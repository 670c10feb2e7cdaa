"""Tracking token generation and pixel URL helpers."""

import secrets
import string
from html import escape
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl

BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase
TOKEN_BITS = 128
# ceil(128 / log2(62))
TOKEN_LENGTH = 22
TOKEN_PARAM = "text"


def encode_base62(number: int, length: int = TOKEN_LENGTH) -> str:
    """Encode a non-negative integer in base62, left padded to ``length``."""
    if number < 0:
        raise ValueError("number must be non-negative")
    digits = []
    while number:
        number, remainder = divmod(number, 62)
        digits.append(BASE62_ALPHABET[remainder])
    return "".join(reversed(digits)).rjust(length, BASE62_ALPHABET[0])


def generate_token() -> str:
    """Return a fresh 128-bit random tracking token, base62 encoded."""
    return encode_base62(secrets.randbits(TOKEN_BITS))


def build_pixel_url(endpoint_base: str, token: str) -> str:
    """Append ``text=<token>`` to the pixel endpoint URL, keeping any existing query."""
    scheme, netloc, path, query, fragment = urlsplit(endpoint_base)
    params = [(k, v) for k, v in parse_qsl(query, keep_blank_values=True) if k != TOKEN_PARAM]
    params.append((TOKEN_PARAM, token))
    return urlunsplit((scheme, netloc, path, urlencode(params), fragment))


def build_snippet(pixel_url: str) -> str:
    """Ready-to-paste HTML for the outgoing email body."""
    return (
        f'<img src="{escape(pixel_url, quote=True)}" width="1" height="1" '
        f'alt="" style="display:none;border:0" />'
    )
