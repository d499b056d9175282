from .url_resolver import (
    SignatureResolver,
    apply_n_transform,
    parse_cipher_payload,
    resolve_format,
    resolve_url,
)

__all__ = [
    "SignatureResolver",
    "apply_n_transform",
    "parse_cipher_payload",
    "resolve_format",
    "resolve_url",
]
