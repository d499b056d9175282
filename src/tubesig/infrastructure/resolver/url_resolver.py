"""URL resolver - turns format descriptors into fetchable media URLs.

Per format:
1. A plain URL without a cipher payload is used as is.
2. A cipher payload (``signatureCipher``/``cipher``) or direct ``s``/``sp``
   fields are deciphered and the result written to the ``sp`` parameter
   (``sig`` when absent).
3. An ``s`` query parameter, or a ``sig``/``signature`` parameter of at
   least 80 characters, is still encrypted; deciphering it is attempted
   and the original is kept when that fails.
4. The ``n`` parameter is transformed when a program exists.  Failure
   leaves the original value in place.

Signature problems are fatal for that one format only; n problems never
are.  Batch resolution never raises for an individual format.
"""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import structlog

from tubesig.domain.entities.formats import FormatDescriptor
from tubesig.domain.entities.player import TransformKind
from tubesig.domain.exceptions import (
    MalformedCipherPayloadError,
    PatternExtractionError,
    ScriptLocationError,
    TransformExecutionError,
    TubesigError,
)
from tubesig.domain.ports.player_functions import TransformProgram
from tubesig.infrastructure.player.functions import PlayerFunctions

log = structlog.get_logger(__name__)

ENCRYPTED_SIGNATURE_MIN_LENGTH = 80
DEFAULT_SIGNATURE_PARAM = "sig"
_SIGNATURE_PARAMS = ("sig", "signature")
N_FAILURE_PREFIX = "enhanced_except_"


def _split_query(url: str) -> tuple[tuple[str, str, str, str, str], list[tuple[str, str]]]:
    parts = urlsplit(url)
    return tuple(parts), parse_qsl(parts.query, keep_blank_values=True)  # type: ignore[return-value]


def get_query_param(url: str, name: str) -> str | None:
    _, params = _split_query(url)
    for key, value in params:
        if key == name:
            return value
    return None


def set_query_param(url: str, name: str, value: str) -> str:
    """Set ``name`` in place (first occurrence) or append it."""
    (scheme, netloc, path, _, fragment), params = _split_query(url)
    updated: list[tuple[str, str]] = []
    replaced = False
    for key, current in params:
        if key == name:
            if not replaced:
                updated.append((key, value))
                replaced = True
            continue
        updated.append((key, current))
    if not replaced:
        updated.append((name, value))
    return urlunsplit((scheme, netloc, path, urlencode(updated), fragment))


def remove_query_param(url: str, name: str) -> str:
    (scheme, netloc, path, _, fragment), params = _split_query(url)
    kept = [(k, v) for k, v in params if k != name]
    return urlunsplit((scheme, netloc, path, urlencode(kept), fragment))


def parse_cipher_payload(payload: str) -> dict[str, str]:
    """Decode a ``s=..&sp=..&url=..`` blob.

    Raises:
        MalformedCipherPayloadError: The blob has no ``url`` field.
    """
    fields = dict(parse_qsl(payload, keep_blank_values=True))
    if not fields.get("url"):
        raise MalformedCipherPayloadError(payload)
    return fields


def _decipher(program: TransformProgram | None, value: str) -> str:
    if program is None:
        raise PatternExtractionError(TransformKind.SIGNATURE)
    return program.run(value)


def _try_decipher_param(
    url: str, param: str, program: TransformProgram | None
) -> str:
    """Best-effort decipher of an encrypted signature already in the query."""
    value = get_query_param(url, param)
    if value is None:
        return url
    try:
        deciphered = _decipher(program, value)
    except TubesigError as exc:
        log.debug("embedded_signature_kept", param=param, error=str(exc))
        return url
    if param == "s":
        return set_query_param(remove_query_param(url, "s"), DEFAULT_SIGNATURE_PARAM, deciphered)
    return set_query_param(url, param, deciphered)


def apply_n_transform(
    url: str,
    program: TransformProgram | None,
    memo: dict[str, str] | None = None,
) -> str:
    """Transform the ``n`` parameter; on any failure keep the original."""
    n_value = get_query_param(url, "n")
    if not n_value or program is None:
        return url

    if memo is not None and n_value in memo:
        return set_query_param(url, "n", memo[n_value])

    try:
        transformed = program.run(n_value)
    except TransformExecutionError as exc:
        log.debug("n_transform_failed", n=n_value, error=exc.reason)
        return url
    if (
        not transformed
        or transformed.startswith(N_FAILURE_PREFIX)
        or transformed.endswith(n_value)
    ):
        log.debug("n_transform_rejected", n=n_value, result=transformed[:40])
        return url

    if memo is not None:
        memo[n_value] = transformed
    return set_query_param(url, "n", transformed)


def resolve_url(
    fmt: FormatDescriptor,
    decipher: TransformProgram | None,
    n_transform: TransformProgram | None,
    n_memo: dict[str, str] | None = None,
) -> str:
    """Compute the final URL for ``fmt`` without touching it.

    Raises:
        MalformedCipherPayloadError: Cipher payload without inner URL.
        PatternExtractionError: Signature needed but no program.
        TransformExecutionError: The signature program failed.
    """
    if fmt.signature_cipher:
        fields = parse_cipher_payload(fmt.signature_cipher)
        url = fields["url"]
        if fields.get("s"):
            param = fields.get("sp") or DEFAULT_SIGNATURE_PARAM
            url = set_query_param(url, param, _decipher(decipher, fields["s"]))
    elif fmt.url:
        url = fmt.url
    else:
        raise MalformedCipherPayloadError("")

    if fmt.s:
        param = fmt.sp or DEFAULT_SIGNATURE_PARAM
        url = set_query_param(url, param, _decipher(decipher, fmt.s))

    # Signatures still encrypted inside the query string.
    url = _try_decipher_param(url, "s", decipher)
    for param in _SIGNATURE_PARAMS:
        value = get_query_param(url, param)
        if value is not None and len(value) >= ENCRYPTED_SIGNATURE_MIN_LENGTH:
            url = _try_decipher_param(url, param, decipher)

    return apply_n_transform(url, n_transform, n_memo)


def resolve_format(
    fmt: FormatDescriptor,
    decipher: TransformProgram | None,
    n_transform: TransformProgram | None,
    n_memo: dict[str, str] | None = None,
) -> FormatDescriptor:
    """Resolve ``fmt`` in place and return it.

    A format that already left the pending state is returned untouched.
    """
    if not fmt.needs_resolution:
        return fmt
    fmt.mark_resolved(resolve_url(fmt, decipher, n_transform, n_memo))
    return fmt


class SignatureResolver:
    """Batch resolution on top of memoized per-script programs."""

    def __init__(self, functions: PlayerFunctions) -> None:
        self._functions = functions

    async def locate_script_url(self) -> str:
        return await self._functions.locate_script_url()

    async def get_signature_timestamp(self, script_url: str) -> int | None:
        functions = await self._functions.get_function_set(script_url)
        return functions.signature_timestamp

    async def get_functions(
        self, script_url: str
    ) -> tuple[TransformProgram | None, TransformProgram | None]:
        return await self._functions.get_functions(script_url)

    async def decipher_formats(
        self,
        formats: list[FormatDescriptor],
        script_url: str | None,
    ) -> dict[str, FormatDescriptor]:
        """Resolve every format; map final URL to descriptor.

        Failed formats are marked FAILED and left out of the mapping.  A
        script that cannot be fetched degrades every format the same way:
        both programs are treated as missing.
        """
        decipher: TransformProgram | None = None
        n_transform: TransformProgram | None = None
        if script_url:
            try:
                decipher, n_transform = await self._functions.get_functions(script_url)
            except ScriptLocationError as exc:
                log.warning("player_functions_unavailable", script_url=script_url, error=str(exc))

        n_memo: dict[str, str] = {}
        resolved: dict[str, FormatDescriptor] = {}
        for fmt in formats:
            if not fmt.needs_resolution:
                if fmt.is_playable and fmt.url:
                    resolved[fmt.url] = fmt
                continue
            try:
                url = resolve_url(fmt, decipher, n_transform, n_memo)
            except TubesigError as exc:
                fmt.mark_failed()
                log.warning(
                    "format_resolution_failed",
                    itag=fmt.itag,
                    client=fmt.client,
                    error=str(exc),
                )
                continue
            fmt.mark_resolved(url)
            resolved[url] = fmt
        log.debug(
            "formats_deciphered",
            script_url=script_url,
            total=len(formats),
            resolved=len(resolved),
        )
        return resolved

