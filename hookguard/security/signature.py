"""
HMAC-SHA256 verification of inbound webhook signatures.

Senders sign the canonical serialization of the fields they submit
(see ``canonical_payload``) with the shared secret and send the lowercase
hex digest in the ``x-webhook-signature`` header.
"""
import hashlib
import hmac
import re
from typing import Any, Mapping

import orjson
import structlog

log = structlog.get_logger()

SIGNATURE_HEADER = "x-webhook-signature"

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


def canonical_payload(source: str, event_type: str, payload: Mapping[str, Any]) -> bytes:
    """
    Serialize the signed fields deterministically.

    The document is ``{"eventType": ..., "payload": ..., "source": ...}``
    rendered by orjson with keys sorted at every depth and no whitespace.

    Args:
        source: Sender identifier
        event_type: Event type discriminator
        payload: Event body

    Returns:
        UTF-8 encoded JSON bytes
    """
    document = {"source": source, "eventType": event_type, "payload": payload}
    return orjson.dumps(document, option=orjson.OPT_SORT_KEYS)


class SignatureVerifier:
    """
    Checks that a claimed tag was produced by a holder of the shared secret.

    An empty secret disables verification: every check returns False.
    """

    def __init__(self, secret: str):
        self._secret = secret.encode("utf-8")

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    def sign(self, canonical: bytes) -> str:
        """Return the hex tag an authorized sender would attach to ``canonical``."""
        return hmac.new(self._secret, canonical, hashlib.sha256).hexdigest()

    def verify(self, canonical: bytes, provided_tag: str | None) -> bool:
        """
        Verify ``provided_tag`` against the HMAC of ``canonical``.

        Never raises. Returns False when verification is disabled, the tag is
        missing, the tag is not hex, or its decoded length is not the digest
        length.
        """
        if not self._secret or not provided_tag:
            return False

        if not _HEX_RE.fullmatch(provided_tag):
            log.debug("signature.malformed", reason="not_hex")
            return False
        try:
            provided = bytes.fromhex(provided_tag)
        except ValueError:
            # odd number of digits
            log.debug("signature.malformed", reason="odd_length")
            return False

        expected = hmac.new(self._secret, canonical, hashlib.sha256).digest()
        if len(provided) != len(expected):
            log.debug("signature.malformed", reason="length_mismatch", length=len(provided))
            return False

        return hmac.compare_digest(expected, provided)
