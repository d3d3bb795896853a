"""Text normalization for pasted RFQ emails.

Strips HTML, email header lines, quoted replies and trailing signatures, then
collapses whitespace. The removed header lines and signature are kept on the
side: contact rules still need the sender address in ``From:`` and the name
in "Best regards, John".
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_HTML_TAG_RE = re.compile(r"<[^>]*>")
_HEADER_LINE_RE = re.compile(r"^[ \t]*(?:From|To|Subject|Date|Sent|CC|BCC)[ \t]*:.*$", re.MULTILINE)
_QUOTED_LINE_RE = re.compile(r"^[ \t]*[>|].*$", re.MULTILINE)
_CLOSING_RE = re.compile(
    r"(?:Best regards?|Kind regards|Regards|Sincerely|Thanks?|Cheers),?[ \t]*"
    r"(?:\n.*|[A-Z][A-Za-z .'-]{0,40})?\Z",
    re.DOTALL,
)
_DASH_SIGNATURE_RE = re.compile(r"^--+[ \t]*\n.*\Z", re.DOTALL | re.MULTILINE)
_CONTACT_BLOCK_RE = re.compile(r"\b(?:phone|tel|e-?mail|mobile|cell)[ \t]*:", re.IGNORECASE)
_PARAGRAPH_SPLIT_RE = re.compile(r"\n[ \t]*\n")
_WHITESPACE_RE = re.compile(r"\s+")
_HSPACE_RE = re.compile(r"[ \t]+")

# A trailing contact paragraph longer than this is treated as body text.
_MAX_CONTACT_BLOCK_LINES = 4


@dataclass(frozen=True)
class NormalizedText:
    """Cleaned body plus what was removed from it."""

    body: str
    headers: tuple[str, ...] = ()
    signature: str = ""

    @property
    def contact_text(self) -> str:
        """Headers, body and signature, one per line, for contact rules."""
        parts = [*self.headers, self.body, self.signature]
        return "\n".join(part for part in parts if part)


def _split_signature(text: str) -> tuple[str, str]:
    """Return (text without signature, signature)."""
    stripped = text.rstrip()
    removed: list[str] = []

    paragraphs = _PARAGRAPH_SPLIT_RE.split(stripped.strip())
    if len(paragraphs) > 1:
        last = paragraphs[-1]
        if len(last.splitlines()) <= _MAX_CONTACT_BLOCK_LINES and _CONTACT_BLOCK_RE.search(last):
            removed.append(last.strip())
            stripped = stripped[: stripped.rfind(last)].rstrip()

    # Closings can stack ("Best regards,\nJohn\n--\nAcme Corp"); peel until none is left.
    while True:
        for pattern in (_DASH_SIGNATURE_RE, _CLOSING_RE):
            match = pattern.search(stripped)
            if match:
                removed.insert(0, match.group(0).strip())
                stripped = stripped[: match.start()].rstrip()
                break
        else:
            break

    return stripped, "\n".join(removed)


def _take_headers(text: str) -> tuple[list[str], str]:
    headers = [m.group(0).strip() for m in _HEADER_LINE_RE.finditer(text)]
    return headers, _HEADER_LINE_RE.sub("", text)


def normalize(text: str) -> NormalizedText:
    """Normalize raw RFQ text, keeping removed headers and signature."""
    # Plain-text headers are taken before tag stripping so "Name <addr>" keeps its address.
    raw_headers, cleaned = _take_headers(text.replace("\r\n", "\n"))
    tagged_headers, cleaned = _take_headers(_HTML_TAG_RE.sub(" ", cleaned))
    headers = tuple(raw_headers + tagged_headers)
    cleaned = _QUOTED_LINE_RE.sub("", cleaned)

    cleaned, signature = _split_signature(cleaned)

    # The signature keeps its line breaks so a name line stays separate from a phone line.
    signature_lines = (_HSPACE_RE.sub(" ", line).strip() for line in signature.splitlines())
    return NormalizedText(
        body=_WHITESPACE_RE.sub(" ", cleaned).strip(),
        headers=headers,
        signature="\n".join(line for line in signature_lines if line),
    )


def clean_text(text: str) -> str:
    """Normalized body only."""
    return normalize(text).body
