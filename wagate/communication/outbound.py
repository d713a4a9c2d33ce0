"""Outbound text processing applied before delivery.

Handles:
- Narration stripping on generated answers
- Message splitting for the transport's length limit
- Consecutive newline cleanup
"""

import re

WHATSAPP_MAX_LENGTH = 4096


# ============================================================
# NARRATION STRIPPING
# ============================================================
# Models often open with "Let me think..." or "Baik, saya akan cek...".
# Stripped only at the start of a generated answer.

_NARRATION_PATTERNS = [
    re.compile(r'^(?:Hmm,?\s*)?Let me\s+(?:think|check|search|see|look|try|find|read|analyze|figure|verify).*?[.!…]\s*\n?', re.IGNORECASE | re.MULTILINE),
    re.compile(r'^(?:I\'ll|I\'m going to|I will)\s+(?:check|search|look|try|find|read|analyze|figure|verify|see|review).*?[.!…]\s*\n?', re.IGNORECASE | re.MULTILINE),
    re.compile(r'^(?:Oke|Baik|Ok|Hmm),?\s*(?:aku|saya)\s+(?:akan|perlu|coba|mau)\s+.*?[.!…]\s*\n?', re.IGNORECASE | re.MULTILINE),
    re.compile(r'^(?:Aku|Saya)\s+(?:akan|perlu|mau)\s+(?:coba\s+)?(?:cek|lihat|cari|baca|analisa|periksa).*?[.!…]\s*\n?', re.IGNORECASE | re.MULTILINE),
]


def strip_narration(text: str) -> str:
    """Remove thinking-process narration from the start of generated text.

    Only the first ~500 chars are inspected. If stripping would leave
    nothing, the original text is returned.
    """
    if not text:
        return text

    head = text[:500]
    tail = text[500:]

    for pattern in _NARRATION_PATTERNS:
        head = pattern.sub('', head)

    result = (head + tail).lstrip()
    return result if result.strip() else text


# ============================================================
# MESSAGE SPLITTING
# ============================================================

def split_message(text: str, max_length: int = WHATSAPP_MAX_LENGTH) -> list[str]:
    """Split a long message into chunks respecting the length limit.

    Tries to split at newlines first, then spaces, then hard-cuts.
    """
    if len(text) <= max_length:
        return [text]

    chunks = []
    remaining = text

    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break

        split_at = remaining.rfind("\n", 0, max_length)
        if split_at <= 0:
            split_at = remaining.rfind(" ", 0, max_length)
        if split_at <= 0:
            split_at = max_length

        chunks.append(remaining[:split_at])
        remaining = remaining[split_at:].lstrip()

    return chunks


def process_outbound(text: str) -> str:
    """Post-process generated text: narration, then whitespace."""
    if not text:
        return text

    text = strip_narration(text)
    text = re.sub(r'\n{3,}', '\n\n', text).strip()
    return text
