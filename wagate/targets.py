"""Target resolution: phone numbers and group identifiers to canonical targets.

Every outbound path (chat replies, the send API, webhook fan-out) goes
through ``resolve()`` so that an address is normalized exactly once and
in exactly one way.
"""

import re
from dataclasses import dataclass
from enum import Enum

GROUP_SUFFIX = "@g.us"
GROUP_SERVER = "g.us"
USER_SERVER = "s.whatsapp.net"
DEFAULT_COUNTRY_CODE = "62"

_NON_DIGIT_RE = re.compile(r"\D")
_GROUP_LOCAL_RE = re.compile(r"^[0-9]+(?:-[0-9]+)?$")


class TargetKind(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"


class ResolutionError(Exception):
    """Raised when a raw target cannot be turned into a canonical target.

    Only malformed group identifiers fail; phone-like input is always
    normalized.
    """

    INVALID_GROUP_FORMAT = "InvalidGroupFormat"

    def __init__(self, raw: str, reason: str = INVALID_GROUP_FORMAT):
        super().__init__(f"Invalid group identifier: {raw!r}")
        self.raw = raw
        self.reason = reason


@dataclass(frozen=True)
class Target:
    """A canonical addressable endpoint.

    ``identifier`` is the normalized digit string for individuals and the
    full ``<id>@g.us`` form for groups.
    """

    kind: TargetKind
    identifier: str
    server: str = USER_SERVER

    @property
    def is_group(self) -> bool:
        return self.kind is TargetKind.GROUP

    @property
    def jid(self) -> str:
        """Network address used by the transport."""
        if self.is_group:
            return self.identifier
        return f"{self.identifier}@{self.server}"

    @property
    def display(self) -> str:
        """Form reported back to API callers (digits or group id)."""
        return self.identifier

    def __str__(self) -> str:
        return self.jid


def is_group_identifier(raw: str) -> bool:
    return raw.strip().endswith(GROUP_SUFFIX)


def normalize_phone_number(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Normalize a phone-like string to digits carrying the country code.

    Examples (country code 62):
        "081234567890"      → "6281234567890"
        "81234567890"       → "6281234567890"
        "+62 812-3456-7890" → "6281234567890"
        "1234"              → "621234"
    """
    digits = _NON_DIGIT_RE.sub("", raw)

    # Local trunk prefix: 0xxxx → <cc>xxxx
    if digits.startswith("0"):
        digits = country_code + digits[1:]

    # Bare subscriber prefix (mobile numbers start with 8 locally)
    if digits.startswith("8") and not digits.startswith(country_code):
        digits = country_code + digits

    if not digits.startswith(country_code):
        digits = country_code + digits

    return digits


def _parse_group(raw: str) -> Target:
    if raw.count("@") != 1:
        raise ResolutionError(raw)
    local, _, server = raw.partition("@")
    if server != GROUP_SERVER or not _GROUP_LOCAL_RE.match(local):
        raise ResolutionError(raw)
    return Target(TargetKind.GROUP, raw)


def resolve(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> Target:
    """Resolve a raw target string into a canonical ``Target``.

    Raises:
        ResolutionError: the input ends with the group suffix but is not a
            well-formed group identifier.
    """
    raw = raw.strip()
    if raw.endswith(GROUP_SUFFIX):
        return _parse_group(raw)
    return Target(TargetKind.INDIVIDUAL, normalize_phone_number(raw, country_code))


def chat_target(chat_id: str) -> Target:
    """Reply address for an inbound chat JID.

    The JID came from the network, so it is trusted as-is: no phone
    normalization, and the server part is kept (e.g. ``@lid`` chats).
    """
    local, _, server = chat_id.partition("@")
    if server == GROUP_SERVER:
        return Target(TargetKind.GROUP, chat_id)
    return Target(TargetKind.INDIVIDUAL, local, server or USER_SERVER)
