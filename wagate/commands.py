"""Chat command classification.

Maps a free-text message body to a ``Command`` plus its trailing argument.
Matching ignores letter case and treats every configured prefix character
the same way, so ``!PING``, ``/ping`` and ``/PiNg`` are all ``Command.PING``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

DEFAULT_PREFIXES = ("!", "/")


class Command(str, Enum):
    HELP = "help"
    GREET = "greet"
    PING = "ping"
    STATUS = "status"
    INFO = "info"
    TEST = "test"
    ECHO = "echo"
    GROUPS = "groups"
    ASK = "ask"
    MARKET_DATA = "market_data"
    GENERATE_IMAGE = "generate_image"
    UNRECOGNIZED = "unrecognized"


# keyword → command, for the fixed part of the surface
FIXED_KEYWORDS: dict[str, Command] = {
    "help": Command.HELP,
    "hallo": Command.GREET,
    "ping": Command.PING,
    "status": Command.STATUS,
    "info": Command.INFO,
    "groups": Command.GROUPS,
    "test": Command.TEST,
    "echo": Command.ECHO,
    "idx": Command.MARKET_DATA,
    "img": Command.GENERATE_IMAGE,
}


@dataclass(frozen=True)
class Persona:
    """A named assistant identity reachable through its own keyword."""
    keyword: str
    name: str


@dataclass(frozen=True)
class Classification:
    command: Command
    argument: str = ""
    keyword: str = ""
    persona: Optional[Persona] = None

    @property
    def recognized(self) -> bool:
        return self.command is not Command.UNRECOGNIZED


UNRECOGNIZED = Classification(Command.UNRECOGNIZED)


class CommandClassifier:
    """Prefix-based command matcher with an explicit priority order.

    Keywords are tried longest first (stable for equal lengths), so a
    keyword can never shadow a longer keyword that starts with it: with
    both ``in`` and ``info`` registered, ``!info`` is always ``info``.
    """

    def __init__(
        self,
        prefixes: Iterable[str] = DEFAULT_PREFIXES,
        personas: Iterable[Persona] = (),
    ):
        self.prefixes = tuple(prefixes)
        if not self.prefixes:
            raise ValueError("At least one command prefix is required")

        self._table: dict[str, tuple[Command, Optional[Persona]]] = {
            kw: (cmd, None) for kw, cmd in FIXED_KEYWORDS.items()
        }
        for persona in personas:
            keyword = persona.keyword.lower()
            if keyword in self._table:
                raise ValueError(f"Persona keyword '{keyword}' collides with an existing command")
            self._table[keyword] = (Command.ASK, persona)

        self.ordered_keywords: tuple[str, ...] = tuple(
            sorted(self._table, key=len, reverse=True)
        )

    @property
    def personas(self) -> list[Persona]:
        return [p for _, p in self._table.values() if p is not None]

    def classify(self, body: str) -> Classification:
        """Classify a message body.

        The argument is whatever follows ``<prefix><keyword>`` and one
        whitespace separator, trimmed. A body with nothing after the keyword
        (or no separator) yields an empty argument.
        """
        if not body:
            return UNRECOGNIZED
        lowered = body.lower()
        prefix = lowered[:1]
        if prefix not in self.prefixes:
            return UNRECOGNIZED

        for keyword in self.ordered_keywords:
            if not lowered.startswith(keyword, 1):
                continue
            command, persona = self._table[keyword]
            rest = body[1 + len(keyword):]
            argument = rest.strip() if rest[:1].isspace() else ""
            return Classification(command, argument, keyword, persona)

        return UNRECOGNIZED
