"""
Inbound event and outcome types.

Platform-neutral shapes of a chat message the ledger can consume.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class EmbedField:
    """A name/value pair inside an embed."""
    name: str
    value: str


@dataclass(frozen=True)
class Embed:
    """Rich embed attached to a message."""
    description: Optional[str] = None
    fields: List[EmbedField] = field(default_factory=list)


@dataclass(frozen=True)
class RollEvent:
    """A message observed in a chat channel."""
    author_id: str
    channel_id: str
    text: str = ""
    embeds: List[Embed] = field(default_factory=list)


@dataclass(frozen=True)
class RollOutcome:
    """Result of a roll that consumed blood."""
    successes: int
    new_level: int
    was_reset: bool

    def is_critical(self, threshold: int) -> bool:
        """True when the level after this roll is at or below threshold."""
        return self.new_level <= threshold
