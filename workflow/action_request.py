"""
A single action line from a rule, e.g. `add-comment Change merged` or `log-event error`.
"""
from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass(frozen=True)
class ActionRequest:
    """Tokenized action line. Token 0 is the action name, the rest are positional parameters."""

    unparsed: str
    tokens: Tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def parse(cls, text: str) -> 'ActionRequest':
        text = text or ''
        return cls(text, tuple(text.split()))

    @property
    def name(self) -> str:
        return self.tokens[0] if self.tokens else ''

    def get_parameter(self, index: int) -> str:
        """Return parameter `index` (1-based; 0 is the name), or '' when out of range."""
        if 0 <= index < len(self.tokens):
            return self.tokens[index]
        return ''

    def get_parameters(self) -> List[str]:
        return list(self.tokens[1:])

    def __str__(self):
        return self.unparsed
