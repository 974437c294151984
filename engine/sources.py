"""Tagged references that tell a bracket slot where its team comes from."""

from dataclasses import dataclass
from typing import Optional, Union

WINNER_OF = 'WINNER_OF'
LOSER_OF = 'LOSER_OF'
SEED = 'SEED'


@dataclass(frozen=True)
class WinnerOf:
    match_id: int

    def __str__(self) -> str:
        return f'{WINNER_OF}:{self.match_id}'


@dataclass(frozen=True)
class LoserOf:
    match_id: int

    def __str__(self) -> str:
        return f'{LOSER_OF}:{self.match_id}'


@dataclass(frozen=True)
class Seed:
    number: int

    def __str__(self) -> str:
        return f'{SEED}:{self.number}'


MatchSource = Union[WinnerOf, LoserOf, Seed]

_KINDS = {
    WINNER_OF: WinnerOf,
    LOSER_OF: LoserOf,
    SEED: Seed,
}


def parse_source(raw: Optional[str]) -> Optional[MatchSource]:
    """Parse a stored ``KIND:<int>`` reference; ``None`` for empty slots."""
    if not raw:
        return None
    kind, sep, value = raw.partition(':')
    if not sep or kind not in _KINDS:
        raise ValueError(f'Unrecognised match source: {raw!r}')
    try:
        number = int(value)
    except ValueError:
        raise ValueError(f'Unrecognised match source: {raw!r}') from None
    return _KINDS[kind](number)


def references(source: Optional[MatchSource], match_id: int) -> bool:
    """True when ``source`` is fed by the result of ``match_id``."""
    return isinstance(source, (WinnerOf, LoserOf)) and source.match_id == match_id
