"""Round-robin pairing generation (circle method)."""

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from engine.errors import ValidationError


@dataclass(frozen=True)
class Pairing:
    home: Any
    away: Any
    round: int
    leg: int = 1
    group_number: Optional[int] = None


def generate_round_robin(
    teams: Sequence[Any],
    double_leg: bool = False,
    group_number: Optional[int] = None,
) -> list[Pairing]:
    """Pair every team with every other team once per leg.

    The first team stays fixed while the others rotate one position per
    round; slot ``m`` of a round pairs the ``m``-th entry of the rotation
    with its mirror from the end. An odd field gets a bye entry and the team
    drawn against it sits the round out.

    With ``double_leg`` the reversed fixtures follow as rounds
    ``num_rounds + r`` with ``leg=2``. Output is round-major.
    """
    if len(teams) < 2:
        raise ValidationError(f'Not enough teams to build a round robin (need 2, got {len(teams)})')

    order: list[Any] = list(teams)
    if len(order) % 2:
        order.append(None)

    size = len(order)
    num_rounds = size - 1
    half = size // 2

    first_leg: list[Pairing] = []
    for round_number in range(1, num_rounds + 1):
        for slot in range(half):
            home = order[slot]
            away = order[size - 1 - slot]
            if home is None or away is None:
                continue
            first_leg.append(Pairing(home, away, round_number, 1, group_number))
        order = [order[0], order[-1]] + order[1:-1]

    if not double_leg:
        return first_leg

    second_leg = [
        Pairing(p.away, p.home, num_rounds + p.round, 2, group_number)
        for p in first_leg
    ]
    return first_leg + second_leg


def merge_round_major(*schedules: Sequence[Pairing]) -> list[Pairing]:
    """Interleave several schedules so round 1 of all of them comes first."""
    combined = [pairing for schedule in schedules for pairing in schedule]
    return sorted(combined, key=lambda pairing: pairing.round)
