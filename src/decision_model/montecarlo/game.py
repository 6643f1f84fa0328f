# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Strategic-interaction payoff adjustments.

Game configurations form a tagged union keyed by ``kind``. Each variant is
validated when parsed and knows how to draw a counterpart move and return
the (return, cost) multipliers for one of our strategies. This is a small
discrete payoff lookup, not an equilibrium solver.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple, Union

import numpy as np

from .errors import InvalidConfigurationError


STRATEGIES = ("Conservative", "Aggressive")
COMPETITOR_MOVES = ("Match", "Undercut")


@dataclass(frozen=True)
class MoveMultipliers:
    """Return and cost multipliers for each of our strategies under one competitor move."""
    ret_mult: Mapping[str, float]
    cost_mult: Mapping[str, float]

    def __post_init__(self):
        for table_name in ("ret_mult", "cost_mult"):
            table = getattr(self, table_name)
            if set(table) != set(STRATEGIES):
                raise InvalidConfigurationError(
                    f"{table_name} must define exactly {list(STRATEGIES)}, got {sorted(table)}"
                )
            values = {k: float(v) for k, v in table.items()}
            if any(v < 0 or not np.isfinite(v) for v in values.values()):
                raise InvalidConfigurationError(f"{table_name} multipliers must be finite and >= 0")
            object.__setattr__(self, table_name, values)


@dataclass(frozen=True)
class MatchUndercutGame:
    """2×2 game: the competitor matches or undercuts; we play Conservative or Aggressive.

    Attributes:
        p_undercut: Probability the competitor undercuts on a given run
        multipliers: MoveMultipliers keyed by competitor move
    """
    p_undercut: float
    multipliers: Mapping[str, MoveMultipliers] = field(default_factory=dict)
    kind: str = "match_undercut"

    def __post_init__(self):
        if not 0.0 <= self.p_undercut <= 1.0:
            raise InvalidConfigurationError(
                f"p_undercut must be within [0, 1], got {self.p_undercut}"
            )
        if set(self.multipliers) != set(COMPETITOR_MOVES):
            raise InvalidConfigurationError(
                f"multipliers must define exactly {list(COMPETITOR_MOVES)}"
            )

    def payoff(self, move: str, strategy: str) -> Tuple[float, float]:
        table = self.multipliers[move]
        return table.ret_mult[strategy], table.cost_mult[strategy]

    def draw_payoffs(self, strategy: str, runs: int,
                     rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
        """Draw one competitor move per run and return per-run (return, cost) multipliers."""
        undercut = rng.random(runs) < self.p_undercut
        ret_match, cost_match = self.payoff("Match", strategy)
        ret_under, cost_under = self.payoff("Undercut", strategy)
        ret = np.where(undercut, ret_under, ret_match)
        cost = np.where(undercut, cost_under, cost_match)
        return ret, cost


# Union of every known game variant
GameConfig = Union[MatchUndercutGame]


@dataclass(frozen=True)
class OptionStrategy:
    """Our strategy assignment for one option."""
    option_id: str
    strategy: str

    def __post_init__(self):
        if self.strategy not in STRATEGIES:
            raise InvalidConfigurationError(
                f"Unknown strategy {self.strategy!r} for option {self.option_id}; "
                f"expected one of {list(STRATEGIES)}"
            )


def _parse_match_undercut(payload: Dict[str, Any]) -> MatchUndercutGame:
    raw_multipliers = payload.get("multipliers")
    if not isinstance(raw_multipliers, dict):
        raise InvalidConfigurationError("match_undercut game requires a multipliers object")

    multipliers = {}
    for move in COMPETITOR_MOVES:
        entry = raw_multipliers.get(move)
        if not isinstance(entry, dict):
            raise InvalidConfigurationError(f"multipliers.{move} must be an object")
        multipliers[move] = MoveMultipliers(
            ret_mult=entry.get("retMult", entry.get("ret_mult", {})),
            cost_mult=entry.get("costMult", entry.get("cost_mult", {})),
        )

    p_undercut = payload.get("pUndercut", payload.get("p_undercut"))
    if p_undercut is None:
        raise InvalidConfigurationError("match_undercut game requires pUndercut")
    try:
        p_undercut = float(p_undercut)
    except (TypeError, ValueError) as e:
        raise InvalidConfigurationError(f"pUndercut must be a number, got {p_undercut!r}") from e
    return MatchUndercutGame(p_undercut=p_undercut, multipliers=multipliers)


_GAME_PARSERS = {
    "match_undercut": _parse_match_undercut,
}


def parse_game_config(payload: Dict[str, Any]) -> GameConfig:
    """Validate a loosely-typed game payload into a known variant.

    Payloads without ``kind`` are treated as the 2×2 match/undercut game.

    Raises:
        InvalidConfigurationError: If the kind is unknown or the payload is malformed
    """
    if not isinstance(payload, dict):
        raise InvalidConfigurationError("Game configuration must be an object")
    kind = payload.get("kind", "match_undercut")
    parser = _GAME_PARSERS.get(kind)
    if parser is None:
        raise InvalidConfigurationError(
            f"Unknown game kind {kind!r}; expected one of {sorted(_GAME_PARSERS)}"
        )
    return parser(payload)
