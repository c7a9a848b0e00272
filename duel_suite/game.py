"""
Match engine for the two-action duel
Holds the action/state types, the configurable payoff table and the Duel loop
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd


log = logging.getLogger(__name__)

# Matches stop after this many turns per starting hit point unless a cap is given
DEFAULT_TURN_CAP_FACTOR = 50

PAYOFF_FIELDS = ("exchange_damage", "counter_damage", "counter_counter_damage")


class DuelInvariantError(RuntimeError):
    """Raised when the engine observes an outcome its own rules cannot produce"""


class Action(Enum):
    """The only two moves available in a duel"""
    ATTACK = "attack"
    COUNTER = "counter"

    @classmethod
    def parse(cls, value) -> "Action":
        if isinstance(value, Action):
            return value
        text = str(value).strip().lower()
        for action in cls:
            if text in (action.value, action.name.lower(), action.value[0]):
                return action
        raise ValueError(f"Unknown action: {value!r}")

    def __str__(self):
        return self.value


@dataclass
class PlayerState:
    max_hit_points: int
    current_hit_points: int

    def __post_init__(self):
        if self.current_hit_points > self.max_hit_points:
            raise ValueError(
                f"current_hit_points ({self.current_hit_points}) exceeds "
                f"max_hit_points ({self.max_hit_points})"
            )

    @classmethod
    def full(cls, hit_points: int) -> "PlayerState":
        return cls(max_hit_points=hit_points, current_hit_points=hit_points)

    @property
    def defeated(self) -> bool:
        return self.current_hit_points <= 0


@dataclass
class GameState:
    """Both players plus the last action each of them committed"""
    player_one: PlayerState
    player_two: PlayerState
    player_one_action: Optional[Action] = None
    player_two_action: Optional[Action] = None
    turn: int = 0

    @classmethod
    def fresh(cls, initial_hp: int) -> "GameState":
        if initial_hp <= 0:
            raise ValueError(f"initial_hp must be positive, got {initial_hp}")
        return cls(PlayerState.full(initial_hp), PlayerState.full(initial_hp))


class OutcomeKind(Enum):
    WIN = "win"
    TIE = "tie"
    CONTINUE = "continue"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class GameOutcome:
    kind: OutcomeKind
    winner: Optional[int] = None

    @classmethod
    def win(cls, player_id: int) -> "GameOutcome":
        if player_id not in (1, 2):
            raise ValueError(f"player_id must be 1 or 2, got {player_id}")
        return cls(OutcomeKind.WIN, player_id)

    @property
    def is_terminal(self) -> bool:
        return self.kind in (OutcomeKind.WIN, OutcomeKind.TIE)


TIE = GameOutcome(OutcomeKind.TIE)
CONTINUE = GameOutcome(OutcomeKind.CONTINUE)
INTERRUPTED = GameOutcome(OutcomeKind.INTERRUPTED)


def _whole_damage(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a whole number, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{name} must be a whole number, got {value!r}")
    return int(value)


@dataclass(frozen=True)
class PayoffTable:
    """
    Hit point losses for every action pair.

    exchange_damage: taken by each side when both attack
    counter_damage: taken by an attacker who runs into a counter
    counter_counter_damage: taken by each side when both counter
    """
    exchange_damage: int = 1
    counter_damage: int = 1
    counter_counter_damage: int = 1

    def __post_init__(self):
        for name in PAYOFF_FIELDS:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")

    @classmethod
    def from_ruleset(cls, name: str) -> "PayoffTable":
        try:
            return RULESETS[name]
        except KeyError:
            raise ValueError(f"Unknown ruleset {name!r}; choose from {sorted(RULESETS)}") from None

    @classmethod
    def from_dict(cls, data: Dict) -> "PayoffTable":
        if not isinstance(data, Mapping):
            raise ValueError(f"Payoff must be a mapping of damages or a ruleset, got {data!r}")
        unknown = set(data) - {"ruleset", *PAYOFF_FIELDS}
        if unknown:
            raise ValueError(f"Unknown payoff keys: {sorted(unknown)}")
        if "ruleset" in data:
            if len(data) > 1:
                raise ValueError("Give either a ruleset or explicit damages, not both")
            return cls.from_ruleset(data["ruleset"])
        return cls(**{name: _whole_damage(name, data.get(name, 1)) for name in PAYOFF_FIELDS})

    def to_dict(self) -> Dict:
        return {
            "exchange_damage": self.exchange_damage,
            "counter_damage": self.counter_damage,
            "counter_counter_damage": self.counter_counter_damage,
        }

    def matrix(self) -> Dict[Tuple[Action, Action], Tuple[int, int]]:
        """HP deltas keyed by (player one action, player two action)"""
        return {
            (Action.ATTACK, Action.ATTACK): (-self.exchange_damage, -self.exchange_damage),
            (Action.ATTACK, Action.COUNTER): (-self.counter_damage, 0),
            (Action.COUNTER, Action.ATTACK): (0, -self.counter_damage),
            (Action.COUNTER, Action.COUNTER): (-self.counter_counter_damage, -self.counter_counter_damage),
        }

    def deltas(self, action_one: Action, action_two: Action) -> Tuple[int, int]:
        return self.matrix()[(action_one, action_two)]

    @property
    def always_progresses(self) -> bool:
        """True when every action pair costs somebody hit points"""
        return all(d1 < 0 or d2 < 0 for d1, d2 in self.matrix().values())


RULESETS = {
    # mutual counters chip both sides, a successful counter costs the attacker 1
    "chip": PayoffTable(exchange_damage=1, counter_damage=1, counter_counter_damage=1),
    # mutual counters are free, a successful counter costs the attacker 2
    "riposte": PayoffTable(exchange_damage=1, counter_damage=2, counter_counter_damage=0),
}


@dataclass
class DuelResult:
    """Result of a single duel between two agents"""
    agent1_name: str
    agent2_name: str
    outcome: GameOutcome
    turns: int
    player_one_hp: int
    player_two_hp: int
    turn_capped: bool = False
    trace: List[Tuple[int, int, int]] = field(default_factory=list)
    agent1_moves: List[Action] = field(default_factory=list)
    agent2_moves: List[Action] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'agent1': self.agent1_name,
            'agent2': self.agent2_name,
            'outcome': self.outcome.kind.value,
            'winner': self.outcome.winner,
            'turns': self.turns,
            'final_hp': (self.player_one_hp, self.player_two_hp),
            'turn_capped': self.turn_capped,
        }

    def trace_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.trace, columns=['turn_index', 'player_one_hp', 'player_two_hp'])

    def save_trace_csv(self, filepath: str):
        """One row per turn: turn_index, player_one_hp, player_two_hp (no header)"""
        self.trace_dataframe().to_csv(filepath, header=False, index=False, mode='w')


class Duel:
    """Plays one match between two agents on a shared GameState"""

    def __init__(self, agent_one, agent_two, payoff: PayoffTable = None,
                 rng: np.random.Generator = None, max_turns: Optional[int] = None,
                 reveal_state: bool = False):
        self.agent_one = agent_one
        self.agent_two = agent_two
        self.payoff = payoff if payoff is not None else RULESETS["chip"]
        if rng is None:
            raise ValueError("Duel needs a seeded numpy Generator")
        self.rng = rng
        self.max_turns = max_turns
        self.reveal_state = reveal_state
        self._table = self.payoff.matrix()

    def resolve_turn(self, state: GameState, action_one: Action, action_two: Action):
        """Apply the payoff for one pair of committed actions"""
        delta_one, delta_two = self._table[(action_one, action_two)]
        state.player_one.current_hit_points += delta_one
        state.player_two.current_hit_points += delta_two
        state.player_one_action = action_one
        state.player_two_action = action_two
        state.turn += 1

    @staticmethod
    def check_terminal(state: GameState) -> GameOutcome:
        one_down = state.player_one.defeated
        two_down = state.player_two.defeated
        if one_down and two_down:
            return TIE
        if one_down:
            return GameOutcome.win(2)
        if two_down:
            return GameOutcome.win(1)
        return CONTINUE

    def step(self, state: GameState) -> Tuple[Action, Action]:
        """Ask both agents for an action and resolve the turn"""
        if self.reveal_state:
            seen_by_one = PlayerState(**vars(state.player_two))
            seen_by_two = PlayerState(**vars(state.player_one))
        else:
            seen_by_one = seen_by_two = None

        action_one = self.agent_one.decide_action(
            state.player_one, state.player_two_action, seen_by_one, self.rng)
        action_two = self.agent_two.decide_action(
            state.player_two, state.player_one_action, seen_by_two, self.rng)
        self.resolve_turn(state, action_one, action_two)
        return action_one, action_two

    def play(self, state: GameState, trace: bool = False,
             on_turn: Callable[[GameState, GameOutcome], None] = None) -> DuelResult:
        """Run turns until somebody wins, both fall, or the turn cap is hit"""
        rows = []
        moves_one = []
        moves_two = []
        turn_capped = False

        while True:
            if self.max_turns is not None and state.turn >= self.max_turns:
                log.debug("Turn cap %d reached (%s vs %s), scoring as tie",
                          self.max_turns, self.agent_one.name, self.agent_two.name)
                outcome = TIE
                turn_capped = True
                break

            action_one, action_two = self.step(state)
            if trace:
                rows.append((state.turn - 1,
                             state.player_one.current_hit_points,
                             state.player_two.current_hit_points))
                moves_one.append(action_one)
                moves_two.append(action_two)

            outcome = self.check_terminal(state)
            if on_turn is not None:
                on_turn(state, outcome)

            if outcome.kind is OutcomeKind.CONTINUE:
                continue
            if outcome.is_terminal:
                break
            raise DuelInvariantError(
                f"Unexpected outcome {outcome.kind.value!r} after turn {state.turn} "
                f"({state.player_one.current_hit_points} / {state.player_two.current_hit_points} HP)"
            )

        return DuelResult(
            agent1_name=self.agent_one.name,
            agent2_name=self.agent_two.name,
            outcome=outcome,
            turns=state.turn,
            player_one_hp=state.player_one.current_hit_points,
            player_two_hp=state.player_two.current_hit_points,
            turn_capped=turn_capped,
            trace=rows,
            agent1_moves=moves_one,
            agent2_moves=moves_two,
        )
