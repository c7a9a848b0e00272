"""
Experiment configuration for duel tournaments.

A DuelConfig is the plain record the core consumes: where the values come
from (defaults, a JSON file, command line flags) does not matter to the
tournament engine.
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from .agents import Agent, build_roster, default_roster
from .game import PayoffTable

DEFAULT_SEED = 106
DEFAULT_INITIAL_HP = 600
DEFAULT_TRIALS = 5000
DEFAULT_RULESET = "chip"


@dataclass
class DuelConfig:
    seed: Optional[int] = DEFAULT_SEED
    initial_hp: int = DEFAULT_INITIAL_HP
    trials_per_pairing: int = DEFAULT_TRIALS
    ruleset: Optional[str] = DEFAULT_RULESET
    # explicit damages; overrides ruleset when given
    payoff: Optional[Dict] = None
    max_turns: Optional[int] = None
    rng_mode: str = "shared"
    workers: int = 1
    reveal_state: bool = False
    # agent records for build_agent; empty means the default roster
    roster: List[Dict] = field(default_factory=list)

    def __post_init__(self):
        if self.initial_hp <= 0:
            raise ValueError(f"initial_hp must be positive, got {self.initial_hp}")
        if self.trials_per_pairing <= 0:
            raise ValueError(f"trials_per_pairing must be positive, got {self.trials_per_pairing}")
        if self.max_turns is not None and self.max_turns <= 0:
            raise ValueError(f"max_turns must be positive, got {self.max_turns}")
        if self.payoff is not None:
            PayoffTable.from_dict(self.payoff)

    def payoff_table(self) -> PayoffTable:
        if self.payoff is not None:
            return PayoffTable.from_dict(self.payoff)
        return PayoffTable.from_ruleset(self.ruleset or DEFAULT_RULESET)

    def build_agents(self) -> List[Agent]:
        if self.roster:
            return build_roster(self.roster)
        return default_roster()

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["payoff"] = self.payoff_table().to_dict()
        data["roster"] = [agent.describe() for agent in self.build_agents()]
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "DuelConfig":
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    def updated(self, **overrides) -> "DuelConfig":
        """Copy with every non-None override applied"""
        data = asdict(self)
        data.update({key: value for key, value in overrides.items() if value is not None})
        return DuelConfig.from_dict(data)


def load_config(filepath: str) -> DuelConfig:
    """Load a DuelConfig from a JSON file"""
    with open(filepath, "r") as f:
        return DuelConfig.from_dict(json.load(f))
