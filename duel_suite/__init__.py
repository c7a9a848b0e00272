"""
Duel Suite: strategy agents, match engine and round-robin tournaments
for the two-action Attack/Counter duel
"""

from .agents import (
    Agent, AlwaysAttack, Mirror, FixedProbabilityRandom, MarkovChainRandom,
    ExpectedValueEstimator,
    AGENT_TYPES, build_agent, build_roster, default_roster
)

from .game import (
    Action, PlayerState, GameState, GameOutcome, OutcomeKind, PayoffTable, RULESETS,
    Duel, DuelResult, DuelInvariantError, DEFAULT_TURN_CAP_FACTOR
)
from .tournament import Tournament, TournamentResult, PairingStats
from .config import DuelConfig, load_config
from .utils import make_rng, derive_match_rng, Timer

__version__ = "1.0.0"
__all__ = [
    # Agents
    "Agent", "AlwaysAttack", "Mirror", "FixedProbabilityRandom", "MarkovChainRandom",
    "ExpectedValueEstimator",
    "AGENT_TYPES", "build_agent", "build_roster", "default_roster",

    # Match engine
    "Action", "PlayerState", "GameState", "GameOutcome", "OutcomeKind", "PayoffTable", "RULESETS",
    "Duel", "DuelResult", "DuelInvariantError", "DEFAULT_TURN_CAP_FACTOR",

    # Tournament
    "Tournament", "TournamentResult", "PairingStats",

    # Config and utils
    "DuelConfig", "load_config", "make_rng", "derive_match_rng", "Timer"
]
