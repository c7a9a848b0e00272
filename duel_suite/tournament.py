"""
Tournament engine for running duel experiments
Handles repeated trials per pairing, win/tie aggregation and result export
"""

import logging
import multiprocessing
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from .agents import Agent
from .game import (
    DEFAULT_TURN_CAP_FACTOR, Duel, DuelResult, GameOutcome, GameState,
    OutcomeKind, PayoffTable, RULESETS,
)
from .utils import derive_match_rng, make_rng


log = logging.getLogger(__name__)

RNG_MODES = ('shared', 'per_match')


@dataclass
class PairingStats:
    """Outcome tallies for one ordered pairing (row agent as player one)"""
    player_one_wins: int = 0
    player_two_wins: int = 0
    ties: int = 0
    turn_capped: int = 0
    total_turns: int = 0

    def record(self, result: DuelResult):
        if result.outcome.kind is OutcomeKind.WIN:
            if result.outcome.winner == 1:
                self.player_one_wins += 1
            else:
                self.player_two_wins += 1
        else:
            self.ties += 1
        if result.turn_capped:
            self.turn_capped += 1
        self.total_turns += result.turns

    @property
    def trials(self) -> int:
        return self.player_one_wins + self.player_two_wins + self.ties

    @property
    def avg_turns(self) -> float:
        return self.total_turns / self.trials if self.trials else 0.0


@dataclass
class TournamentResult:
    """Complete tournament results"""
    agent_names: List[str]
    win_matrix: np.ndarray
    tie_matrix: np.ndarray
    pairing_stats: Dict[Tuple[int, int], PairingStats]
    trials_per_pairing: int
    initial_hp: int
    seed: Optional[int]
    payoff: PayoffTable
    rng_mode: str = 'shared'
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def wins_of(self, index: int) -> int:
        return int(self.win_matrix[index].sum())

    def losses_of(self, index: int) -> int:
        return int(self.win_matrix[:, index].sum())

    def ties_of(self, index: int) -> int:
        # a tie in the self-pairing counts once for each side the agent played
        return int(self.tie_matrix[index].sum() + self.tie_matrix[:, index].sum())

    def to_dataframe(self) -> pd.DataFrame:
        """Win counts with rows as winners and columns as losers"""
        return pd.DataFrame(self.win_matrix, index=self.agent_names, columns=self.agent_names)

    def save_to_csv(self, filepath: str):
        """
        Flat export without header: one row per losing agent index and one
        column per winning agent index, i.e. the transpose of win_matrix.
        """
        pd.DataFrame(self.win_matrix.T).to_csv(filepath, header=False, index=False)

    def save_labeled_csv(self, filepath: str):
        """Win matrix in memory orientation (rows win against columns) with agent names"""
        df = self.to_dataframe()
        df.index.name = 'winner'
        df.to_csv(filepath)

    def get_summary_stats(self) -> pd.DataFrame:
        """Get summary statistics for all agents"""
        n_agents = len(self.agent_names)
        appearances = 2 * n_agents * self.trials_per_pairing
        stats = []
        for i, name in enumerate(self.agent_names):
            wins = self.wins_of(i)
            stats.append({
                'agent': name,
                'wins': wins,
                'losses': self.losses_of(i),
                'ties': self.ties_of(i),
                'appearances': appearances,
                'win_rate': wins / appearances if appearances else 0.0,
                'turn_capped': sum(s.turn_capped for (r, c), s in self.pairing_stats.items() if i in (r, c)),
            })
        return pd.DataFrame(stats).sort_values('win_rate', ascending=False).reset_index(drop=True)


_worker_tournament = None


def _init_worker(tournament: "Tournament"):
    global _worker_tournament
    _worker_tournament = tournament


def _run_pairing_job(pair: Tuple[int, int]):
    row, col = pair
    return pair, _worker_tournament.run_pairing(row, col)


class Tournament:
    """Round-robin over every ordered agent pair, including self-play"""

    def __init__(self, agents: List[Agent], trials_per_pairing: int = 5000, initial_hp: int = 600,
                 payoff: PayoffTable = None, seed: Optional[int] = 106, rng_mode: str = 'shared',
                 max_turns: Optional[int] = None, workers: int = 1, reveal_state: bool = False,
                 verbose: bool = True):
        if not agents:
            raise ValueError("Tournament needs at least one agent")
        if trials_per_pairing <= 0:
            raise ValueError(f"trials_per_pairing must be positive, got {trials_per_pairing}")
        if initial_hp <= 0:
            raise ValueError(f"initial_hp must be positive, got {initial_hp}")
        if rng_mode not in RNG_MODES:
            raise ValueError(f"rng_mode must be one of {RNG_MODES}, got {rng_mode!r}")
        if workers > 1 and rng_mode != 'per_match':
            raise ValueError("Parallel execution needs rng_mode='per_match'; "
                             "a shared generator cannot be split across processes reproducibly")

        self.agents = agents
        self.trials_per_pairing = trials_per_pairing
        self.initial_hp = initial_hp
        self.payoff = payoff if payoff is not None else RULESETS['chip']
        if not self.payoff.always_progresses:
            log.warning("Payoff %s has a zero-damage action pair; stalemates end at the turn cap as ties",
                        self.payoff.to_dict())
        if seed is None and rng_mode == 'per_match':
            seed = int(np.random.SeedSequence().entropy % (2 ** 63))
        self.seed = seed
        self.rng_mode = rng_mode
        self.max_turns = max_turns if max_turns is not None else DEFAULT_TURN_CAP_FACTOR * initial_hp
        self.workers = max(1, workers)
        self.reveal_state = reveal_state
        self.verbose = verbose
        self.rng = make_rng(seed)

    def run_match(self, agent1: Agent, agent2: Agent, rng: np.random.Generator = None,
                  trace: bool = False,
                  on_turn: Callable[[GameState, GameOutcome], None] = None) -> DuelResult:
        """Run a single duel between fresh clones of two agents"""
        duel = Duel(
            agent1.clone(),
            agent2.clone(),
            payoff=self.payoff,
            rng=rng if rng is not None else self.rng,
            max_turns=self.max_turns,
            reveal_state=self.reveal_state,
        )
        return duel.play(GameState.fresh(self.initial_hp), trace=trace, on_turn=on_turn)

    def run_pairing(self, row: int, col: int) -> PairingStats:
        """All trials of agents[row] (player one) against agents[col] (player two)"""
        agent1 = self.agents[row]
        agent2 = self.agents[col]
        stats = PairingStats()
        for trial in range(self.trials_per_pairing):
            if self.rng_mode == 'per_match':
                rng = derive_match_rng(self.seed, row, col, trial)
            else:
                rng = self.rng
            stats.record(self.run_match(agent1, agent2, rng=rng))
        log.debug("%s vs %s: %d/%d/%d (p1/p2/tie), %d capped", agent1.name, agent2.name,
                  stats.player_one_wins, stats.player_two_wins, stats.ties, stats.turn_capped)
        return stats

    def run_tournament(self) -> TournamentResult:
        """Run the full tournament; the shared generator is re-seeded first"""
        self.rng = make_rng(self.seed)
        n_agents = len(self.agents)
        pairs = [(i, j) for i in range(n_agents) for j in range(n_agents)]
        log.info("Running %d pairings x %d trials (%s rng, %d worker(s))",
                 len(pairs), self.trials_per_pairing, self.rng_mode, self.workers)

        win_matrix = np.zeros((n_agents, n_agents), dtype=np.int64)
        tie_matrix = np.zeros((n_agents, n_agents), dtype=np.int64)
        pairing_stats: Dict[Tuple[int, int], PairingStats] = {}

        pbar = tqdm(total=len(pairs), desc="Running pairings", disable=not self.verbose)
        for (row, col), stats in self._iter_pairings(pairs):
            win_matrix[row][col] += stats.player_one_wins
            win_matrix[col][row] += stats.player_two_wins
            tie_matrix[row][col] += stats.ties
            pairing_stats[(row, col)] = stats
            pbar.update(1)
        pbar.close()

        capped = sum(s.turn_capped for s in pairing_stats.values())
        if capped:
            log.warning("%d matches hit the %d turn cap and were scored as ties", capped, self.max_turns)

        return TournamentResult(
            agent_names=[agent.name for agent in self.agents],
            win_matrix=win_matrix,
            tie_matrix=tie_matrix,
            pairing_stats=pairing_stats,
            trials_per_pairing=self.trials_per_pairing,
            initial_hp=self.initial_hp,
            seed=self.seed,
            payoff=self.payoff,
            rng_mode=self.rng_mode,
        )

    def _iter_pairings(self, pairs):
        if self.workers == 1:
            for row, col in pairs:
                yield (row, col), self.run_pairing(row, col)
            return

        with multiprocessing.Pool(self.workers, initializer=_init_worker, initargs=(self,)) as pool:
            for pair, stats in pool.imap_unordered(_run_pairing_job, pairs):
                yield pair, stats
