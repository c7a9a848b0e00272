"""
Analysis helpers for tournament results
Pairwise win rates, decided-match shares and a win matrix heatmap
"""

import logging
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .tournament import TournamentResult


log = logging.getLogger(__name__)


def pairwise_win_rates(result: TournamentResult) -> pd.DataFrame:
    """
    Share of all games between two agents won by the row agent.

    Each unordered pair {i, j} with i != j meets 2 * trials times (once per
    seating); the diagonal covers the self-pairing's trials.
    """
    n_agents = len(result.agent_names)
    games = np.full((n_agents, n_agents), 2 * result.trials_per_pairing, dtype=float)
    np.fill_diagonal(games, result.trials_per_pairing)
    rates = result.win_matrix / games
    return pd.DataFrame(rates, index=result.agent_names, columns=result.agent_names)


def pairing_table(result: TournamentResult) -> pd.DataFrame:
    """One row per ordered pairing with its outcome tallies"""
    rows = []
    for (row, col), stats in sorted(result.pairing_stats.items()):
        rows.append({
            'player_one': result.agent_names[row],
            'player_two': result.agent_names[col],
            'player_one_wins': stats.player_one_wins,
            'player_two_wins': stats.player_two_wins,
            'ties': stats.ties,
            'turn_capped': stats.turn_capped,
            'avg_turns': round(stats.avg_turns, 2),
        })
    return pd.DataFrame(rows)


def create_win_matrix_heatmap(result: TournamentResult, filename, normalize: bool = True):
    """Save a heatmap of the win matrix (rows beat columns)"""
    data = pairwise_win_rates(result) if normalize else result.to_dataframe()
    size = max(6, 0.6 * len(result.agent_names) + 4)

    fig, ax = plt.subplots(figsize=(size, size * 0.85))
    sns.heatmap(data, annot=len(result.agent_names) <= 20, fmt='.2f' if normalize else 'd',
                cmap='YlOrRd', ax=ax, cbar_kws={'label': 'Win rate' if normalize else 'Wins'})
    ax.set_title(f'Duel win matrix ({result.trials_per_pairing} trials/pairing, '
                 f'{result.initial_hp} HP)', fontweight='bold')
    ax.set_xlabel('Loser')
    ax.set_ylabel('Winner')

    plt.tight_layout()
    filename = Path(filename)
    fig.savefig(filename, dpi=150, bbox_inches='tight')
    plt.close(fig)

    log.info("Saved win matrix heatmap: %s", filename)
    return filename
