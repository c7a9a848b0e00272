"""
Utility functions for duel experiments
"""

import json
import os
import time
from datetime import datetime
from typing import Dict, Optional

import numpy as np


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Seeded generator; None draws fresh OS entropy"""
    return np.random.default_rng(seed)


def derive_match_rng(seed: int, row: int, col: int, trial: int) -> np.random.Generator:
    """
    Independent generator for one trial of the ordered pairing (row, col).
    Depends only on its coordinates, so matches can run in any order or process.
    """
    return np.random.default_rng([seed, row, col, trial])


def create_experiment_dir(output_dir: str, prefix: str = "experiment") -> str:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    experiment_dir = os.path.join(output_dir, f"{prefix}_{timestamp}")
    os.makedirs(experiment_dir, exist_ok=True)
    return experiment_dir


def save_experiment_metadata(config: Dict, filepath: str):
    """Save the resolved experiment configuration as JSON"""
    data = dict(config)
    data.setdefault('saved_at', datetime.now().isoformat())
    with open(filepath, 'w') as f:
        json.dump(data, f, indent=2)


def format_status(turn: int, state, agent_one=None, agent_two=None) -> str:
    """Per-turn status block in [Current/Max] form"""
    one = f" Player 1: {state.player_one.current_hit_points}/{state.player_one.max_hit_points} HP"
    two = f" Player 2: {state.player_two.current_hit_points}/{state.player_two.max_hit_points} HP"
    if agent_one is not None:
        one += f" running strategy: {agent_one.name}"
    if agent_two is not None:
        two += f" running strategy: {agent_two.name}"
    return f"Status {turn} [Current/Max]:\n{one}\n{two}"


class Timer:
    """Context manager printing how long a block took"""

    def __init__(self, label: str, verbose: bool = True):
        self.label = label
        self.verbose = verbose
        self.elapsed = 0.0

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.elapsed = time.perf_counter() - self._start
        if self.verbose:
            print(f"⏱️  {self.label}: {self.elapsed:.2f}s")
        return False
