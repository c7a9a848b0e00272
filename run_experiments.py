#!/usr/bin/env python3
"""
Main experiment runner for duel research
Runs the round-robin tournament or a single traced duel from one configuration
"""

import argparse
import json
import logging
import os
from typing import Dict, List

from duel_suite import (
    DuelConfig, PayoffTable, Tournament, Timer, build_roster, load_config,
)
from duel_suite.game import OutcomeKind
from duel_suite.utils import create_experiment_dir, format_status, save_experiment_metadata


log = logging.getLogger("run_experiments")

DEFAULT_DUEL_AGENTS = [
    {"type": "estimator", "attack_into_counter": -3.0, "exchange": -3.0, "counter_into_attack": -1.0},
    {"type": "markov", "switch_to_attack": 0.3, "switch_to_counter": 0.6, "initial_action": "counter"},
]


def build_tournament(config: DuelConfig, verbose: bool = True) -> Tournament:
    return Tournament(
        agents=config.build_agents(),
        trials_per_pairing=config.trials_per_pairing,
        initial_hp=config.initial_hp,
        payoff=config.payoff_table(),
        seed=config.seed,
        rng_mode=config.rng_mode,
        max_turns=config.max_turns,
        workers=config.workers,
        reveal_state=config.reveal_state,
        verbose=verbose,
    )


def run_tournament_experiment(config: DuelConfig, output_dir: str = "results",
                              plot: bool = True, verbose: bool = True) -> str:
    """Run the full tournament and write matrices, summary and config into a new directory"""
    experiment_dir = create_experiment_dir(output_dir, prefix="tournament")
    save_experiment_metadata(config.to_dict(), os.path.join(experiment_dir, "config.json"))

    tournament = build_tournament(config, verbose=verbose)
    n_agents = len(tournament.agents)
    print(f"\n{'='*60}")
    print(f"DUEL TOURNAMENT: {n_agents} agents, {n_agents**2} pairings, "
          f"{config.trials_per_pairing} trials each")
    print(f"Initial HP {config.initial_hp} | payoff {tournament.payoff.to_dict()} | seed {tournament.seed}")
    print(f"{'='*60}")

    with Timer("Tournament", verbose=verbose):
        result = tournament.run_tournament()

    if verbose:
        print(result.win_matrix.tolist())

    result.save_to_csv(os.path.join(experiment_dir, "pitting-results.csv"))
    result.save_labeled_csv(os.path.join(experiment_dir, "win_matrix_labeled.csv"))
    summary = result.get_summary_stats()
    summary.to_csv(os.path.join(experiment_dir, "summary.csv"), index=False)

    if plot:
        from duel_suite.analysis import create_win_matrix_heatmap, pairing_table
        pairing_table(result).to_csv(os.path.join(experiment_dir, "pairings.csv"), index=False)
        create_win_matrix_heatmap(result, os.path.join(experiment_dir, "win_matrix.png"))

    print("\nTop 5 performers:")
    print(summary.head(5)[['agent', 'wins', 'losses', 'ties', 'win_rate']].to_string(index=False))
    print(f"\n📁 Results saved to {experiment_dir}")
    return experiment_dir


def run_single_duel(config: DuelConfig, agent_records: List[Dict], output_dir: str = "results",
                    status_every: int = 0) -> str:
    """Play one traced duel and write its per-turn HP trace"""
    if len(agent_records) != 2:
        raise ValueError(f"A duel needs exactly two agents, got {len(agent_records)}")

    print("Initializing Game")
    agent_one, agent_two = build_roster(agent_records)
    tournament = Tournament(
        agents=[agent_one, agent_two],
        trials_per_pairing=1,
        initial_hp=config.initial_hp,
        payoff=config.payoff_table(),
        seed=config.seed,
        max_turns=config.max_turns,
        reveal_state=config.reveal_state,
        verbose=False,
    )

    def print_status(state, outcome):
        if status_every and outcome.kind is OutcomeKind.CONTINUE and state.turn % status_every == 0:
            print(format_status(state.turn - 1, state))

    result = tournament.run_match(agent_one, agent_two, trace=True, on_turn=print_status)

    experiment_dir = create_experiment_dir(output_dir, prefix="duel")
    save_experiment_metadata({**config.to_dict(), 'roster': agent_records, 'result': result.to_dict()},
                             os.path.join(experiment_dir, "config.json"))
    result.save_trace_csv(os.path.join(experiment_dir, "results.csv"))

    print(f"Status {result.turns - 1} [Current/Max]:")
    print(f" Player 1: {result.player_one_hp}/{config.initial_hp} HP running strategy: {agent_one.name}")
    print(f" Player 2: {result.player_two_hp}/{config.initial_hp} HP running strategy: {agent_two.name}")
    if result.outcome.kind is OutcomeKind.WIN:
        print(f"Player {result.outcome.winner} wins!")
    elif result.turn_capped:
        print(f"Game stopped at the {tournament.max_turns} turn cap and counts as a Tie")
    else:
        print("Game ended in a Tie")
    print("Game finished!")
    print(f"📁 Trace saved to {experiment_dir}")
    return experiment_dir


def resolve_config(args) -> DuelConfig:
    config = load_config(args.config) if args.config else DuelConfig()
    if args.ruleset:
        # a named ruleset on the command line wins over damages from the config file
        config = config.updated(ruleset=args.ruleset)
        config.payoff = None

    payoff = None
    if args.payoff:
        try:
            payoff = PayoffTable.from_dict(json.loads(args.payoff)).to_dict()
        except ValueError as e:
            print(f"Error parsing payoff JSON: {e}")
            print(f"Using payoff {describe_payoff(config)} instead.")

    return config.updated(
        seed=args.seed,
        initial_hp=args.hp,
        trials_per_pairing=args.trials,
        payoff=payoff,
        max_turns=args.max_turns,
        rng_mode=args.rng_mode,
        workers=args.workers,
    )


def describe_payoff(config: DuelConfig) -> str:
    """The payoff table a config resolves to, by ruleset name or as explicit damages"""
    if config.payoff is not None:
        return f"damages {config.payoff_table().to_dict()}"
    return f"ruleset '{config.ruleset}' {config.payoff_table().to_dict()}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run duel experiments")
    parser.add_argument("--duel", action="store_true",
                        help="Play a single traced duel instead of the full tournament")
    parser.add_argument("--duel-agents", type=str, default=json.dumps(DEFAULT_DUEL_AGENTS),
                        help="JSON list with the two agent records used by --duel")
    parser.add_argument("--config", type=str,
                        help="JSON file with a DuelConfig (seed, initial_hp, roster, ...)")
    parser.add_argument("--seed", type=int, help="Random seed (default: 106)")
    parser.add_argument("--hp", type=int, help="Starting hit points (default: 600)")
    parser.add_argument("--trials", type=int, help="Trials per ordered pairing (default: 5000)")
    parser.add_argument("--ruleset", type=str, help="Named payoff ruleset: chip or riposte")
    parser.add_argument("--payoff", type=str,
                        help='Explicit damages as JSON, e.g. \'{"exchange_damage": 1, "counter_damage": 2, '
                             '"counter_counter_damage": 0}\'')
    parser.add_argument("--max-turns", type=int, help="Turn cap per match (default: 50 x HP)")
    parser.add_argument("--rng-mode", choices=["shared", "per_match"],
                        help="One shared generator, or one derived generator per match")
    parser.add_argument("--workers", type=int, help="Worker processes (needs --rng-mode per_match)")
    parser.add_argument("--status-every", type=int, default=0,
                        help="Print duel status every N turns (--duel only)")
    parser.add_argument("--output", type=str, default="results",
                        help="Output directory for results")
    parser.add_argument("--no-plot", action="store_true", help="Skip the heatmap and pairing table")
    parser.add_argument("--quiet", "-q", action="store_true", help="No progress bar or timing output")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )

    config = resolve_config(args)
    log.info("Resolved config: %s", config)

    if args.duel:
        run_single_duel(config, json.loads(args.duel_agents), output_dir=args.output,
                        status_every=args.status_every)
    else:
        run_tournament_experiment(config, output_dir=args.output, plot=not args.no_plot,
                                  verbose=not args.quiet)


if __name__ == "__main__":
    main()
