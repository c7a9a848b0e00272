import pytest

from duel_suite.agents import AlwaysAttack, MarkovChainRandom, Mirror
from duel_suite.game import (
    Action, Duel, DuelInvariantError, GameOutcome, GameState, INTERRUPTED,
    OutcomeKind, PayoffTable, PlayerState, RULESETS, TIE, CONTINUE,
)
from duel_suite.utils import make_rng


def always_counter(name=None):
    return MarkovChainRandom(name, switch_to_attack=0.0, switch_to_counter=0.0,
                             initial_action=Action.COUNTER)


class TestPayoffTable:
    """Payoff table construction and named rulesets"""

    def test_chip_ruleset(self):
        """The chip ruleset costs hit points on every action pair"""
        table = RULESETS["chip"].matrix()
        assert table[(Action.ATTACK, Action.ATTACK)] == (-1, -1)
        assert table[(Action.ATTACK, Action.COUNTER)] == (-1, 0)
        assert table[(Action.COUNTER, Action.ATTACK)] == (0, -1)
        assert table[(Action.COUNTER, Action.COUNTER)] == (-1, -1)

    def test_riposte_ruleset(self):
        """The riposte ruleset doubles counter damage and makes mutual counters free"""
        table = PayoffTable.from_ruleset("riposte")
        assert table.deltas(Action.ATTACK, Action.ATTACK) == (-1, -1)
        assert table.deltas(Action.ATTACK, Action.COUNTER) == (-2, 0)
        assert table.deltas(Action.COUNTER, Action.ATTACK) == (0, -2)
        assert table.deltas(Action.COUNTER, Action.COUNTER) == (0, 0)

    def test_unknown_ruleset(self):
        """Unknown ruleset names raise ValueError"""
        with pytest.raises(ValueError):
            PayoffTable.from_ruleset("sudden_death")

    def test_negative_damage_rejected(self):
        """Negative damages raise ValueError"""
        with pytest.raises(ValueError):
            PayoffTable(counter_damage=-1)

    def test_dict_round_trip_and_ruleset_key(self):
        """Damages and ruleset names both rebuild a table"""
        custom = PayoffTable(exchange_damage=2, counter_damage=3, counter_counter_damage=0)
        assert PayoffTable.from_dict(custom.to_dict()) == custom
        assert PayoffTable.from_dict({"ruleset": "riposte"}) == RULESETS["riposte"]

    def test_progress_flag(self):
        """Only tables where every action pair costs hit points always progress"""
        assert RULESETS["chip"].always_progresses
        assert not RULESETS["riposte"].always_progresses

    @pytest.mark.parametrize("data", [
        {"exchange_damage": 1, "counter_damage": 2, "counter_counter": 0},
        {"ruleset": "chip", "counter_damage": 2},
        {"exchange_damage": 1.5},
        {"counter_damage": "2"},
        {"counter_damage": True},
        3,
        [1, 2, 0],
    ])
    def test_from_dict_rejects_invalid_input(self, data):
        """Misspelled keys, fractional damages and non-mappings raise ValueError"""
        with pytest.raises(ValueError):
            PayoffTable.from_dict(data)

    def test_from_dict_accepts_whole_floats(self):
        """JSON numbers like 2.0 are accepted as whole damages"""
        table = PayoffTable.from_dict({"exchange_damage": 2.0, "counter_damage": 1, "counter_counter_damage": 0})
        assert table == PayoffTable(2, 1, 0)
        assert isinstance(table.exchange_damage, int)


class TestStateTypes:

    def test_action_parse(self):
        """Actions parse from names, values and initials"""
        assert Action.parse("attack") is Action.ATTACK
        assert Action.parse("COUNTER") is Action.COUNTER
        assert Action.parse("c") is Action.COUNTER
        assert Action.parse(Action.ATTACK) is Action.ATTACK
        with pytest.raises(ValueError):
            Action.parse("finch-and-run")

    def test_player_state_invariant(self):
        """Current HP may not exceed max HP; zero HP is defeated"""
        with pytest.raises(ValueError):
            PlayerState(max_hit_points=5, current_hit_points=6)
        assert PlayerState(max_hit_points=5, current_hit_points=0).defeated

    def test_fresh_state(self):
        """A fresh state has full HP, no actions and turn zero"""
        state = GameState.fresh(12)
        assert state.player_one == PlayerState(12, 12)
        assert state.player_two == PlayerState(12, 12)
        assert state.player_one_action is None
        assert state.player_two_action is None
        assert state.turn == 0
        with pytest.raises(ValueError):
            GameState.fresh(0)

    def test_win_outcome_validates_player(self):
        """Only players 1 and 2 can win"""
        assert GameOutcome.win(1).winner == 1
        with pytest.raises(ValueError):
            GameOutcome.win(3)


class TestResolveAndTerminal:

    def test_resolve_turn_applies_payoff_and_records_actions(self):
        """Resolving a turn applies damage and records both actions"""
        duel = Duel(AlwaysAttack(), always_counter(), payoff=RULESETS["riposte"], rng=make_rng(0))
        state = GameState.fresh(10)
        duel.resolve_turn(state, Action.ATTACK, Action.COUNTER)
        assert state.player_one.current_hit_points == 8
        assert state.player_two.current_hit_points == 10
        assert state.player_one_action is Action.ATTACK
        assert state.player_two_action is Action.COUNTER
        assert state.turn == 1

    def test_check_terminal(self):
        """Double knockout ties, otherwise the survivor wins"""
        state = GameState.fresh(3)
        assert Duel.check_terminal(state) == CONTINUE

        state.player_one.current_hit_points = 0
        state.player_two.current_hit_points = -1
        assert Duel.check_terminal(state) == TIE

        state.player_two.current_hit_points = 1
        assert Duel.check_terminal(state) == GameOutcome.win(2)

        state.player_one.current_hit_points = 2
        state.player_two.current_hit_points = -1
        assert Duel.check_terminal(state) == GameOutcome.win(1)


class TestDuelPlay:

    def test_attack_against_attack_ties(self):
        """Two attackers trade blows down to a tie"""
        duel = Duel(AlwaysAttack(), AlwaysAttack(), rng=make_rng(1))
        result = duel.play(GameState.fresh(5), trace=True)
        assert result.outcome.kind is OutcomeKind.TIE
        assert result.turns == 5
        assert not result.turn_capped
        assert result.trace == [(0, 4, 4), (1, 3, 3), (2, 2, 2), (3, 1, 1), (4, 0, 0)]

    def test_mirror_against_attack_ties(self):
        """Mirror copies an attacker into a tie"""
        result = Duel(Mirror(), AlwaysAttack(), rng=make_rng(1)).play(GameState.fresh(7), trace=True)
        assert result.outcome == TIE
        assert all(move is Action.ATTACK for move in result.agent1_moves)

    def test_mirror_sees_previous_action(self):
        """Mirror reacts to the opponent's previous action"""
        result = Duel(Mirror(), always_counter(), rng=make_rng(1)).play(GameState.fresh(4), trace=True)
        assert result.agent1_moves[0] is Action.ATTACK
        assert all(move is Action.COUNTER for move in result.agent1_moves[1:])

    def test_counter_beats_attack(self):
        """A permanent counter beats a permanent attacker"""
        result = Duel(AlwaysAttack(), always_counter(), rng=make_rng(1)).play(GameState.fresh(3))
        assert result.outcome == GameOutcome.win(2)
        assert result.turns == 3
        assert (result.player_one_hp, result.player_two_hp) == (0, 3)

    def test_zero_damage_stalemate_hits_turn_cap(self):
        """A zero-damage stalemate stops at the turn cap as a tie"""
        duel = Duel(always_counter(), always_counter(), payoff=RULESETS["riposte"],
                    rng=make_rng(2), max_turns=20)
        result = duel.play(GameState.fresh(5))
        assert result.outcome == TIE
        assert result.turn_capped
        assert result.turns == 20
        assert (result.player_one_hp, result.player_two_hp) == (5, 5)

    def test_interrupted_outcome_is_fatal(self):
        """An interrupted outcome raises DuelInvariantError"""
        class BrokenDuel(Duel):
            @staticmethod
            def check_terminal(state):
                return INTERRUPTED

        with pytest.raises(DuelInvariantError):
            BrokenDuel(AlwaysAttack(), AlwaysAttack(), rng=make_rng(0)).play(GameState.fresh(5))

    def test_opponent_state_only_when_revealed(self):
        """Opponent HP is passed only when revealed"""
        seen = []

        class Spy(AlwaysAttack):
            def decide_action(self, own_state, opponent_last_action, opponent_state, rng):
                seen.append(opponent_state)
                return super().decide_action(own_state, opponent_last_action, opponent_state, rng)

        Duel(Spy(), AlwaysAttack(), rng=make_rng(0)).play(GameState.fresh(2))
        assert seen == [None, None]

        seen.clear()
        Duel(Spy(), AlwaysAttack(), rng=make_rng(0), reveal_state=True).play(GameState.fresh(2))
        assert seen == [PlayerState(2, 2), PlayerState(2, 1)]

    def test_on_turn_callback_sees_every_turn(self):
        """The turn callback runs once per turn with the outcome"""
        calls = []
        Duel(AlwaysAttack(), AlwaysAttack(), rng=make_rng(0)).play(
            GameState.fresh(3), on_turn=lambda state, outcome: calls.append((state.turn, outcome.kind)))
        assert calls == [(1, OutcomeKind.CONTINUE), (2, OutcomeKind.CONTINUE), (3, OutcomeKind.TIE)]

    def test_trace_export(self, tmp_path):
        """The trace CSV has one headerless row per turn"""
        result = Duel(AlwaysAttack(), always_counter(), rng=make_rng(0)).play(GameState.fresh(2), trace=True)
        path = tmp_path / "results.csv"
        result.save_trace_csv(str(path))
        assert path.read_text().splitlines() == ["0,1,2", "1,0,2"]

        # a second export replaces the first
        result.save_trace_csv(str(path))
        assert len(path.read_text().splitlines()) == 2

    def test_duel_requires_generator(self):
        """A duel without an explicit generator is refused"""
        with pytest.raises(ValueError):
            Duel(AlwaysAttack(), AlwaysAttack())

    def test_result_record(self):
        """The summary record names the winner, final HP and turn count"""
        result = Duel(AlwaysAttack(), always_counter(), rng=make_rng(0)).play(GameState.fresh(2))
        assert result.to_dict() == {
            "agent1": "Always Attack",
            "agent2": result.agent2_name,
            "outcome": "win",
            "winner": 2,
            "turns": 2,
            "final_hp": (0, 2),
            "turn_capped": False,
        }
