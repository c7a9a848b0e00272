"""
Agent implementations for duel experiments
Deterministic, random and estimating strategies sharing one decision contract
"""

import copy
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import numpy as np

from .game import Action, PlayerState


def _check_probability(name: str, value: float) -> float:
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")
    return value


class Agent(ABC):
    """Base class for all duel agents"""

    type_key = None

    def __init__(self, name: Optional[str] = None):
        self.name = name if name is not None else self.display_name()

    @abstractmethod
    def decide_action(self, own_state: PlayerState, opponent_last_action: Optional[Action],
                      opponent_state: Optional[PlayerState], rng: np.random.Generator) -> Action:
        """Return the action committed for this turn"""
        pass

    @abstractmethod
    def display_name(self) -> str:
        pass

    def reset(self):
        """Reset agent state for a new match"""
        pass

    def clone(self) -> "Agent":
        """Independent copy with the same parameters and fresh match state"""
        fresh = copy.deepcopy(self)
        fresh.reset()
        return fresh

    def params(self) -> Dict:
        return {}

    def describe(self) -> Dict:
        """Config record that rebuilds this agent through build_agent"""
        return {'type': self.type_key, 'name': self.name, **self.params()}

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name!r})"


class AlwaysAttack(Agent):
    """Always attacks"""
    type_key = 'always_attack'

    def decide_action(self, own_state, opponent_last_action, opponent_state, rng) -> Action:
        return Action.ATTACK

    def display_name(self) -> str:
        return "Always Attack"


class Mirror(Agent):
    """Attacks first, then copies the opponent's last action"""
    type_key = 'mirror'

    def decide_action(self, own_state, opponent_last_action, opponent_state, rng) -> Action:
        if opponent_last_action is None:
            return Action.ATTACK
        return opponent_last_action

    def display_name(self) -> str:
        return "Always Mirror the opposing action"


class FixedProbabilityRandom(Agent):
    """Attacks with a fixed probability every turn"""
    type_key = 'random'

    def __init__(self, name: Optional[str] = None, p_attack: float = 0.5):
        self.p_attack = _check_probability('p_attack', p_attack)
        super().__init__(name)

    def decide_action(self, own_state, opponent_last_action, opponent_state, rng) -> Action:
        return Action.ATTACK if rng.random() < self.p_attack else Action.COUNTER

    def display_name(self) -> str:
        return f"Attack with probability {self.p_attack}"

    def params(self) -> Dict:
        return {'p_attack': self.p_attack}


class MarkovChainRandom(Agent):
    """
    Two-state Markov chain over the committed action.

    While attacking, switches to countering with probability switch_to_counter;
    while countering, switches to attacking with probability switch_to_attack.
    One draw from the generator per turn.
    """
    type_key = 'markov'

    def __init__(self, name: Optional[str] = None, switch_to_attack: float = 0.5,
                 switch_to_counter: float = 0.5, initial_action: Action = Action.ATTACK):
        self.switch_to_attack = _check_probability('switch_to_attack', switch_to_attack)
        self.switch_to_counter = _check_probability('switch_to_counter', switch_to_counter)
        self.initial_action = Action.parse(initial_action)
        self.current_action = self.initial_action
        super().__init__(name)

    def decide_action(self, own_state, opponent_last_action, opponent_state, rng) -> Action:
        if self.current_action is Action.ATTACK:
            if rng.random() < self.switch_to_counter:
                self.current_action = Action.COUNTER
        else:
            if rng.random() < self.switch_to_attack:
                self.current_action = Action.ATTACK
        return self.current_action

    def reset(self):
        super().reset()
        self.current_action = self.initial_action

    def display_name(self) -> str:
        return f"Markov Chain with probabilities {self.switch_to_attack}, {self.switch_to_counter}"

    def params(self) -> Dict:
        return {
            'switch_to_attack': self.switch_to_attack,
            'switch_to_counter': self.switch_to_counter,
            'initial_action': self.initial_action.value,
        }


class ExpectedValueEstimator(Agent):
    """Estimates the opponent's attack rate and picks the best one-step action"""
    type_key = 'estimator'

    def __init__(self, name: Optional[str] = None, attack_into_counter: float = -3.0,
                 exchange: float = -3.0, counter_into_attack: float = -1.0):
        self.attack_into_counter = float(attack_into_counter)
        self.exchange = float(exchange)
        self.counter_into_attack = float(counter_into_attack)
        self.turns_seen = 0
        self.attacks_seen = 0
        super().__init__(name)

    def estimate_attack_probability(self) -> float:
        # No observations yet: assume the opponent never attacks
        if self.turns_seen == 0:
            return 0.0
        return self.attacks_seen / self.turns_seen

    def expected_values(self, p_attack: float):
        """(value of attacking, value of countering) against the given attack rate"""
        attack_value = self.attack_into_counter * (1.0 - p_attack) + self.exchange * p_attack
        counter_value = self.counter_into_attack * p_attack + self.exchange * (1.0 - p_attack)
        return attack_value, counter_value

    def decide_action(self, own_state, opponent_last_action, opponent_state, rng) -> Action:
        if opponent_last_action is Action.ATTACK:
            self.attacks_seen += 1
        self.turns_seen += 1

        attack_value, counter_value = self.expected_values(self.estimate_attack_probability())
        return Action.ATTACK if attack_value > counter_value else Action.COUNTER

    def reset(self):
        super().reset()
        self.turns_seen = 0
        self.attacks_seen = 0

    def display_name(self) -> str:
        return "Estimate Probability of Attack, and design optimal one-step decision."

    def params(self) -> Dict:
        return {
            'attack_into_counter': self.attack_into_counter,
            'exchange': self.exchange,
            'counter_into_attack': self.counter_into_attack,
        }


AGENT_TYPES = {
    cls.type_key: cls
    for cls in (AlwaysAttack, Mirror, FixedProbabilityRandom, MarkovChainRandom, ExpectedValueEstimator)
}


def build_agent(record: Dict) -> Agent:
    """Build an agent from {'type': ..., 'name': ..., **params}"""
    params = dict(record)
    type_key = params.pop('type', None)
    if type_key not in AGENT_TYPES:
        raise ValueError(f"Unknown agent type {type_key!r}; choose from {sorted(AGENT_TYPES)}")
    return AGENT_TYPES[type_key](**params)


def build_roster(records: List[Dict]) -> List[Agent]:
    return [build_agent(record) for record in records]


def default_roster() -> List[Agent]:
    """The 17-agent field used for the reference tournament"""
    agents: List[Agent] = [FixedProbabilityRandom(p_attack=p) for p in (0.1, 0.3, 0.5, 0.7, 0.9)]
    agents.append(AlwaysAttack())
    for switch_to_counter in (0.1, 0.5, 0.9):
        for switch_to_attack in (0.1, 0.5, 0.9):
            agents.append(MarkovChainRandom(switch_to_attack=switch_to_attack,
                                            switch_to_counter=switch_to_counter))
    agents.append(Mirror())
    agents.append(ExpectedValueEstimator())
    return agents
