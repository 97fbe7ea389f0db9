from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


class TournamentStatus(str, Enum):
    DRAFT = "DRAFT"
    REGISTRATION_OPEN = "REGISTRATION_OPEN"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def parse(cls, value: str) -> "TournamentStatus":
        """Parse a status label, case-insensitively. Raises ValueError."""
        if isinstance(value, cls):
            return value
        normalized = ""
        if isinstance(value, str):
            normalized = value.strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return cls(normalized)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValueError(f"Invalid tournament status '{value}'. Allowed: {allowed}")


TERMINAL_STATES = frozenset({TournamentStatus.COMPLETED, TournamentStatus.CANCELLED})
NON_TERMINAL_STATES = frozenset(set(TournamentStatus) - TERMINAL_STATES)


class TransitionError(Exception):
    def __init__(self, from_state: str, to_state: str, reason: str = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason or f"Cannot transition from {from_state} to {to_state}"
        super().__init__(self.reason)


# Target status -> statuses it may be entered from.
Predecessors = Dict[TournamentStatus, FrozenSet[TournamentStatus]]

PERMISSIVE_PREDECESSORS: Predecessors = {
    status: frozenset(TournamentStatus) for status in TournamentStatus
}

STRICT_PREDECESSORS: Predecessors = {
    TournamentStatus.DRAFT: frozenset(),
    TournamentStatus.REGISTRATION_OPEN: frozenset({
        TournamentStatus.DRAFT,
        TournamentStatus.REGISTRATION_CLOSED,
    }),
    TournamentStatus.REGISTRATION_CLOSED: frozenset({TournamentStatus.REGISTRATION_OPEN}),
    TournamentStatus.ONGOING: frozenset({TournamentStatus.REGISTRATION_CLOSED}),
    TournamentStatus.COMPLETED: frozenset({TournamentStatus.ONGOING}),
    TournamentStatus.CANCELLED: NON_TERMINAL_STATES,
}

TRANSITION_POLICIES = {
    'permissive': PERMISSIVE_PREDECESSORS,
    'strict': STRICT_PREDECESSORS,
}


class TournamentStateMachine:
    """
    Tournament lifecycle.

    Which moves are legal is pure data (a predecessor table), so the policy can
    be tightened without touching callers. The default table is permissive:
    any status may follow any other.
    """

    ALLOWED_ACTIONS = {
        TournamentStatus.DRAFT: ["edit", "delete", "open_registration", "cancel"],
        TournamentStatus.REGISTRATION_OPEN: [
            "edit", "register_player", "withdraw_registration",
            "close_registration", "generate_bracket", "cancel",
        ],
        TournamentStatus.REGISTRATION_CLOSED: [
            "edit", "withdraw_registration", "reopen_registration",
            "generate_bracket", "start", "cancel",
        ],
        TournamentStatus.ONGOING: ["edit", "generate_bracket", "complete", "cancel"],
        TournamentStatus.COMPLETED: ["view"],
        TournamentStatus.CANCELLED: ["view"],
    }

    # Status entered -> notification the registry dispatches for it.
    SIDE_EFFECTS = {
        TournamentStatus.REGISTRATION_OPEN: "registration_opened",
        TournamentStatus.ONGOING: "tournament_starting",
        TournamentStatus.COMPLETED: "tournament_completed",
    }

    def __init__(
        self,
        initial_state: TournamentStatus = TournamentStatus.DRAFT,
        predecessors: Predecessors = None,
    ):
        self._state = initial_state
        self._predecessors = predecessors if predecessors is not None else PERMISSIVE_PREDECESSORS
        self._history: List[Tuple[TournamentStatus, TournamentStatus]] = []

    @property
    def state(self) -> TournamentStatus:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def allowed_actions(self) -> List[str]:
        return self.ALLOWED_ACTIONS.get(self._state, [])

    def can_perform(self, action: str) -> bool:
        return action in self.allowed_actions

    def can_transition(self, target: TournamentStatus) -> bool:
        if target == self._state:
            return True
        return self._state in self._predecessors.get(target, frozenset())

    def transition(self, target: TournamentStatus) -> TournamentStatus:
        if not self.can_transition(target):
            raise TransitionError(
                self._state.value,
                target.value,
                f"Cannot move tournament from {self._state.value} to {target.value}"
            )

        old_state = self._state
        self._state = target
        self._history.append((old_state, target))
        return self._state

    def side_effect_for(self, target: TournamentStatus) -> Optional[str]:
        return self.SIDE_EFFECTS.get(target)

    def get_history(self) -> List[Tuple[TournamentStatus, TournamentStatus]]:
        return self._history.copy()

    @classmethod
    def from_state_string(cls, state_str: str, predecessors: Predecessors = None) -> "TournamentStateMachine":
        try:
            state = TournamentStatus.parse(state_str)
        except ValueError:
            state = TournamentStatus.DRAFT
        return cls(initial_state=state, predecessors=predecessors)

    @classmethod
    def for_policy(cls, state_str: str, policy: str = 'permissive') -> "TournamentStateMachine":
        """Build a machine using one of the named TRANSITION_POLICIES."""
        if policy not in TRANSITION_POLICIES:
            raise ValueError(f"Unknown transition policy '{policy}'")
        return cls.from_state_string(state_str, predecessors=TRANSITION_POLICIES[policy])
