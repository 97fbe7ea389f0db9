from enum import Enum
from dataclasses import dataclass
from datetime import datetime
import json


class EventType(str, Enum):
    # Tournament lifecycle
    TOURNAMENT_CREATED = "tournament.created"
    REGISTRATION_OPENED = "tournament.registration_opened"

    # State changes
    STATE_CHANGED = "state.changed"

    # Registrations
    REGISTRATION_CONFIRMED = "registration.confirmed"
    REGISTRATION_STATUS_CHANGED = "registration.status_changed"

    # Brackets
    BRACKET_GENERATED = "bracket.generated"

    # Direct messages to a single player
    PLAYER_NOTIFICATION = "notification.player"


@dataclass
class Event:
    type: EventType
    tournament_id: str
    timestamp: str = None
    data: dict = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.utcnow().isoformat() + "Z"
        if self.data is None:
            self.data = {}

    def to_dict(self) -> dict:
        return {
            "type": self.type.value if isinstance(self.type, EventType) else self.type,
            "tournament_id": self.tournament_id,
            "timestamp": self.timestamp,
            "data": self.data
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "Event":
        return cls(
            type=EventType(data["type"]) if data["type"] in [e.value for e in EventType] else data["type"],
            tournament_id=data["tournament_id"],
            timestamp=data.get("timestamp"),
            data=data.get("data", {})
        )

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        return cls.from_dict(json.loads(json_str))


def state_changed_event(tournament_id: str, from_state: str, to_state: str) -> Event:
    return Event(
        type=EventType.STATE_CHANGED,
        tournament_id=tournament_id,
        data={
            "from_state": from_state,
            "to_state": to_state
        }
    )


def registration_opened_event(tournament_id: str, name: str, registration_end_date: str = None) -> Event:
    return Event(
        type=EventType.REGISTRATION_OPENED,
        tournament_id=tournament_id,
        data={
            "name": name,
            "registration_end_date": registration_end_date
        }
    )


def bracket_generated_event(tournament_id: str, total_rounds: int, entrants: int) -> Event:
    return Event(
        type=EventType.BRACKET_GENERATED,
        tournament_id=tournament_id,
        data={
            "total_rounds": total_rounds,
            "entrants": entrants
        }
    )


def player_notification_event(tournament_id: str, recipient_id: str, subject: str, body: str) -> Event:
    return Event(
        type=EventType.PLAYER_NOTIFICATION,
        tournament_id=tournament_id,
        data={
            "recipient_id": recipient_id,
            "subject": subject,
            "body": body
        }
    )


def tournament_created_event(tournament_id: str, name: str) -> Event:
    return Event(
        type=EventType.TOURNAMENT_CREATED,
        tournament_id=tournament_id,
        data={"name": name}
    )


def registration_status_changed_event(
    tournament_id: str, registration_id: str, player_id: str, from_status: str, to_status: str
) -> Event:
    return Event(
        type=EventType.REGISTRATION_STATUS_CHANGED,
        tournament_id=tournament_id,
        data={
            "registration_id": registration_id,
            "player_id": player_id,
            "from_status": from_status,
            "to_status": to_status
        }
    )
