"""
Notification port.

Notifiers deliver a message to one recipient or announce an event to everyone
following a tournament. The NotificationDispatcher composes the tournament
messages and is the boundary where delivery failures stop: it logs them and
never raises to the caller.
"""
import logging
from typing import Iterable, Tuple

from shared.events import (
    Event, bracket_generated_event, player_notification_event,
    registration_opened_event, registration_status_changed_event,
    state_changed_event, tournament_created_event
)
from shared.pubsub import PubSubClient

logger = logging.getLogger(__name__)


class Notifier:
    """Interface for notification backends."""

    def notify(self, recipient_id: str, subject: str, body: str, tournament_id: str = None) -> None:
        raise NotImplementedError

    def announce(self, event: Event) -> None:
        raise NotImplementedError

    def is_healthy(self) -> bool:
        return True


class LoggingNotifier(Notifier):
    """Local development mode: messages are only written to the log."""

    def notify(self, recipient_id: str, subject: str, body: str, tournament_id: str = None) -> None:
        logger.info(f"Notification to {recipient_id} ({tournament_id}): {subject} - {body}")

    def announce(self, event: Event) -> None:
        logger.info(f"Announcement {event.type.value} for {event.tournament_id}: {event.data}")


class RedisNotifier(Notifier):
    """Publishes to the Redis channels the mail and push workers listen on."""

    def __init__(self, pubsub: PubSubClient):
        self.pubsub = pubsub

    def notify(self, recipient_id: str, subject: str, body: str, tournament_id: str = None) -> None:
        event = player_notification_event(tournament_id, recipient_id, subject, body)
        self.pubsub.publish_user_notification(recipient_id, event)

    def announce(self, event: Event) -> None:
        self.pubsub.publish_tournament_event(event.tournament_id, event)
        self.pubsub.log_event(event.tournament_id, event)

    def is_healthy(self) -> bool:
        try:
            return self.pubsub.ping()
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False


def build_notifier(backend: str, redis_url: str = None) -> Notifier:
    if backend == 'redis':
        return RedisNotifier(PubSubClient(redis_url))
    if backend == 'log':
        return LoggingNotifier()
    raise ValueError(f"Unknown notification backend '{backend}'")


def confirmation_message(tournament) -> Tuple[str, str, str]:
    return (
        tournament.tournament_id,
        f"Registration Confirmed: {tournament.name}",
        f"Your registration for '{tournament.name}' has been confirmed. "
        f"Tournament starts on {tournament.start_date} at {tournament.venue}.",
    )


def starting_message(tournament) -> Tuple[str, str, str]:
    return (
        tournament.tournament_id,
        f"Tournament Starting: {tournament.name}",
        f"The tournament '{tournament.name}' is starting on {tournament.start_date} "
        f"at {tournament.venue}. Good luck!",
    )


def completed_message(tournament) -> Tuple[str, str, str]:
    return (
        tournament.tournament_id,
        f"Tournament Completed: {tournament.name}",
        f"The tournament '{tournament.name}' has been completed. Thank you for participating!",
    )


def registration_opened_message(tournament) -> Event:
    end_date = tournament.registration_end_date.isoformat() if tournament.registration_end_date else None
    return registration_opened_event(tournament.tournament_id, tournament.name, end_date)


def created_message(tournament) -> Event:
    return tournament_created_event(tournament.tournament_id, tournament.name)


def registration_status_message(registration, tournament_id: str, from_status: str) -> Event:
    return registration_status_changed_event(
        tournament_id,
        registration.registration_id,
        registration.player_id,
        from_status,
        registration.status
    )


class NotificationDispatcher:
    """Best-effort delivery of tournament notifications."""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    def send(self, recipient_id: str, subject: str, body: str, tournament_id: str = None) -> bool:
        try:
            self.notifier.notify(recipient_id, subject, body, tournament_id=tournament_id)
            return True
        except Exception as e:
            logger.error(f"Failed to send '{subject}' to {recipient_id}: {e}")
            return False

    def send_all(self, recipient_ids: Iterable[str], subject: str, body: str, tournament_id: str = None) -> int:
        """Send to every recipient independently. Returns the number delivered."""
        delivered = 0
        for recipient_id in recipient_ids:
            if self.send(recipient_id, subject, body, tournament_id=tournament_id):
                delivered += 1
        return delivered

    def announce(self, event: Event) -> bool:
        try:
            self.notifier.announce(event)
            return True
        except Exception as e:
            logger.error(f"Failed to announce {event.type} for {event.tournament_id}: {e}")
            return False

    def _compose(self, build, *args):
        # Attributes may be reloaded after commit; a failed reload drops the message
        try:
            return build(*args)
        except Exception as e:
            logger.error(f"Failed to compose {build.__name__} notification: {e}")
            return None

    def registration_confirmed(self, tournament, player_id: str) -> bool:
        logger.debug(f"Sending registration confirmation to player: {player_id}")
        message = self._compose(confirmation_message, tournament)
        if message is None:
            return False
        tournament_id, subject, body = message
        return self.send(player_id, subject, body, tournament_id=tournament_id)

    def registration_opened(self, tournament) -> bool:
        event = self._compose(registration_opened_message, tournament)
        if event is None:
            return False
        logger.debug(f"Announcing open registration for tournament: {event.tournament_id}")
        return self.announce(event)

    def tournament_starting(self, tournament, player_ids: Iterable[str]) -> int:
        message = self._compose(starting_message, tournament)
        if message is None:
            return 0
        tournament_id, subject, body = message
        logger.debug(f"Sending tournament starting notifications for tournament: {tournament_id}")
        return self.send_all(player_ids, subject, body, tournament_id=tournament_id)

    def tournament_completed(self, tournament, player_ids: Iterable[str]) -> int:
        message = self._compose(completed_message, tournament)
        if message is None:
            return 0
        tournament_id, subject, body = message
        logger.debug(f"Sending tournament completed notifications for tournament: {tournament_id}")
        return self.send_all(player_ids, subject, body, tournament_id=tournament_id)

    def tournament_created(self, tournament) -> bool:
        event = self._compose(created_message, tournament)
        if event is None:
            return False
        return self.announce(event)

    def state_changed(self, tournament_id: str, from_state: str, to_state: str) -> bool:
        return self.announce(state_changed_event(tournament_id, from_state, to_state))

    def registration_status_changed(self, tournament_id: str, registration, from_status: str) -> bool:
        event = self._compose(registration_status_message, registration, tournament_id, from_status)
        if event is None:
            return False
        return self.announce(event)

    def bracket_generated(self, bracket) -> bool:
        entrants = sum(
            2 if m.player2 else 1 for m in bracket.first_round.matches
        )
        return self.announce(
            bracket_generated_event(bracket.tournament_id, bracket.total_rounds, entrants)
        )
