"""
Registration admission.

The window, capacity and duplicate checks plus the append form one critical
section per tournament. Different tournaments never wait on each other.
"""
import logging
import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from .errors import InvalidStateError, NotFoundError, ValidationError
from .models import PaymentStatus, Registration, RegistrationStatus, Tournament
from .notifier import NotificationDispatcher
from .tournament_store import TournamentStore

logger = logging.getLogger(__name__)

MAX_PAYMENT_REFERENCE_LENGTH = 100


def parse_amount(value) -> Optional[Decimal]:
    """Parse a non-negative money amount. None stays None."""
    if value is None or value == '':
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid payment amount '{value}'")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Payment amount must be a non-negative number")
    return amount.quantize(Decimal('0.01'))


def optional_text(field: str, value, max_length: int = None) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    if max_length and len(value) > max_length:
        raise ValidationError(f"{field} must not exceed {max_length} characters")
    return value


def payment_status_for(amount: Optional[Decimal], entry_fee: Optional[Decimal]) -> PaymentStatus:
    if not amount:
        return PaymentStatus.UNPAID
    if amount >= (entry_fee or Decimal('0')):
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def check_capacity(tournament: Tournament):
    if not tournament.has_available_slots:
        raise InvalidStateError("Tournament is full", code="tournament_full")


def check_not_registered(tournament: Tournament, player_id: str):
    if tournament.has_active_registration(player_id):
        raise InvalidStateError(
            "Player is already registered for this tournament",
            code="already_registered"
        )


class RegistrationAdmission:
    def __init__(
        self,
        store: TournamentStore,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], date] = date.today,
        max_retries: int = 3,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock
        self.max_retries = max(1, max_retries)

    def register(
        self,
        tournament_id: str,
        player_id: str,
        payment_amount=None,
        payment_reference: str = None,
        notes: str = None,
    ) -> Registration:
        """
        Admit one player to one tournament.

        Checks run in a fixed order and the first failure wins: tournament
        exists, player exists, registration window open, capacity left, no
        active registration for the player. A stale save is retried from the
        top; once retries run out the caller gets ConflictError.
        """
        logger.debug(f"Registering player {player_id} for tournament: {tournament_id}")

        if player_id is None or not str(player_id).strip():
            raise ValidationError("Player ID is required")
        player_id = str(player_id).strip()
        amount = parse_amount(payment_amount)
        payment_reference = optional_text('payment_reference', payment_reference, MAX_PAYMENT_REFERENCE_LENGTH)
        notes = optional_text('notes', notes)

        def admit(tournament: Tournament) -> Registration:
            self._check_admission(tournament, player_id)
            registration = Registration(
                registration_id=f"r_{uuid.uuid4().hex[:12]}",
                player_id=player_id,
                status=RegistrationStatus.CONFIRMED.value,
                payment_amount=amount,
                payment_status=payment_status_for(amount, tournament.entry_fee).value,
                payment_reference=payment_reference,
                notes=notes,
            )
            tournament.registrations.append(registration)
            return registration

        tournament, registration = self.store.update(tournament_id, admit, self.max_retries)

        logger.info(f"Player {player_id} registered successfully for tournament {tournament_id}")
        self.dispatcher.registration_confirmed(tournament, player_id)
        return registration

    def _check_admission(self, tournament: Tournament, player_id: str):
        if not self.store.player_exists(player_id):
            raise NotFoundError(f"Player not found with ID: {player_id}", code="player_not_found")

        if not tournament.is_registration_open(self.clock()):
            raise InvalidStateError(
                "Registration is not open for this tournament",
                code="registration_not_open"
            )

        check_capacity(tournament)
        check_not_registered(tournament, player_id)
