import logging
import random
import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional

from shared.state_machine import (
    TRANSITION_POLICIES, TournamentStateMachine, TournamentStatus, TransitionError
)

from .bracket_generator import Bracket, BracketGenerator, Entrant
from .errors import InvalidStateError, NotFoundError, ValidationError
from .models import (
    INACTIVE_REGISTRATION_STATUSES, Registration, RegistrationStatus,
    Tournament, TournamentType
)
from .notifier import LoggingNotifier, NotificationDispatcher
from .registration_admission import (
    RegistrationAdmission, check_capacity, check_not_registered
)
from .tournament_store import TournamentStore

logger = logging.getLogger(__name__)

# Editable field -> max length (None = unbounded text)
TEXT_FIELDS = {
    'name': 200,
    'description': None,
    'venue': 200,
    'age_category': 50,
    'gender_category': 20,
}
DATE_FIELDS = ('start_date', 'end_date', 'registration_start_date', 'registration_end_date')
MONEY_FIELDS = ('entry_fee', 'prize_money')
EDITABLE_FIELDS = frozenset(
    set(TEXT_FIELDS) | set(DATE_FIELDS) | set(MONEY_FIELDS)
    | {'max_participants', 'tournament_type', 'is_featured'}
)

SORTABLE_COLUMNS = {
    'created_at': Tournament.created_at,
    'updated_at': Tournament.updated_at,
    'name': Tournament.name,
    'status': Tournament.status,
    'start_date': Tournament.start_date,
    'end_date': Tournament.end_date,
    'registration_end_date': Tournament.registration_end_date,
}

UPCOMING_STATES = (
    TournamentStatus.DRAFT.value,
    TournamentStatus.REGISTRATION_OPEN.value,
    TournamentStatus.REGISTRATION_CLOSED.value,
)


def parse_date(field: str, value) -> Optional[date]:
    if value is None or value == '':
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid date for {field}: '{value}' (expected YYYY-MM-DD)")


def _parse_money(field: str, value) -> Decimal:
    if value is None or value == '':
        return Decimal('0.00')
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount for {field}: '{value}'")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a non-negative number")
    return amount.quantize(Decimal('0.01'))


def _parse_max_participants(value) -> Optional[int]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError("max_participants must be an integer")
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid max_participants: '{value}'")
    if count < 1:
        raise ValidationError("max_participants must be at least 1")
    return count


def apply_fields(tournament: Tournament, fields: Dict):
    """Validate and copy editable fields onto a tournament."""
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown or read-only fields: {', '.join(sorted(unknown))}")

    for field, max_length in TEXT_FIELDS.items():
        if field not in fields:
            continue
        value = fields[field]
        if value is not None:
            value = str(value).strip()
            if max_length and len(value) > max_length:
                raise ValidationError(f"{field} must not exceed {max_length} characters")
        setattr(tournament, field, value or None)

    for field in DATE_FIELDS:
        if field in fields:
            setattr(tournament, field, parse_date(field, fields[field]))

    for field in MONEY_FIELDS:
        if field in fields:
            setattr(tournament, field, _parse_money(field, fields[field]))

    if 'max_participants' in fields:
        tournament.max_participants = _parse_max_participants(fields['max_participants'])

    if 'tournament_type' in fields:
        value = fields['tournament_type']
        if value is None:
            tournament.tournament_type = None
        else:
            try:
                tournament.tournament_type = TournamentType(str(value).strip().upper()).value
            except ValueError:
                allowed = ", ".join(t.value for t in TournamentType)
                raise ValidationError(f"Invalid tournament type '{value}'. Allowed: {allowed}")

    if 'is_featured' in fields:
        if not isinstance(fields['is_featured'], bool):
            raise ValidationError("is_featured must be true or false")
        tournament.is_featured = fields['is_featured']

    if not tournament.name:
        raise ValidationError("Tournament name is required")
    if tournament.start_date and tournament.end_date and tournament.start_date > tournament.end_date:
        raise ValidationError("Start date cannot be after end date")
    if (tournament.registration_start_date and tournament.registration_end_date
            and tournament.registration_start_date > tournament.registration_end_date):
        raise ValidationError("Registration start date cannot be after registration end date")


class TournamentRegistry:
    """
    Service facade over the tournament aggregate:
    - Create/update/delete tournament records and list them
    - Drive the lifecycle through the state machine and fire its notifications
    - Admit players and manage their registrations
    - Generate single-elimination brackets
    """

    def __init__(
        self,
        store: TournamentStore = None,
        dispatcher: NotificationDispatcher = None,
        policy: str = 'permissive',
        max_retries: int = 3,
        clock: Callable[[], date] = date.today,
        rng: random.Random = None,
        default_page_size: int = 50,
        max_page_size: int = 200,
    ):
        if policy not in TRANSITION_POLICIES:
            raise ValueError(f"Unknown transition policy '{policy}'")

        self.store = store or TournamentStore()
        self.dispatcher = dispatcher or NotificationDispatcher(LoggingNotifier())
        self.policy = policy
        self.max_retries = max_retries
        self.clock = clock
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.bracket_generator = BracketGenerator(rng)
        self.admission = RegistrationAdmission(
            self.store, self.dispatcher, clock=clock, max_retries=max_retries
        )

    # ==================== Tournament records ====================

    def create_tournament(self, name: str, fields: Dict = None, **extra) -> Tournament:
        """Create a new tournament in draft state from fields plus keyword extras."""
        logger.debug(f"Creating new tournament: {name}")

        tournament = Tournament(
            tournament_id=f"t_{uuid.uuid4().hex[:12]}",
            status=TournamentStatus.DRAFT.value,
            entry_fee=Decimal('0.00'),
            prize_money=Decimal('0.00'),
            is_featured=False,
        )
        apply_fields(tournament, dict(fields or {}, **extra, name=name))
        self.store.add(tournament)

        logger.info(f"Tournament created successfully with ID: {tournament.tournament_id}")
        self.dispatcher.tournament_created(tournament)
        return tournament

    def get_tournament(self, tournament_id: str) -> Tournament:
        """Get tournament by its public ID. Raises NotFoundError."""
        return self.store.load(tournament_id)

    def list_tournaments(
        self,
        status: str = None,
        limit: int = None,
        offset: int = 0,
        sort_by: str = 'created_at',
        sort_dir: str = 'desc',
    ) -> List[Tournament]:
        """List tournaments with optional status filter, paging and sorting."""
        query = Tournament.query

        if status:
            try:
                query = query.filter_by(status=TournamentStatus.parse(status).value)
            except ValueError as e:
                raise ValidationError(str(e), code="invalid_status")

        column = SORTABLE_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationError(
                f"Cannot sort by '{sort_by}'. Allowed: {', '.join(sorted(SORTABLE_COLUMNS))}"
            )
        sort_dir = (sort_dir or 'desc').lower()
        if sort_dir not in ('asc', 'desc'):
            raise ValidationError("sort_dir must be 'asc' or 'desc'")
        order = column.asc() if sort_dir == 'asc' else column.desc()

        if limit is None:
            limit = self.default_page_size
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        if offset < 0:
            raise ValidationError("offset must not be negative")
        limit = min(limit, self.max_page_size)

        return query.order_by(order, Tournament.id).offset(offset).limit(limit).all()

    def list_upcoming(self) -> List[Tournament]:
        logger.debug("Fetching upcoming tournaments")
        return (
            Tournament.query
            .filter(Tournament.status.in_(UPCOMING_STATES))
            .order_by(Tournament.start_date.is_(None), Tournament.start_date, Tournament.id)
            .all()
        )

    def list_ongoing(self) -> List[Tournament]:
        logger.debug("Fetching ongoing tournaments")
        return self._list_in_state(TournamentStatus.ONGOING)

    def list_completed(self) -> List[Tournament]:
        logger.debug("Fetching completed tournaments")
        return self._list_in_state(TournamentStatus.COMPLETED)

    def list_featured(self) -> List[Tournament]:
        logger.debug("Fetching featured tournaments")
        return (
            Tournament.query
            .filter_by(is_featured=True)
            .order_by(Tournament.start_date.is_(None), Tournament.start_date, Tournament.id)
            .all()
        )

    def list_in_date_range(self, start, end) -> List[Tournament]:
        """Tournaments that start and end inside [start, end]."""
        start = parse_date('start', start)
        end = parse_date('end', end)
        if start is None or end is None:
            raise ValidationError("Both start and end dates are required")
        if start > end:
            raise ValidationError("Start date cannot be after end date")

        logger.debug(f"Fetching tournaments between {start} and {end}")
        return (
            Tournament.query
            .filter(Tournament.start_date >= start, Tournament.end_date <= end)
            .order_by(Tournament.start_date, Tournament.id)
            .all()
        )

    def _list_in_state(self, status: TournamentStatus) -> List[Tournament]:
        return (
            Tournament.query
            .filter_by(status=status.value)
            .order_by(Tournament.start_date.is_(None), Tournament.start_date, Tournament.id)
            .all()
        )

    def update_tournament(self, tournament_id: str, fields: Dict = None, **extra) -> Tournament:
        """Partial update of editable fields. Status only moves via transition_status."""
        fields = dict(fields or {}, **extra)
        logger.debug(f"Updating tournament: {tournament_id}")

        def apply(tournament: Tournament):
            apply_fields(tournament, fields)
            if (tournament.max_participants is not None
                    and tournament.max_participants < tournament.current_registration_count):
                raise ValidationError(
                    f"max_participants cannot be lower than the "
                    f"{tournament.current_registration_count} active registrations"
                )

        tournament, _ = self.store.update(tournament_id, apply, self.max_retries)
        logger.info(f"Tournament updated successfully: {tournament_id}")
        return tournament

    def delete_tournament(self, tournament_id: str):
        """Delete a tournament that nobody has registered for yet."""
        logger.debug(f"Deleting tournament: {tournament_id}")

        with self.store.lock(tournament_id):
            tournament = self.store.load(tournament_id, fresh=True)
            if tournament.registrations:
                self.store.discard()
                raise InvalidStateError(
                    "Cannot delete a tournament that has registrations",
                    code="has_registrations"
                )
            self.store.delete(tournament)

        logger.info(f"Tournament deleted successfully: {tournament_id}")

    # ==================== Lifecycle ====================

    def transition_status(self, tournament_id: str, new_status: str) -> Tournament:
        """
        Move a tournament to new_status.

        Whether the move is legal depends on the configured policy. The status
        is committed before any notification goes out, and notification
        failures never undo it. Re-applying the current status is a no-op.
        """
        logger.debug(f"Updating tournament status: {tournament_id} to {new_status}")
        try:
            target = TournamentStatus.parse(new_status)
        except ValueError as e:
            raise ValidationError(str(e), code="invalid_status")

        def apply(tournament: Tournament):
            machine = TournamentStateMachine.for_policy(tournament.status, self.policy)
            if machine.state == target:
                return None
            try:
                machine.transition(target)
            except TransitionError as e:
                raise InvalidStateError(e.reason, code="invalid_transition")

            previous = tournament.status
            tournament.status = target.value
            # Recipients are fixed at commit time
            return previous, [r.player_id for r in tournament.active_registrations]

        tournament, change = self.store.update(tournament_id, apply, self.max_retries)
        if change is None:
            logger.debug(f"Tournament {tournament_id} already {target.value}, nothing to do")
            return tournament

        previous, recipients = change
        logger.info(f"Tournament status updated from {previous} to {target.value}: {tournament_id}")

        self.dispatcher.state_changed(tournament_id, previous, target.value)
        self._run_side_effect(tournament, target, recipients)
        return tournament

    def _run_side_effect(self, tournament: Tournament, target: TournamentStatus, recipients: List[str]):
        effect = TournamentStateMachine.SIDE_EFFECTS.get(target)
        if effect == "registration_opened":
            self.dispatcher.registration_opened(tournament)
        elif effect == "tournament_starting":
            self.dispatcher.tournament_starting(tournament, recipients)
        elif effect == "tournament_completed":
            self.dispatcher.tournament_completed(tournament, recipients)

    # ==================== Registrations ====================

    def register_player(
        self,
        tournament_id: str,
        player_id: str,
        payment_amount=None,
        payment_reference: str = None,
        notes: str = None,
    ) -> Registration:
        return self.admission.register(
            tournament_id,
            player_id,
            payment_amount=payment_amount,
            payment_reference=payment_reference,
            notes=notes,
        )

    def list_registrations(self, tournament_id: str) -> List[Registration]:
        """All registrations in admission order, inactive ones included."""
        logger.debug(f"Fetching registrations for tournament: {tournament_id}")
        return list(self.store.load(tournament_id).registrations)

    def update_registration_status(self, tournament_id: str, registration_id: str, status: str) -> Registration:
        """
        Operator change of a registration's status.

        Bringing a cancelled or withdrawn registration back re-runs the
        capacity and duplicate checks.
        """
        logger.debug(f"Updating registration status: {registration_id} to {status}")
        try:
            target = RegistrationStatus(str(status or '').strip().upper())
        except ValueError:
            allowed = ", ".join(s.value for s in RegistrationStatus)
            raise ValidationError(
                f"Invalid registration status '{status}'. Allowed: {allowed}",
                code="invalid_status"
            )

        def apply(tournament: Tournament):
            registration = next(
                (r for r in tournament.registrations if r.registration_id == registration_id),
                None
            )
            if registration is None:
                raise NotFoundError(
                    f"Registration not found with ID: {registration_id}",
                    code="registration_not_found"
                )

            previous = registration.status
            if previous == target.value:
                return registration, None
            if not registration.is_active and target.value not in INACTIVE_REGISTRATION_STATUSES:
                check_capacity(tournament)
                check_not_registered(tournament, registration.player_id)

            registration.status = target.value
            return registration, previous

        _, (registration, previous) = self.store.update(tournament_id, apply, self.max_retries)
        if previous is not None:
            logger.info(f"Registration status updated to {target.value}: {registration_id}")
            self.dispatcher.registration_status_changed(tournament_id, registration, previous)
        return registration

    # ==================== Brackets ====================

    def generate_bracket(self, tournament_id: str) -> Bracket:
        """Seed the active registrations into a fresh single-elimination bracket."""
        logger.debug(f"Generating bracket for tournament: {tournament_id}")

        # One read of the active set, taken while no admission can interleave
        with self.store.lock(tournament_id):
            tournament = self.store.load(tournament_id, fresh=True)
            tournament_name = tournament.name
            player_ids = [r.player_id for r in tournament.active_registrations]

        if not player_ids:
            raise InvalidStateError(
                "No active registrations found for tournament",
                code="no_active_registrations"
            )

        names = self.store.player_names(player_ids)
        entrants = [Entrant(player_id=pid, player_name=names.get(pid)) for pid in player_ids]
        bracket = self.bracket_generator.generate(tournament_id, tournament_name, entrants)

        logger.info(f"Bracket generated successfully for tournament: {tournament_id}")
        self.dispatcher.bracket_generated(bracket)
        return bracket

    # ==================== Payloads ====================

    def tournament_payload(self, tournament: Tournament) -> dict:
        return tournament.to_dict(self.clock())

    def registration_payloads(self, registrations: List[Registration]) -> List[dict]:
        names = self.store.player_names(r.player_id for r in registrations)
        return [r.to_dict(player_name=names.get(r.player_id)) for r in registrations]

    def registration_payload(self, registration: Registration) -> dict:
        return self.registration_payloads([registration])[0]
