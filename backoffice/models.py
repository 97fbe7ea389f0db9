from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional

from flask_sqlalchemy import SQLAlchemy

from shared.state_machine import TournamentStateMachine, TournamentStatus

db = SQLAlchemy()


class TournamentType(str, Enum):
    SINGLES = "SINGLES"
    DOUBLES = "DOUBLES"
    MIXED = "MIXED"
    TEAM = "TEAM"


class RegistrationStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    WAITLISTED = "WAITLISTED"
    CANCELLED = "CANCELLED"
    WITHDRAWN = "WITHDRAWN"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


INACTIVE_REGISTRATION_STATUSES = frozenset({
    RegistrationStatus.CANCELLED.value,
    RegistrationStatus.WITHDRAWN.value,
})


def _money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


class Player(db.Model):
    """Read-only view of the external player directory."""
    __tablename__ = 'players'

    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    contact_email = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'name': self.name,
            'contact_email': self.contact_email,
        }


class Tournament(db.Model):
    __tablename__ = 'tournaments'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    venue = db.Column(db.String(200), nullable=True)
    status = db.Column(db.String(30), nullable=False, default=TournamentStatus.DRAFT.value, index=True)
    tournament_type = db.Column(db.String(20), nullable=True)
    age_category = db.Column(db.String(50), nullable=True)
    gender_category = db.Column(db.String(20), nullable=True)
    is_featured = db.Column(db.Boolean, nullable=False, default=False, index=True)

    # Capacity and money
    max_participants = db.Column(db.Integer, nullable=True)  # None = unbounded
    entry_fee = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    prize_money = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0.00'))

    # Dates
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    registration_start_date = db.Column(db.Date, nullable=True)
    registration_end_date = db.Column(db.Date, nullable=True)

    # Optimistic concurrency: bumped on every UPDATE of the row
    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    registrations = db.relationship(
        'Registration',
        back_populates='tournament',
        cascade='all, delete-orphan',
        order_by='Registration.id'
    )

    __mapper_args__ = {'version_id_col': version}

    @property
    def status_enum(self) -> TournamentStatus:
        return TournamentStatus.parse(self.status)

    @property
    def active_registrations(self):
        return [r for r in self.registrations if r.is_active]

    @property
    def current_registration_count(self) -> int:
        return len(self.active_registrations)

    @property
    def has_available_slots(self) -> bool:
        return self.max_participants is None or self.current_registration_count < self.max_participants

    def is_registration_open(self, today: date = None) -> bool:
        today = today or date.today()
        if self.status != TournamentStatus.REGISTRATION_OPEN.value:
            return False
        if self.registration_start_date and today < self.registration_start_date:
            return False
        if self.registration_end_date and today > self.registration_end_date:
            return False
        return True

    def has_active_registration(self, player_id: str) -> bool:
        return any(r.player_id == player_id for r in self.active_registrations)

    @property
    def duration_in_days(self) -> int:
        if self.start_date and self.end_date:
            return (self.end_date - self.start_date).days + 1
        return 0

    def to_dict(self, today: date = None):
        return {
            'tournament_id': self.tournament_id,
            'name': self.name,
            'description': self.description,
            'venue': self.venue,
            'status': self.status,
            'tournament_type': self.tournament_type,
            'age_category': self.age_category,
            'gender_category': self.gender_category,
            'is_featured': self.is_featured,
            'max_participants': self.max_participants,
            'entry_fee': _money(self.entry_fee),
            'prize_money': _money(self.prize_money),
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'registration_start_date': _iso(self.registration_start_date),
            'registration_end_date': _iso(self.registration_end_date),
            'current_registration_count': self.current_registration_count,
            'has_available_slots': self.has_available_slots,
            'is_registration_open': self.is_registration_open(today),
            'duration_in_days': self.duration_in_days,
            'allowed_actions': TournamentStateMachine.from_state_string(self.status).allowed_actions,
            'version': self.version,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Registration(db.Model):
    __tablename__ = 'tournament_registrations'

    id = db.Column(db.Integer, primary_key=True)
    registration_id = db.Column(db.String(50), unique=True, nullable=False, index=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=False, index=True)
    player_id = db.Column(db.String(50), nullable=False, index=True)  # external player reference
    registration_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    status = db.Column(db.String(20), nullable=False, default=RegistrationStatus.CONFIRMED.value, index=True)

    # Informational only; no payment is processed here
    payment_status = db.Column(db.String(20), nullable=False, default=PaymentStatus.UNPAID.value)
    payment_amount = db.Column(db.Numeric(10, 2), nullable=True)
    payment_reference = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    tournament = db.relationship('Tournament', back_populates='registrations')

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_REGISTRATION_STATUSES

    def to_dict(self, player_name: str = None):
        return {
            'registration_id': self.registration_id,
            'tournament_id': self.tournament.tournament_id if self.tournament else None,
            'tournament_name': self.tournament.name if self.tournament else None,
            'player_id': self.player_id,
            'player_name': player_name,
            'registration_date': _iso(self.registration_date),
            'status': self.status,
            'payment_status': self.payment_status,
            'payment_amount': _money(self.payment_amount),
            'payment_reference': self.payment_reference,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
