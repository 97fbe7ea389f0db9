"""
Unit tests for TournamentRegistry.
Tests: create/get/list/update/delete, transition_status and its notifications,
       update_registration_status, generate_bracket
"""
import gc
from datetime import date, timedelta
from decimal import Decimal

import pytest

from backoffice.errors import InvalidStateError, NotFoundError, ValidationError
from backoffice.models import db, Registration, Tournament
from backoffice.notifier import NotificationDispatcher
from backoffice.tournament_registry import TournamentRegistry
from shared.events import EventType


def announced_types(notifier):
    return [c.args[0].type for c in notifier.announce.call_args_list]


def reread(tournament_id):
    """Drop the session so the next read only sees committed rows."""
    db.session.remove()
    return Tournament.query.filter_by(tournament_id=tournament_id).one()


class TestCreateTournament:
    """Tests for create_tournament."""

    def test_created_in_draft(self, registry):
        """New tournaments start in DRAFT with defaults."""
        tournament = registry.create_tournament("Summer Cup")

        assert tournament.status == "DRAFT"
        assert tournament.tournament_id.startswith("t_")
        assert tournament.entry_fee == Decimal('0.00')
        assert tournament.is_featured is False
        assert tournament.max_participants is None
        assert tournament.version == 1

    def test_all_fields(self, registry):
        """Editable fields are validated and stored."""
        tournament = registry.create_tournament(
            "Masters",
            description="Invitational",
            venue="Arena",
            start_date="2026-07-01",
            end_date="2026-07-03",
            max_participants=16,
            entry_fee="15.5",
            prize_money=1000,
            tournament_type="doubles",
            age_category="Senior",
            gender_category="Open",
            is_featured=True,
        )

        assert tournament.start_date == date(2026, 7, 1)
        assert tournament.entry_fee == Decimal('15.50')
        assert tournament.prize_money == Decimal('1000.00')
        assert tournament.tournament_type == "DOUBLES"
        assert tournament.duration_in_days == 3

    def test_announces_creation(self, registry, notifier):
        """Creation is broadcast as an event."""
        registry.create_tournament("Summer Cup")
        assert announced_types(notifier) == [EventType.TOURNAMENT_CREATED]

    def test_name_required(self, registry):
        """Blank names are rejected."""
        with pytest.raises(ValidationError):
            registry.create_tournament("   ")

    def test_name_too_long(self, registry):
        """Names over 200 characters are rejected."""
        with pytest.raises(ValidationError):
            registry.create_tournament("x" * 201)

    def test_start_after_end(self, registry):
        """start_date after end_date is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            registry.create_tournament("Cup", start_date="2026-07-05", end_date="2026-07-01")
        assert "Start date" in str(exc_info.value)

    def test_registration_window_reversed(self, registry):
        """registration_start_date after registration_end_date is rejected."""
        with pytest.raises(ValidationError):
            registry.create_tournament(
                "Cup", registration_start_date="2026-06-10", registration_end_date="2026-06-01"
            )

    @pytest.mark.parametrize("field,value", [
        ("max_participants", 0),
        ("max_participants", "many"),
        ("entry_fee", -1),
        ("tournament_type", "relay"),
        ("is_featured", "yes"),
        ("start_date", "01/07/2026"),
        ("status", "ONGOING"),
    ])
    def test_invalid_fields(self, registry, field, value):
        """Invalid or read-only fields are rejected."""
        with pytest.raises(ValidationError):
            registry.create_tournament("Cup", **{field: value})

    def test_nothing_persisted_on_validation_error(self, registry):
        """A rejected create leaves no row behind."""
        with pytest.raises(ValidationError):
            registry.create_tournament("Cup", entry_fee=-1)
        assert Tournament.query.count() == 0


class TestGetAndList:
    """Tests for get_tournament and the listing helpers."""

    def test_get_not_found(self, registry):
        """Unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            registry.get_tournament("t_unknown")

    def test_list_filter_by_status(self, registry):
        """Status filter is case-insensitive."""
        registry.create_tournament("A")
        b = registry.create_tournament("B")
        registry.transition_status(b.tournament_id, "ONGOING")

        result = registry.list_tournaments(status="ongoing")
        assert [t.name for t in result] == ["B"]

    def test_list_invalid_status(self, registry):
        """Unknown status filter is a validation error."""
        with pytest.raises(ValidationError):
            registry.list_tournaments(status="archived")

    def test_list_sort_and_page(self, registry):
        """Sorting by name ascending with limit and offset."""
        for name in ["Charlie", "Alpha", "Delta", "Bravo"]:
            registry.create_tournament(name)

        page = registry.list_tournaments(sort_by="name", sort_dir="asc", limit=2, offset=1)
        assert [t.name for t in page] == ["Bravo", "Charlie"]

    def test_list_rejects_unknown_sort(self, registry):
        """Only whitelisted columns can be sorted on."""
        with pytest.raises(ValidationError):
            registry.list_tournaments(sort_by="entry_fee; DROP TABLE")

    def test_list_limit_capped(self, registry):
        """limit is capped at max_page_size."""
        registry.max_page_size = 2
        for i in range(3):
            registry.create_tournament(f"T{i}")
        assert len(registry.list_tournaments(limit=100)) == 2

    def test_list_rejects_bad_paging(self, registry):
        """Non-positive limits and negative offsets are rejected."""
        with pytest.raises(ValidationError):
            registry.list_tournaments(limit=0)
        with pytest.raises(ValidationError):
            registry.list_tournaments(offset=-1)

    def test_phase_listings(self, registry):
        """Upcoming, ongoing, completed and featured listings."""
        draft = registry.create_tournament("Draft", start_date="2026-09-01")
        opened = registry.create_tournament("Open", start_date="2026-08-01", is_featured=True)
        running = registry.create_tournament("Running")
        done = registry.create_tournament("Done")
        registry.transition_status(opened.tournament_id, "REGISTRATION_OPEN")
        registry.transition_status(running.tournament_id, "ONGOING")
        registry.transition_status(done.tournament_id, "COMPLETED")

        assert [t.name for t in registry.list_upcoming()] == ["Open", "Draft"]
        assert [t.name for t in registry.list_ongoing()] == ["Running"]
        assert [t.name for t in registry.list_completed()] == ["Done"]
        assert [t.name for t in registry.list_featured()] == ["Open"]
        assert draft.tournament_id not in {t.tournament_id for t in registry.list_ongoing()}

    def test_date_range(self, registry):
        """Only tournaments fully inside the range are returned."""
        registry.create_tournament("Inside", start_date="2026-06-02", end_date="2026-06-04")
        registry.create_tournament("Overlapping", start_date="2026-05-30", end_date="2026-06-02")
        registry.create_tournament("Undated")

        result = registry.list_in_date_range("2026-06-01", "2026-06-30")
        assert [t.name for t in result] == ["Inside"]

    def test_date_range_validation(self, registry):
        """Missing or reversed bounds are rejected."""
        with pytest.raises(ValidationError):
            registry.list_in_date_range(None, "2026-06-30")
        with pytest.raises(ValidationError):
            registry.list_in_date_range("2026-07-01", "2026-06-30")


class TestUpdateAndDelete:
    """Tests for update_tournament and delete_tournament."""

    def test_partial_update(self, registry):
        """Only the given fields change."""
        tournament = registry.create_tournament("Cup", venue="Old Hall")
        updated = registry.update_tournament(tournament.tournament_id, venue="New Hall")

        assert updated.venue == "New Hall"
        assert updated.name == "Cup"
        assert updated.version == 2

    def test_update_validates_merged_dates(self, registry):
        """Date ranges are checked against the stored values."""
        tournament = registry.create_tournament("Cup", start_date="2026-07-01", end_date="2026-07-03")
        with pytest.raises(ValidationError):
            registry.update_tournament(tournament.tournament_id, end_date="2026-06-30")
        assert registry.get_tournament(tournament.tournament_id).end_date == date(2026, 7, 3)

    def test_update_cannot_change_status(self, registry):
        """Status is not an editable field."""
        tournament = registry.create_tournament("Cup")
        with pytest.raises(ValidationError):
            registry.update_tournament(tournament.tournament_id, status="ONGOING")

    def test_capacity_not_below_registrations(self, registry, open_tournament, players):
        """max_participants cannot drop below the active count."""
        for player_id in players[:3]:
            registry.register_player(open_tournament, player_id)

        with pytest.raises(ValidationError):
            registry.update_tournament(open_tournament, max_participants=2)
        assert registry.update_tournament(open_tournament, max_participants=3).max_participants == 3

    def test_update_not_found(self, registry):
        """Updating a missing tournament raises NotFoundError."""
        with pytest.raises(NotFoundError):
            registry.update_tournament("t_missing", venue="X")

    def test_delete_without_registrations(self, registry):
        """Tournaments nobody registered for can be deleted."""
        tournament = registry.create_tournament("Cup")
        registry.delete_tournament(tournament.tournament_id)
        assert Tournament.query.count() == 0

    def test_delete_refused_with_registrations(self, registry, open_tournament, players):
        """Delete is refused once a registration exists, even a cancelled one."""
        registration = registry.register_player(open_tournament, players[0])
        registry.update_registration_status(open_tournament, registration.registration_id, "CANCELLED")

        with pytest.raises(InvalidStateError) as exc_info:
            registry.delete_tournament(open_tournament)

        assert exc_info.value.code == "has_registrations"
        assert registry.get_tournament(open_tournament) is not None


class TestTransitionStatus:
    """Tests for transition_status."""

    def test_persists_new_status(self, registry):
        """The new status is stored."""
        tournament = registry.create_tournament("Cup")
        registry.transition_status(tournament.tournament_id, "REGISTRATION_OPEN")
        assert registry.get_tournament(tournament.tournament_id).status == "REGISTRATION_OPEN"

    def test_unknown_status(self, registry):
        """Unknown status values raise ValidationError."""
        tournament = registry.create_tournament("Cup")
        with pytest.raises(ValidationError):
            registry.transition_status(tournament.tournament_id, "ARCHIVED")

    def test_not_found(self, registry):
        """Missing tournaments raise NotFoundError."""
        with pytest.raises(NotFoundError):
            registry.transition_status("t_missing", "ONGOING")

    def test_permissive_skips_states(self, registry):
        """The default policy accepts DRAFT -> COMPLETED."""
        tournament = registry.create_tournament("Cup")
        result = registry.transition_status(tournament.tournament_id, "COMPLETED")
        assert result.status == "COMPLETED"

    def test_strict_rejects_skip(self, db_session, notifier):
        """The strict policy rejects DRAFT -> COMPLETED and keeps the status."""
        strict = TournamentRegistry(dispatcher=NotificationDispatcher(notifier), policy="strict")
        tournament = strict.create_tournament("Cup")

        with pytest.raises(InvalidStateError) as exc_info:
            strict.transition_status(tournament.tournament_id, "COMPLETED")

        assert exc_info.value.code == "invalid_transition"
        assert strict.get_tournament(tournament.tournament_id).status == "DRAFT"

    def test_strict_allows_forward_path(self, db_session, notifier):
        """The strict policy walks the full lifecycle."""
        strict = TournamentRegistry(dispatcher=NotificationDispatcher(notifier), policy="strict")
        tid = strict.create_tournament("Cup").tournament_id

        for status in ["REGISTRATION_OPEN", "REGISTRATION_CLOSED", "ONGOING", "COMPLETED"]:
            assert strict.transition_status(tid, status).status == status

    def test_unknown_policy(self, db_session):
        """Unknown policies are a configuration error."""
        with pytest.raises(ValueError):
            TournamentRegistry(policy="lenient")

    def test_open_broadcasts(self, registry, notifier):
        """Opening registration announces state change and the open broadcast."""
        tournament = registry.create_tournament("Cup")
        notifier.reset_mock()

        registry.transition_status(tournament.tournament_id, "REGISTRATION_OPEN")

        assert announced_types(notifier) == [EventType.STATE_CHANGED, EventType.REGISTRATION_OPENED]
        state_event = notifier.announce.call_args_list[0].args[0]
        assert state_event.data == {"from_state": "DRAFT", "to_state": "REGISTRATION_OPEN"}
        notifier.notify.assert_not_called()

    def test_ongoing_notifies_each_active_player(self, registry, notifier, open_tournament, players):
        """Exactly one starting notification per active registration."""
        registrations = [registry.register_player(open_tournament, p) for p in players[:4]]
        registry.update_registration_status(open_tournament, registrations[3].registration_id, "WITHDRAWN")
        notifier.reset_mock()

        registry.transition_status(open_tournament, "ONGOING")

        recipients = [c.args[0] for c in notifier.notify.call_args_list]
        assert sorted(recipients) == sorted(players[:3])
        assert all(c.args[1] == "Tournament Starting: Spring Open" for c in notifier.notify.call_args_list)

    def test_completed_notifies_each_active_player(self, registry, notifier, open_tournament, players):
        """Completion notifies every active player once."""
        for player_id in players[:2]:
            registry.register_player(open_tournament, player_id)
        notifier.reset_mock()

        registry.transition_status(open_tournament, "COMPLETED")

        assert notifier.notify.call_count == 2
        assert notifier.notify.call_args_list[0].args[1] == "Tournament Completed: Spring Open"

    def test_failing_recipient_does_not_block_others(self, registry, notifier, open_tournament, players):
        """One failing send neither stops the rest nor reverts the status."""
        for player_id in players[:4]:
            registry.register_player(open_tournament, player_id)
        notifier.reset_mock()

        def flaky(recipient_id, subject, body, tournament_id=None):
            if recipient_id == players[1]:
                raise ConnectionError("mailbox unavailable")

        notifier.notify.side_effect = flaky

        result = registry.transition_status(open_tournament, "ONGOING")

        assert notifier.notify.call_count == 4
        assert result.status == "ONGOING"
        assert registry.get_tournament(open_tournament).status == "ONGOING"

    def test_announce_failure_swallowed(self, registry, notifier):
        """Broadcast failures never fail the transition."""
        tournament = registry.create_tournament("Cup")
        notifier.announce.side_effect = RuntimeError("redis down")

        result = registry.transition_status(tournament.tournament_id, "REGISTRATION_OPEN")
        assert result.status == "REGISTRATION_OPEN"

    def test_same_status_is_noop(self, registry, notifier, open_tournament, players):
        """Re-applying the current status changes nothing and notifies nobody."""
        registry.register_player(open_tournament, players[0])
        registry.transition_status(open_tournament, "ONGOING")
        version = registry.get_tournament(open_tournament).version
        notifier.reset_mock()

        result = registry.transition_status(open_tournament, "ongoing")

        assert result.status == "ONGOING"
        assert registry.get_tournament(open_tournament).version == version
        notifier.notify.assert_not_called()
        notifier.announce.assert_not_called()


class TestRegistrationStatus:
    """Tests for list_registrations and update_registration_status."""

    def test_list_in_admission_order(self, registry, open_tournament, players):
        """Registrations are listed in the order they were admitted."""
        for player_id in [players[2], players[0], players[1]]:
            registry.register_player(open_tournament, player_id)

        listed = [r.player_id for r in registry.list_registrations(open_tournament)]
        assert listed == [players[2], players[0], players[1]]

    def test_list_not_found(self, registry):
        """Listing for a missing tournament raises NotFoundError."""
        with pytest.raises(NotFoundError):
            registry.list_registrations("t_missing")

    def test_cancel(self, registry, notifier, open_tournament, players):
        """Cancelling keeps the row but frees the slot."""
        registration = registry.register_player(open_tournament, players[0])
        notifier.reset_mock()

        updated = registry.update_registration_status(
            open_tournament, registration.registration_id, "cancelled"
        )

        assert updated.status == "CANCELLED"
        assert registry.get_tournament(open_tournament).current_registration_count == 0
        assert len(registry.list_registrations(open_tournament)) == 1
        assert announced_types(notifier) == [EventType.REGISTRATION_STATUS_CHANGED]

    def test_unknown_registration(self, registry, open_tournament):
        """Unknown registration ids raise NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            registry.update_registration_status(open_tournament, "r_missing", "CANCELLED")
        assert exc_info.value.code == "registration_not_found"

    def test_unknown_status(self, registry, open_tournament, players):
        """Unknown registration statuses raise ValidationError."""
        registration = registry.register_player(open_tournament, players[0])
        with pytest.raises(ValidationError):
            registry.update_registration_status(open_tournament, registration.registration_id, "PENDING")

    def test_waitlisted_counts_as_active(self, registry, open_tournament, players):
        """Waitlisted registrations still hold a slot."""
        registration = registry.register_player(open_tournament, players[0])
        registry.update_registration_status(open_tournament, registration.registration_id, "WAITLISTED")
        assert registry.get_tournament(open_tournament).current_registration_count == 1

    def test_reactivation_rejected_when_full(self, registry, open_tournament, players):
        """Re-activating a cancelled registration in a full tournament is rejected."""
        first = registry.register_player(open_tournament, players[0])
        registry.update_registration_status(open_tournament, first.registration_id, "CANCELLED")
        for player_id in players[1:5]:
            registry.register_player(open_tournament, player_id)

        with pytest.raises(InvalidStateError) as exc_info:
            registry.update_registration_status(open_tournament, first.registration_id, "CONFIRMED")

        assert exc_info.value.code == "tournament_full"
        assert registry.get_tournament(open_tournament).current_registration_count == 4

    def test_reactivation_rejected_when_duplicate(self, registry, open_tournament, players):
        """Re-activating is rejected if the player registered again meanwhile."""
        first = registry.register_player(open_tournament, players[0])
        registry.update_registration_status(open_tournament, first.registration_id, "WITHDRAWN")
        registry.register_player(open_tournament, players[0])

        with pytest.raises(InvalidStateError) as exc_info:
            registry.update_registration_status(open_tournament, first.registration_id, "CONFIRMED")
        assert exc_info.value.code == "already_registered"


class TestGenerateBracket:
    """Tests for generate_bracket through the registry."""

    def test_not_found(self, registry):
        """Missing tournaments raise NotFoundError."""
        with pytest.raises(NotFoundError):
            registry.generate_bracket("t_missing")

    def test_no_active_registrations(self, registry, open_tournament, players):
        """An empty active set raises InvalidStateError."""
        registration = registry.register_player(open_tournament, players[0])
        registry.update_registration_status(open_tournament, registration.registration_id, "CANCELLED")

        with pytest.raises(InvalidStateError) as exc_info:
            registry.generate_bracket(open_tournament)
        assert exc_info.value.code == "no_active_registrations"

    def test_two_players_single_final(self, registry, players):
        """Two confirmed players give one round with one match and no bye."""
        tid = registry.create_tournament("Duel", max_participants=2).tournament_id
        registry.transition_status(tid, "REGISTRATION_OPEN")
        registry.register_player(tid, players[0])
        registry.register_player(tid, players[1])

        bracket = registry.generate_bracket(tid)

        assert bracket.total_rounds == 1
        assert len(bracket.rounds) == 1
        assert len(bracket.first_round.matches) == 1
        assert not bracket.first_round.matches[0].is_walkover

    def test_five_players(self, db_session, notifier, make_players):
        """Five active registrations give three rounds and one walkover."""
        registry = TournamentRegistry(dispatcher=NotificationDispatcher(notifier))
        player_ids = make_players(5)
        tid = registry.create_tournament("Five").tournament_id
        registry.transition_status(tid, "REGISTRATION_OPEN")
        for player_id in player_ids:
            registry.register_player(tid, player_id)

        bracket = registry.generate_bracket(tid)

        assert bracket.total_rounds == 3
        assert len(bracket.first_round.matches) == 3
        assert sum(m.is_walkover for m in bracket.first_round.matches) == 1
        assert [r.round_name for r in bracket.rounds] == ["Quarter-Final", "Semi-Final", "Final"]

    def test_uses_player_names_and_active_set(self, registry, open_tournament, players):
        """Only active players are seeded, with their directory names."""
        registrations = [registry.register_player(open_tournament, p) for p in players[:3]]
        registry.update_registration_status(open_tournament, registrations[0].registration_id, "CANCELLED")

        bracket = registry.generate_bracket(open_tournament)

        seeded = [m.player1 for m in bracket.first_round.matches] + [
            m.player2 for m in bracket.first_round.matches if m.player2
        ]
        assert sorted(e.player_id for e in seeded) == sorted(players[1:3])
        assert all(e.player_name.startswith("Player ") for e in seeded)
        assert bracket.tournament_name == "Spring Open"

    def test_does_not_mutate_tournament(self, registry, notifier, open_tournament, players):
        """Generation reads only and announces the bracket."""
        registry.register_player(open_tournament, players[0])
        before = registry.get_tournament(open_tournament).version
        notifier.reset_mock()

        registry.generate_bracket(open_tournament)

        assert registry.get_tournament(open_tournament).version == before
        assert announced_types(notifier) == [EventType.BRACKET_GENERATED]
        event = notifier.announce.call_args.args[0]
        assert event.data == {"total_rounds": 1, "entrants": 1}


class TestTournamentStore:
    """Tests for the persistence port."""

    def test_exists(self, registry):
        """exists reflects stored tournaments."""
        tournament_id = registry.create_tournament("Cup").tournament_id
        assert registry.store.exists(tournament_id) is True
        assert registry.store.exists("t_missing") is False

    def test_player_lookup(self, registry, players):
        """player_exists and player_names read the player directory."""
        assert registry.store.player_exists(players[0]) is True
        assert registry.store.player_exists("ghost") is False
        assert registry.store.player_names([players[0], "ghost"]) == {players[0]: "Player 1"}
        assert registry.store.player_names([]) == {}

    def test_payload_uses_clock(self, registry, open_tournament, today):
        """is_registration_open in payloads follows the injected clock."""
        payload = registry.tournament_payload(registry.get_tournament(open_tournament))
        assert payload['is_registration_open'] is True

        registry.clock = lambda: today + timedelta(days=30)
        payload = registry.tournament_payload(registry.get_tournament(open_tournament))
        assert payload['is_registration_open'] is False

    def test_update_rolled_back_on_unexpected_error(self, registry):
        """A mutation failing with a non-domain error leaves nothing pending."""
        tournament_id = registry.create_tournament("Cup").tournament_id

        def explode(tournament):
            tournament.venue = "Half Written"
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            registry.store.update(tournament_id, explode)

        assert registry.store.has_pending_changes() is False
        assert reread(tournament_id).venue is None

    def test_lock_entries_released(self, registry):
        """A lock entry disappears once nobody holds it."""
        locks = registry.store.locks
        before = len(locks)

        with registry.store.lock("t_transient"):
            assert len(locks) == before + 1
        assert len(locks) == before

    def test_missing_tournament_leaves_no_lock(self, registry):
        """Lookups of unknown ids do not grow the lock map."""
        before = len(registry.store.locks)
        with pytest.raises(NotFoundError):
            registry.transition_status("t_missing", "ONGOING")
        gc.collect()
        assert len(registry.store.locks) == before


class TestCommittedWrites:
    """Writes must be committed, not just flushed into the open session."""

    def test_transition_committed(self, registry, mocker):
        """The new status survives dropping the session."""
        tournament_id = registry.create_tournament("Cup").tournament_id
        save = mocker.spy(registry.store, "save")

        registry.transition_status(tournament_id, "REGISTRATION_OPEN")

        assert save.call_count == 1
        assert reread(tournament_id).status == "REGISTRATION_OPEN"

    def test_transition_with_registrations_committed(self, registry, open_tournament, players):
        """Reading the recipients during the transition does not lose the status."""
        registry.register_player(open_tournament, players[0])

        registry.transition_status(open_tournament, "ONGOING")

        assert reread(open_tournament).status == "ONGOING"

    def test_same_status_does_not_save(self, registry, open_tournament, mocker):
        """Re-applying the current status never reaches save."""
        save = mocker.spy(registry.store, "save")
        registry.transition_status(open_tournament, "REGISTRATION_OPEN")
        assert save.call_count == 0

    def test_update_committed(self, registry):
        """Edited fields survive dropping the session."""
        tournament_id = registry.create_tournament("Cup").tournament_id

        registry.update_tournament(tournament_id, {"venue": "Hall B", "max_participants": 8})

        stored = reread(tournament_id)
        assert stored.venue == "Hall B"
        assert stored.max_participants == 8

    def test_update_with_registrations_committed(self, registry, open_tournament, players):
        """The capacity check reads registrations without losing the edit."""
        registry.register_player(open_tournament, players[0])

        registry.update_tournament(open_tournament, max_participants=2)

        assert reread(open_tournament).max_participants == 2

    def test_update_rejects_read_only_keys_from_payload(self, registry):
        """A payload echoing tournament_id is a validation error, not a crash."""
        tournament_id = registry.create_tournament("Cup").tournament_id

        with pytest.raises(ValidationError) as exc_info:
            registry.update_tournament(tournament_id, {"tournament_id": tournament_id, "venue": "X"})

        assert "tournament_id" in str(exc_info.value)
        assert reread(tournament_id).venue is None

    def test_registration_committed(self, registry, open_tournament, players):
        """An admitted registration survives dropping the session."""
        registration_id = registry.register_player(open_tournament, players[0]).registration_id

        db.session.remove()
        stored = Registration.query.filter_by(registration_id=registration_id).one()
        assert stored.status == "CONFIRMED"

    def test_registration_status_committed(self, registry, open_tournament, players):
        """A registration status change survives dropping the session."""
        registration_id = registry.register_player(open_tournament, players[0]).registration_id

        registry.update_registration_status(open_tournament, registration_id, "WITHDRAWN")

        db.session.remove()
        assert Registration.query.filter_by(registration_id=registration_id).one().status == "WITHDRAWN"
