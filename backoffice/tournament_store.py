"""
Persistence port for the Tournament aggregate.

A tournament and its registrations are loaded and saved as one unit. Writers
serialize per tournament through TournamentLocks inside one process, and the
row's version column catches writers in other processes.
"""
import logging
import threading
import weakref
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from sqlalchemy.orm.exc import StaleDataError

from .errors import ConcurrentWriteError, ConflictError, NotFoundError
from .models import db, Player, Tournament

logger = logging.getLogger(__name__)


class TournamentLocks:
    """
    One lock per tournament id; different tournaments never contend.

    An entry lives only while some caller holds its lock object.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, tournament_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(tournament_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[tournament_id] = lock
            return lock

    @contextmanager
    def hold(self, tournament_id: str) -> Iterator[None]:
        lock = self.get(tournament_id)
        with lock:
            yield


class TournamentStore:
    def __init__(self, locks: TournamentLocks = None):
        self.locks = locks if locks is not None else TournamentLocks()

    def lock(self, tournament_id: str):
        return self.locks.hold(tournament_id)

    def find(self, tournament_id: str) -> Optional[Tournament]:
        """Load the current committed state of a tournament, or None."""
        return (
            Tournament.query
            .filter_by(tournament_id=tournament_id)
            .populate_existing()
            .first()
        )

    def load(self, tournament_id: str, fresh: bool = False) -> Tournament:
        if fresh:
            db.session.expire_all()
        tournament = self.find(tournament_id)
        if tournament is None:
            raise NotFoundError(f"Tournament not found with ID: {tournament_id}", code="tournament_not_found")
        return tournament

    def exists(self, tournament_id: str) -> bool:
        return db.session.query(
            Tournament.query.filter_by(tournament_id=tournament_id).exists()
        ).scalar()

    def add(self, tournament: Tournament) -> Tournament:
        db.session.add(tournament)
        db.session.commit()
        return tournament

    def save(self, tournament: Tournament) -> Tournament:
        """
        Commit the aggregate.

        The row is always touched so its version moves even when only the
        registration collection changed; a concurrent save in between makes
        the UPDATE match no row and raises ConcurrentWriteError.
        """
        tournament_id = tournament.tournament_id
        tournament.updated_at = datetime.utcnow()
        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            logger.warning(f"Stale write detected for tournament {tournament_id}")
            raise ConcurrentWriteError(tournament_id)
        return tournament

    def update(
        self,
        tournament_id: str,
        mutate: Callable[[Tournament], Any],
        max_retries: int = 3,
    ) -> Tuple[Tournament, Any]:
        """
        Run load, mutate and save as one step under the tournament's lock.

        mutate runs with autoflush off, so lazy loads inside it cannot flush
        its changes early and hide them from the pending check below. If
        mutate raises, the session is rolled back and the error propagates.
        If it leaves the session clean nothing is written. A stale save reruns
        the whole sequence up to max_retries times before ConflictError.
        """
        for attempt in range(1, max(1, max_retries) + 1):
            with self.lock(tournament_id):
                try:
                    tournament = self.load(tournament_id, fresh=True)
                    with db.session.no_autoflush:
                        result = mutate(tournament)
                    if self.has_pending_changes():
                        self.save(tournament)
                    return tournament, result
                except ConcurrentWriteError:
                    logger.warning(
                        f"Retrying write to tournament {tournament_id} "
                        f"(attempt {attempt}/{max_retries})"
                    )
                except Exception:
                    self.discard()
                    raise

        raise ConflictError(
            f"Tournament {tournament_id} is being modified concurrently, please retry",
            code="concurrent_modification"
        )

    def has_pending_changes(self) -> bool:
        session = db.session
        return bool(session.new or session.dirty or session.deleted)

    def delete(self, tournament: Tournament):
        db.session.delete(tournament)
        db.session.commit()

    def discard(self):
        """Drop any uncommitted change to the aggregate."""
        db.session.rollback()

    def player_exists(self, player_id: str) -> bool:
        return db.session.query(
            Player.query.filter_by(player_id=player_id).exists()
        ).scalar()

    def player_names(self, player_ids) -> Dict[str, str]:
        player_ids = list(set(player_ids))
        if not player_ids:
            return {}
        players = Player.query.filter(Player.player_id.in_(player_ids)).all()
        return {p.player_id: p.name for p in players}
