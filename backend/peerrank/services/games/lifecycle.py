import threading
import weakref
from contextlib import contextmanager
from datetime import timedelta
from typing import Dict, Iterator, List, Optional

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from peerrank import db, socketio
from peerrank.errors import (
    AlreadyVoted,
    Conflict,
    DuplicateVote,
    Forbidden,
    InvalidState,
    InvalidTarget,
    NotFound,
    PreconditionFailed,
    SelfVote,
    TooManyVotes,
    ValidationError,
)
from peerrank.models import (
    ABSTAINED,
    ACTIVE,
    CANCELLED,
    COMPLETED,
    JOINED,
    VOTED,
    TITLE_MAX_LENGTH,
    WAITING,
    Game,
    Participant,
    Vote,
    utcnow,
)
from .ranking import max_votes, rank_participants


# One writer per game inside this process; the row lock covers other processes.
# Entries live only while some caller holds the lock.
_game_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
_registry_lock = threading.Lock()


def _lock_for(game_id: int) -> threading.Lock:
    with _registry_lock:
        lock = _game_locks.get(game_id)
        if lock is None:
            lock = threading.Lock()
            _game_locks[game_id] = lock
        return lock


@contextmanager
def locked_game(game_id: int) -> Iterator[Game]:
    """Load the game under its lock and commit (or roll back) on exit."""
    with _lock_for(game_id):
        game = (
            Game.query.filter_by(id=game_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not game:
            db.session.rollback()
            raise NotFound('Game not found')
        try:
            yield game
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            current_app.logger.warning(f"[conflict] game={game_id} {exc.orig}")
            raise Conflict('Conflicting update, please retry') from exc
        except Exception:
            db.session.rollback()
            raise


def broadcast_state(game: Game) -> None:
    socketio.emit(
        'state_update',
        {'game_code': game.code, 'game_id': game.id, 'status': game.status},
        to=f"game:{game.code}",
        namespace='/ws',
    )


def validate_time_limit(value) -> int:
    """Whole minutes, at least MIN_TIME_LIMIT_MIN; MAX_TIME_LIMIT_MIN caps it when set."""
    cfg = current_app.config
    low = int(cfg.get('MIN_TIME_LIMIT_MIN') or 1)
    high = int(cfg.get('MAX_TIME_LIMIT_MIN') or 0)
    if isinstance(value, bool) or not isinstance(value, int) or value < low:
        raise ValidationError(f'Time limit must be a whole number of at least {low} minute(s)')
    if high and value > high:
        raise ValidationError(f'Time limit must be at most {high} minutes')
    return value


def create_game(host_id: str, title, time_limit=None) -> Game:
    """Create a WAITING game with the host as its first participant."""
    if not isinstance(title, str) or not title.strip():
        raise ValidationError('Title is required')
    if len(title.strip()) > TITLE_MAX_LENGTH:
        raise ValidationError(f'Title must be at most {TITLE_MAX_LENGTH} characters')
    if time_limit is None:
        time_limit = int(current_app.config.get('DEFAULT_TIME_LIMIT_MIN', 30))
    time_limit = validate_time_limit(time_limit)

    game = Game(title=title.strip(), time_limit=time_limit, host_id=host_id, status=WAITING)
    game.participants.append(Participant(user_id=host_id, status=JOINED, vote_count=0))
    db.session.add(game)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict('Could not allocate a game code, please retry') from exc
    current_app.logger.info(f"[create] game={game.id} code={game.code} host={host_id} time_limit={time_limit}")
    return game


def join_game(user_id: str, code) -> Participant:
    if not isinstance(code, str) or not code.strip():
        raise ValidationError('Game code is required')
    found = Game.query.filter_by(code=code.strip().upper()).first()
    if not found:
        raise NotFound('Game not found')

    with locked_game(found.id) as game:
        if game.status in (COMPLETED, CANCELLED):
            raise InvalidState('This game has already ended')
        if game.participant_for(user_id):
            raise Conflict('You have already joined this game')
        participant = Participant(user_id=user_id, status=JOINED, vote_count=0)
        game.participants.append(participant)

    current_app.logger.info(f"[join] game={game.id} user={user_id} participant={participant.id}")
    broadcast_state(game)
    return participant


def get_game(game_id: int, user_id: str) -> Game:
    """Fetch a game visible to the caller (its host or one of its participants)."""
    game = Game.query.filter_by(id=game_id).first()
    if not game:
        raise NotFound('Game not found')
    if game.host_id != user_id and not game.participant_for(user_id):
        raise Forbidden('You are not a participant in this game')
    return game


def list_games(user_id: str) -> List[Game]:
    return (
        Game.query.outerjoin(Participant, Participant.game_id == Game.id)
        .filter(or_(Game.host_id == user_id, Participant.user_id == user_id))
        .distinct()
        .order_by(Game.created_at.desc(), Game.id.desc())
        .all()
    )


def start_game(game_id: int, user_id: str, time_limit=None, now=None) -> Game:
    """WAITING -> ACTIVE. Only the host may start, and only with enough players."""
    with locked_game(game_id) as game:
        if game.host_id != user_id:
            raise Forbidden('Only the host can start the game')
        if game.status != WAITING:
            raise InvalidState('Game has already started or ended')
        min_players = int(current_app.config.get('MIN_PLAYERS', 2))
        if len(game.participants) < min_players:
            raise PreconditionFailed(f'At least {min_players} participants are required to start the game')
        if time_limit is not None:
            game.time_limit = validate_time_limit(time_limit)

        started = now or utcnow()
        game.status = ACTIVE
        game.start_time = started
        game.end_time = started + timedelta(minutes=game.time_limit)

    current_app.logger.info(
        f"[start] game={game.id} participants={len(game.participants)} end_time={game.end_time.isoformat()}"
    )
    broadcast_state(game)
    return game


def _normalize_targets(target_ids) -> List[int]:
    if not isinstance(target_ids, list) or not target_ids:
        raise ValidationError('Votes are required')
    if any(isinstance(t, bool) or not isinstance(t, int) for t in target_ids):
        raise ValidationError('Vote targets must be participant ids')
    return target_ids


def cast_vote(game_id: int, user_id: str, target_ids) -> Game:
    """Record a voter's whole batch of votes, or nothing at all."""
    targets = _normalize_targets(target_ids)
    with locked_game(game_id) as game:
        if game.status != ACTIVE:
            raise InvalidState('Game is not active')
        voter = game.participant_for(user_id)
        if not voter:
            raise Forbidden('You are not a participant in this game')
        if voter.status != JOINED:
            raise AlreadyVoted()

        allowed = max_votes(len(game.participants))
        if len(targets) > allowed:
            raise TooManyVotes(
                f"You can only vote for up to {allowed} participant{'' if allowed == 1 else 's'} "
                f"(20% of total participants)"
            )
        if len(set(targets)) != len(targets):
            raise DuplicateVote()
        if voter.id in targets:
            raise SelfVote()
        by_id = {p.id: p for p in game.participants}
        if any(t not in by_id for t in targets):
            raise InvalidTarget()

        recorded = {
            v.to_participant_id
            for v in Vote.query.filter_by(game_id=game.id, from_participant_id=voter.id).all()
        }
        new_targets = [t for t in targets if t not in recorded]
        for target_id in new_targets:
            db.session.add(Vote(game_id=game.id, from_participant_id=voter.id, to_participant_id=target_id))
            by_id[target_id].vote_count = Participant.vote_count + 1
        voter.status = VOTED

    current_app.logger.info(
        f"[vote] game={game.id} voter={voter.id} targets={new_targets} skipped={len(targets) - len(new_targets)}"
    )
    broadcast_state(game)
    return game


def skip_vote(game_id: int, user_id: str) -> Game:
    """Abstain: the voter finishes the round without casting any vote."""
    with locked_game(game_id) as game:
        if game.status != ACTIVE:
            raise InvalidState('Game is not active')
        voter = game.participant_for(user_id)
        if not voter:
            raise Forbidden('You are not a participant in this game')
        if voter.status != JOINED:
            raise AlreadyVoted()
        voter.status = ABSTAINED

    current_app.logger.info(f"[skip] game={game.id} voter={voter.id}")
    broadcast_state(game)
    return game


def _finalize(game: Game, now) -> Dict[int, str]:
    for p in game.participants:
        if p.status == JOINED:
            p.status = ABSTAINED
    ranks = rank_participants(list(game.participants))
    game.status = COMPLETED
    game.end_time = now
    return ranks


def complete_game(game_id: int, user_id: Optional[str] = None, now=None) -> Game:
    """ACTIVE -> COMPLETED with final ranks.

    ``user_id`` is the requesting host; the expiry sweep passes None.
    """
    with locked_game(game_id) as game:
        if user_id is not None and game.host_id != user_id:
            raise Forbidden('Only the host can complete the game')
        if game.status != ACTIVE:
            raise InvalidState('Game is not active')
        ranks = _finalize(game, now or utcnow())

    current_app.logger.info(f"[complete] game={game.id} by={user_id or 'sweep'} ranks={ranks}")
    broadcast_state(game)
    return game


def cancel_game(game_id: int, user_id: str) -> Game:
    with locked_game(game_id) as game:
        if game.host_id != user_id:
            raise Forbidden('Only the host can cancel the game')
        if game.status != WAITING:
            raise InvalidState('Only a game that has not started can be cancelled')
        game.status = CANCELLED

    current_app.logger.info(f"[cancel] game={game.id}")
    broadcast_state(game)
    return game


def sweep_expired_games(now=None) -> List[Game]:
    """Complete every ACTIVE game whose voting window has closed.

    Safe to run repeatedly: finished games are never selected again, and a
    game completed by someone else after selection is skipped.
    """
    now = now or utcnow()
    expired_ids = [
        gid for (gid,) in db.session.query(Game.id)
        .filter(Game.status == ACTIVE, Game.end_time <= now)
        .order_by(Game.id)
        .all()
    ]
    completed = []
    for gid in expired_ids:
        with locked_game(gid) as game:
            if game.status != ACTIVE:
                continue
            ranks = _finalize(game, now)
        current_app.logger.info(f"[complete] game={game.id} by=sweep ranks={ranks}")
        completed.append(game)

    current_app.logger.info(f"[sweep] expired={len(expired_ids)} completed={len(completed)}")
    for game in completed:
        broadcast_state(game)
    return completed
