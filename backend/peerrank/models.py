from datetime import datetime, timezone
import random
import string

from flask_login import UserMixin

from peerrank import db

# Game status
WAITING = 'WAITING'
ACTIVE = 'ACTIVE'
COMPLETED = 'COMPLETED'
CANCELLED = 'CANCELLED'

# Participant status
JOINED = 'JOINED'
VOTED = 'VOTED'
ABSTAINED = 'ABSTAINED'

RANKS = ('A', 'B', 'C', 'D', 'F')

GAME_CODE_LENGTH = 6
GAME_CODE_ALPHABET = string.digits + string.ascii_uppercase
TITLE_MAX_LENGTH = 200


def utcnow() -> datetime:
    """Naive UTC timestamp; the store keeps timestamps without tz info."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() + 'Z' if value else None


class User(UserMixin, db.Model):
    """Local mirror of an identity-provider user."""
    __tablename__ = 'user'
    id = db.Column(db.String(128), primary_key=True)
    email = db.Column(db.String(255), nullable=True)
    name = db.Column(db.String(128), nullable=False, default='Anonymous User')
    image_url = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'image_url': self.image_url,
        }


def generate_game_code(length=GAME_CODE_LENGTH):
    """Generate a unique, short game code."""
    while True:
        code = ''.join(random.choices(GAME_CODE_ALPHABET, k=length))
        if not Game.query.filter_by(code=code).first():
            return code


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(GAME_CODE_LENGTH), unique=True, nullable=False, index=True)
    title = db.Column(db.String(TITLE_MAX_LENGTH), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=WAITING, index=True)
    time_limit = db.Column(db.Integer, nullable=False, default=30)  # minutes
    start_time = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True, index=True)
    host_id = db.Column(db.String(128), db.ForeignKey('user.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    host = db.relationship('User')
    participants = db.relationship(
        'Participant', back_populates='game', order_by='Participant.id', cascade='all, delete-orphan'
    )
    votes = db.relationship('Vote', back_populates='game', lazy='dynamic')

    def __init__(self, **kwargs):
        super(Game, self).__init__(**kwargs)
        if not self.code:
            self.code = generate_game_code()

    def participant_for(self, user_id):
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    def to_dict(self, include_participants=True):
        from peerrank.services.games.ranking import max_votes

        count = len(self.participants)
        data = {
            'id': self.id,
            'code': self.code,
            'title': self.title,
            'status': self.status,
            'time_limit': self.time_limit,
            'start_time': _iso(self.start_time),
            'end_time': _iso(self.end_time),
            'created_at': _iso(self.created_at),
            'host_id': self.host_id,
            'host': self.host.to_dict() if self.host else None,
            'participant_count': count,
            'max_votes': max_votes(count) if count else 0,
            'vote_count_total': self.votes.count(),
        }
        if include_participants:
            data['participants'] = [p.to_dict() for p in self.participants]
        return data


class Participant(db.Model):
    __tablename__ = 'participant'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    user_id = db.Column(db.String(128), db.ForeignKey('user.id'), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=JOINED)
    rank = db.Column(db.String(1), nullable=True)
    vote_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    game = db.relationship('Game', back_populates='participants')
    user = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('game_id', 'user_id', name='uq_participant_game_user'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'user_id': self.user_id,
            'status': self.status,
            'rank': self.rank,
            'vote_count': self.vote_count,
            'user': self.user.to_dict() if self.user else None,
        }


class Vote(db.Model):
    __tablename__ = 'vote'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    from_participant_id = db.Column(db.Integer, db.ForeignKey('participant.id'), nullable=False)
    to_participant_id = db.Column(db.Integer, db.ForeignKey('participant.id'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    game = db.relationship('Game', back_populates='votes')

    __table_args__ = (
        db.UniqueConstraint('game_id', 'from_participant_id', 'to_participant_id', name='uq_vote_game_from_to'),
        db.CheckConstraint('from_participant_id <> to_participant_id', name='ck_vote_no_self_vote'),
    )
