"""Caller identity.

Authentication happens upstream; the auth layer forwards the verified user id
(and optional profile fields) as request headers. Each request upserts the
local ``User`` row so games can reference it.
"""

from sqlalchemy.exc import IntegrityError

from peerrank import db
from peerrank.errors import Unauthorized
from peerrank.models import User

USER_ID_HEADER = 'X-User-Id'
PROFILE_HEADERS = {
    'email': 'X-User-Email',
    'name': 'X-User-Name',
    'image_url': 'X-User-Image-Url',
}


def upsert_user(user_id: str, email=None, name=None, image_url=None) -> User:
    user = User.query.filter_by(id=user_id).first()
    if user is None:
        user = User(id=user_id, name=name or 'Anonymous User', email=email, image_url=image_url)
        db.session.add(user)
    else:
        changed = False
        for field, value in (('email', email), ('name', name), ('image_url', image_url)):
            if value and getattr(user, field) != value:
                setattr(user, field, value)
                changed = True
        if not changed:
            return user
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent first request for the same user already created it
        db.session.rollback()
        user = User.query.filter_by(id=user_id).first()
    return user


def load_user_from_request(request):
    user_id = (request.headers.get(USER_ID_HEADER) or '').strip()
    if not user_id:
        return None
    profile = {field: (request.headers.get(header) or '').strip() or None for field, header in PROFILE_HEADERS.items()}
    return upsert_user(user_id, **profile)


def unauthorized():
    raise Unauthorized()
