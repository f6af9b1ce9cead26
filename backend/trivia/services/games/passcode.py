import random
import threading
from contextlib import contextmanager

from sqlalchemy import text

from trivia.enums import ACTIVE_GAME_STATUSES
from trivia.models import Game
from .errors import PasscodeUnavailable


PASSCODE_MIN = 1000
PASSCODE_MAX = 9999
PASSCODE_SPACE = PASSCODE_MAX - PASSCODE_MIN + 1

# Serializes allocation between threads of this process; the advisory lock
# below does the same between processes sharing a PostgreSQL database.
_allocation_lock = threading.Lock()


def generate_passcode() -> int:
    return random.randint(PASSCODE_MIN, PASSCODE_MAX)


@contextmanager
def passcode_allocation_lock(session, lock_key: int):
    """Hold the allocation lock until the caller commits its transaction.

    On PostgreSQL ``pg_advisory_xact_lock`` is released automatically at the
    end of the transaction, so the caller must commit (or roll back) inside
    the ``with`` block.
    """
    with _allocation_lock:
        if session.get_bind().dialect.name == 'postgresql':
            session.execute(text('SELECT pg_advisory_xact_lock(:key)'), {'key': lock_key})
        yield


def allocate_available_passcode(session, random_attempts: int = 64) -> int:
    """Pick a 4-digit passcode not held by any DRAFT or LIVE game.

    Passcodes of FINISHED games are free for reuse.
    """
    rows = session.query(Game.passcode).filter(
        Game.status.in_([s.value for s in ACTIVE_GAME_STATUSES])
    ).all()
    used = {row.passcode for row in rows}

    if len(used) >= PASSCODE_SPACE:
        raise PasscodeUnavailable('No passcodes available')

    for _ in range(random_attempts):
        candidate = generate_passcode()
        if candidate not in used:
            return candidate

    for candidate in range(PASSCODE_MIN, PASSCODE_MAX + 1):
        if candidate not in used:
            return candidate

    raise PasscodeUnavailable('No passcodes available')
