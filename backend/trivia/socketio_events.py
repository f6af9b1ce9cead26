from functools import wraps
from typing import Any, Dict

from flask import current_app, request
from flask_login import current_user
from flask_socketio import emit, join_room
from sqlalchemy.exc import SQLAlchemyError

from trivia import socketio, db
from trivia.enums import GamePhase
from trivia.services.games import AnswerSubmission
from trivia.services.games.errors import Forbidden, GameError, InvalidPayload, PreconditionFailed


NAMESPACE = '/game'

# socket id -> {'game_id', 'participant_id'} for players that joined a game
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def room(game_id: int) -> str:
    return f"game_{game_id}"


def admin_room(game_id: int) -> str:
    return f"game_{game_id}_admins"


def _engine():
    return current_app.extensions['game_engine']


def _repository():
    return current_app.extensions['game_repository']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _int_field(data, key):
    value = (data or {}).get(key)
    if value is None:
        raise InvalidPayload(f'{key} is required')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidPayload(f'{key} must be an integer') from None


def socket_handler(fn):
    """Report domain and persistence failures to the calling socket."""
    @wraps(fn)
    def wrapper(data=None):
        try:
            return fn(data or {})
        except GameError as exc:
            current_app.logger.info(f"[socket-error] event={fn.__name__} code={exc.code} message={exc.message}")
            emit('error', exc.to_dict())
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(f"[socket-error] event={fn.__name__} persistence failure")
            emit('error', {'code': 'INTERNAL_ERROR', 'message': 'Persistence failure, please retry'})
    return wrapper


def admin_only(fn):
    """Reject the event unless the logged-in user hosts the game in ``gameId``."""
    @wraps(fn)
    def wrapper(data):
        game_id = _int_field(data, 'gameId')
        user_id = current_user.id if current_user.is_authenticated else None
        if not _engine().validate_host(game_id, user_id):
            raise Forbidden('Forbidden: You are not the host of this game')
        return fn(game_id, data)
    return wrapper


def _player_ctx(game_id: int) -> Dict[str, Any]:
    ctx = _sid_to_ctx.get(_get_sid())
    if not ctx or ctx['game_id'] != game_id:
        raise PreconditionFailed('Join the game first')
    return ctx


# ---- engine callbacks (run from timer ticks as well as handlers) ----

def _broadcast_tick(game_id, seconds, phase, question_id):
    socketio.emit(
        'timer_update',
        {'seconds': seconds, 'phase': GamePhase(phase).value, 'activeQuestionId': question_id},
        to=room(game_id),
        namespace=NAMESPACE,
    )


def _phase_change_broadcaster(game_id):
    def on_phase_change(phase):
        current_app.logger.info(f"[phase-change] game={game_id} phase={GamePhase(phase).value}")
        if phase == GamePhase.IDLE:
            state = _engine().get_game_state(game_id)
            socketio.emit(
                'question_cycle_finished',
                {'activeQuestionId': state['activeQuestionId']},
                to=room(game_id),
                namespace=NAMESPACE,
            )
    return on_phase_change


def _publish_leaderboard(game_id, leaderboard):
    # Hidden leaderboards stay visible to hosts only
    settings = _repository().get_game_settings(game_id) or {}
    target = room(game_id) if settings.get('show_leaderboard', True) else admin_room(game_id)
    emit('leaderboard_update', leaderboard, to=target)


# ---- connection lifecycle ----

def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*args):
    sid = _get_sid()
    ctx = _sid_to_ctx.pop(sid, None)
    try:
        participant = _engine().leave(sid)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception(f"[disconnect] sid={sid} could not release participant")
        return
    current_app.logger.info(f"Client disconnected: {sid}")
    if participant is not None:
        game_id = ctx['game_id'] if ctx else participant.game_id
        participants = [p.to_dict() for p in _repository().get_participants_by_game(game_id)]
        socketio.emit('sync_state', {'participants': participants}, to=admin_room(game_id), namespace=NAMESPACE)


# ---- player events ----

@socket_handler
def handle_join_game(data):
    game_id = _int_field(data, 'gameId')
    team_id = _int_field(data, 'teamId')
    config = _engine().join_game(game_id, team_id, _get_sid())

    join_room(room(game_id))
    _sid_to_ctx[_get_sid()] = {'game_id': game_id, 'participant_id': config['participant_id']}
    emit('sync_state', {'state': config['state'], 'participantId': config['participant_id']})
    emit('sync_state', {'participants': config['participants']}, to=admin_room(game_id))
    current_app.logger.info(f"Client {_get_sid()} joined team {team_id} in game {game_id}")


@socket_handler
def handle_submit_answer(data):
    game_id = _int_field(data, 'gameId')
    ctx = _player_ctx(game_id)
    question_id = _int_field(data, 'questionId')
    text = str(data.get('answer') or '').strip()
    if not text:
        raise InvalidPayload('answer is required')

    result = _engine().process_answer(AnswerSubmission(
        game_id=game_id,
        participant_id=ctx['participant_id'],
        question_id=question_id,
        answer=text,
    ))
    if result is None:
        emit('answer_received', {'status': 'rejected', 'message': 'Game is not accepting answers'})
        return
    emit('answer_received', {'status': 'ok', 'answer_id': result['id'], 'is_late': result['is_late']})
    emit('admin:answer_update', result, to=admin_room(game_id))


@socket_handler
def handle_dispute(data):
    game_id = _int_field(data, 'gameId')
    _player_ctx(game_id)
    answer_id = _int_field(data, 'answerId')
    answer, leaderboard = _engine().raise_dispute(game_id, answer_id, data.get('comment'))

    emit('admin:answer_update', answer, to=admin_room(game_id))
    emit('admin:new_dispute', {'answerId': answer_id}, to=admin_room(game_id))
    _publish_leaderboard(game_id, leaderboard)


# ---- admin events ----

@socket_handler
@admin_only
def handle_admin_sync(game_id, data):
    join_room(admin_room(game_id))
    join_room(room(game_id))
    emit('sync_state', _engine().admin_sync(game_id))


@socket_handler
@admin_only
def handle_start_game(game_id, data):
    status = _engine().start_game(game_id)
    emit('game_status_changed', {'status': status.value}, to=room(game_id))


@socket_handler
@admin_only
def handle_start_question(game_id, data):
    question_id = _int_field(data, 'questionId')
    _engine().start_question_cycle(game_id, question_id, _broadcast_tick, _phase_change_broadcaster(game_id))


@socket_handler
@admin_only
def handle_next_question(game_id, data):
    next_id = _engine().start_next_question(game_id, _broadcast_tick, _phase_change_broadcaster(game_id))
    if next_id is None:
        emit('questions_exhausted', {'gameId': game_id}, to=room(game_id))


@socket_handler
@admin_only
def handle_judge_answer(game_id, data):
    answer_id = _int_field(data, 'answerId')
    verdict = data.get('verdict')
    if not verdict:
        raise InvalidPayload('verdict is required')
    answer, leaderboard = _engine().judge_answer(game_id, answer_id, verdict, current_user.id)

    emit('admin:answer_update', answer, to=admin_room(game_id))
    _publish_leaderboard(game_id, leaderboard)


@socket_handler
@admin_only
def handle_adjust_time(game_id, data):
    _engine().adjust_time(game_id, _int_field(data, 'delta'))


@socket_handler
@admin_only
def handle_pause_timer(game_id, data):
    _engine().pause_timer(game_id)
    emit('timer_paused', _engine().get_game_state(game_id), to=room(game_id))


@socket_handler
@admin_only
def handle_resume_timer(game_id, data):
    if _engine().resume_timer(game_id):
        emit('timer_resumed', _engine().get_game_state(game_id), to=room(game_id))


@socket_handler
@admin_only
def handle_finish_game(game_id, data):
    status = _engine().finish_game(game_id)
    emit('game_status_changed', {'status': status.value}, to=room(game_id))


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the '/game' namespace."""
    handlers = (
        ('connect', handle_connect),
        ('disconnect', handle_disconnect),
        ('join_game', handle_join_game),
        ('player:submit_answer', handle_submit_answer),
        ('player:dispute', handle_dispute),
        ('admin:sync', handle_admin_sync),
        ('admin:start_game', handle_start_game),
        ('admin:start_question', handle_start_question),
        ('admin:next_question', handle_next_question),
        ('admin:judge_answer', handle_judge_answer),
        ('admin:adjust_time', handle_adjust_time),
        ('admin:pause_timer', handle_pause_timer),
        ('admin:resume_timer', handle_resume_timer),
        ('admin:finish_game', handle_finish_game),
    )
    for event, handler in handlers:
        socketio.on_event(event, handler, namespace=NAMESPACE)
