"""Question timer state machine.

Every game cycles through ``IDLE -> THINKING -> ANSWERING -> IDLE`` for each
question the host starts. The engine owns the countdown: one tick removes
exactly one second, and hitting zero moves the game to the next phase inside
the same tick. Socket handlers register a tick callback and a phase-change
callback per cycle and broadcast whatever the engine reports.
"""
import logging
from functools import wraps
from typing import NamedTuple, Optional

from trivia.enums import AnswerStatus, GamePhase, GameStatus
from .errors import InvalidPayload, NotFound, PreconditionFailed


logger = logging.getLogger(__name__)


class AnswerSubmission(NamedTuple):
    game_id: int
    participant_id: int
    question_id: int
    answer: str


def _noop_phase_change(phase):
    pass


def _label(status):
    return status.value if status is not None else 'unknown'


def _locked(method):
    """Run an engine method under the lock of the game it is called for."""
    @wraps(method)
    def wrapper(self, game_id, *args, **kwargs):
        with self._cache.game_lock(game_id):
            return method(self, game_id, *args, **kwargs)
    return wrapper


class GameEngine:
    def __init__(self, repository, cache, ticker, default_time_to_answer: int = 10):
        self._repository = repository
        self._cache = cache
        self._ticker = ticker
        self._default_time_to_answer = default_time_to_answer

    # ---- game status ----

    @_locked
    def start_game(self, game_id: int) -> GameStatus:
        status = self._cache.get_status(game_id)
        if status is None:
            raise NotFound('Game not found')
        if status == GameStatus.LIVE:
            logger.warning("[start-skip] game=%s already LIVE", game_id)
            return GameStatus.LIVE
        if status == GameStatus.FINISHED:
            logger.error("[start-denied] game=%s is FINISHED", game_id)
            raise PreconditionFailed('Cannot start a game that is already finished')

        try:
            self._repository.update_game_status(game_id, GameStatus.LIVE)
        except Exception:
            logger.exception("[start-failed] game=%s", game_id)
            raise
        self._cache.set_status(game_id, GameStatus.LIVE)
        logger.info("[start] game=%s is LIVE", game_id)
        return GameStatus.LIVE

    @_locked
    def finish_game(self, game_id: int) -> GameStatus:
        status = self._cache.get_status(game_id)
        if status is None:
            raise NotFound('Game not found')

        self._cache.reset_runtime(game_id)
        if status == GameStatus.FINISHED:
            return GameStatus.FINISHED

        try:
            self._repository.deactivate_questions(game_id)
            self._repository.update_game_status(game_id, GameStatus.FINISHED)
        except Exception:
            logger.exception("[finish-failed] game=%s", game_id)
            raise
        self._cache.set_status(game_id, GameStatus.FINISHED)
        self._cache.set_active_question_id(game_id, None)
        logger.info("[finish] game=%s is FINISHED", game_id)
        return GameStatus.FINISHED

    def validate_host(self, game_id: int, user_id: Optional[int]) -> bool:
        if user_id is None:
            return False
        game = self._repository.find_game_by_id(game_id)
        return game is not None and game.host_id == user_id

    # ---- question cycle ----

    @_locked
    def start_question_cycle(self, game_id: int, question_id: int, on_tick, on_phase_change) -> None:
        status = self._cache.get_status(game_id)
        if status != GameStatus.LIVE:
            raise PreconditionFailed(f'Cannot start question: game is in {_label(status)} status')

        settings = self._repository.get_question_settings(question_id)
        if settings is None or settings.game_id != game_id:
            raise PreconditionFailed('Question not found or does not belong to this game')

        self._cleanup_timer(game_id)

        try:
            self._repository.activate_question(game_id, question_id)
        except Exception:
            logger.exception("[cycle-failed] game=%s question=%s", game_id, question_id)
            raise
        self._cache.set_active_question_id(game_id, question_id)
        self._cache.set_callbacks(game_id, on_tick, on_phase_change)
        self._transition_to_phase(game_id, GamePhase.THINKING, settings.time_to_think)
        logger.info("[cycle] game=%s question=%s think=%ss", game_id, question_id, settings.time_to_think)

    @_locked
    def start_next_question(self, game_id: int, on_tick, on_phase_change=None) -> Optional[int]:
        """Start the question after the active one, in round/question order.

        Returns the new question id, or None when the game has no further
        question. Running out of questions is not an error.
        """
        ordered_ids = self._repository.get_ordered_question_ids(game_id)
        if not ordered_ids:
            logger.warning("[next] game=%s has no questions configured", game_id)
            return None

        current_id = self._cache.get_active_question_id(game_id)
        current_index = ordered_ids.index(current_id) if current_id in ordered_ids else -1
        if current_index + 1 >= len(ordered_ids):
            logger.info("[next] game=%s has no more questions after %s", game_id, current_id)
            return None

        next_id = ordered_ids[current_index + 1]
        self.start_question_cycle(game_id, next_id, on_tick, on_phase_change or _noop_phase_change)
        return next_id

    # ---- answers, judging, disputes ----

    def process_answer(self, submission: AnswerSubmission) -> Optional[dict]:
        status = self._cache.get_status(submission.game_id)
        if status != GameStatus.LIVE:
            logger.warning("[answer-rejected] game=%s status=%s", submission.game_id, _label(status))
            return None

        phase = self.get_phase(submission.game_id)
        active_id = self._cache.get_active_question_id(submission.game_id)
        is_late = phase == GamePhase.IDLE or active_id != submission.question_id
        if is_late:
            logger.info(
                "[answer-late] game=%s question=%s phase=%s active=%s",
                submission.game_id, submission.question_id, phase.value, active_id,
            )

        answer = self._repository.save_answer(
            submission.participant_id, submission.question_id, submission.answer, is_late=is_late,
        )
        data = answer.to_dict()
        data['is_late'] = is_late
        return data

    def judge_answer(self, game_id: int, answer_id: int, verdict, judge_id: Optional[int]):
        try:
            status = verdict if isinstance(verdict, AnswerStatus) else AnswerStatus(str(verdict).upper())
        except ValueError:
            raise InvalidPayload(f'Unknown verdict: {verdict}') from None
        if not self._repository.find_answer_in_game(game_id, answer_id):
            raise NotFound('Answer not found')

        self._repository.judge_answer(answer_id, status, judge_id)
        logger.info("[judge] game=%s answer=%s verdict=%s by=%s", game_id, answer_id, status.value, judge_id)
        return self._answer_with_leaderboard(game_id, answer_id)

    def raise_dispute(self, game_id: int, answer_id: int, comment: Optional[str]):
        settings = self._repository.get_game_settings(game_id)
        if settings is None:
            raise NotFound('Game not found')
        if not settings.get('can_appeal'):
            raise PreconditionFailed('Appeals are disabled for this game')
        if not self._repository.find_answer_in_game(game_id, answer_id):
            raise NotFound('Answer not found')

        self._repository.create_dispute(answer_id, comment or 'No comment provided')
        logger.info("[dispute] game=%s answer=%s", game_id, answer_id)
        return self._answer_with_leaderboard(game_id, answer_id)

    def _answer_with_leaderboard(self, game_id, answer_id):
        answer = self._repository.get_answer_by_id(answer_id)
        return answer.to_dict(), self._repository.get_leaderboard(game_id)

    # ---- timer controls ----

    @_locked
    def pause_timer(self, game_id: int) -> None:
        if self.get_phase(game_id) == GamePhase.IDLE:
            return
        self._stop_timer(game_id)
        self._notify_tick(game_id)
        logger.info("[pause] game=%s remaining=%ss", game_id, self._cache.get_remaining_seconds(game_id))

    @_locked
    def resume_timer(self, game_id: int) -> bool:
        if not self.is_paused(game_id):
            return False
        self._start_interval(game_id)
        logger.info("[resume] game=%s remaining=%ss", game_id, self._cache.get_remaining_seconds(game_id))
        return True

    def is_paused(self, game_id: int) -> bool:
        return self._cache.get_timer(game_id) is None and self.get_phase(game_id) != GamePhase.IDLE

    @_locked
    def adjust_time(self, game_id: int, delta: int) -> None:
        if self.get_phase(game_id) == GamePhase.IDLE:
            return

        seconds = self._cache.get_remaining_seconds(game_id) + int(delta)
        if seconds <= 0:
            # overflow below zero is dropped, the next phase starts at full length
            self._cache.set_remaining_seconds(game_id, 0)
            self._notify_tick(game_id)
            self._handle_phase_completion(game_id)
        else:
            self._cache.set_remaining_seconds(game_id, seconds)
            self._notify_tick(game_id)

    # ---- state ----

    def get_phase(self, game_id: int) -> GamePhase:
        return self._cache.get_phase(game_id)

    def get_game_state(self, game_id: int) -> dict:
        status = self._cache.get_status(game_id)
        return {
            'phase': self.get_phase(game_id).value,
            'seconds': self._cache.get_remaining_seconds(game_id),
            'activeQuestionId': self._cache.get_active_question_id(game_id),
            'isPaused': self.is_paused(game_id),
            'status': status.value if status is not None else None,
        }

    def join_game(self, game_id: int, team_id: int, socket_id: str) -> dict:
        status = self._cache.get_status(game_id)
        if status is None:
            raise NotFound('Game not found')
        if status == GameStatus.FINISHED:
            raise PreconditionFailed('Cannot join: game is already finished')

        participant = self._repository.team_join_game(game_id, team_id, socket_id)
        return {
            'state': self.get_game_state(game_id),
            'participant_id': participant.id,
            'participants': [p.to_dict() for p in self._repository.get_participants_by_game(game_id)],
        }

    def admin_sync(self, game_id: int) -> dict:
        return {
            'state': self.get_game_state(game_id),
            'answers': [a.to_dict() for a in self._repository.get_answers_by_game(game_id)],
            'participants': [p.to_dict() for p in self._repository.get_participants_by_game(game_id)],
        }

    def leave(self, socket_id: str):
        participant = self._repository.set_participant_disconnected(socket_id)
        if participant is not None:
            logger.info("[leave] game=%s participant=%s", participant.game_id, participant.id)
        return participant

    def shutdown(self) -> None:
        self._cache.shutdown()

    # ---- internals ----

    def _transition_to_phase(self, game_id: int, phase: GamePhase, seconds: int) -> None:
        self._cache.set_phase(game_id, phase)
        self._cache.set_remaining_seconds(game_id, seconds)
        logger.info("[phase] game=%s phase=%s seconds=%s", game_id, phase.value, seconds)
        self._notify_tick(game_id)
        self._start_interval(game_id)

    def _start_interval(self, game_id: int) -> None:
        if self._cache.get_timer(game_id) is not None:
            return
        handle = self._ticker.start(lambda fired: self._on_tick(game_id, fired))
        self._cache.set_timer(game_id, handle)

    @_locked
    def _on_tick(self, game_id: int, handle) -> None:
        # a tick that lost the race against pause or a new cycle
        if handle.cancelled or self._cache.get_timer(game_id) is not handle:
            return
        try:
            self._tick(game_id)
        except Exception:
            # the game reads as paused; the host can resume it
            logger.exception("[timer-error] game=%s", game_id)
            self._stop_timer(game_id)

    def _tick(self, game_id: int) -> None:
        seconds = self._cache.get_remaining_seconds(game_id)
        if seconds > 0:
            seconds -= 1
            self._cache.set_remaining_seconds(game_id, seconds)
            self._notify_tick(game_id)
        if seconds <= 0:
            self._handle_phase_completion(game_id)

    def _handle_phase_completion(self, game_id: int) -> None:
        self._stop_timer(game_id)
        phase = self.get_phase(game_id)

        if phase == GamePhase.THINKING:
            question_id = self._cache.get_active_question_id(game_id)
            settings = self._repository.get_question_settings(question_id) if question_id is not None else None
            seconds = settings.time_to_answer if settings else self._default_time_to_answer
            self._transition_to_phase(game_id, GamePhase.ANSWERING, seconds)
        elif phase == GamePhase.ANSWERING:
            self._cache.set_phase(game_id, GamePhase.IDLE)
            self._cache.set_remaining_seconds(game_id, 0)
            logger.info("[phase] game=%s phase=IDLE", game_id)
            self._notify_tick(game_id)
            on_phase_change = self._cache.get_phase_change_callback(game_id)
            if on_phase_change:
                on_phase_change(GamePhase.IDLE)
            self._cleanup_timer(game_id)

    def _notify_tick(self, game_id: int) -> None:
        on_tick = self._cache.get_tick_callback(game_id)
        if on_tick is None:
            return
        on_tick(
            game_id,
            self._cache.get_remaining_seconds(game_id),
            self.get_phase(game_id),
            self._cache.get_active_question_id(game_id),
        )

    def _stop_timer(self, game_id: int) -> None:
        if self._cache.get_timer(game_id) is not None:
            logger.debug("[timer-stop] game=%s", game_id)
        self._cache.clear_timer(game_id)

    def _cleanup_timer(self, game_id: int) -> None:
        self._stop_timer(game_id)
        self._cache.remove_callbacks(game_id)
