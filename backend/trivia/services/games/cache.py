"""Volatile per-game runtime state.

Phase, remaining seconds and timer handles exist only in this process.
Status and the active question id are read through to the database on a
miss, so a restarted process picks up where durable state left off:

- ``get_status``: reads the game row when nothing is cached.
- ``get_active_question_id``: reads the active question when nothing is
  cached.
- every other getter is memory only and returns a default when unset.

The store is a plain object owned by the app factory. Replacing it with a
shared store (e.g. Redis) for several worker processes means reimplementing
this class only; the timer handles must stay local either way.

``game_lock`` hands out one re-entrant lock per game. The engine holds it
around every mutation so timer ticks running on a background thread never
interleave with host actions.
"""
import threading
from typing import Callable, Dict, Optional

from trivia.enums import GamePhase, GameStatus
from .timer import TimerHandle


TickCallback = Callable[[int, int, GamePhase, Optional[int]], None]
PhaseChangeCallback = Callable[[GamePhase], None]


class GameCache:
    def __init__(self, repository):
        self._repository = repository
        self._phases: Dict[int, GamePhase] = {}
        self._statuses: Dict[int, GameStatus] = {}
        self._remaining_seconds: Dict[int, int] = {}
        self._active_question_ids: Dict[int, int] = {}
        self._timers: Dict[int, TimerHandle] = {}
        self._tick_callbacks: Dict[int, TickCallback] = {}
        self._phase_change_callbacks: Dict[int, PhaseChangeCallback] = {}
        self._game_locks = {}  # game_id -> RLock
        self._locks_guard = threading.Lock()

    def game_lock(self, game_id: int):
        # Locks are never dropped: a waiter must not end up on a different lock
        with self._locks_guard:
            lock = self._game_locks.get(game_id)
            if lock is None:
                lock = self._game_locks[game_id] = threading.RLock()
            return lock

    def get_phase(self, game_id: int) -> GamePhase:
        return self._phases.get(game_id, GamePhase.IDLE)

    def set_phase(self, game_id: int, phase: GamePhase) -> None:
        self._phases[game_id] = GamePhase(phase)

    def get_status(self, game_id: int) -> Optional[GameStatus]:
        status = self._statuses.get(game_id)
        if status is None:
            game = self._repository.find_game_by_id(game_id)
            if game:
                status = GameStatus(game.status)
                self._statuses[game_id] = status
        return status

    def set_status(self, game_id: int, status: GameStatus) -> None:
        self._statuses[game_id] = GameStatus(status)

    def get_remaining_seconds(self, game_id: int) -> int:
        return self._remaining_seconds.get(game_id, 0)

    def set_remaining_seconds(self, game_id: int, seconds: int) -> None:
        self._remaining_seconds[game_id] = max(0, int(seconds))

    def get_active_question_id(self, game_id: int) -> Optional[int]:
        question_id = self._active_question_ids.get(game_id)
        if question_id is None:
            question_id = self._repository.find_active_question_id(game_id)
            if question_id is not None:
                self._active_question_ids[game_id] = question_id
        return question_id

    def set_active_question_id(self, game_id: int, question_id: Optional[int]) -> None:
        if question_id is None:
            self._active_question_ids.pop(game_id, None)
        else:
            self._active_question_ids[game_id] = question_id

    def get_timer(self, game_id: int) -> Optional[TimerHandle]:
        return self._timers.get(game_id)

    def set_timer(self, game_id: int, timer: TimerHandle) -> None:
        self._timers[game_id] = timer

    def clear_timer(self, game_id: int) -> None:
        timer = self._timers.pop(game_id, None)
        if timer is not None:
            timer.cancel()

    def set_callbacks(self, game_id: int, on_tick: TickCallback, on_phase_change: PhaseChangeCallback) -> None:
        self._tick_callbacks[game_id] = on_tick
        self._phase_change_callbacks[game_id] = on_phase_change

    def get_tick_callback(self, game_id: int) -> Optional[TickCallback]:
        return self._tick_callbacks.get(game_id)

    def get_phase_change_callback(self, game_id: int) -> Optional[PhaseChangeCallback]:
        return self._phase_change_callbacks.get(game_id)

    def remove_callbacks(self, game_id: int) -> None:
        self._tick_callbacks.pop(game_id, None)
        self._phase_change_callbacks.pop(game_id, None)

    def reset_runtime(self, game_id: int) -> None:
        """Drop the timer, callbacks and countdown of a game; status stays cached."""
        self.clear_timer(game_id)
        self.remove_callbacks(game_id)
        self._phases.pop(game_id, None)
        self._remaining_seconds.pop(game_id, None)

    def shutdown(self) -> None:
        for game_id in list(self._timers):
            self.clear_timer(game_id)
        self._phases.clear()
        self._statuses.clear()
        self._remaining_seconds.clear()
        self._active_question_ids.clear()
        self._tick_callbacks.clear()
        self._phase_change_callbacks.clear()
