"""Persistence collaborator for the game engine.

Wraps the Flask-SQLAlchemy models behind method-level calls so the engine
never builds queries itself. Every write commits its own transaction and
rolls back before re-raising on failure.
"""
from datetime import datetime
from typing import NamedTuple, Optional

from trivia import db
from trivia.enums import AnswerStatus, DisputeStatus, GameStatus
from trivia.models import (
    Answer,
    AnswerStatusHistory,
    Dispute,
    Game,
    GameParticipant,
    Question,
    Round,
    Team,
)
from .errors import NotFound
from .passcode import allocate_available_passcode, passcode_allocation_lock
from .scoring import compute_leaderboard


class QuestionSettings(NamedTuple):
    game_id: int
    time_to_think: int
    time_to_answer: int


class GameRepository:
    def __init__(self, passcode_attempts=64, passcode_lock_key=424242,
                 default_time_to_think=60, default_time_to_answer=10):
        self.passcode_attempts = passcode_attempts
        self.passcode_lock_key = passcode_lock_key
        self.default_time_to_think = default_time_to_think
        self.default_time_to_answer = default_time_to_answer

    # ---- games ----

    def find_game_by_id(self, game_id: int) -> Optional[Game]:
        return db.session.get(Game, game_id)

    def find_game_by_passcode(self, passcode: int) -> Optional[Game]:
        return (
            Game.query.filter(Game.passcode == passcode, Game.status != GameStatus.FINISHED.value)
            .order_by(Game.id.desc())
            .first()
        )

    def get_game_settings(self, game_id: int) -> Optional[dict]:
        game = self.find_game_by_id(game_id)
        return game.settings_dict() if game else None

    def update_game_status(self, game_id: int, status: GameStatus) -> Game:
        game = self.find_game_by_id(game_id)
        if not game:
            raise NotFound('Game not found')
        game.status = GameStatus(status).value
        game.modified_at = datetime.utcnow()
        self._commit(game)
        return game

    def create_game(self, host_id, name, date=None, settings=None, rounds=(), teams=()) -> Game:
        """Create a DRAFT game with a freshly allocated passcode.

        ``rounds`` is a list of ``{round_number, name, questions: [...]}``;
        questions fall back to the game's think/answer times. ``teams`` is a
        list of ``{name, team_code}``, each bound to the game as a participant.
        """
        settings = settings or {}
        with passcode_allocation_lock(db.session, self.passcode_lock_key):
            try:
                passcode = allocate_available_passcode(db.session, self.passcode_attempts)
                game = Game(
                    host_id=host_id,
                    name=name,
                    date=date,
                    passcode=passcode,
                    status=GameStatus.DRAFT.value,
                    time_to_think=self.default_time_to_think,
                    time_to_answer=self.default_time_to_answer,
                    modified_at=datetime.utcnow(),
                )
                for key, column in (
                    ('time_to_think_sec', 'time_to_think'),
                    ('time_to_answer_sec', 'time_to_answer'),
                    ('time_to_dispute_end_sec', 'time_to_dispute_end'),
                    ('show_leaderboard', 'show_leaderboard'),
                    ('show_questions', 'show_questions'),
                    ('show_answers', 'show_answer'),
                    ('can_appeal', 'can_appeal'),
                ):
                    if settings.get(key) is not None:
                        setattr(game, column, settings[key])
                db.session.add(game)
                db.session.flush()

                think = game.time_to_think
                answer = game.time_to_answer
                for r in rounds:
                    rnd = Round(game_id=game.id, round_number=r['round_number'], name=r.get('name'))
                    for q in r.get('questions', []):
                        rnd.questions.append(Question(
                            question_number=q['question_number'],
                            text=q['text'],
                            answer=q.get('answer'),
                            time_to_think=q.get('time_to_think_sec') or think,
                            time_to_answer=q.get('time_to_answer_sec') or answer,
                            is_active=False,
                        ))
                    db.session.add(rnd)

                for t in teams:
                    team = Team(name=t['name'], team_code=t.get('team_code'))
                    db.session.add(team)
                    db.session.flush()
                    db.session.add(GameParticipant(game_id=game.id, team_id=team.id, is_available=True))

                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        return game

    # ---- questions ----

    def get_question_settings(self, question_id: int) -> Optional[QuestionSettings]:
        row = (
            db.session.query(Round.game_id, Question.time_to_think, Question.time_to_answer)
            .join(Round, Question.round_id == Round.id)
            .filter(Question.id == question_id)
            .first()
        )
        if not row:
            return None
        return QuestionSettings(game_id=row.game_id, time_to_think=row.time_to_think,
                                time_to_answer=row.time_to_answer)

    def _game_questions(self, game_id: int):
        return Question.query.join(Round, Question.round_id == Round.id).filter(Round.game_id == game_id)

    def get_ordered_question_ids(self, game_id: int) -> list:
        rows = (
            self._game_questions(game_id)
            .order_by(Round.round_number, Question.question_number, Question.id)
            .with_entities(Question.id)
            .all()
        )
        return [row.id for row in rows]

    def find_active_question_id(self, game_id: int) -> Optional[int]:
        question = self._game_questions(game_id).filter(Question.is_active.is_(True)).first()
        return question.id if question else None

    def activate_question(self, game_id: int, question_id: int) -> None:
        """Mark one question active and every other question of the game inactive."""
        try:
            for question in self._game_questions(game_id).all():
                question.is_active = question.id == question_id
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    def deactivate_questions(self, game_id: int) -> None:
        try:
            for question in self._game_questions(game_id).filter(Question.is_active.is_(True)).all():
                question.is_active = False
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

    # ---- participants ----

    def get_participants_by_game(self, game_id: int) -> list:
        return GameParticipant.query.filter_by(game_id=game_id).order_by(GameParticipant.id).all()

    def team_join_game(self, game_id: int, team_id: int, socket_id: str) -> GameParticipant:
        participant = GameParticipant.query.filter_by(game_id=game_id, team_id=team_id).first()
        if not participant:
            raise NotFound('Team is not registered for this game')
        participant.socket_id = socket_id
        participant.is_connected = True
        participant.is_available = False
        self._commit(participant)
        return participant

    def set_participant_disconnected(self, socket_id: str) -> Optional[GameParticipant]:
        participant = GameParticipant.query.filter_by(socket_id=socket_id).first()
        if not participant:
            return None
        participant.socket_id = None
        participant.is_connected = False
        participant.is_available = True
        self._commit(participant)
        return participant

    # ---- answers ----

    def save_answer(self, participant_id: int, question_id: int, text: str, is_late: bool = False) -> Answer:
        answer = Answer(
            participant_id=participant_id,
            question_id=question_id,
            answer_text=text,
            submitted_at=datetime.utcnow(),
            status=AnswerStatus.UNSET.value,
            is_late=is_late,
        )
        db.session.add(answer)
        self._commit(answer)
        return answer

    def get_answer_by_id(self, answer_id: int) -> Optional[Answer]:
        return db.session.get(Answer, answer_id)

    def find_answer_in_game(self, game_id: int, answer_id: int) -> Optional[Answer]:
        return (
            Answer.query.join(GameParticipant, Answer.participant_id == GameParticipant.id)
            .filter(Answer.id == answer_id, GameParticipant.game_id == game_id)
            .first()
        )

    def get_answers_by_game(self, game_id: int) -> list:
        return (
            Answer.query.join(GameParticipant, Answer.participant_id == GameParticipant.id)
            .filter(GameParticipant.game_id == game_id)
            .order_by(Answer.submitted_at, Answer.id)
            .all()
        )

    def judge_answer(self, answer_id: int, status: AnswerStatus, judge_id: Optional[int]) -> Answer:
        """Set a new status, record the transition and close open disputes."""
        answer = self.get_answer_by_id(answer_id)
        if not answer:
            raise NotFound('Answer not found')
        new_status = AnswerStatus(status).value
        try:
            db.session.add(AnswerStatusHistory(
                answer_id=answer.id,
                old_status=answer.status,
                new_status=new_status,
                changed_by_id=judge_id,
            ))
            answer.status = new_status
            for dispute in answer.disputes:
                if dispute.status != DisputeStatus.RESOLVED.value:
                    dispute.status = DisputeStatus.RESOLVED.value
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return answer

    def create_dispute(self, answer_id: int, comment: str) -> Dispute:
        answer = self.get_answer_by_id(answer_id)
        if not answer:
            raise NotFound('Answer not found')
        try:
            answer.status = AnswerStatus.DISPUTABLE.value
            dispute = Dispute(answer_id=answer.id, status=DisputeStatus.OPEN.value, comment=comment)
            db.session.add(dispute)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return dispute

    def get_leaderboard(self, game_id: int) -> list:
        return compute_leaderboard(game_id)

    # ---- helpers ----

    def _commit(self, instance):
        try:
            db.session.add(instance)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
