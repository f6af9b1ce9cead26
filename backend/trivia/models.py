from datetime import datetime

from flask_login import UserMixin

from trivia import db, bcrypt
from trivia.enums import AnswerStatus, DisputeStatus, GameStatus


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    games = db.relationship('Game', back_populates='host', lazy='dynamic')

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
        }


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    date = db.Column(db.DateTime, nullable=True)
    passcode = db.Column(db.Integer, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=GameStatus.DRAFT.value)  # DRAFT, LIVE, FINISHED
    # Defaults applied to new questions
    time_to_think = db.Column(db.Integer, nullable=False, default=60)
    time_to_answer = db.Column(db.Integer, nullable=False, default=10)
    time_to_dispute_end = db.Column(db.Integer, nullable=True)  # seconds
    show_leaderboard = db.Column(db.Boolean, nullable=False, default=True)
    show_questions = db.Column(db.Boolean, nullable=False, default=True)
    show_answer = db.Column(db.Boolean, nullable=False, default=False)
    can_appeal = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    modified_at = db.Column(db.DateTime, nullable=True)

    host = db.relationship('User', back_populates='games')
    rounds = db.relationship('Round', back_populates='game', order_by='Round.round_number',
                             cascade='all, delete-orphan')
    participants = db.relationship('GameParticipant', back_populates='game', order_by='GameParticipant.id',
                                   cascade='all, delete-orphan')

    def settings_dict(self):
        return {
            'time_to_think_sec': self.time_to_think,
            'time_to_answer_sec': self.time_to_answer,
            'time_to_dispute_end_sec': self.time_to_dispute_end,
            'show_leaderboard': self.show_leaderboard,
            'show_questions': self.show_questions,
            'show_answers': self.show_answer,
            'can_appeal': self.can_appeal,
        }

    def to_dict(self, include_rounds=False):
        data = {
            'id': self.id,
            'host_id': self.host_id,
            'name': self.name,
            'date': _iso(self.date),
            'passcode': self.passcode,
            'status': self.status,
            'settings': self.settings_dict(),
            'teams': [p.to_dict() for p in self.participants],
        }
        if include_rounds:
            data['rounds'] = [r.to_dict() for r in self.rounds]
        return data


class Round(db.Model):
    __tablename__ = 'round'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(255), nullable=True)

    game = db.relationship('Game', back_populates='rounds')
    questions = db.relationship('Question', back_populates='round', order_by='Question.question_number',
                                cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'round_number': self.round_number,
            'name': self.name,
            'questions': [q.to_dict() for q in self.questions],
        }


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    question_number = db.Column(db.Integer, nullable=False)
    text = db.Column(db.Text, nullable=False)
    answer = db.Column(db.Text, nullable=True)
    time_to_think = db.Column(db.Integer, nullable=False, default=60)
    time_to_answer = db.Column(db.Integer, nullable=False, default=10)
    is_active = db.Column(db.Boolean, nullable=False, default=False)

    round = db.relationship('Round', back_populates='questions')

    def to_dict(self):
        return {
            'id': self.id,
            'question_number': self.question_number,
            'text': self.text,
            'answer': self.answer,
            'time_to_think_sec': self.time_to_think,
            'time_to_answer_sec': self.time_to_answer,
            'is_active': self.is_active,
        }


class Team(db.Model):
    __tablename__ = 'team'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    team_code = db.Column(db.String(32), nullable=True)


class GameParticipant(db.Model):
    __tablename__ = 'game_participant'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    team_id = db.Column(db.Integer, db.ForeignKey('team.id'), nullable=False)
    socket_id = db.Column(db.String(64), nullable=True, index=True)
    is_connected = db.Column(db.Boolean, nullable=False, default=False)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    game = db.relationship('Game', back_populates='participants')
    team = db.relationship('Team')

    def to_dict(self):
        return {
            'id': self.id,
            'team_id': self.team_id,
            'game_id': self.game_id,
            'team_name': self.team.name if self.team else None,
            'socket_id': self.socket_id,
            'is_connected': self.is_connected,
            'is_available': self.is_available,
        }


class Answer(db.Model):
    __tablename__ = 'answer'
    id = db.Column(db.Integer, primary_key=True)
    participant_id = db.Column(db.Integer, db.ForeignKey('game_participant.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False, index=True)
    answer_text = db.Column(db.Text, nullable=False)
    submitted_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    status = db.Column(db.String(16), nullable=False, default=AnswerStatus.UNSET.value)
    # Submitted outside the active question's window; kept for scoring review
    is_late = db.Column(db.Boolean, nullable=False, default=False)

    participant = db.relationship('GameParticipant')
    question = db.relationship('Question')
    disputes = db.relationship('Dispute', back_populates='answer', order_by='Dispute.id')

    def to_dict(self):
        return {
            'id': self.id,
            'question_id': self.question_id,
            'participant_id': self.participant_id,
            'team_name': self.participant.team.name if self.participant and self.participant.team else None,
            'answer_text': self.answer_text,
            'status': self.status,
            'is_late': self.is_late,
            'submitted_at': _iso(self.submitted_at),
        }


class AnswerStatusHistory(db.Model):
    __tablename__ = 'answer_status_history'
    id = db.Column(db.Integer, primary_key=True)
    answer_id = db.Column(db.Integer, db.ForeignKey('answer.id'), nullable=False, index=True)
    old_status = db.Column(db.String(16), nullable=False)
    new_status = db.Column(db.String(16), nullable=False)
    changed_by_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    changed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)


class Dispute(db.Model):
    __tablename__ = 'dispute'
    id = db.Column(db.Integer, primary_key=True)
    answer_id = db.Column(db.Integer, db.ForeignKey('answer.id'), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=DisputeStatus.OPEN.value)
    comment = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    answer = db.relationship('Answer', back_populates='disputes')

    def to_dict(self):
        return {
            'id': self.id,
            'answer_id': self.answer_id,
            'status': self.status,
            'comment': self.comment,
            'created_at': _iso(self.created_at),
        }
