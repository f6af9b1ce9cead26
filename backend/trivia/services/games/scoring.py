from sqlalchemy import func

from trivia import db
from trivia.enums import AnswerStatus
from trivia.models import Answer, GameParticipant


def rank_leaderboard(entries):
    """Order leaderboard rows by score, highest first.

    Equal scores keep a stable order by participant id (ascending).
    """
    return sorted(entries, key=lambda e: (-e['score'], e['participant_id']))


def compute_leaderboard(game_id: int) -> list:
    """Score every participant of a game.

    One point per answer judged CORRECT. Late answers count the same as
    on-time ones; the host decides whether to accept them when judging.
    """
    counts = dict(
        db.session.query(Answer.participant_id, func.count(Answer.id))
        .join(GameParticipant, Answer.participant_id == GameParticipant.id)
        .filter(GameParticipant.game_id == game_id, Answer.status == AnswerStatus.CORRECT.value)
        .group_by(Answer.participant_id)
        .all()
    )
    participants = GameParticipant.query.filter_by(game_id=game_id).order_by(GameParticipant.id).all()
    return rank_leaderboard([
        {
            'participant_id': p.id,
            'team_name': p.team.name if p.team else None,
            'score': counts.get(p.id, 0),
        }
        for p in participants
    ])
