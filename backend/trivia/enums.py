from enum import Enum


class GamePhase(str, Enum):
    IDLE = 'IDLE'
    THINKING = 'THINKING'
    ANSWERING = 'ANSWERING'


class GameStatus(str, Enum):
    DRAFT = 'DRAFT'
    LIVE = 'LIVE'
    FINISHED = 'FINISHED'


class AnswerStatus(str, Enum):
    UNSET = 'UNSET'
    CORRECT = 'CORRECT'
    INCORRECT = 'INCORRECT'
    DISPUTABLE = 'DISPUTABLE'


class DisputeStatus(str, Enum):
    OPEN = 'OPEN'
    REVIEWING = 'REVIEWING'
    RESOLVED = 'RESOLVED'


# Games in these states hold on to their passcode
ACTIVE_GAME_STATUSES = (GameStatus.DRAFT, GameStatus.LIVE)
