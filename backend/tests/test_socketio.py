import pytest

from trivia import db
from trivia.models import Game


NS = '/game'


def _events(sio_client, name):
    return [pkt['args'][0] if pkt['args'] else None
            for pkt in sio_client.get_received(NS) if pkt['name'] == name]


@pytest.fixture()
def game(make_game):
    return make_game()


@pytest.fixture()
def first_question(repository, game):
    return repository.get_ordered_question_ids(game.id)[0]


def _host_opens_game(host_sio, game):
    host_sio.emit('admin:sync', {'gameId': game.id}, namespace=NS)
    host_sio.emit('admin:start_game', {'gameId': game.id}, namespace=NS)
    host_sio.get_received(NS)


def _player_joins(player_sio, game):
    player_sio.get_received(NS)
    player_sio.emit('join_game', {'gameId': game.id, 'teamId': game.participants[0].team_id}, namespace=NS)
    synced = _events(player_sio, 'sync_state')
    assert synced, 'player did not receive sync_state'
    return synced[0]['participantId']


def test_socket_connects_to_game_namespace(player_sio):
    assert player_sio.is_connected(NS)
    received = player_sio.get_received(NS)
    assert any(pkt['name'] == 'connected' for pkt in received)


def test_admin_events_require_host(player_sio, game):
    player_sio.get_received(NS)
    player_sio.emit('admin:start_game', {'gameId': game.id}, namespace=NS)

    errors = _events(player_sio, 'error')
    assert errors and errors[0]['code'] == 'FORBIDDEN'
    assert db.session.get(Game, game.id).status == 'DRAFT'


def test_invalid_payload_is_reported(host_sio):
    host_sio.get_received(NS)
    host_sio.emit('admin:start_game', {'gameId': 'abc'}, namespace=NS)
    errors = _events(host_sio, 'error')
    assert errors[0]['code'] == 'VALIDATION_ERROR'


def test_host_starts_game(host_sio, game):
    host_sio.emit('admin:sync', {'gameId': game.id}, namespace=NS)
    synced = _events(host_sio, 'sync_state')
    assert synced[0]['state']['status'] == 'DRAFT'
    assert len(synced[0]['participants']) == 2

    host_sio.emit('admin:start_game', {'gameId': game.id}, namespace=NS)
    changed = _events(host_sio, 'game_status_changed')
    assert changed == [{'status': 'LIVE'}]


def test_timer_updates_are_broadcast(host_sio, ticker, game, first_question):
    _host_opens_game(host_sio, game)

    host_sio.emit('admin:start_question', {'gameId': game.id, 'questionId': first_question}, namespace=NS)
    updates = _events(host_sio, 'timer_update')
    assert updates[-1] == {'seconds': 60, 'phase': 'THINKING', 'activeQuestionId': first_question}

    ticker.advance(1)
    updates = _events(host_sio, 'timer_update')
    assert updates == [{'seconds': 59, 'phase': 'THINKING', 'activeQuestionId': first_question}]

    host_sio.emit('admin:pause_timer', {'gameId': game.id}, namespace=NS)
    paused = _events(host_sio, 'timer_paused')
    assert paused[0]['isPaused'] is True

    host_sio.emit('admin:adjust_time', {'gameId': game.id, 'delta': -100}, namespace=NS)
    updates = _events(host_sio, 'timer_update')
    assert updates[-1] == {'seconds': 10, 'phase': 'ANSWERING', 'activeQuestionId': first_question}

    ticker.advance(10)
    received = host_sio.get_received(NS)
    assert any(pkt['name'] == 'question_cycle_finished' for pkt in received)


def test_resume_is_broadcast_only_when_paused(host_sio, ticker, game, first_question):
    _host_opens_game(host_sio, game)
    host_sio.emit('admin:start_question', {'gameId': game.id, 'questionId': first_question}, namespace=NS)
    host_sio.get_received(NS)

    host_sio.emit('admin:resume_timer', {'gameId': game.id}, namespace=NS)
    assert _events(host_sio, 'timer_resumed') == []

    host_sio.emit('admin:pause_timer', {'gameId': game.id}, namespace=NS)
    host_sio.get_received(NS)
    host_sio.emit('admin:resume_timer', {'gameId': game.id}, namespace=NS)
    resumed = _events(host_sio, 'timer_resumed')
    assert len(resumed) == 1
    assert resumed[0]['isPaused'] is False
    assert len(ticker.active) == 1


def test_next_question_reports_cycle_end(host_sio, ticker, game, first_question):
    _host_opens_game(host_sio, game)
    host_sio.emit('admin:next_question', {'gameId': game.id}, namespace=NS)
    host_sio.get_received(NS)

    ticker.advance(70)

    assert _events(host_sio, 'question_cycle_finished') == [{'activeQuestionId': first_question}]


def test_next_question_until_exhausted(host_sio, game):
    _host_opens_game(host_sio, game)
    for _ in range(2):
        host_sio.emit('admin:next_question', {'gameId': game.id}, namespace=NS)
    host_sio.get_received(NS)

    host_sio.emit('admin:next_question', {'gameId': game.id}, namespace=NS)
    assert _events(host_sio, 'questions_exhausted') == [{'gameId': game.id}]


def test_player_joins_and_answers(host_sio, player_sio, game, first_question):
    _host_opens_game(host_sio, game)
    host_sio.emit('admin:start_question', {'gameId': game.id, 'questionId': first_question}, namespace=NS)
    host_sio.get_received(NS)

    participant_id = _player_joins(player_sio, game)
    roster = _events(host_sio, 'sync_state')
    joined = next(p for p in roster[0]['participants'] if p['id'] == participant_id)
    assert joined['is_connected'] is True

    player_sio.emit('player:submit_answer',
                    {'gameId': game.id, 'questionId': first_question, 'answer': ' Paris '}, namespace=NS)
    ack = _events(player_sio, 'answer_received')
    assert ack[0]['status'] == 'ok'
    assert ack[0]['is_late'] is False

    updates = _events(host_sio, 'admin:answer_update')
    assert updates[0]['participant_id'] == participant_id
    assert updates[0]['answer_text'] == 'Paris'

    host_sio.emit('admin:judge_answer',
                  {'gameId': game.id, 'answerId': ack[0]['answer_id'], 'verdict': 'CORRECT'}, namespace=NS)
    boards = _events(player_sio, 'leaderboard_update')
    assert boards[0][0] == {'participant_id': participant_id, 'team_name': 'Owls', 'score': 1}


def test_answer_before_joining_is_refused(player_sio, game, first_question):
    player_sio.get_received(NS)
    player_sio.emit('player:submit_answer',
                    {'gameId': game.id, 'questionId': first_question, 'answer': 'Paris'}, namespace=NS)
    errors = _events(player_sio, 'error')
    assert errors[0]['code'] == 'PRECONDITION_FAILED'


def test_answer_to_draft_game_is_rejected(player_sio, game, first_question):
    _player_joins(player_sio, game)
    player_sio.emit('player:submit_answer',
                    {'gameId': game.id, 'questionId': first_question, 'answer': 'Paris'}, namespace=NS)
    ack = _events(player_sio, 'answer_received')
    assert ack[0]['status'] == 'rejected'


def test_dispute_when_appeals_disabled(host_sio, player_sio, make_game, repository):
    game = make_game(can_appeal=False)
    question_id = repository.get_ordered_question_ids(game.id)[0]
    _host_opens_game(host_sio, game)
    _player_joins(player_sio, game)

    player_sio.emit('player:submit_answer',
                    {'gameId': game.id, 'questionId': question_id, 'answer': 'Paris'}, namespace=NS)
    answer_id = _events(player_sio, 'answer_received')[0]['answer_id']

    player_sio.emit('player:dispute', {'gameId': game.id, 'answerId': answer_id}, namespace=NS)
    errors = _events(player_sio, 'error')
    assert errors[0]['code'] == 'PRECONDITION_FAILED'


def test_dispute_notifies_host(host_sio, player_sio, game):
    _host_opens_game(host_sio, game)
    _player_joins(player_sio, game)
    question_id = game.rounds[0].questions[0].id

    player_sio.emit('player:submit_answer',
                    {'gameId': game.id, 'questionId': question_id, 'answer': 'Lyon'}, namespace=NS)
    answer_id = _events(player_sio, 'answer_received')[0]['answer_id']
    host_sio.get_received(NS)

    player_sio.emit('player:dispute',
                    {'gameId': game.id, 'answerId': answer_id, 'comment': 'Spelling'}, namespace=NS)
    received = host_sio.get_received(NS)
    names = [pkt['name'] for pkt in received]
    assert 'admin:new_dispute' in names
    assert 'leaderboard_update' in names


def test_disconnect_frees_the_team(host_sio, player_sio, game):
    _host_opens_game(host_sio, game)
    participant_id = _player_joins(player_sio, game)
    host_sio.get_received(NS)

    player_sio.disconnect(namespace=NS)

    roster = _events(host_sio, 'sync_state')
    left = next(p for p in roster[-1]['participants'] if p['id'] == participant_id)
    assert left['is_connected'] is False
    assert left['is_available'] is True


def test_finish_game_broadcasts_status(host_sio, player_sio, game):
    _host_opens_game(host_sio, game)
    _player_joins(player_sio, game)

    host_sio.emit('admin:finish_game', {'gameId': game.id}, namespace=NS)

    assert _events(player_sio, 'game_status_changed') == [{'status': 'FINISHED'}]
