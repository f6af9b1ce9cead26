import threading

import pytest

from trivia import create_app, db
from trivia.enums import GameStatus
from trivia.models import Game
from trivia.services.games import passcode
from trivia.services.games.errors import PasscodeUnavailable

import conftest


def test_passcode_is_four_digits(repository, host):
    game = repository.create_game(host_id=host.id, name='Quiz')
    assert 1000 <= game.passcode <= 9999
    assert game.status == GameStatus.DRAFT.value


def test_scan_after_random_collisions(monkeypatch, repository, host):
    monkeypatch.setattr(passcode, 'generate_passcode', lambda: 1000)

    codes = [repository.create_game(host_id=host.id, name=f'Quiz {i}').passcode for i in range(4)]

    assert codes == [1000, 1001, 1002, 1003]


def test_finished_game_frees_its_passcode(monkeypatch, repository, host):
    monkeypatch.setattr(passcode, 'generate_passcode', lambda: 1000)
    first = repository.create_game(host_id=host.id, name='Quiz 1')
    repository.update_game_status(first.id, GameStatus.FINISHED)

    second = repository.create_game(host_id=host.id, name='Quiz 2')

    assert second.passcode == first.passcode == 1000
    assert repository.find_game_by_passcode(1000).id == second.id


def test_live_game_keeps_its_passcode(monkeypatch, repository, host):
    monkeypatch.setattr(passcode, 'generate_passcode', lambda: 1000)
    first = repository.create_game(host_id=host.id, name='Quiz 1')
    repository.update_game_status(first.id, GameStatus.LIVE)

    assert repository.create_game(host_id=host.id, name='Quiz 2').passcode == 1001


def test_finished_game_is_not_found_by_passcode(repository, host):
    game = repository.create_game(host_id=host.id, name='Quiz')
    repository.update_game_status(game.id, GameStatus.FINISHED)
    assert repository.find_game_by_passcode(game.passcode) is None


def test_exhausted_passcode_space(monkeypatch, repository, host):
    monkeypatch.setattr(passcode, 'PASSCODE_MIN', 1000)
    monkeypatch.setattr(passcode, 'PASSCODE_MAX', 1001)
    monkeypatch.setattr(passcode, 'PASSCODE_SPACE', 2)
    repository.create_game(host_id=host.id, name='Quiz 1')
    repository.create_game(host_id=host.id, name='Quiz 2')

    with pytest.raises(PasscodeUnavailable) as exc:
        repository.create_game(host_id=host.id, name='Quiz 3')
    assert exc.value.code == 'CONFLICT'
    assert Game.query.count() == 2


def test_concurrent_creation_gets_distinct_passcodes(tmp_path, monkeypatch):
    monkeypatch.setattr(passcode, 'generate_passcode', lambda: 1000)

    class FileConfig(conftest.TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'passcodes.db'}"

    app = create_app(FileConfig, ticker=conftest.ManualTicker())
    repository = app.extensions['game_repository']
    with app.app_context():
        db.create_all()
        host_id = conftest.make_user('host@example.com').id

    codes, errors = [], []

    def create(i):
        with app.app_context():
            try:
                codes.append(repository.create_game(host_id=host_id, name=f'Quiz {i}').passcode)
            except Exception as exc:
                errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=create, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert sorted(codes) == list(range(1000, 1008))

    with app.app_context():
        db.drop_all()
