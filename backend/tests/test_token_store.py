import pytest

from blogauth.core.security import TokenCodec
from blogauth.models.security import RefreshToken
from blogauth.models.user import User


@pytest.fixture
def user(db):
    user = User(username="bob", email="b@x.com", password_hash="hash")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _secret():
    return TokenCodec.generate_refresh_secret()


def test_save_and_find(db, store, user, clock):
    secret = _secret()
    record = store.save(db, user.id, secret)
    db.commit()

    found = store.find_by_secret(db, secret)
    assert found is not None
    assert found.id == record.id
    assert found.user_id == user.id
    assert found.token_hash != secret
    assert found.expires_at - found.created_at == store.ttl
    assert store.find_by_secret(db, _secret()) is None


def test_expired_record_is_absent_before_it_is_purged(db, store, user, clock):
    secret = _secret()
    store.save(db, user.id, secret)
    db.commit()

    clock.advance(days=7)
    assert store.find_by_secret(db, secret) is not None

    clock.advance(seconds=1)
    assert store.find_by_secret(db, secret) is None
    assert store.consume(db, secret) is None
    # Row is still physically there until the reaper runs.
    assert db.query(RefreshToken).count() == 1


def test_consume_returns_owner_exactly_once(db, store, user):
    secret = _secret()
    store.save(db, user.id, secret)
    db.commit()

    assert store.consume(db, secret) == user.id
    db.commit()
    assert store.consume(db, secret) is None
    assert store.find_by_secret(db, secret) is None


def test_delete_by_secret_is_idempotent(db, store, user):
    secret = _secret()
    store.save(db, user.id, secret)
    db.commit()

    store.delete_by_secret(db, secret)
    store.delete_by_secret(db, secret)
    store.delete_by_secret(db, _secret())
    db.commit()
    assert store.find_by_secret(db, secret) is None


def test_delete_all_for_subject_only_touches_that_subject(db, store, user):
    other = User(username="carol", email="c@x.com", password_hash="hash")
    db.add(other)
    db.commit()

    for _ in range(3):
        store.save(db, user.id, _secret())
    kept = _secret()
    store.save(db, other.id, kept)
    db.commit()

    assert store.count_for_subject(db, user.id) == 3
    assert store.delete_all_for_subject(db, user.id) == 3
    assert store.delete_all_for_subject(db, user.id) == 0
    db.commit()
    assert store.count_for_subject(db, user.id) == 0
    assert store.find_by_secret(db, kept) is not None


def test_purge_expired_removes_only_expired_rows(db, store, user, clock):
    store.save(db, user.id, _secret())
    db.commit()
    clock.advance(days=3)
    fresh = _secret()
    store.save(db, user.id, fresh)
    db.commit()

    clock.advance(days=4, seconds=1)
    assert store.purge_expired(db) == 1
    db.commit()
    assert db.query(RefreshToken).count() == 1
    assert store.find_by_secret(db, fresh) is not None


def test_stale_consume_cannot_remove_the_replacement(session_factory, db, store, user, monkeypatch):
    secret = _secret()
    store.save(db, user.id, secret)
    db.commit()

    # A second caller looked the secret up before the first one rotated it.
    late = session_factory()
    stale = store.find_by_secret(late, secret)
    assert stale is not None

    assert store.consume(db, secret) == user.id
    replacement = _secret()
    store.save(db, user.id, replacement)
    db.commit()

    monkeypatch.setattr(store, "find_by_secret", lambda session, s: stale)
    try:
        assert store.consume(late, secret) is None
        late.commit()
    finally:
        late.close()
    monkeypatch.undo()

    assert store.find_by_secret(db, replacement) is not None
    assert store.count_for_subject(db, user.id) == 1


def test_replacement_row_never_reuses_consumed_id(db, store, user):
    secret = _secret()
    old = store.save(db, user.id, secret)
    old_id = old.id
    db.commit()

    store.consume(db, secret)
    new = store.save(db, user.id, _secret())
    db.commit()

    assert new.id != old_id
