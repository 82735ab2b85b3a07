import time

from blogauth.models.security import RefreshToken
from blogauth.services.token_reaper import TokenReaper


def test_purge_once_deletes_expired_rows(session_factory, store, service, clock, alice):
    setup = session_factory()
    issued = service.register(setup, alice)
    setup.close()

    reaper = TokenReaper(store=store, session_factory=session_factory, interval_seconds=60)
    assert reaper.purge_once() == 0

    clock.advance(days=7, seconds=1)
    assert reaper.purge_once() == 1
    assert reaper.status()["purged_count"] == 1

    check = session_factory()
    try:
        assert check.query(RefreshToken).count() == 0
        assert store.find_by_secret(check, issued.refresh_secret) is None
    finally:
        check.close()


def test_reaper_thread_starts_and_stops(session_factory, store):
    reaper = TokenReaper(store=store, session_factory=session_factory, interval_seconds=60)
    reaper.start()
    try:
        assert reaper.is_running()
        deadline = time.time() + 5
        while reaper.status()["last_heartbeat"] == 0.0 and time.time() < deadline:
            time.sleep(0.01)
        assert reaper.status()["last_heartbeat"] > 0
    finally:
        reaper.stop()
    assert not reaper.is_running()
