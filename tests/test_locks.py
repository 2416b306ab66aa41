"""Tests for storage locks."""
from __future__ import annotations

import threading

import pytest

from ancv.core.exceptions import LockTimeoutError
from ancv.core.locks import StorageLockRegistry


class TestStorageLockRegistry:
    """Tests for per-path exclusive locks."""

    def test_hold_and_release(self, tmp_path):
        locks = StorageLockRegistry()
        path = tmp_path / "a.xml"

        with locks.hold(path):
            assert locks.is_locked(path)

        assert not locks.is_locked(path)

    def test_same_file_different_spelling_shares_lock(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        locks = StorageLockRegistry()

        with locks.hold(tmp_path / "lbph" / "a.xml"):
            assert locks.is_locked(tmp_path / "lbph" / ".." / "lbph" / "a.xml")
            with pytest.raises(LockTimeoutError):
                with locks.hold("lbph/a.xml", timeout=0.05):
                    pass

        assert locks.get_lock_count() == 1

    def test_different_files_do_not_block(self, tmp_path):
        locks = StorageLockRegistry()

        with locks.hold(tmp_path / "a.xml"):
            with locks.hold(tmp_path / "b.xml", timeout=0.05):
                pass

        assert locks.get_lock_count() == 2

    def test_timeout_while_held_by_other_thread(self, tmp_path):
        locks = StorageLockRegistry()
        path = tmp_path / "a.xml"
        holding = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold(path):
                holding.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        try:
            assert holding.wait(5)
            with pytest.raises(LockTimeoutError):
                with locks.hold(path, timeout=0.05):
                    pass
        finally:
            release.set()
            thread.join(5)

        with locks.hold(path, timeout=1.0):
            assert locks.is_locked(path)

    def test_waiter_gets_lock_after_release(self, tmp_path):
        locks = StorageLockRegistry()
        path = tmp_path / "a.xml"
        order = []

        def waiter():
            with locks.hold(path, timeout=5):
                order.append("waiter")

        with locks.hold(path):
            thread = threading.Thread(target=waiter)
            thread.start()
            order.append("holder")

        thread.join(5)
        assert order == ["holder", "waiter"]
        assert not locks.is_locked(path)

    def test_released_after_exception(self, tmp_path):
        locks = StorageLockRegistry()
        path = tmp_path / "a.xml"

        with pytest.raises(ValueError):
            with locks.hold(path):
                raise ValueError("boom")

        assert not locks.is_locked(path)
