from __future__ import annotations

from typing import Iterable, List

import pytest

from coachplan.application.exceptions import ConflictError, RemoteSyncError
from coachplan.infrastructure.decorators import retry_on_remote_error


class DummyRemote:
    def __init__(self, responses: Iterable[object], max_attempts: int = 3, backoff_seconds: float = 0.5):
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.sleeps: List[float] = []
        self.sleep = self.sleeps.append
        self.calls = 0
        self._responses = iter(responses)

    @retry_on_remote_error()
    def run(self) -> object:
        self.calls += 1
        result = next(self._responses)
        if isinstance(result, Exception):
            raise result
        return result


def test_retry_on_remote_error_backs_off_exponentially() -> None:
    remote = DummyRemote(
        [RemoteSyncError("timeout"), RemoteSyncError("timeout"), {"ok": True}],
        backoff_seconds=0.75,
    )

    assert remote.run() == {"ok": True}
    assert remote.sleeps == [0.75, 1.5]


def test_retry_on_remote_error_does_not_retry_other_errors() -> None:
    remote = DummyRemote([ConflictError("duplicate"), {"ok": True}])

    with pytest.raises(ConflictError):
        remote.run()
    assert remote.calls == 1
    assert remote.sleeps == []


def test_retry_on_remote_error_reraises_after_exhausting_attempts() -> None:
    remote = DummyRemote([RemoteSyncError("down")] * 4, max_attempts=3)

    with pytest.raises(RemoteSyncError, match="down"):
        remote.run()
    assert remote.calls == 3
    assert len(remote.sleeps) == 2


def test_retry_on_remote_error_caps_the_delay() -> None:
    remote = DummyRemote([RemoteSyncError("down")] * 6 + ["done"], max_attempts=7, backoff_seconds=1.0)

    assert remote.run() == "done"
    assert max(remote.sleeps) == 8.0


def test_retry_defaults_to_a_single_attempt() -> None:
    class Bare:
        @retry_on_remote_error()
        def run(self):
            raise RemoteSyncError("once")

    with pytest.raises(RemoteSyncError):
        Bare().run()


def test_retry_logs_each_retry(tmp_path) -> None:
    from coachplan import logging_setup

    log_path = tmp_path / "retry.log"
    logging_setup.configure_logging(log_path=log_path, force=True)
    remote = DummyRemote([RemoteSyncError("blip"), "ok"])

    remote.run()

    for handler in logging_setup.configure_logging().handlers:
        handler.flush()
    assert "[retry] run attempt 1/3" in log_path.read_text(encoding="utf-8")
