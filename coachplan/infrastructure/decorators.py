"""Infrastructure-level decorators used around calls to the shared store."""

from __future__ import annotations

import functools
import time
from typing import Any, Callable, Iterable, Tuple, Type, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from coachplan.application.exceptions import RemoteSyncError
from coachplan.infrastructure import log_utils

TFunc = TypeVar("TFunc", bound=Callable[..., Any])


def retry_on_remote_error(
    *,
    exception_types: Iterable[Type[BaseException]] = (RemoteSyncError,),
) -> Callable[[TFunc], TFunc]:
    """Retry decorator with exponential backoff for transient store failures.

    The decorated method reads its policy from the instance:

    max_attempts:
        Total number of calls, including the first (default 1).
    backoff_seconds:
        Base delay; doubles per attempt, capped at eight times the base.
    sleep:
        Callable used to wait between attempts (default :func:`time.sleep`).

    The last exception is re-raised once the attempts are exhausted.
    """

    exception_tuple: Tuple[Type[BaseException], ...] = tuple(exception_types)

    def decorator(func: TFunc) -> TFunc:
        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            max_attempts = max(1, int(getattr(self, "max_attempts", 1)))
            backoff = float(getattr(self, "backoff_seconds", 0.0))
            sleep = getattr(self, "sleep", time.sleep)

            def _before_sleep(retry_state: RetryCallState) -> None:
                wait_time = getattr(retry_state.next_action, "sleep", backoff)
                exc = retry_state.outcome.exception() if retry_state.outcome else None
                log_utils.warn(
                    f"[retry] {func.__name__} attempt {retry_state.attempt_number}/{max_attempts} "
                    f"failed: {exc!r}, retrying in {wait_time:.2f}s..."
                )

            retryer = Retrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=backoff, min=backoff, max=backoff * 8),
                retry=retry_if_exception_type(exception_tuple),
                before_sleep=_before_sleep,
                sleep=sleep,
                reraise=True,
            )
            return retryer(func, self, *args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


__all__ = ["retry_on_remote_error"]
