import logging
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class EffectRunner:
    """Launches background side effects and detaches from them.

    A single worker keeps effects in launch order, so a clear issued at
    finish never lands before an earlier autosave. Failures are logged and
    dropped; the next state change supersedes anything that was lost.
    """

    def __init__(self, executor: Optional[ThreadPoolExecutor] = None):
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="lesson-effects"
        )

    def launch(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> Future:
        future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(partial(_log_failure, name))
        return future

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)


class InlineEffectRunner(EffectRunner):
    """Runs effects immediately on the calling thread."""

    def __init__(self):
        pass

    def launch(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        _log_failure(name, future)
        return future

    def shutdown(self, wait: bool = True):
        pass


def _log_failure(name: str, future: Future):
    error = future.exception()
    if error is not None:
        logger.warning(f"Background effect '{name}' failed: {error}")
