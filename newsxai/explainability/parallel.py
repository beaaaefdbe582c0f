"""
Unit-of-work dispatch for explanation computations.

Permutation repeats, ALE prediction batches and local-surrogate sample
chunks are independent units. They are executed with joblib and collected
by key, so aggregation never depends on worker scheduling. A
CancellationToken lets a caller stop a long request: units that have not
started are skipped and ComputationCancelled carries what did complete.
"""

import logging
import threading
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple

from joblib import Parallel, delayed

from newsxai.errors import ComputationCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cooperative cancellation flag shared between a caller and a computation.

    Example:
        >>> token = CancellationToken()
        >>> # from another thread: token.cancel()
        >>> compute_importance(explainer, repeat_count=50, cancel_token=token)
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class _Skipped:
    pass


_SKIPPED = _Skipped()


def run_units(
    func: Callable[..., Any],
    units: Iterable[Tuple[Hashable, tuple]],
    n_jobs: int = 1,
    cancel_token: Optional[CancellationToken] = None,
    batch_size: Optional[int] = None,
    description: str = "units"
) -> Dict[Hashable, Any]:
    """
    Execute independent units of work and collect results by key.

    Args:
        func: Function called as ``func(*args)`` for every unit.
        units: Iterable of ``(key, args)`` pairs. Keys must be unique.
        n_jobs: joblib worker count (1 runs inline, -1 uses all cores).
        cancel_token: Optional token checked before every unit.
        batch_size: Units dispatched per round; the token is also checked
                    between rounds. Defaults to 4 units per worker.
        description: Label used in log messages.

    Returns:
        Dictionary mapping unit key to ``func`` result.

    Raises:
        ValueError: If n_jobs is 0 or two units share a key.
        ComputationCancelled: If the token was cancelled before all units
                              ran. ``partial_results`` holds finished units.
    """
    units = list(units)
    if n_jobs == 0:
        raise ValueError("n_jobs must not be 0")

    keys = [key for key, _ in units]
    if len(set(keys)) != len(keys):
        duplicated = sorted({str(key) for key in keys if keys.count(key) > 1})
        raise ValueError(f"Unit keys must be unique, duplicated: {duplicated[:5]}")

    if batch_size is None:
        workers = n_jobs if n_jobs > 0 else 8
        batch_size = max(1, 4 * workers)

    def guarded(args: tuple) -> Any:
        if cancel_token is not None and cancel_token.cancelled:
            return _SKIPPED
        return func(*args)

    results: Dict[Hashable, Any] = {}

    with Parallel(n_jobs=n_jobs, prefer="threads") as parallel:
        for start in range(0, len(units), batch_size):
            if cancel_token is not None and cancel_token.cancelled:
                break

            batch: List[Tuple[Hashable, tuple]] = units[start:start + batch_size]
            outputs = parallel(delayed(guarded)(args) for _, args in batch)

            for (key, _), output in zip(batch, outputs):
                if output is not _SKIPPED:
                    results[key] = output

    pending = len(units) - len(results)
    if pending:
        logger.warning(f"Cancelled {description}: {len(results)} finished, {pending} skipped")
        raise ComputationCancelled(
            f"Computation of {description} cancelled with {pending} of {len(units)} units pending",
            partial_results=results,
            pending=pending,
        )

    logger.debug(f"Finished {len(results)} {description}")
    return results
