"""
Background execution of compute requests.

At most one request runs at a time. A request submitted while another is
running waits as the single pending request; a newer submission replaces
it. When the running request finishes, the pending one starts at once.

Examples
--------
>>> from phaseplane import ComputeWorker, RequestTracker, ComputeRequest
>>> tracker = RequestTracker()
>>> def on_result(result):
...     if tracker.accept(result):
...         draw(result)
>>> with ComputeWorker(on_result) as worker:
...     worker.submit(ComputeRequest("x", "-y", domain=dom, request_id=tracker.issue()))
"""

import threading
import warnings
from collections import deque
from dataclasses import replace
from typing import Any, Callable, List, Mapping, Optional, Union

from .engine import ComputeRequest, ComputeResult, compute

# Number of superseded request ids remembered
SUPERSEDED_HISTORY = 64


class RequestTracker:
    """
    Caller-side request identities.

    Results whose id differs from the most recently issued one belong to a
    superseded request and should be ignored.
    """
    def __init__(self):
        self._latest = 0
        self._lock = threading.Lock()

    def issue(self) -> int:
        """Next request id (monotonically increasing)."""
        with self._lock:
            self._latest += 1
            return self._latest

    @property
    def latest(self) -> int:
        with self._lock:
            return self._latest

    def accept(self, result: ComputeResult) -> bool:
        """True if result answers the most recently issued request."""
        with self._lock:
            return result.request_id == self._latest


class ComputeWorker:
    """
    Runs compute requests on one daemon thread, latest request wins.

    Parameters
    ----------
    callback : callable
        Called with each ComputeResult, on the worker thread
    compute_fn : callable, optional
        Function turning a ComputeRequest into a ComputeResult
        (default: phaseplane.compute)
    """
    def __init__(self, callback: Callable[[ComputeResult], Any],
                 compute_fn: Callable[[ComputeRequest], ComputeResult] = compute):
        self._callback = callback
        self._compute = compute_fn
        self._cond = threading.Condition()
        self._pending: Optional[ComputeRequest] = None
        self._running: Optional[ComputeRequest] = None
        self._superseded = deque(maxlen=SUPERSEDED_HISTORY)
        self._next_id = 0
        self._closed = False
        self._thread = threading.Thread(
            target=self._loop, name="phaseplane-worker", daemon=True
        )
        self._thread.start()

    def submit(self, request: Union[ComputeRequest, Mapping[str, Any]]) -> int:
        """
        Queue a request, replacing any request still waiting.

        Requests without an id are assigned the next one.

        Returns
        -------
        int
            The request id

        Raises
        ------
        RuntimeError
            If the worker has been closed
        """
        if not isinstance(request, ComputeRequest):
            request = ComputeRequest.from_dict(request)
        with self._cond:
            if self._closed:
                raise RuntimeError("ComputeWorker is closed")
            if request.request_id is None:
                self._next_id += 1
                request = replace(request, request_id=self._next_id)
            else:
                self._next_id = max(self._next_id, request.request_id)
            if self._pending is not None:
                self._superseded.append(self._pending.request_id)
            self._pending = request
            self._cond.notify_all()
        return request.request_id

    def _loop(self):
        while True:
            with self._cond:
                while self._pending is None and not self._closed:
                    self._cond.wait()
                if self._pending is None:
                    return
                request, self._pending = self._pending, None
                self._running = request
            try:
                result = self._compute(request)
                self._callback(result)
            except Exception as exc:
                warnings.warn(
                    f"Request {request.request_id} failed in worker: {exc}",
                    RuntimeWarning
                )
            finally:
                with self._cond:
                    self._running = None
                    self._cond.notify_all()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is running or pending; False on timeout."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._pending is None and self._running is None, timeout
            )

    def close(self, timeout: Optional[float] = None):
        """Finish running and pending work, then stop the thread."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._thread.join(timeout)

    @property
    def busy(self) -> bool:
        with self._cond:
            return self._running is not None or self._pending is not None

    @property
    def superseded(self) -> List[int]:
        """Ids of the most recent requests replaced before they started."""
        with self._cond:
            return list(self._superseded)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
