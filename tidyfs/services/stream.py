from __future__ import annotations

import queue
import threading
from collections.abc import Iterator

STREAM_BUFFER = 100

_DONE = object()
_PUT_TIMEOUT = 0.1


def stream_events[T](events: Iterator[T], maxsize: int = STREAM_BUFFER) -> Iterator[T]:
    """Run the *events* producer on a worker thread behind a bounded queue.

    The producer blocks when *maxsize* events are waiting, so a slow consumer
    throttles it.  Closing the returned iterator early stops the producer at
    its next event.  An exception raised by the producer is re-raised to the
    consumer once the queued events are drained.
    """
    q: queue.Queue[object] = queue.Queue(maxsize=max(1, maxsize))
    stop = threading.Event()
    failure: list[Exception] = []

    def _put(item: object) -> bool:
        while not stop.is_set():
            try:
                q.put(item, timeout=_PUT_TIMEOUT)
                return True
            except queue.Full:
                continue
        return False

    def produce() -> None:
        try:
            for event in events:
                if not _put(event):
                    break
        except Exception as exc:  # noqa: BLE001
            failure.append(exc)
        finally:
            close = getattr(events, "close", None)
            if close is not None:
                close()
            _put(_DONE)

    thread = threading.Thread(target=produce, daemon=True)
    thread.start()
    try:
        while True:
            item = q.get()
            if item is _DONE:
                break
            yield item  # type: ignore[misc]
    finally:
        stop.set()
        thread.join(timeout=1.0)

    if failure:
        raise failure[0]
