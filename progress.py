import logging
import queue
from typing import Optional

from models import ProgressEvent, Stage

ProgressSink = Optional["queue.Queue[ProgressEvent]"]

_log = logging.getLogger(__name__)


def emit_progress(
    sink: ProgressSink,
    stage: Stage,
    current: int,
    total: int,
    message: str,
    file: str = "",
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Offer a ProgressEvent to sink without ever blocking.

    Progress is a hint for the UI: with no sink nothing happens, and when the
    queue is full the event is dropped.
    """
    if sink is None:
        return
    event = ProgressEvent(stage=stage, current=current, total=total, message=message, file=file)
    try:
        sink.put_nowait(event)
    except queue.Full:
        (logger or _log).debug("Progress event dropped (queue full): stage=%s", stage.value)
