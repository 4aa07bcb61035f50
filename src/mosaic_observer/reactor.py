"""Block reactors: observers notified once per observed block."""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import Block
    from .scheduler import Scheduler


@runtime_checkable
class Reactor(Protocol):
    """Anything that wants to be told about new blocks on a chain.

    ``react`` is called synchronously from the chain's worker, so it must
    return quickly: long running work goes onto the scheduler via
    ``scheduler.spawn``. Reactors handle their own errors; an exception that
    escapes ``react`` is logged by the worker as a failed block action.
    """

    def react(self, block: "Block", scheduler: "Scheduler") -> None:
        ...
