"""Callback-style subscriptions for hosts that do not speak asyncio.

A native host (mobile shell, GUI toolkit, another runtime) usually wants
three callbacks and a handle it can cancel. CallbackFlowWrapper turns any
async-iterator source into exactly that:

    flow = repository.get_players_flow()
    subscription = flow.subscribe(
        on_each=lambda players: render(players),
        on_complete=lambda: None,
        on_throw=lambda error: show_error(error),
    )
    ...
    subscription.cancel()

on_each receives every value; on_throw receives an error raised by the source
or by on_each itself (without on_throw the error is logged and delivery
stops); on_complete runs last in every case (normal end, error, or
cancellation).
"""
import asyncio
import concurrent.futures
from contextlib import aclosing
from typing import AsyncIterator, Callable, Generic, Optional, TypeVar, Union

from fpl_data.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by CallbackFlowWrapper.subscribe()."""

    def __init__(self, future: Union[asyncio.Task, concurrent.futures.Future]):
        self._future = future

    @property
    def active(self) -> bool:
        return not self._future.done()

    def cancel(self) -> None:
        """Detach. Other subscribers are not affected."""
        self._future.cancel()


class CallbackFlowWrapper(Generic[T]):
    """Adapts an async-iterator factory to on_each/on_complete/on_throw."""

    def __init__(self, source: Callable[[], AsyncIterator[T]]):
        self._source = source

    def subscribe(
        self,
        on_each: Callable[[T], None],
        on_complete: Optional[Callable[[], None]] = None,
        on_throw: Optional[Callable[[BaseException], None]] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> Subscription:
        """
        Start delivering values.

        Args:
            on_each: Called with every value, on the event loop thread
            on_complete: Called once when delivery stops for any reason
            on_throw: Called with the error if the source or on_each raised
            loop: Loop the data layer runs on. Required when calling from a
                thread other than the loop's own.

        Returns:
            Cancellable subscription handle

        Raises:
            RuntimeError: If called off the loop thread without `loop`
        """
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if loop is None or loop is running:
            if running is None:
                raise RuntimeError("subscribe() called outside the event loop without a loop")
            return Subscription(running.create_task(self._collect(on_each, on_complete, on_throw)))
        return Subscription(
            asyncio.run_coroutine_threadsafe(self._collect(on_each, on_complete, on_throw), loop)
        )

    async def _collect(
        self,
        on_each: Callable[[T], None],
        on_complete: Optional[Callable[[], None]],
        on_throw: Optional[Callable[[BaseException], None]],
    ) -> None:
        try:
            async with aclosing(self._source()) as items:
                async for item in items:
                    on_each(item)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if on_throw is None:
                logger.exception(f"Subscription stopped by unhandled error: {e}")
                return
            on_throw(e)
        finally:
            if on_complete is not None:
                on_complete()
