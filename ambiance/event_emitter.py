import asyncio
import logging
import typing


logger = logging.getLogger(__name__)

CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Named notifications for regeneration and session lifecycle.

	The coordinator emits from inside its tick, which must never fail, so a
	listener that raises is logged and skipped rather than propagated.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.

		Example:
			```python
			session.events.on("group_regenerated", lambda path: print("regenerated", path))
			```
		"""

		self._listeners.setdefault(event_name, []).append(callback)

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if callback not in self._listeners.get(event_name, []):
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)

	def listener_count (self, event_name: str) -> int:
		return len(self._listeners.get(event_name, []))


	def emit_sync (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call every listener for ``event_name`` in registration order.

		Async listeners cannot run here and are rejected with ``ValueError`` at
		emit time, since that is a wiring mistake rather than a runtime failure.
		"""

		for callback in list(self._listeners.get(event_name, [])):

			if asyncio.iscoroutinefunction(callback):
				raise ValueError(f"Async listener registered for synchronous event {event_name!r}")

			try:
				callback(*args, **kwargs)
			except Exception as exc:
				logger.warning(f"Listener for {event_name!r} raised: {exc}")


	async def emit_async (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call sync listeners immediately and await async listeners together.
		"""

		tasks: typing.List[typing.Awaitable[typing.Any]] = []

		for callback in list(self._listeners.get(event_name, [])):

			if asyncio.iscoroutinefunction(callback):
				tasks.append(callback(*args, **kwargs))
				continue

			try:
				callback(*args, **kwargs)
			except Exception as exc:
				logger.warning(f"Listener for {event_name!r} raised: {exc}")

		if tasks:
			results = await asyncio.gather(*tasks, return_exceptions=True)

			for result in results:
				if isinstance(result, Exception):
					logger.warning(f"Async listener for {event_name!r} raised: {result}")
