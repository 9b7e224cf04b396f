import logging

logger = logging.getLogger("MiniTable")


class Stop:
    """Return value that stops an event and substitutes ``result`` for the phase outcome."""

    def __init__(self, result=None):
        self.result = result

    def __repr__(self):
        return f"<Stop result={self.result!r}>"


class Event:
    def __init__(self, name, subject=None, **data):
        self.name = name
        self.subject = subject
        self.data = data
        self.result = None
        self._stopped = False

    def __repr__(self):
        return f"<Event {self.name} stopped={self._stopped}>"

    def stop(self, result=None):
        self._stopped = True
        self.result = result

    @property
    def is_stopped(self):
        return self._stopped


class EventManager:
    """Synchronous dispatcher: listeners run in registration order.

    Each listener is called as ``listener(event, **event.data)``. A listener
    stops propagation by returning ``Stop(result)`` or by calling
    ``event.stop(result)``; remaining listeners are skipped.
    """

    def __init__(self):
        self._listeners = {}

    def on(self, name, listener):
        self._listeners.setdefault(name, []).append(listener)
        return listener

    def off(self, name, listener=None):
        if listener is None:
            self._listeners.pop(name, None)
            return
        listeners = self._listeners.get(name, [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, name):
        return list(self._listeners.get(name, []))

    def attach(self, subscriber):
        """Subscribe every handler listed by ``subscriber.implemented_events()``."""
        for name, method in subscriber.implemented_events().items():
            self.on(name, getattr(subscriber, method))

    def dispatch(self, event):
        for listener in self.listeners(event.name):
            outcome = listener(event, **event.data)
            if isinstance(outcome, Stop):
                event.stop(outcome.result)
            if event.is_stopped:
                logger.debug(f"[EVENT]: {event.name} stopped by {listener!r}")
                break
        return event
