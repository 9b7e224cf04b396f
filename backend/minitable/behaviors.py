import logging

from minitable import types
from minitable.errors import MissingBehaviorError, UnknownFinderError, UnknownMethodError

logger = logging.getLogger("MiniTable")

EVENT_METHODS = {
    "Model.beforeFind": "before_find",
    "Model.beforeValidate": "before_validate",
    "Model.afterValidate": "after_validate",
    "Model.beforeSave": "before_save",
    "Model.afterSave": "after_save",
    "Model.beforeDelete": "before_delete",
    "Model.afterDelete": "after_delete",
}


def implemented_events(obj):
    """Map of lifecycle event name -> handler method name defined on ``obj``."""
    return {
        event: method for event, method in EVENT_METHODS.items()
        if callable(getattr(type(obj), method, None))
    }


class Behavior:
    """Reusable finders, methods and lifecycle listeners for a table.

    Subclasses list what they expose in the ``finders`` (finder type ->
    method name) and ``methods`` (public name -> method name) tables; event
    listeners are picked up from ``before_save``-style methods.
    """

    default_config = {}
    finders = {}
    methods = {}

    def __init__(self, table, **config):
        self.table = table
        self.config = dict(self.default_config, **config)

    def __repr__(self):
        return f"<{self.__class__.__name__} table={self.table.alias}>"

    def implemented_events(self):
        return implemented_events(self)

    def implemented_finders(self):
        return dict(self.finders)

    def implemented_methods(self):
        return dict(self.methods)


class TimestampBehavior(Behavior):
    """Stamps ``created`` on new entities and ``modified`` on every save."""

    default_config = {
        "events": {
            "Model.beforeSave": {"created": "new", "modified": "always"},
        },
        "refresh": False,
    }
    methods = {"touch": "touch", "timestamp": "timestamp"}

    def __init__(self, table, **config):
        super().__init__(table, **config)
        self._ts = None

    def timestamp(self, ts=None, refresh=False):
        if ts is not None:
            self._ts = ts
        elif self._ts is None or refresh or self.config["refresh"]:
            self._ts = types.DateTimeType().now()
        return self._ts

    def before_save(self, event, entity, options, **kwargs):
        for field, when in self.config["events"].get(event.name, {}).items():
            if when not in ("always", "new", "existing"):
                raise ValueError(f'When should be one of "always", "new" or "existing". The passed value "{when}" is invalid')
            if when == "new" and entity.is_new is not True:
                continue
            if when == "existing" and entity.is_new is not False:
                continue
            self._update_field(entity, field, refresh=True)

    def touch(self, entity, event_name="Model.beforeSave"):
        """Stamp the ``always``/``existing`` fields of ``event_name``; True when any was set."""
        touched = False
        for field, when in self.config["events"].get(event_name, {}).items():
            if when in ("always", "existing"):
                touched = True
                self._update_field(entity, field, refresh=False)
        return touched

    def _update_field(self, entity, field, refresh):
        if entity.dirty(field):
            return
        if not self.table.has_field(field):
            return
        entity.set(field, self.timestamp(refresh=refresh))


BEHAVIORS = {
    "Timestamp": TimestampBehavior,
}


class BehaviorRegistry:
    """Explicit registration table of the behaviors attached to one table."""

    def __init__(self, table=None):
        self.table = table
        self._loaded = {}
        self._finder_map = {}
        self._method_map = {}

    def __repr__(self):
        return f"<BehaviorRegistry {list(self._loaded)}>"

    def load(self, name, behavior=None, **config):
        if name in self._loaded:
            return self._loaded[name]
        if behavior is None:
            behavior = BEHAVIORS.get(name)
            if behavior is None:
                raise MissingBehaviorError(name)
        if isinstance(behavior, type):
            behavior = behavior(self.table, **config)

        finders = {k.lower(): v for k, v in behavior.implemented_finders().items()}
        methods = {k.lower(): v for k, v in behavior.implemented_methods().items()}
        for finder in finders:
            if finder in self._finder_map:
                raise ValueError(f'{name} contains duplicate finder "{finder}" which is already provided by "{self._finder_map[finder][0]}"')
        for method in methods:
            if method in self._method_map:
                raise ValueError(f'{name} contains duplicate method "{method}" which is already provided by "{self._method_map[method][0]}"')

        for finder, method_name in finders.items():
            self._finder_map[finder] = (name, getattr(behavior, method_name))
        for method, method_name in methods.items():
            self._method_map[method] = (name, getattr(behavior, method_name))

        self._loaded[name] = behavior
        self.table.event_manager.attach(behavior)
        logger.debug(f"[BEHAVIOR]: {name} loaded on {self.table.alias}")
        return behavior

    def loaded(self, name=None):
        if name is None:
            return list(self._loaded)
        return name in self._loaded

    def get(self, name):
        return self._loaded.get(name)

    def has_finder(self, finder):
        return finder.lower() in self._finder_map

    def call_finder(self, finder, query, options):
        if not self.has_finder(finder):
            raise UnknownFinderError(finder)
        _, handler = self._finder_map[finder.lower()]
        return handler(query, options)

    def has_method(self, method):
        return method.lower() in self._method_map

    def call(self, method, *args, **kwargs):
        if not self.has_method(method):
            raise UnknownMethodError(method)
        _, handler = self._method_map[method.lower()]
        return handler(*args, **kwargs)
