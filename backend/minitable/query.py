from minitable.builder import QueryBuilder
from minitable.events import Event


class Query:
    """Structured statement against a single table.

    Selects are lazy: nothing runs until the results are read through
    ``all()``, ``first()``, ``count()`` or iteration. Result formatters
    registered with ``format_results`` transform the hydrated list, in
    registration order, the first time results are read.
    """

    def __init__(self, repository, connection=None, builder=None):
        self.repository = repository
        self.connection = connection or repository.connection
        self.builder = builder or QueryBuilder()
        self._type = "select"
        self._fields = None
        self._conditions = {}
        self._values = {}
        self._order = []
        self._limit = None
        self._offset = None
        self._hydrate = True
        self._formatters = []
        self._options = {}
        self._results = None
        self._before_find_fired = False

    def __repr__(self):
        return f"<Query {self._type} {self.repository.table} where={self._conditions!r}>"

    def __iter__(self):
        results = self.all()
        if isinstance(results, dict):
            return iter(results.items())
        return iter(results)

    def _dirty(self):
        self._results = None
        return self

    def select(self, fields=None):
        if fields is None:
            return self
        if isinstance(fields, str):
            fields = [fields]
        if not isinstance(fields, dict):
            fields = {f: f for f in fields}
        self._fields = dict(self._fields or {}, **fields)
        return self._dirty()

    def where(self, conditions=None, **kwargs):
        conditions = dict(conditions or {}, **kwargs)
        for key, value in conditions.items():
            if key.upper() in ("OR", "AND") and key in self._conditions:
                existing = self._conditions[key]
                existing = existing if isinstance(existing, list) else [existing]
                self._conditions[key] = existing + [value]
            else:
                self._conditions[key] = value
        return self._dirty()

    def conditions(self):
        return dict(self._conditions)

    def order(self, field, direction="ASC"):
        if isinstance(field, dict):
            for name, dirn in field.items():
                self._order.append((name, dirn))
        elif isinstance(field, (list, tuple)):
            for name in field:
                self._order.append((name, direction))
        else:
            self._order.append((field, direction))
        return self._dirty()

    order_by = order

    def limit(self, value):
        self._limit = value
        return self._dirty()

    def offset(self, value):
        self._offset = value
        return self._dirty()

    def page(self, number, limit=None):
        if limit is not None:
            self._limit = limit
        if self._limit is None:
            raise ValueError("page() needs a limit")
        if number < 1:
            raise ValueError("Pages start at 1")
        self._offset = (number - 1) * self._limit
        return self._dirty()

    def hydrate(self, enabled=None):
        if enabled is None:
            return self._hydrate
        self._hydrate = bool(enabled)
        return self._dirty()

    def format_results(self, formatter):
        self._formatters.append(formatter)
        return self._dirty()

    def apply_options(self, options):
        options = dict(options or {})
        self._options.update(options)
        if options.get("fields"):
            self.select(options["fields"])
        if options.get("conditions"):
            self.where(options["conditions"])
        if options.get("order"):
            self.order(options["order"])
        if options.get("limit") is not None:
            self.limit(options["limit"])
        if options.get("offset") is not None:
            self.offset(options["offset"])
        if options.get("page") is not None:
            self.page(options["page"])
        if options.get("hydrate") is not None:
            self.hydrate(options["hydrate"])
        return self

    def get_options(self):
        return dict(self._options)

    def sql(self):
        if self._type == "select":
            return self.builder.build_select(
                self.repository.table, self._fields, self._conditions,
                order=self._order, limit=self._limit, offset=self._offset,
            )
        if self._type == "insert":
            return self.builder.build_insert(self.repository.table, self._values)
        if self._type == "update":
            return self.builder.build_update(self.repository.table, self._values, self._conditions)
        return self.builder.build_delete(self.repository.table, self._conditions)

    def _trigger_before_find(self):
        if self._before_find_fired:
            return None
        self._before_find_fired = True
        event = Event("Model.beforeFind", self.repository, query=self, options=self._options, primary=True)
        self.repository.event_manager.dispatch(event)
        return event

    def _execute(self):
        event = self._trigger_before_find()
        if event is not None and event.is_stopped:
            return event.result
        sql, params = self.sql()
        rows = self.connection.execute(sql, params).rows
        if self._hydrate:
            entity_class = self.repository.entity_class
            rows = [entity_class(row, new=False, source=self.repository.alias, clean=True) for row in rows]
        for formatter in self._formatters:
            rows = formatter(rows)
        return rows

    def all(self):
        if self._type != "select":
            raise ValueError(f"Cannot read results of a {self._type} query")
        if self._results is None:
            self._results = self._execute()
        return self._results

    def first(self):
        if self._results is None and self._limit is None:
            self.limit(1)
        results = self.all()
        if isinstance(results, dict):
            return next(iter(results.values()), None)
        return results[0] if results else None

    def count(self):
        sql, params = self.builder.build_count(self.repository.table, self._conditions)
        rows = self.connection.execute(sql, params).rows
        return rows[0]["count"] if rows else 0

    def insert(self, data):
        self._type = "insert"
        self._values = dict(data)
        return self

    def update(self, fields=None):
        self._type = "update"
        if fields:
            self.set(fields)
        return self

    def set(self, fields):
        self._values.update(fields)
        return self

    def delete(self):
        self._type = "delete"
        return self

    def execute(self):
        """Run an insert, update or delete and return its ``StatementResult``."""
        if self._type == "select":
            raise ValueError("Use all() or first() to run a select query")
        sql, params = self.sql()
        return self.connection.execute(sql, params)
