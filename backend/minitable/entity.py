class Entity:
    """A row of a table: field values plus dirty tracking.

    ``is_new`` is tri-state: ``True`` for records that were never persisted,
    ``False`` for persisted ones and ``None`` when unknown, in which case the
    table checks the database on save.

    Fields can be reached as items (``entity["title"]``) or attributes
    (``entity.title``); reading an unset field returns ``None``.
    """

    def __init__(self, data=None, new=None, source=None, clean=False):
        object.__setattr__(self, "_fields", {})
        object.__setattr__(self, "_dirty", set())
        object.__setattr__(self, "_errors", {})
        object.__setattr__(self, "_new", new)
        object.__setattr__(self, "_source", source)
        if data:
            self.set(data, dirty=not clean)

    def __repr__(self):
        state = {True: "new", False: "persisted", None: "unknown"}[self._new]
        return f"<{self.__class__.__name__} {self._fields!r} ({state})>"

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self._fields.get(name)

    def __setattr__(self, name, value):
        if name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
        else:
            self.set(name, value)

    def __delattr__(self, name):
        self.unset(name)

    def __getitem__(self, name):
        return self._fields[name]

    def __setitem__(self, name, value):
        self.set(name, value)

    def __contains__(self, name):
        return name in self._fields

    @property
    def is_new(self):
        return self._new

    @is_new.setter
    def is_new(self, value):
        if value not in (True, False, None):
            raise ValueError("is_new must be True, False or None")
        self._new = value

    @property
    def source(self):
        return self._source

    @source.setter
    def source(self, alias):
        self._source = alias

    def get(self, field, default=None):
        return self._fields.get(field, default)

    def set(self, field, value=None, dirty=True):
        if isinstance(field, dict):
            for name, val in field.items():
                self.set(name, val, dirty=dirty)
            return self
        self._fields[field] = value
        if dirty:
            self._dirty.add(field)
        return self

    def unset(self, *fields):
        for field in fields:
            self._fields.pop(field, None)
            self._dirty.discard(field)
        return self

    def has(self, field):
        return self._fields.get(field) is not None

    def dirty(self, field=None):
        if field is None:
            return bool(self._dirty)
        return field in self._dirty

    def set_dirty(self, field, is_dirty=True):
        if is_dirty:
            self._dirty.add(field)
        else:
            self._dirty.discard(field)

    def dirty_fields(self):
        return [field for field in self._fields if field in self._dirty]

    def clean(self):
        self._dirty.clear()
        self._errors = {}

    def extract(self, fields, only_dirty=False):
        out = {}
        for field in fields:
            if field not in self._fields:
                continue
            if only_dirty and field not in self._dirty:
                continue
            out[field] = self._fields[field]
        return out

    def to_dict(self):
        out = {}
        for name, value in self._fields.items():
            if isinstance(value, Entity):
                value = value.to_dict()
            elif isinstance(value, list):
                value = [v.to_dict() if isinstance(v, Entity) else v for v in value]
            out[name] = value
        return out

    def errors(self, field=None):
        if field is None:
            return dict(self._errors)
        return dict(self._errors.get(field, {}))

    def set_errors(self, errors):
        self._errors = dict(errors)

    def validate(self, validator):
        """Run ``validator`` over the fields; keeps the errors and returns pass/fail."""
        errors = validator.errors(self._fields, new_record=self._new is not False)
        self._errors = errors
        return not errors
