class Rule:
    def __init__(self, name, check, message=None, on=None):
        if on not in (None, "create", "update"):
            raise ValueError(f"Unknown rule mode: {on}")
        self.name = name
        self.check = check
        self.message = message or "The provided value is invalid"
        self.on = on

    def __repr__(self):
        return f"<Rule {self.name} on={self.on}>"

    def applies(self, new_record):
        if self.on == "create":
            return new_record
        if self.on == "update":
            return not new_record
        return True


class Validator:
    """Named rules per field, evaluated against a mapping of field values.

    A rule is a callable ``check(value, context)`` returning ``True`` when the
    value passes, ``False`` to report the rule's message, or a string to
    report that string. ``context`` carries the whole data, the field name,
    whether the record is new and the registered providers.
    """

    def __init__(self):
        self._fields = {}
        self._presence = {}
        self._providers = {}

    def __len__(self):
        return len(set(self._fields) | set(self._presence))

    def __repr__(self):
        return f"<Validator fields={sorted(set(self._fields) | set(self._presence))}>"

    def provider(self, name, obj=None):
        if obj is None:
            return self._providers.get(name)
        self._providers[name] = obj
        return self

    def unset_provider(self, name):
        self._providers.pop(name, None)
        return self

    def add(self, field, name, check, message=None, on=None):
        self._fields.setdefault(field, {})[name] = Rule(name, check, message, on)
        return self

    def remove(self, field, name=None):
        if name is None:
            self._fields.pop(field, None)
            self._presence.pop(field, None)
        else:
            self._fields.get(field, {}).pop(name, None)
        return self

    def require_presence(self, field, mode=True, message=None):
        """Require ``field`` to be present: always (``True``), on ``"create"`` or on ``"update"``."""
        if mode is False:
            self._presence.pop(field, None)
            return self
        on = None if mode is True else mode
        self._presence[field] = Rule("_required", None, message or "This field is required", on)
        return self

    def not_empty(self, field, message=None, on=None):
        return self.add(
            field, "_empty",
            lambda value, context: value not in (None, "", [], {}),
            message or "This field cannot be left empty", on,
        )

    def length_between(self, field, low, high, message=None, on=None):
        return self.add(
            field, "length_between",
            lambda value, context: low <= len(str(value)) <= high,
            message or f"The length must be between {low} and {high}", on,
        )

    def is_unique(self, field, message=None):
        """Reject values already stored in the ``table`` provider's table; ``None`` always passes."""
        def check(value, context):
            table = context["providers"].get("table")
            if table is None or value is None:
                return True
            conditions = {field: value}
            entity = context["providers"].get("entity")
            if entity is not None and entity.is_new is False:
                for key, pk_value in entity.extract(table.primary_key_fields()).items():
                    conditions[f"{key} !="] = pk_value
            return not table.exists(conditions)
        return self.add(field, "_unique", check, message or "This value is already in use")

    def errors(self, data, new_record=True):
        errors = {}
        for field, rule in self._presence.items():
            if rule.applies(new_record) and field not in data:
                errors.setdefault(field, {})[rule.name] = rule.message

        for field, rules in self._fields.items():
            if field not in data or field in errors:
                continue
            context = {
                "data": data,
                "field": field,
                "new_record": new_record,
                "providers": dict(self._providers),
            }
            for rule in rules.values():
                if not rule.applies(new_record):
                    continue
                outcome = rule.check(data[field], context)
                if outcome is True:
                    continue
                message = outcome if isinstance(outcome, str) else rule.message
                errors.setdefault(field, {})[rule.name] = message
        return errors
