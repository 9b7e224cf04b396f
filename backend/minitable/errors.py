class MiniTableError(Exception):
    """Base class for every error raised by minitable."""


class UnknownAssociationError(MiniTableError, LookupError):
    def __init__(self, alias, name):
        self.alias = alias
        self.name = name
        super().__init__(f"{alias} is not associated to {name}")


class UnknownFinderError(MiniTableError, LookupError):
    def __init__(self, finder):
        self.finder = finder
        super().__init__(f'Unknown finder method "{finder}"')


class UnknownMethodError(MiniTableError, AttributeError):
    def __init__(self, method):
        self.method = method
        super().__init__(f'Unknown method "{method}"')


class MissingBehaviorError(MiniTableError, LookupError):
    def __init__(self, name):
        self.name = name
        super().__init__(f'Behavior "{name}" could not be found')


class MissingKeyError(MiniTableError, ValueError):
    def __init__(self, table, fields, action="updating"):
        self.table = table
        self.fields = list(fields)
        super().__init__(
            f"A primary key value is needed for {action} {table} "
            f"(missing: {', '.join(self.fields)})"
        )


class MissingTableError(MiniTableError, LookupError):
    def __init__(self, alias):
        self.alias = alias
        super().__init__(f'Table "{alias}" could not be resolved, pass target_table or a locator')


class RecordNotFoundError(MiniTableError, LookupError):
    def __init__(self, table, primary_key):
        self.table = table
        self.primary_key = primary_key
        super().__init__(f"Record not found in table {table} for primary key {primary_key!r}")
