class TableLocator:
    """Builds and caches tables by alias for one connection.

    A locator is handed to tables explicitly; associations declared without
    a ``target_table`` ask their source table's locator for the target.
    """

    def __init__(self, connection, table_classes=None):
        self.connection = connection
        self._table_classes = dict(table_classes or {})
        self._instances = {}

    def __repr__(self):
        return f"<TableLocator {sorted(self._instances)}>"

    def register(self, alias, table_class):
        if alias in self._instances:
            raise ValueError(f"{alias} has already been built, register it before the first get()")
        self._table_classes[alias] = table_class

    def get(self, alias, **config):
        if alias in self._instances:
            if config:
                raise ValueError(f"You cannot configure {alias}, it already exists")
            return self._instances[alias]
        from minitable.table import Table
        table_class = self._table_classes.get(alias, Table)
        config.setdefault("alias", alias)
        config.setdefault("connection", self.connection)
        config.setdefault("locator", self)
        table = table_class(**config)
        self._instances[alias] = table
        return table

    def set(self, alias, table):
        self._instances[alias] = table
        return table

    def exists(self, alias):
        return alias in self._instances

    def remove(self, alias):
        self._instances.pop(alias, None)

    def clear(self):
        self._instances.clear()
