import re

from minitable import types


class TableSchema:
    """Column and constraint description of one table."""

    _safe_ident_pattern = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')

    def __init__(self, name, columns=None, constraints=None):
        self.name = name
        self._columns = {}
        self._constraints = {}
        for column, attrs in (columns or {}).items():
            self.add_column(column, attrs)
        for constraint, attrs in (constraints or {}).items():
            self.add_constraint(constraint, attrs)

    def __repr__(self):
        return f"<TableSchema {self.name}({', '.join(self._columns)})>"

    @classmethod
    def from_mapping(cls, name, mapping):
        """Build from a raw column map; an optional ``_constraints`` key holds constraints."""
        mapping = dict(mapping)
        constraints = mapping.pop("_constraints", {})
        return cls(name, mapping, constraints)

    @staticmethod
    def type_from_sql(sql_type):
        sql_type = (sql_type or "").lower()
        if "int" in sql_type:
            return "integer"
        if "uuid" in sql_type or sql_type == "char(36)":
            return "uuid"
        if "bool" in sql_type:
            return "boolean"
        if "date" in sql_type or "time" in sql_type:
            return "datetime"
        if "real" in sql_type or "floa" in sql_type or "doub" in sql_type:
            return "float"
        return "string"

    def add_column(self, name, attrs):
        if isinstance(attrs, str):
            attrs = {"type": attrs}
        attrs = dict(attrs)
        attrs.setdefault("type", "string")
        attrs.setdefault("null", True)
        attrs.setdefault("default", None)
        self._columns[name] = attrs
        return self

    def add_constraint(self, name, attrs):
        attrs = dict(attrs)
        if isinstance(attrs.get("columns"), str):
            attrs["columns"] = [attrs["columns"]]
        self._constraints[name] = attrs
        return self

    def columns(self):
        return list(self._columns)

    def column(self, name):
        attrs = self._columns.get(name)
        return dict(attrs) if attrs is not None else None

    def column_type(self, name):
        attrs = self._columns.get(name)
        return attrs["type"] if attrs else None

    def constraints(self):
        return list(self._constraints)

    def constraint(self, name):
        return self._constraints.get(name)

    def primary_key(self):
        for attrs in self._constraints.values():
            if attrs.get("type") == "primary":
                return list(attrs["columns"])
        return []

    def _quote(self, identifier):
        if not identifier or not self._safe_ident_pattern.match(str(identifier)):
            raise ValueError(f"Unsafe SQL identifier: {identifier}")
        return f'"{identifier}"'

    def create_sql(self):
        """CREATE TABLE statement for this schema (sqlite dialect)."""
        primary = self.primary_key()
        column_defs = []
        for name, attrs in self._columns.items():
            column_type = types.build(attrs["type"])
            parts = [self._quote(name), column_type.sql_type]
            if primary == [name] and attrs["type"] == "integer":
                parts.append("PRIMARY KEY AUTOINCREMENT")
            elif primary == [name]:
                parts.append("PRIMARY KEY")
            if not attrs["null"] and primary != [name]:
                parts.append("NOT NULL")
            if attrs["default"] is not None:
                default = attrs["default"]
                parts.append(f"DEFAULT {default!r}" if isinstance(default, str) else f"DEFAULT {default}")
            column_defs.append(" ".join(parts))

        for attrs in self._constraints.values():
            cols = ", ".join(self._quote(c) for c in attrs["columns"])
            if attrs["type"] == "primary" and len(attrs["columns"]) > 1:
                column_defs.append(f"PRIMARY KEY ({cols})")
            elif attrs["type"] == "unique":
                column_defs.append(f"UNIQUE ({cols})")
            elif attrs["type"] == "foreign":
                ref_table, ref_column = attrs["references"]
                clause = f"FOREIGN KEY ({cols}) REFERENCES {self._quote(ref_table)}({self._quote(ref_column)})"
                if attrs.get("delete"):
                    clause += f" ON DELETE {attrs['delete']}"
                column_defs.append(clause)

        return f"CREATE TABLE IF NOT EXISTS {self._quote(self.name)} ({', '.join(column_defs)});"
