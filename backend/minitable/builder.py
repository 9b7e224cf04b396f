import re


class QueryBuilder:
    OPERATORS = ("=", "!=", "<>", "<", "<=", ">", ">=", "LIKE", "NOT LIKE", "IN", "NOT IN")

    def __init__(self):
        self._safe_ident_pattern = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')

    def _quote(self, identifier):
        parts = str(identifier).split(".") if identifier else [identifier]
        for part in parts:
            if not part or not self._safe_ident_pattern.match(str(part)):
                raise ValueError(f"Unsafe SQL identifier: {identifier}")
        return ".".join(f'"{part}"' for part in parts)

    def _split_key(self, key):
        key = key.strip()
        for op in sorted(self.OPERATORS, key=len, reverse=True):
            suffix = " " + op
            if key.upper().endswith(suffix):
                return key[: -len(suffix)].strip(), op
        return key, "="

    def build_conditions(self, conditions, glue="AND"):
        """Compile a conditions mapping into a WHERE fragment and its parameters.

        Keys are field names, optionally followed by an operator (``"age >"``).
        ``None`` values become IS NULL tests and lists become IN lists. The
        special keys ``OR`` and ``AND`` hold nested condition mappings.
        """
        parts = []
        params = []
        for key, value in conditions.items():
            if key.upper() in ("OR", "AND"):
                groups = value if isinstance(value, (list, tuple)) else [value]
                for group in groups:
                    sql, sub_params = self.build_conditions(group, glue=key.upper())
                    if sql:
                        parts.append(f"({sql})")
                        params.extend(sub_params)
                continue

            field, op = self._split_key(key)
            column = self._quote(field)
            if value is None:
                negate = op in ("!=", "<>", "NOT IN")
                parts.append(f"{column} IS {'NOT ' if negate else ''}NULL")
            elif isinstance(value, (list, tuple, set)):
                values = list(value)
                if not values:
                    parts.append("1 = 0" if op not in ("!=", "<>", "NOT IN") else "1 = 1")
                    continue
                keyword = "NOT IN" if op in ("!=", "<>", "NOT IN") else "IN"
                parts.append(f"{column} {keyword} ({', '.join('?' for _ in values)})")
                params.extend(values)
            else:
                parts.append(f"{column} {op} ?")
                params.append(value)
        return f" {glue} ".join(parts), params

    def build_insert(self, table_name, data):
        table = self._quote(table_name)
        fields = list(data.keys())
        if not fields:
            return f"INSERT INTO {table} DEFAULT VALUES", ()
        quoted_fields = [self._quote(f) for f in fields]
        placeholders = ", ".join(["?" for _ in fields])
        values = [data[f] for f in fields]
        sql = f"INSERT INTO {table} ({', '.join(quoted_fields)}) VALUES ({placeholders})"
        return sql, tuple(values)

    def build_select(self, table_name, fields=None, conditions=None, order=None, limit=None, offset=None):
        table = self._quote(table_name)
        if fields:
            cols = []
            for alias, field in fields.items():
                if isinstance(field, int):
                    cols.append(f"{field} AS {self._quote(alias)}")
                elif alias == field:
                    cols.append(self._quote(field))
                else:
                    cols.append(f"{self._quote(field)} AS {self._quote(alias)}")
            select = ", ".join(cols)
        else:
            select = "*"
        sql = f"SELECT {select} FROM {table}"
        params = []

        if conditions:
            where, params = self.build_conditions(conditions)
            if where:
                sql += " WHERE " + where

        if order:
            order_clauses = []
            for col, direction in order:
                direction = direction.upper()
                if direction not in ("ASC", "DESC"):
                    raise ValueError(f"Unsupported sort direction: {direction}")
                order_clauses.append(f"{self._quote(col)} {direction}")
            sql += " ORDER BY " + ", ".join(order_clauses)

        if limit is not None:
            sql += f" LIMIT {int(limit)}"
            if offset is not None:
                sql += f" OFFSET {int(offset)}"
        elif offset is not None:
            sql += f" LIMIT -1 OFFSET {int(offset)}"

        return sql, tuple(params)

    def build_count(self, table_name, conditions=None):
        sql = f"SELECT COUNT(*) AS count FROM {self._quote(table_name)}"
        params = []
        if conditions:
            where, params = self.build_conditions(conditions)
            if where:
                sql += " WHERE " + where
        return sql, tuple(params)

    def build_update(self, table_name, data, conditions=None):
        if not data:
            raise ValueError("update requires at least one field to set")
        table = self._quote(table_name)
        set_parts = []
        params = []
        for col, val in data.items():
            set_parts.append(f"{self._quote(col)} = ?")
            params.append(val)
        sql = f"UPDATE {table} SET {', '.join(set_parts)}"
        if conditions:
            where, where_params = self.build_conditions(conditions)
            if where:
                sql += " WHERE " + where
                params.extend(where_params)
        return sql, tuple(params)

    def build_delete(self, table_name, conditions=None):
        sql = f"DELETE FROM {self._quote(table_name)}"
        params = []
        if conditions:
            where, params = self.build_conditions(conditions)
            if where:
                sql += " WHERE " + where
        return sql, tuple(params)
