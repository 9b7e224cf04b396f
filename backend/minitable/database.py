import sqlite3
import logging

from minitable.schema import TableSchema

logger = logging.getLogger("MiniTable")


class StatementResult:
    """Rows, affected-row count and generated key of one executed statement."""

    def __init__(self, rows, rowcount, lastrowid):
        self.rows = rows
        self.rowcount = rowcount
        self.lastrowid = lastrowid

    def __repr__(self):
        return f"<StatementResult rows={len(self.rows)} rowcount={self.rowcount} lastrowid={self.lastrowid}>"


class DatabaseEngine:
    def __init__(self, db_path=":memory:", foreign_keys=False):
        self.db_path = db_path
        # transactions are opened explicitly with BEGIN / SAVEPOINT
        self.connection = sqlite3.connect(db_path, isolation_level=None, check_same_thread=False)
        self.connection.row_factory = sqlite3.Row
        if foreign_keys:
            self.connection.execute("PRAGMA foreign_keys = ON")
        self._depth = 0

    def _log(self, sql, params=None):
        msg = f"[SQL EXECUTE]: {sql}"
        if params:
            msg += f" | [PARAMS]: {params}"
        logger.info(msg)

    def execute(self, sql, params=None):
        self._log(sql, params)
        cursor = self.connection.cursor()
        try:
            cursor.execute(sql, params or ())
            rows = [dict(row) for row in cursor.fetchall()]
            return StatementResult(rows, cursor.rowcount, cursor.lastrowid)
        finally:
            cursor.close()

    def executescript(self, sql):
        self._log(sql)
        self.connection.executescript(sql)

    @property
    def in_transaction(self):
        return self._depth > 0

    def begin(self):
        if self._depth == 0:
            self.connection.execute("BEGIN")
            logger.info("[TRANSACTION]: Begin")
        else:
            self.connection.execute(f"SAVEPOINT level_{self._depth}")
            logger.info(f"[TRANSACTION]: Savepoint level_{self._depth}")
        self._depth += 1

    def commit(self):
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0:
            self.connection.execute("COMMIT")
            logger.info("[TRANSACTION]: Commit")
        else:
            self.connection.execute(f"RELEASE SAVEPOINT level_{self._depth}")

    def rollback(self):
        if self._depth == 0:
            return
        self._depth -= 1
        if self._depth == 0:
            self.connection.execute("ROLLBACK")
            logger.warning("[TRANSACTION]: Rollback")
        else:
            self.connection.execute(f"ROLLBACK TO SAVEPOINT level_{self._depth}")
            self.connection.execute(f"RELEASE SAVEPOINT level_{self._depth}")
            logger.warning(f"[TRANSACTION]: Rollback to savepoint level_{self._depth}")

    def transactional(self, callback):
        """Run ``callback`` inside a transaction.

        A falsy return value or an exception rolls the writes back; nested
        calls use savepoints so only the inner writes are undone.
        """
        self.begin()
        try:
            result = callback()
        except Exception:
            self.rollback()
            raise
        if not result:
            self.rollback()
        else:
            self.commit()
        return result

    def describe(self, table_name):
        rows = self.execute(f'PRAGMA table_info("{table_name}")').rows
        if not rows:
            raise ValueError(f"Cannot describe {table_name}. It has no columns or does not exist.")
        columns = {}
        primary = []
        for row in sorted(rows, key=lambda r: r["cid"]):
            columns[row["name"]] = {
                "type": TableSchema.type_from_sql(row["type"]),
                "null": not row["notnull"],
                "default": row["dflt_value"],
            }
            if row["pk"]:
                primary.append((row["pk"], row["name"]))
        schema = TableSchema(table_name, columns)
        if primary:
            schema.add_constraint("primary", {
                "type": "primary",
                "columns": [name for _, name in sorted(primary)],
            })
        return schema

    def close(self):
        self.connection.close()
