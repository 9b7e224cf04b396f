import uuid
from datetime import datetime


class ColumnType:
    name = None
    sql_type = "TEXT"

    def new_id(self):
        """Value for a fresh primary key, or None to let the database assign one."""
        return None

    def __repr__(self):
        return f"<ColumnType {self.name}>"


class IntegerType(ColumnType):
    name = "integer"
    sql_type = "INTEGER"


class FloatType(ColumnType):
    name = "float"
    sql_type = "REAL"


class StringType(ColumnType):
    name = "string"
    sql_type = "TEXT"


class BooleanType(ColumnType):
    name = "boolean"
    sql_type = "INTEGER"


class DateTimeType(ColumnType):
    name = "datetime"
    sql_type = "DATETIME"

    def now(self):
        return datetime.now().replace(microsecond=0).isoformat(sep=" ")


class UuidType(ColumnType):
    name = "uuid"
    sql_type = "CHAR(36)"

    def new_id(self):
        return str(uuid.uuid4())


TYPES = {
    t.name: t for t in (IntegerType, FloatType, StringType, BooleanType, DateTimeType, UuidType)
}


def build(type_name):
    """Return a column type instance, falling back to string for unknown names."""
    return TYPES.get(type_name or "string", StringType)()


def register(type_class):
    if not type_class.name:
        raise ValueError(f"{type_class.__name__} must declare a name")
    TYPES[type_class.name] = type_class
