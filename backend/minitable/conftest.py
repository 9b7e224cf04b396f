import pytest

from minitable import DatabaseEngine, Table, TableLocator, TableSchema

SCHEMAS = {
    "authors": {
        "id": "integer",
        "name": "string",
        "email": "string",
        "_constraints": {"primary": {"type": "primary", "columns": ["id"]}},
    },
    "profiles": {
        "id": "integer",
        "author_id": "integer",
        "bio": "string",
        "_constraints": {"primary": {"type": "primary", "columns": ["id"]}},
    },
    "articles": {
        "id": "integer",
        "author_id": "integer",
        "title": "string",
        "body": "string",
        "published": {"type": "boolean", "default": 0},
        "_constraints": {"primary": {"type": "primary", "columns": ["id"]}},
    },
    "comments": {
        "id": "integer",
        "article_id": "integer",
        "body": "string",
        "_constraints": {"primary": {"type": "primary", "columns": ["id"]}},
    },
    "tags": {
        "id": "integer",
        "name": "string",
        "_constraints": {"primary": {"type": "primary", "columns": ["id"]}},
    },
    "articles_tags": {
        "article_id": {"type": "integer", "null": False},
        "tag_id": {"type": "integer", "null": False},
        "_constraints": {"primary": {"type": "primary", "columns": ["article_id", "tag_id"]}},
    },
    "categories": {
        "id": "integer",
        "parent_id": "integer",
        "name": "string",
        "_constraints": {"primary": {"type": "primary", "columns": ["id"]}},
    },
    "posts": {
        "id": "integer",
        "title": "string",
        "created": "datetime",
        "modified": "datetime",
        "_constraints": {"primary": {"type": "primary", "columns": ["id"]}},
    },
    "tokens": {
        "id": {"type": "uuid", "null": False},
        "label": "string",
        "_constraints": {"primary": {"type": "primary", "columns": ["id"]}},
    },
}


class AuthorsTable(Table):
    def initialize(self, config):
        self.has_many("Articles", dependent=True)
        self.has_one("Profiles", dependent=True)

    def validation_default(self, validator):
        return validator.not_empty("name").is_unique("email")


class ArticlesTable(Table):
    def initialize(self, config):
        self.belongs_to("Authors")
        self.has_many("Comments", dependent=True, cascade_callbacks=True)
        self.belongs_to_many("Tags")

    def validation_default(self, validator):
        return validator.require_presence("title", "create").not_empty("title")

    def validation_strict(self, validator):
        return self.validation_default(validator).length_between("title", 5, 50)


class CommentsTable(Table):
    def validation_default(self, validator):
        return validator.not_empty("body")


TABLE_CLASSES = {
    "Authors": AuthorsTable,
    "Articles": ArticlesTable,
    "Comments": CommentsTable,
}


@pytest.fixture
def engine():
    engine = DatabaseEngine(":memory:")
    for name, mapping in SCHEMAS.items():
        engine.executescript(TableSchema.from_mapping(name, mapping).create_sql())
    yield engine
    engine.close()


@pytest.fixture
def locator(engine):
    return TableLocator(engine, TABLE_CLASSES)


@pytest.fixture
def authors(locator):
    return locator.get("Authors")


@pytest.fixture
def articles(locator):
    return locator.get("Articles")


@pytest.fixture
def comments(locator):
    return locator.get("Comments")


@pytest.fixture
def tags(locator):
    return locator.get("Tags")


@pytest.fixture
def count(engine):
    def count_rows(table, **conditions):
        sql = f'SELECT COUNT(*) AS n FROM "{table}"'
        if conditions:
            sql += " WHERE " + " AND ".join(f'"{k}" = ?' for k in conditions)
        return engine.execute(sql, tuple(conditions.values())).rows[0]["n"]
    return count_rows


@pytest.fixture
def statements(engine, monkeypatch):
    """Every statement sent through the engine, as ``(sql, params)`` pairs."""
    executed = []
    execute = engine.execute

    def recording_execute(sql, params=None):
        executed.append((sql, tuple(params or ())))
        return execute(sql, params)

    monkeypatch.setattr(engine, "execute", recording_execute)
    return executed


def writes(statements):
    return [(sql, params) for sql, params in statements if sql.split()[0] in ("INSERT", "UPDATE", "DELETE")]


@pytest.fixture
def write_log(statements):
    return lambda: writes(statements)
