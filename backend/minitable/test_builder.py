import pytest

from minitable.builder import QueryBuilder
from minitable.schema import TableSchema


@pytest.fixture
def builder():
    return QueryBuilder()


def test_conditions_cover_operators_nulls_and_lists(builder):
    sql, params = builder.build_conditions({
        "age >=": 18,
        "deleted": None,
        "email !=": None,
        "id": [1, 2],
        "role NOT IN": ["bot"],
    })

    assert sql == '"age" >= ? AND "deleted" IS NULL AND "email" IS NOT NULL AND "id" IN (?, ?) AND "role" NOT IN (?)'
    assert params == [18, 1, 2, "bot"]


def test_empty_lists_never_match_or_always_match(builder):
    assert builder.build_conditions({"id": []}) == ("1 = 0", [])
    assert builder.build_conditions({"id NOT IN": []}) == ("1 = 1", [])


def test_or_groups(builder):
    sql, params = builder.build_conditions({"active": 1, "OR": {"name": "a", "email": "b"}})

    assert sql == '"active" = ? AND ("name" = ? OR "email" = ?)'
    assert params == [1, "a", "b"]


def test_insert_update_delete(builder):
    assert builder.build_insert("notes", {}) == ('INSERT INTO "notes" DEFAULT VALUES', ())
    assert builder.build_insert("notes", {"body": "x"}) == ('INSERT INTO "notes" ("body") VALUES (?)', ("x",))
    assert builder.build_update("notes", {"body": "y"}, {"id": 3}) == (
        'UPDATE "notes" SET "body" = ? WHERE "id" = ?', ("y", 3)
    )
    assert builder.build_delete("notes", {"id": 3}) == ('DELETE FROM "notes" WHERE "id" = ?', (3,))
    with pytest.raises(ValueError):
        builder.build_update("notes", {}, {"id": 3})


def test_select_with_fields_order_and_paging(builder):
    sql, params = builder.build_select(
        "notes", {"body": "body", "existing": 1}, {"id >": 2},
        order=[("id", "desc")], limit=5, offset=10,
    )

    assert sql == 'SELECT "body", 1 AS "existing" FROM "notes" WHERE "id" > ? ORDER BY "id" DESC LIMIT 5 OFFSET 10'
    assert params == (2,)


def test_unsafe_identifiers_are_rejected(builder):
    with pytest.raises(ValueError):
        builder.build_select('notes"; DROP TABLE notes; --')
    with pytest.raises(ValueError):
        builder.build_select("notes", order=[("id", "sideways")])


def test_create_sql_for_keys_and_constraints():
    schema = TableSchema.from_mapping("articles_tags", {
        "article_id": {"type": "integer", "null": False},
        "tag_id": {"type": "integer", "null": False},
        "_constraints": {
            "primary": {"type": "primary", "columns": ["article_id", "tag_id"]},
            "tag_fk": {"type": "foreign", "columns": "tag_id", "references": ("tags", "id"), "delete": "CASCADE"},
        },
    })

    assert schema.create_sql() == (
        'CREATE TABLE IF NOT EXISTS "articles_tags" ('
        '"article_id" INTEGER NOT NULL, "tag_id" INTEGER NOT NULL, '
        'PRIMARY KEY ("article_id", "tag_id"), '
        'FOREIGN KEY ("tag_id") REFERENCES "tags"("id") ON DELETE CASCADE);'
    )
