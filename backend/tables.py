from minitable import Table


class AuthorsTable(Table):
    class Meta:
        table = "authors"
        schema = {
            "id": {"type": "integer", "null": False},
            "name": {"type": "string", "null": False},
            "email": "string",
            "created": "datetime",
            "modified": "datetime",
            "_constraints": {
                "primary": {"type": "primary", "columns": ["id"]},
                "unique_email": {"type": "unique", "columns": ["email"]},
            },
        }

    def initialize(self, config):
        self.has_many("Articles", dependent=True, cascade_callbacks=True)
        self.add_behavior("Timestamp")

    def validation_default(self, validator):
        return (
            validator
            .require_presence("name", "create")
            .not_empty("name")
            .is_unique("email", "This email is already registered")
        )


class ArticlesTable(Table):
    class Meta:
        table = "articles"
        display_field = "title"
        schema = {
            "id": {"type": "integer", "null": False},
            "author_id": "integer",
            "title": {"type": "string", "null": False},
            "body": "string",
            "published": {"type": "boolean", "null": False, "default": 0},
            "created": "datetime",
            "modified": "datetime",
            "_constraints": {
                "primary": {"type": "primary", "columns": ["id"]},
                "author_fk": {"type": "foreign", "columns": ["author_id"], "references": ("authors", "id")},
            },
        }

    def initialize(self, config):
        self.belongs_to("Authors")
        self.add_behavior("Timestamp")

    def validation_default(self, validator):
        return (
            validator
            .require_presence("title", "create")
            .not_empty("title")
            .length_between("title", 3, 200)
        )

    def find_published(self, query, options):
        return query.where(published=True).order("created", "DESC")


TABLE_CLASSES = {
    "Authors": AuthorsTable,
    "Articles": ArticlesTable,
}


def create_schema(locator):
    for alias in TABLE_CLASSES:
        locator.connection.executescript(locator.get(alias).schema.create_sql())
