import functools
import logging
import re

from minitable import naming, types
from minitable.associations import BelongsTo, BelongsToMany, HasMany, HasOne
from minitable.behaviors import BehaviorRegistry, implemented_events
from minitable.entity import Entity
from minitable.errors import (
    MiniTableError,
    MissingKeyError,
    RecordNotFoundError,
    UnknownAssociationError,
    UnknownFinderError,
    UnknownMethodError,
)
from minitable.events import Event, EventManager
from minitable.options import DeleteOptions, SaveOptions
from minitable.query import Query
from minitable.schema import TableSchema
from minitable.validation import Validator

logger = logging.getLogger("MiniTable")

_dynamic_finder_pattern = re.compile(r'^find_(?:(\w+?)_)?by_(\w+)$')


class Table:
    """Persistence rules for one database table.

    A table owns its associations, validators and behaviors, turns rows into
    entities through finders, and saves or deletes entity graphs:

    * ``save`` validates, saves ``BelongsTo`` data first (the root row needs
      its foreign key), writes the root row, then saves ``HasOne``,
      ``HasMany`` and ``BelongsToMany`` data (they need the root's key).
    * ``delete`` removes the row and asks every association to cascade.

    Both run inside one transaction unless ``atomic=False`` is passed.
    Configuration comes from constructor keywords or an inner ``Meta``
    class (``table``, ``alias``, ``primary_key``, ``display_field``,
    ``entity_class``); subclasses declare associations in ``initialize``.
    """

    _meta = {}
    _finder_methods = {}
    _validator_builders = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls._configure_class()

    @classmethod
    def _configure_class(cls):
        meta_cls = getattr(cls, "Meta", None)
        meta_attrs = {}
        if meta_cls:
            for attr in dir(meta_cls):
                if not attr.startswith('_'):
                    meta_attrs[attr] = getattr(meta_cls, attr)
        cls._meta = meta_attrs

        finders = {}
        builders = {}
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                if not callable(value):
                    continue
                if attr.startswith("find_") and not _dynamic_finder_pattern.match(attr):
                    finders[attr[len("find_"):].lower()] = attr
                elif attr.startswith("validation_"):
                    builders[attr[len("validation_"):]] = attr
        cls._finder_methods = finders
        cls._validator_builders = builders

    def __init__(self, table=None, alias=None, connection=None, schema=None, entity_class=None,
                 event_manager=None, behaviors=None, locator=None, primary_key=None,
                 display_field=None, **config):
        meta = self._meta
        self._table = table or meta.get("table")
        self._alias = alias or meta.get("alias")
        self._connection = connection
        self._schema = None
        self._entity_class = entity_class or meta.get("entity_class") or Entity
        self._primary_key = primary_key or meta.get("primary_key")
        self._display_field = display_field or meta.get("display_field")
        self.locator = locator
        self._associations = {}
        self._validators = {}
        self._finders = {
            name: getattr(self, method) for name, method in type(self)._finder_methods.items()
        }

        schema = schema if schema is not None else meta.get("schema")
        if schema is not None:
            self.schema = schema

        self._event_manager = event_manager or EventManager()
        if behaviors is None:
            behaviors = BehaviorRegistry(self)
        elif behaviors.table is None:
            behaviors.table = self
        self._behaviors = behaviors

        self.initialize(config)
        self._event_manager.attach(self)

    def __repr__(self):
        return f"<{self.__class__.__name__} table={self._table or '?'} alias={self._alias or '?'}>"

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        behaviors = self.__dict__.get("_behaviors")
        if behaviors is not None and behaviors.has_method(name):
            return functools.partial(behaviors.call, name)
        if _dynamic_finder_pattern.match(name):
            return functools.partial(self._dynamic_finder, name)
        raise UnknownMethodError(name)

    def initialize(self, config):
        """Hook for subclasses: declare associations and behaviors here."""

    # identity and metadata

    def _class_base_name(self):
        name = type(self).__name__
        if name.endswith("Table"):
            return name[: -len("Table")]
        return name

    @property
    def table(self):
        if self._table is None:
            name = self._class_base_name() or self._alias
            if not name:
                raise MiniTableError("A table name or an alias is required")
            self._table = naming.underscore(name)
        return self._table

    @table.setter
    def table(self, name):
        self._table = name

    @property
    def alias(self):
        if self._alias is None:
            self._alias = self._class_base_name() or self.table
        return self._alias

    @alias.setter
    def alias(self, name):
        self._alias = name

    @property
    def connection(self):
        return self._connection

    @connection.setter
    def connection(self, connection):
        self._connection = connection

    @property
    def event_manager(self):
        return self._event_manager

    @property
    def schema(self):
        if self._schema is None:
            if self._connection is None:
                raise MiniTableError(f"{self.alias} has no connection to describe {self.table} with")
            self._schema = self._connection.describe(self.table)
        return self._schema

    @schema.setter
    def schema(self, schema):
        if isinstance(schema, dict):
            schema = TableSchema.from_mapping(self.table, schema)
        self._schema = schema

    def has_field(self, field):
        return self.schema.column(field) is not None

    @property
    def primary_key(self):
        if self._primary_key is None:
            key = self.schema.primary_key()
            if len(key) == 1:
                self._primary_key = key[0]
            elif key:
                self._primary_key = list(key)
        return self._primary_key

    @primary_key.setter
    def primary_key(self, key):
        self._primary_key = key

    def primary_key_fields(self):
        key = self.primary_key
        if key is None:
            return []
        return list(key) if isinstance(key, (list, tuple)) else [key]

    @property
    def display_field(self):
        if self._display_field is None:
            schema = self.schema
            self._display_field = self.primary_key
            if schema.column("title"):
                self._display_field = "title"
            if schema.column("name"):
                self._display_field = "name"
        return self._display_field

    @display_field.setter
    def display_field(self, field):
        self._display_field = field

    @property
    def entity_class(self):
        return self._entity_class

    @entity_class.setter
    def entity_class(self, entity_class):
        self._entity_class = entity_class

    def implemented_events(self):
        return implemented_events(self)

    # behaviors

    def add_behavior(self, name, behavior=None, **config):
        return self._behaviors.load(name, behavior, **config)

    def behaviors(self):
        return self._behaviors.loaded()

    def has_behavior(self, name):
        return self._behaviors.loaded(name)

    # associations

    def association(self, name):
        return self._associations.get(name.lower())

    def associations(self):
        return list(self._associations.values())

    def _add_association(self, association):
        self._associations[association.name.lower()] = association
        return association

    def belongs_to(self, associated, **options):
        return self._add_association(BelongsTo(associated, self, **options))

    def has_one(self, associated, **options):
        return self._add_association(HasOne(associated, self, **options))

    def has_many(self, associated, **options):
        return self._add_association(HasMany(associated, self, **options))

    def belongs_to_many(self, associated, **options):
        return self._add_association(BelongsToMany(associated, self, **options))

    # finders

    def query(self):
        return Query(self)

    def find(self, type="all", **options):
        query = self.query()
        query.apply_options(options)
        return self.call_finder(type, query, options)

    def find_all(self, query, options):
        return query

    def find_list(self, query, options):
        """Results become ``{key: value}``, grouped by ``group_field`` when given."""
        key_field = options.get("key_field") or self.primary_key
        value_field = options.get("value_field") or self.display_field
        group_field = options.get("group_field")

        def read(row, field):
            if isinstance(field, (list, tuple)):
                return tuple(row.get(f) for f in field)
            return row.get(field)

        def formatter(rows):
            result = {}
            for row in rows:
                key, value = read(row, key_field), read(row, value_field)
                if group_field:
                    result.setdefault(read(row, group_field), {})[key] = value
                else:
                    result[key] = value
            return result

        return query.format_results(formatter)

    def find_threaded(self, query, options):
        """Results become a tree: each row gets a list of its children."""
        key_field = options.get("key_field") or self.primary_key
        parent_field = options.get("parent_field", "parent_id")
        nested_key = options.get("nested_key", "children")

        def formatter(rows):
            by_key = {}
            for row in rows:
                if isinstance(row, Entity):
                    row.set(nested_key, [], dirty=False)
                else:
                    row[nested_key] = []
                by_key[row.get(key_field)] = row
            roots = []
            for row in rows:
                parent = by_key.get(row.get(parent_field))
                if parent is None or parent is row:
                    roots.append(row)
                else:
                    parent.get(nested_key).append(row)
            return roots

        return query.format_results(formatter)

    def add_finder(self, name, handler):
        self._finders[name.lower()] = handler

    def call_finder(self, type, query, options=None):
        options = options or {}
        finder = self._finders.get(type.lower())
        if finder is not None:
            return finder(query, options)
        if self._behaviors.has_finder(type):
            return self._behaviors.call_finder(type, query, options)
        raise UnknownFinderError(type)

    def _dynamic_finder(self, method, *args):
        match = _dynamic_finder_pattern.match(method)
        find_type = match.group(1) or "all"
        fields = match.group(2)
        has_or = "_or_" in fields
        has_and = "_and_" in fields
        if has_or and has_and:
            raise ValueError('Cannot mix "and" & "or" in a dynamic finder. Use find() instead.')

        def make_conditions(names):
            if len(args) < len(names):
                raise ValueError(
                    f"Not enough arguments to dynamic finder. Got {len(args)} required {len(names)}"
                )
            return dict(zip(names, args))

        if has_or:
            conditions = {"OR": make_conditions(fields.split("_or_"))}
        elif has_and:
            conditions = make_conditions(fields.split("_and_"))
        else:
            conditions = make_conditions([fields])
        return self.find(find_type, conditions=conditions)

    def get(self, primary_key, **options):
        keys = self.primary_key_fields()
        values = list(primary_key) if isinstance(primary_key, (list, tuple)) else [primary_key]
        if not keys or len(keys) != len(values):
            raise ValueError(f"{self.alias} expects {len(keys)} primary key value(s), got {len(values)}")
        finder = options.pop("finder", "all")
        entity = self.find(finder, **options).where(dict(zip(keys, values))).first()
        if entity is None:
            raise RecordNotFoundError(self.table, primary_key)
        return entity

    def exists(self, conditions):
        query = self.find("all").select({"existing": 1}).where(conditions).limit(1).hydrate(False)
        return bool(query.all())

    def new_entity(self, data=None):
        return self.entity_class(data, new=True, source=self.alias)

    # bulk operations, no events and no cascades

    def update_all(self, fields, conditions):
        result = self.query().update(fields).where(conditions).execute()
        return result.rowcount > 0

    def delete_all(self, conditions):
        result = self.query().delete().where(conditions).execute()
        return result.rowcount > 0

    # validation

    def validator(self, name="default", instance=None):
        if instance is not None:
            self._validators[name] = instance
            return instance
        if name in self._validators:
            return self._validators[name]
        builder = type(self)._validator_builders.get(name)
        if builder is None:
            raise UnknownMethodError(f"validation_{name}")
        validator = getattr(self, builder)(Validator())
        self._validators[name] = validator
        return validator

    def validation_default(self, validator):
        return validator

    def _dispatch(self, name, **data):
        event = Event(name, self, **data)
        self._event_manager.dispatch(event)
        return event

    def _process_validation(self, entity, options):
        if not options.validation:
            return True
        name = options.validation if isinstance(options.validation, str) else "default"
        validator = self.validator(name)
        validator.provider("table", self)
        validator.provider("entity", entity)
        try:
            event = self._dispatch("Model.beforeValidate", entity=entity, options=options, validator=validator)
            if event.is_stopped:
                return bool(event.result)
            if not len(validator):
                return True
            success = entity.validate(validator)
            event = self._dispatch("Model.afterValidate", entity=entity, options=options, validator=validator)
            if event.is_stopped:
                success = bool(event.result)
            return success
        finally:
            validator.unset_provider("entity")

    # save pipeline

    def save(self, entity, options=None, **kwargs):
        """Persist ``entity`` and its dirty associated data.

        Returns the entity on success and ``False`` when validation, a
        listener or a write failed. Options: ``atomic`` (default ``True``),
        ``validate`` (``True``, ``False`` or a validator name) and
        ``associated`` (``True``, ``False``, a list of aliases or a mapping of
        alias to options for that association's save).
        """
        options = SaveOptions.coerce(options, **kwargs)
        if entity.is_new is False and not entity.dirty():
            return entity
        if not options.atomic:
            return self._process_save(entity, options)

        states = self._capture_graph(entity)
        try:
            result = self.connection.transactional(lambda: self._process_save(entity, options))
        except Exception:
            _restore_graph(states)
            raise
        if not result:
            _restore_graph(states)
        return result

    def _capture_graph(self, entity, seen=None):
        """Record newness, keys and dirty fields of ``entity`` and its related entities."""
        seen = set() if seen is None else seen
        if id(entity) in seen:
            return []
        seen.add(id(entity))
        primary = self.primary_key_fields()
        states = [(entity, entity.is_new, primary, entity.extract(primary), set(entity.dirty_fields()))]
        for association in self._associations.values():
            value = entity.get(association.property)
            for related in value if isinstance(value, (list, tuple)) else [value]:
                if isinstance(related, Entity):
                    states.extend(association.target._capture_graph(related, seen))
        return states

    def _process_save(self, entity, options):
        """Run the save phases.

        The ``beforeValidate`` and ``beforeSave`` listeners may adjust
        ``options``; the options are frozen into a plain copy right after
        ``beforeSave`` and that copy is what associations receive.
        """
        primary = self.primary_key_fields()
        unset_on_failure = [field for field in primary if entity.get(field) is None]

        if entity.is_new is None:
            values = entity.extract(primary)
            if primary and len(values) == len(primary) and None not in values.values():
                entity.is_new = not self.exists(values)
            else:
                entity.is_new = True

        options.associated = self._normalize_associated(options.associated)

        if not self._process_validation(entity, options):
            logger.debug(f"[SAVE]: {self.alias} entity failed validation: {entity.errors()}")
            return False

        event = self._dispatch("Model.beforeSave", entity=entity, options=options)
        if event.is_stopped:
            return event.result

        associated = self._normalize_associated(options.associated)
        pass_options = options.to_dict(exclude=["associated"])
        parents, children = self._sort_association_types(associated)

        saved = self._save_associations(parents, entity, pass_options, associated)
        if not saved:
            if options.atomic:
                return False
            logger.warning(f"[SAVE]: {self.alias} parent association failed, saving the row anyway")

        data = entity.extract(self.schema.columns(), only_dirty=True)
        is_new = entity.is_new
        if is_new:
            success = self._insert(entity, data)
        else:
            success = self._update(entity, data)

        if success:
            success = self._save_associations(children, entity, pass_options, associated)
            if success or not options.atomic:
                if not success:
                    logger.warning(f"[SAVE]: {self.alias} child association failed, keeping the row")
                entity.clean()
                self._dispatch("Model.afterSave", entity=entity, options=options)
                entity.is_new = False
                success = entity

        if not success and is_new:
            entity.unset(*unset_on_failure)
            entity.is_new = True
        return success or False

    def _normalize_associated(self, associated):
        if associated is True:
            return {association.name: {} for association in self._associations.values()}
        if not associated:
            return {}
        if isinstance(associated, dict):
            return {alias: dict(opts or {}) for alias, opts in associated.items()}
        return {alias: {} for alias in associated if alias}

    def _sort_association_types(self, assocs):
        """Split aliases into ``(parents, children)`` keeping their order."""
        parents = []
        children = []
        for alias in assocs:
            association = self.association(alias)
            if association is None:
                raise UnknownAssociationError(self.alias, alias)
            if association.is_owning_side(self):
                children.append(alias)
            else:
                parents.append(alias)
        return parents, children

    def _save_associations(self, assocs, entity, options, associated):
        for alias in assocs:
            association = self.association(alias)
            if not entity.dirty(association.property):
                continue
            pass_options = dict(options)
            pass_options.update(associated.get(alias) or {})
            if not association.save(entity, pass_options):
                logger.debug(f"[SAVE]: {self.alias} association {association.name} failed")
                return False
        return entity

    def _insert(self, entity, data):
        primary = self.primary_key_fields()
        generated = None
        if len(primary) == 1 and data.get(primary[0]) is None:
            data.pop(primary[0], None)
            current = entity.get(primary[0])
            if current is None:
                generated = self._new_id(primary[0])
            else:
                data[primary[0]] = current
            if generated is not None:
                data[primary[0]] = generated

        result = self.query().insert(data).execute()
        if result.rowcount <= 0:
            return False
        if len(primary) == 1 and primary[0] not in data:
            entity.set(primary[0], result.lastrowid)
        elif generated is not None:
            entity.set(primary[0], generated)
        return entity

    def _new_id(self, primary):
        return types.build(self.schema.column_type(primary)).new_id()

    def _update(self, entity, data):
        primary = self.primary_key_fields()
        missing = [field for field in primary if entity.get(field) in (None, "")]
        if not primary or missing:
            raise MissingKeyError(self.table, missing or ["<no primary key>"])
        primary_key = entity.extract(primary)

        data = {field: value for field, value in data.items() if field not in primary_key}
        if not data:
            return entity

        result = self.query().update(data).where(primary_key).execute()
        if result.rowcount <= 0:
            return False
        return entity

    # delete pipeline

    def delete(self, entity, options=None, **kwargs):
        """Delete the row of ``entity`` and cascade to its associations.

        Returns ``True`` when the row was removed. Cascades are best effort:
        one that reports failure is logged and does not change the result.
        """
        options = DeleteOptions.coerce(options, **kwargs)
        if options.atomic:
            return self.connection.transactional(lambda: self._process_delete(entity, options))
        return self._process_delete(entity, options)

    def _process_delete(self, entity, options):
        event = self._dispatch("Model.beforeDelete", entity=entity, options=options)
        if event.is_stopped:
            return event.result

        if entity.is_new is True:
            return False

        primary = self.primary_key_fields()
        conditions = entity.extract(primary)
        missing = [field for field in primary if conditions.get(field) in (None, "")]
        if not primary or missing:
            raise MissingKeyError(self.table, missing or ["<no primary key>"], action="deleting")

        result = self.query().delete().where(conditions).execute()
        if result.rowcount <= 0:
            return False

        cascade_options = options.to_dict()
        for association in self._associations.values():
            if not association.cascade_delete(entity, cascade_options):
                logger.warning(f"[DELETE]: {self.alias} cascade through {association.name} reported a failure")

        self._dispatch("Model.afterDelete", entity=entity, options=options)
        return True


def _restore_graph(states):
    # Rolled back rows: keys that were empty before the save get generated again on retry.
    for entity, is_new, primary, keys, dirty in states:
        for field in primary:
            if keys.get(field) is None:
                entity.unset(field)
            else:
                entity.set(field, keys[field], dirty=False)
        for field in dirty:
            if field in entity:
                entity.set_dirty(field)
        entity.is_new = is_new


Table._configure_class()
