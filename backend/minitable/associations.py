import logging

from minitable import naming
from minitable.entity import Entity
from minitable.errors import MissingTableError

logger = logging.getLogger("MiniTable")


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class Association:
    """Named edge from a source table to a target table.

    ``save`` persists the related data held in ``property`` of a source
    entity and returns the entity, or ``False`` when a related save failed.
    ``cascade_delete`` removes related rows after a source row was deleted,
    according to ``dependent`` and ``cascade_callbacks``.
    """

    r_type = None

    def __init__(self, name, source, target_table=None, class_name=None, foreign_key=None,
                 binding_key=None, conditions=None, dependent=False, cascade_callbacks=False,
                 property_name=None):
        self.name = name
        self.source = source
        self._target = target_table
        self._class_name = class_name or name
        self._foreign_key = foreign_key
        self._binding_key = binding_key
        self.conditions = dict(conditions or {})
        self.dependent = dependent
        self.cascade_callbacks = cascade_callbacks
        self._property = property_name

    def __repr__(self):
        target = self._target.alias if self._target is not None else self._class_name
        return f"<{self.__class__.__name__} {self.name} {self.source.alias} -> {target}>"

    @property
    def target(self):
        if self._target is None:
            locator = self.source.locator
            if locator is None:
                raise MissingTableError(self._class_name)
            self._target = locator.get(self._class_name)
        return self._target

    @property
    def foreign_key(self):
        if self._foreign_key is None:
            self._foreign_key = self._default_foreign_key()
        return self._foreign_key

    def _default_foreign_key(self):
        return naming.foreign_key_for(self.source.alias)

    @property
    def binding_key(self):
        if self._binding_key is None:
            self._binding_key = self._default_binding_key()
        return self._binding_key

    def _default_binding_key(self):
        return self.source.primary_key

    def is_owning_side(self, table):
        """Whether ``table`` needs the other side saved first to write its row."""
        return table is self.source

    def _key_values(self, entity, fields):
        return [entity.get(field) for field in _as_list(fields)]

    def _related_conditions(self, entity):
        conditions = dict(self.conditions)
        keys = _as_list(self.foreign_key)
        values = self._key_values(entity, self.binding_key)
        conditions.update(zip(keys, values))
        return conditions

    def _link(self, source_entity, target_entity):
        for fk, value in zip(_as_list(self.foreign_key), self._key_values(source_entity, self.binding_key)):
            if target_entity.get(fk) != value or target_entity.is_new is not False:
                target_entity.set(fk, value)

    def save(self, entity, options):
        raise NotImplementedError

    def cascade_delete(self, entity, options):
        if not self.dependent:
            return True
        conditions = self._related_conditions(entity)
        if not self.cascade_callbacks:
            self.target.delete_all(conditions)
            return True
        success = True
        for related in self.target.find("all", conditions=conditions).all():
            if not self.target.delete(related, options):
                logger.warning(f"[CASCADE]: {self.name} could not delete {related!r}")
                success = False
        return success

    def _default_property(self):
        return naming.singularize(naming.underscore(self.name))

    # Declared last: the name shadows the builtin for the rest of the class body.
    @property
    def property(self):
        if self._property is None:
            self._property = self._default_property()
        return self._property


class BelongsTo(Association):
    r_type = "many-to-one"

    def _default_foreign_key(self):
        return naming.foreign_key_for(self.name)

    def _default_binding_key(self):
        return self.target.primary_key

    def is_owning_side(self, table):
        return table is self.target

    def save(self, entity, options):
        target_entity = entity.get(self.property)
        if not isinstance(target_entity, Entity):
            return entity
        if not self.target.save(target_entity, options):
            return False
        keys = _as_list(self.foreign_key)
        values = self._key_values(target_entity, self.binding_key)
        for fk, value in zip(keys, values):
            if entity.get(fk) != value:
                entity.set(fk, value)
        return entity

    def cascade_delete(self, entity, options):
        return True


class HasOne(Association):
    r_type = "one-to-one"

    def save(self, entity, options):
        target_entity = entity.get(self.property)
        if not isinstance(target_entity, Entity):
            return entity
        self._link(entity, target_entity)
        if not self.target.save(target_entity, options):
            return False
        return entity


class HasMany(Association):
    r_type = "one-to-many"

    def _default_property(self):
        return naming.underscore(self.name)

    def save(self, entity, options):
        related = entity.get(self.property)
        if not isinstance(related, (list, tuple)):
            return entity
        for target_entity in related:
            if not isinstance(target_entity, Entity):
                continue
            self._link(entity, target_entity)
            if not self.target.save(target_entity, options):
                return False
        return entity


class BelongsToMany(Association):
    """Many-to-many edge through a join table.

    Saving persists new or dirty target entities and inserts the missing
    join rows; with ``save_strategy="replace"`` join rows pointing to
    targets no longer in the property are removed. Deleting a source row
    always clears its join rows unless ``dependent`` is switched off.
    """

    r_type = "many-to-many"

    def __init__(self, name, source, through=None, join_table=None, target_foreign_key=None,
                 save_strategy="append", dependent=True, **options):
        super().__init__(name, source, dependent=dependent, **options)
        if save_strategy not in ("append", "replace"):
            raise ValueError(f"Unknown save strategy: {save_strategy}")
        self._junction = through
        self._join_table = join_table
        self._target_foreign_key = target_foreign_key
        self.save_strategy = save_strategy

    def _default_property(self):
        return naming.underscore(self.name)

    def is_owning_side(self, table):
        return True

    @property
    def target_foreign_key(self):
        if self._target_foreign_key is None:
            self._target_foreign_key = naming.foreign_key_for(self.target.alias)
        return self._target_foreign_key

    def junction(self):
        if self._junction is None:
            from minitable.table import Table
            name = self._join_table or naming.join_table_for(self.source.table, self.target.table)
            self._junction = Table(table=name, connection=self.source.connection)
        return self._junction

    def _junction_options(self, options):
        return {"atomic": options.get("atomic", True), "validate": False, "associated": False}

    def save(self, entity, options):
        targets = entity.get(self.property)
        if not isinstance(targets, (list, tuple)):
            return entity
        junction = self.junction()
        source_values = self._key_values(entity, self.binding_key)
        target_ids = []
        for target_entity in targets:
            if not isinstance(target_entity, Entity):
                continue
            if target_entity.is_new is not False or target_entity.dirty():
                if not self.target.save(target_entity, options):
                    return False
            target_values = self._key_values(target_entity, self.target.primary_key)
            target_ids.extend(target_values)
            link = dict(zip(_as_list(self.foreign_key), source_values))
            link.update(zip(_as_list(self.target_foreign_key), target_values))
            if junction.exists(link):
                continue
            if not junction.save(junction.new_entity(link), self._junction_options(options)):
                return False

        if self.save_strategy == "replace":
            stale = dict(zip(_as_list(self.foreign_key), source_values))
            stale[f"{self.target_foreign_key} NOT IN"] = target_ids
            junction.delete_all(stale)
        return entity

    def cascade_delete(self, entity, options):
        if not self.dependent:
            return True
        junction = self.junction()
        conditions = dict(zip(_as_list(self.foreign_key), self._key_values(entity, self.binding_key)))
        if not self.cascade_callbacks:
            junction.delete_all(conditions)
            return True
        success = True
        for link in junction.find("all", conditions=conditions).all():
            success = bool(junction.delete(link, options)) and success
        return success
