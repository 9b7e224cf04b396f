# MiniTable - table-centric persistence for sqlite
from minitable.database import DatabaseEngine
from minitable.entity import Entity
from minitable.events import Event, EventManager, Stop
from minitable.locator import TableLocator
from minitable.options import DeleteOptions, SaveOptions
from minitable.query import Query
from minitable.schema import TableSchema
from minitable.table import Table
from minitable.validation import Validator

__version__ = "0.1.0"
__all__ = [
    "DatabaseEngine", "Entity", "Event", "EventManager", "Stop", "TableLocator",
    "DeleteOptions", "SaveOptions", "Query", "TableSchema", "Table", "Validator",
]
