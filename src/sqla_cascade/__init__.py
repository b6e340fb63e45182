"""Cascading persistence of object graphs on SQLAlchemy Core.

sqla_cascade saves and loads entities together with the children they own and
the entities they reference.  Describe an entity once with a
``DescriptorBuilder``, then ``build_dao(connection)`` to insert, update, delete
and select whole graphs; children are fetched with one of three
``ChildSelectStrategy`` values and orphaned children are deleted on save.
Many-to-many links through a link table go through ``AssociationDaoBuilder``.
"""

from ._version import __version__, __version_tuple__
from .associations import Association, AssociationDao, AssociationDaoBuilder
from .children import ChildrenDescriptor
from .column_types import BOOLEAN, DATE, DATETIME, DECIMAL, FLOAT, INTEGER, STRING, ColumnType
from .columns import (
    BackReferenceParentColumn,
    Column,
    ColumnCollection,
    JoinColumn,
    NoBackReferenceParentColumn,
    ParentColumn,
    PrimaryKey,
)
from .converters import (
    IDENTITY,
    ONE_ZERO_BOOLEAN,
    T_F_BOOLEAN,
    BooleanConverter,
    Converter,
    EnumConverter,
)
from .dao import Dao, KeylessDao
from .datastructures import Envelope, Prefixer, frozendict
from .descriptor import DescriptorBuilder, EntityDescriptor
from .errors import (
    ConfigurationError,
    ConversionError,
    ExecutionError,
    NullValueError,
    SqlaCascadeError,
    UnsavedReferenceError,
    ValidationError,
)
from .runner import (
    BindValue,
    KeyProducer,
    PersistenceContext,
    SqlRunner,
    Transactor,
    atomically,
    sequence_key_producer,
)
from .sql import JoinNode, SelectPlan, SqlBuilder, cache_clear, cache_info, plan_select, sql_builder
from .strategies import (
    ChildSelectStrategy,
    InClauseSelector,
    Scope,
    StandardSelector,
    SubSelectSelector,
    check_strategy_consistency,
)
from .validation import find_problems, validate
from .where import ColumnSelection, Direction, Operator, Order, SqlFunction, Where


__all__ = (
    "BOOLEAN",
    "DATE",
    "DATETIME",
    "DECIMAL",
    "FLOAT",
    "IDENTITY",
    "INTEGER",
    "ONE_ZERO_BOOLEAN",
    "STRING",
    "T_F_BOOLEAN",
    "Association",
    "AssociationDao",
    "AssociationDaoBuilder",
    "BackReferenceParentColumn",
    "BindValue",
    "BooleanConverter",
    "ChildSelectStrategy",
    "ChildrenDescriptor",
    "Column",
    "ColumnCollection",
    "ColumnSelection",
    "ColumnType",
    "ConfigurationError",
    "ConversionError",
    "Converter",
    "Dao",
    "DescriptorBuilder",
    "Direction",
    "EntityDescriptor",
    "EnumConverter",
    "Envelope",
    "ExecutionError",
    "InClauseSelector",
    "JoinColumn",
    "JoinNode",
    "KeyProducer",
    "KeylessDao",
    "NoBackReferenceParentColumn",
    "NullValueError",
    "Operator",
    "Order",
    "ParentColumn",
    "PersistenceContext",
    "Prefixer",
    "PrimaryKey",
    "Scope",
    "SelectPlan",
    "SqlBuilder",
    "SqlFunction",
    "SqlRunner",
    "SqlaCascadeError",
    "StandardSelector",
    "SubSelectSelector",
    "Transactor",
    "UnsavedReferenceError",
    "ValidationError",
    "Where",
    "__version__",
    "__version_tuple__",
    "atomically",
    "cache_clear",
    "cache_info",
    "check_strategy_consistency",
    "find_problems",
    "frozendict",
    "plan_select",
    "sequence_key_producer",
    "sql_builder",
    "validate",
)
