# Copyright 2019-present Kensho Technologies, LLC.
"""Tools for merging schemas into one, and for delegating its fields back to the originals.

Merging registers the types of all schemas under one name each, and gives every root field of
every schema a resolver that rewrites the caller's selections into a query against the schema
that defines the field. Resolvers passed in by the user may connect types of different schemas,
delegating through the MergeInfo handed to them.
"""
from .merge_info import MergeInfo  # noqa
from .merge_schemas import MUTATION_TYPE_NAME, QUERY_TYPE_NAME, merge_schemas  # noqa
from .resolvers import add_resolve_functions_to_schema  # noqa
from .type_registry import TypeRegistry  # noqa
from .utils import (  # noqa
    DelegationError, DelegationExecutionError, FragmentParseError,
    MissingArgumentDefinitionError, NoSuchSubschemaError, RootFieldCollisionError,
    SchemaStitchingError, SchemaStructureError, TypeConflictError, UnknownRootFieldError,
    UnknownTypeError
)
