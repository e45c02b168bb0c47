# Copyright 2019-present Kensho Technologies, LLC.
"""Stitch several GraphQL schemas into one, delegating each root field to its own schema."""
from .schema_stitching import (  # noqa
    DelegationError, DelegationExecutionError, FragmentParseError, MergeInfo,
    MissingArgumentDefinitionError, NoSuchSubschemaError, RootFieldCollisionError,
    SchemaStitchingError, SchemaStructureError, TypeConflictError, TypeRegistry,
    UnknownRootFieldError, UnknownTypeError, add_resolve_functions_to_schema, merge_schemas
)


__package_name__ = 'graphql-stitching'
__version__ = '0.1.0'
