# Copyright 2019-present Kensho Technologies, LLC.
from inspect import isawaitable
import logging

from graphql import execute, print_ast, validate

from .delegate_query import create_document, get_variable_values
from .utils import (
    DelegationExecutionError, NoSuchSubschemaError, UnknownRootFieldError, get_root_type
)


logger = logging.getLogger(__name__)


class MergeInfo(object):
    """Handle passed to resolvers of the merged schema, for delegating to the subschemas."""

    def __init__(self, registry):
        """Create a MergeInfo delegating to the subschemas recorded in the registry.

        Args:
            registry: TypeRegistry, filled in by merge_schemas
        """
        self.registry = registry

    def delegate(self, operation, field_name, args, context, info):
        """Fetch the root field from whichever subschema owns it.

        Args:
            operation: str or OperationType, 'query' or 'mutation'
            field_name: str, name of a root field of one of the subschemas
            args: Dict[str, Any], argument values for the root field
            context: the context value to execute the subschema query with
            info: GraphQLResolveInfo of the field being resolved in the merged schema, whose
                  selections are forwarded

        Returns:
            the value of the root field in the subschema's result, or an awaitable of it if the
            subschema resolved asynchronously

        Raises:
            NoSuchSubschemaError if no subschema defines the root field
            DelegationExecutionError if the subschema reported any errors
        """
        try:
            schema_id = self.registry.get_schema_id_by_field(operation, field_name)
        except UnknownRootFieldError as e:
            raise NoSuchSubschemaError(str(e))
        logger.debug('Delegating root field "%s" to schema "%s".', field_name, schema_id)
        return self.delegate_to_schema(
            self.registry.get_schema(schema_id), operation, field_name, args, context, info
        )

    def delegate_to_schema(self, schema, operation, field_name, args, context, info):
        """Fetch the root field from the given subschema. Arguments as in delegate()."""
        root_type = get_root_type(schema, operation)
        composed_document = create_document(
            schema,
            self.registry.fragment_replacements,
            root_type,
            field_name,
            operation,
            info.field_nodes,
            info.fragments,
            info.operation.variable_definitions,
        )
        variable_values = get_variable_values(composed_document, args, info.variable_values)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                'Delegated query for root field "%s":\n%s\nwith variables %s',
                field_name, print_ast(composed_document.document), variable_values
            )

        errors = validate(schema, composed_document.document)
        if errors:
            raise DelegationExecutionError(errors)

        result = execute(
            schema,
            composed_document.document,
            root_value=info.root_value,
            context_value=context,
            variable_values=variable_values,
        )
        if isawaitable(result):
            return _await_root_field(result, field_name)
        return _get_root_field(result, field_name)


async def _await_root_field(awaitable_result, field_name):
    return _get_root_field(await awaitable_result, field_name)


def _get_root_field(result, field_name):
    """Return the value of the root field in the execution result, raising on any errors."""
    if result.errors:
        raise DelegationExecutionError(result.errors)
    if result.data is None:
        return None
    return result.data.get(field_name)
