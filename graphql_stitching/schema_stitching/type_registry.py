# Copyright 2019-present Kensho Technologies, LLC.
from collections import OrderedDict
import logging

from graphql import GraphQLError, parse
from graphql.language.ast import FragmentDefinitionNode, InlineFragmentNode, OperationType

from .utils import (
    FragmentParseError, RootFieldCollisionError, TypeConflictError, UnknownRootFieldError,
    UnknownTypeError, get_operation_type, get_root_type, rewrap_type,
    strip_non_null_and_list_from_type
)


logger = logging.getLogger(__name__)


class TypeRegistry(object):
    """Canonical store of the types, root field owners and fragment overrides of a merge.

    The registry is filled while schemas are being merged. Once merging is done it is only read
    from, so delegated queries may consult it concurrently.
    """

    def __init__(self):
        """Create an empty registry."""
        self._types = OrderedDict()  # Dict[str, GraphQLNamedType], canonical type by name
        self._schemas = OrderedDict()  # Dict[str, GraphQLSchema], subschema by schema id
        self._schema_id_by_field = {
            OperationType.QUERY: {},
            OperationType.MUTATION: {},
        }  # Dict[OperationType, Dict[str, str]], root field name to id of the owning schema
        self._fragment_replacements = {}
        # Dict[str, Dict[str, InlineFragmentNode]], type name to field name to the inline
        # fragment to use in place of that field when the target type lacks it

    @property
    def fragment_replacements(self):
        """Return the fragment overrides, keyed by type name, then field name. Do not modify."""
        return self._fragment_replacements

    def add_type(self, name, graphql_type, on_type_conflict=None):
        """Add a type, resolving a name clash with on_type_conflict if the name is taken.

        Args:
            name: str, name of the type
            graphql_type: GraphQLNamedType, the type to register
            on_type_conflict: optional callable taking the existing and the incoming type and
                              returning the type to keep under the name

        Raises:
            TypeConflictError if the name is already taken by a different type and no
            on_type_conflict callable was given
        """
        if name in self._types:
            existing_type = self._types[name]
            if existing_type is graphql_type:
                return
            if on_type_conflict is None:
                raise TypeConflictError('Type name conflict: "{}"'.format(name))
            graphql_type = on_type_conflict(existing_type, graphql_type)
            logger.debug('Resolved conflict between definitions of type "%s".', name)
        self._types[name] = graphql_type

    def has_type(self, name):
        """Return whether a type of the given name is registered."""
        return name in self._types

    def get_type(self, name):
        """Return the registered type of the given name, raising UnknownTypeError if absent."""
        if name not in self._types:
            raise UnknownTypeError('No such type: "{}"'.format(name))
        return self._types[name]

    def get_all_types(self):
        """Return a list of all registered types."""
        return list(self._types.values())

    def resolve_type(self, graphql_type):
        """Return the canonical version of the input type, with the same List/NonNull modifiers.

        Args:
            graphql_type: GraphQLType from any of the subschemas

        Returns:
            GraphQLType, the registered named type of the same name, rewrapped in the input's
            List and NonNull modifiers in the same order

        Raises:
            UnknownTypeError if the named type is not registered
        """
        named_type = strip_non_null_and_list_from_type(graphql_type)
        return rewrap_type(graphql_type, self.get_type(named_type.name))

    def add_schema(self, schema_id, schema):
        """Record the schema, and that it owns each field of its query and mutation types.

        Args:
            schema_id: str, identifier of the subschema
            schema: GraphQLSchema, the subschema

        Raises:
            RootFieldCollisionError if another schema already owns a root field of the same
            name for the same operation
        """
        self._schemas[schema_id] = schema
        for operation in (OperationType.QUERY, OperationType.MUTATION):
            root_type = get_root_type(schema, operation)
            if root_type is None:
                continue
            owners = self._schema_id_by_field[operation]
            for field_name in root_type.fields:
                if field_name in owners and owners[field_name] != schema_id:
                    raise RootFieldCollisionError(
                        'Root field "{}" of operation "{}" is defined in both schema "{}" and '
                        'schema "{}".'.format(
                            field_name, operation.value, owners[field_name], schema_id
                        )
                    )
                owners[field_name] = schema_id

    def get_schema(self, schema_id):
        """Return the subschema recorded under schema_id."""
        return self._schemas[schema_id]

    def get_schema_id_by_field(self, operation, field_name):
        """Return the id of the schema owning the root field, or raise UnknownRootFieldError."""
        owners = self._schema_id_by_field[get_operation_type(operation)]
        if field_name not in owners:
            raise UnknownRootFieldError(
                'No schema defines root field "{}" of operation "{}".'.format(
                    field_name, get_operation_type(operation).value
                )
            )
        return owners[field_name]

    def get_schema_by_field(self, operation, field_name):
        """Return the schema owning the root field, or raise UnknownRootFieldError."""
        return self._schemas[self.get_schema_id_by_field(operation, field_name)]

    def add_fragment(self, type_name, field_name, fragment_source):
        """Register the fragment to send in place of type_name.field_name to other schemas.

        Args:
            type_name: str, name of the type that the field belongs to
            field_name: str, name of the field that is missing from some subschemas
            fragment_source: str, text containing a fragment definition, for instance
                             'fragment ProductFragment on Product { id }'

        Raises:
            FragmentParseError if the text cannot be parsed or has no fragment definition
        """
        self._fragment_replacements.setdefault(type_name, {})[field_name] = (
            _parse_fragment_to_inline_fragment(fragment_source)
        )

    def get_fragment_replacement(self, type_name, field_name):
        """Return the InlineFragmentNode registered for type_name.field_name, or None."""
        return self._fragment_replacements.get(type_name, {}).get(field_name)


def _parse_fragment_to_inline_fragment(fragment_source):
    """Return an InlineFragmentNode with the condition and selections of the first fragment."""
    try:
        document = parse(fragment_source)
    except GraphQLError as e:
        raise FragmentParseError('Could not parse fragment. Message: {}'.format(e.message))
    for definition in document.definitions:
        if isinstance(definition, FragmentDefinitionNode):
            return InlineFragmentNode(
                type_condition=definition.type_condition,
                directives=[],
                selection_set=definition.selection_set,
            )
    raise FragmentParseError('Could not parse fragment: "{}"'.format(fragment_source))
