# Copyright 2019-present Kensho Technologies, LLC.
from graphql import (
    GraphQLList, GraphQLNonNull, is_list_type, is_non_null_type, is_wrapping_type
)
from graphql.language.ast import (
    ListTypeNode, NamedTypeNode, NameNode, NonNullTypeNode, OperationType,
    TypeSystemExtensionNode
)
from graphql.language.visitor import Visitor, visit


class SchemaStitchingError(Exception):
    """Parent of all errors raised while composing schemas or delegating to them."""


class SchemaStructureError(SchemaStitchingError):
    """Raised if an input schema, a type, or a resolver map does not have the expected form."""


class TypeConflictError(SchemaStitchingError):
    """Raised if two subschemas define a type of the same name and no resolver was given."""


class RootFieldCollisionError(SchemaStitchingError):
    """Raised if two subschemas expose a root field of the same name for one operation."""


class UnknownTypeError(SchemaStitchingError):
    """Raised if the type registry is asked for a type name it does not hold."""


class UnknownRootFieldError(SchemaStitchingError):
    """Raised if the type registry is asked for the owner of a root field it does not know."""


class FragmentParseError(SchemaStitchingError):
    """Raised if fragment override text does not contain a fragment definition."""


class DelegationError(SchemaStitchingError):
    """Parent of errors that fail a single delegated root field."""


class NoSuchSubschemaError(DelegationError):
    """Raised if no subschema owns the root field being delegated."""


class MissingArgumentDefinitionError(DelegationError):
    """Raised if a selection uses an argument that the target field does not define."""


class DelegationExecutionError(DelegationError):
    """Raised if the subschema reported errors while validating or executing a delegated query.

    The message is the concatenation of all error messages, one per line. The original
    GraphQLErrors are kept in the errors attribute.
    """

    def __init__(self, errors):
        self.errors = list(errors)
        super(DelegationExecutionError, self).__init__(
            '\n'.join(error.message for error in self.errors)
        )


# Prefix of variables created for root field arguments missing from the caller's selection
VARIABLE_PREFIX = '_'


def get_operation_type(operation):
    """Return the OperationType matching the input, which may be a string or an OperationType.

    Args:
        operation: str or OperationType, either 'query' or 'mutation'

    Returns:
        OperationType, QUERY or MUTATION

    Raises:
        ValueError if the input does not name a query or a mutation
    """
    if isinstance(operation, OperationType):
        operation_type = operation
    else:
        try:
            operation_type = OperationType(operation)
        except ValueError:
            raise ValueError('Unsupported operation "{}".'.format(operation))
    if operation_type not in (OperationType.QUERY, OperationType.MUTATION):
        raise ValueError('Unsupported operation "{}".'.format(operation_type.value))
    return operation_type


def get_root_type(schema, operation):
    """Return the root type of the schema for the operation, or None if there is none."""
    if get_operation_type(operation) == OperationType.MUTATION:
        return schema.mutation_type
    return schema.query_type


def strip_non_null_and_list_from_type(graphql_type):
    """Return the named type inside any number of List and NonNull wrappers."""
    while is_wrapping_type(graphql_type):
        graphql_type = graphql_type.of_type
    return graphql_type


def rewrap_type(wrapped_type, named_type):
    """Wrap named_type in the same List and NonNull modifiers, in order, as wrapped_type."""
    if is_list_type(wrapped_type):
        return GraphQLList(rewrap_type(wrapped_type.of_type, named_type))
    elif is_non_null_type(wrapped_type):
        return GraphQLNonNull(rewrap_type(wrapped_type.of_type, named_type))
    else:
        return named_type


def type_to_ast(graphql_type):
    """Return the AST type reference (as used in variable definitions) for a schema type.

    Args:
        graphql_type: GraphQLType, possibly wrapped in List and NonNull modifiers

    Returns:
        NonNullTypeNode, ListTypeNode or NamedTypeNode, with the same modifiers around a named
        type reference carrying the name of the input's named type
    """
    if is_non_null_type(graphql_type):
        return NonNullTypeNode(type=type_to_ast(graphql_type.of_type))
    elif is_list_type(graphql_type):
        return ListTypeNode(type=type_to_ast(graphql_type.of_type))
    else:
        return NamedTypeNode(name=NameNode(value=graphql_type.name))


def split_extension_definitions(document):
    """Split the definitions of a document into (type system definitions, extensions).

    Args:
        document: DocumentNode, parsed from schema definition language

    Returns:
        Tuple[List[DefinitionNode], List[TypeSystemExtensionNode]], the definitions that are not
        extensions, and the extension definitions, each in document order
    """
    definitions = []
    extensions = []
    for definition in document.definitions:
        if isinstance(definition, TypeSystemExtensionNode):
            extensions.append(definition)
        else:
            definitions.append(definition)
    return definitions, extensions


class GetVariableNamesVisitor(Visitor):
    """Gather the names of all variables referenced under the visited nodes."""

    def __init__(self):
        super(GetVariableNamesVisitor, self).__init__()
        self.variable_names = set()  # Set[str]

    def enter_variable(self, node, *args):
        """Record the name of the variable."""
        self.variable_names.add(node.name.value)


def get_variable_names(nodes):
    """Return the frozenset of names of variables used anywhere under the input nodes.

    Args:
        nodes: iterable of Nodes, for instance the arguments and directives of a field. None
               entries are ignored

    Returns:
        frozenset[str], names of referenced variables, without the leading '$'
    """
    visitor = GetVariableNamesVisitor()
    for node in nodes:
        if node is not None:
            visit(node, visitor)
    return frozenset(visitor.variable_names)
