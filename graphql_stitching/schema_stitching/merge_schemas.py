# Copyright 2019-present Kensho Technologies, LLC.
from collections import OrderedDict
from collections.abc import Mapping
import logging

from graphql import (
    GraphQLField, GraphQLNonNull, GraphQLObjectType, GraphQLSchema, build_ast_schema,
    extend_schema, parse
)
from graphql.language.ast import DocumentNode, OperationType

from .merge_info import MergeInfo
from .recreate_types import field_map_to_field_config_map, recreate_type
from .resolvers import add_resolve_functions_to_schema, get_fragment_sources, merge_resolver_maps
from .type_registry import TypeRegistry
from .utils import SchemaStructureError, get_root_type, split_extension_definitions


logger = logging.getLogger(__name__)


QUERY_TYPE_NAME = 'Query'
MUTATION_TYPE_NAME = 'Mutation'

# Suffixes of the per-schema proxy types, when root fields are namespaced by schema id
PROXY_TYPE_SUFFIXES = {
    OperationType.QUERY: 'Queries',
    OperationType.MUTATION: 'Mutations',
}

MERGED_ROOT_TYPE_NAMES = {
    OperationType.QUERY: QUERY_TYPE_NAME,
    OperationType.MUTATION: MUTATION_TYPE_NAME,
}


def merge_schemas(schemas, resolvers=None, on_type_conflict=None, namespace_root_fields=False):
    """Merge the input schemas into one schema that delegates its root fields to them.

    Every named type of every input is available in the merged schema, and every query and
    mutation root field of every input is a root field of the merged schema, whose resolver
    forwards the caller's selections to the input schema that defines it.

    Args:
        schemas: OrderedDict where keys are schema ids and values are GraphQLSchemas or
                 schema definition language strings, or a list of such values, in which case
                 schema ids are 'Schema0', 'Schema1', ... Strings may contain type extensions,
                 which are applied to the merged schema once all inputs have been merged.
                 Strings that do not define a schema with a query type are applied as
                 extensions in full, so they may add new types and fields that connect types
                 of different inputs
        resolvers: optional dict mapping type name to field name to either a resolver or a
                   dict with 'resolve', 'subscribe' and 'fragment' entries, or to a
                   GraphQLScalarType for custom scalars; or a callable taking the MergeInfo
                   and returning such a dict. The 'fragment' entry is the text of a fragment
                   on the type, sent to any input schema in place of the field
        on_type_conflict: optional callable taking the registered and the incoming version of
                          a type defined in several inputs, and returning the one to keep.
                          By default, the first definition is kept
        namespace_root_fields: bool, if True the root fields of each input are grouped under a
                               proxy type '<schema id>Queries' (resp. 'Mutations'), exposed as
                               root field '<schema id>' of the merged Query (resp. Mutation).
                               By default all root fields are exposed directly

    Returns:
        GraphQLSchema, with root types 'Query' and, if any input has mutations, 'Mutation'

    Raises:
        ValueError if there are no input schemas
        GraphQLSyntaxError if an input string cannot be parsed
        SchemaStructureError if an input is neither a GraphQLSchema nor a string, or if the
        resolvers do not match the merged schema
        RootFieldCollisionError if two inputs define a root field of the same name for the
        same operation
        TypeConflictError if a proxy type clashes with a type of the inputs
        FragmentParseError if a fragment of the resolvers cannot be parsed
    """
    schemas_by_id = _get_schemas_by_id(schemas)
    if on_type_conflict is None:
        on_type_conflict = _keep_first_definition

    merged_schemas, extension_documents = _split_schemas_and_extensions(schemas_by_id)

    registry = TypeRegistry()
    merge_info = MergeInfo(registry)

    for schema_id, schema in merged_schemas.items():
        registry.add_schema(schema_id, schema)
        _add_schema_types(registry, schema, on_type_conflict)

    # Dict[OperationType, Dict[str, GraphQLField]], root fields of the merged root types
    merged_root_fields = {
        OperationType.QUERY: OrderedDict(),
        OperationType.MUTATION: OrderedDict(),
    }
    # Dict[str, Dict[str, Dict[str, callable]]], type name to field name to schema id to resolver
    delegating_resolvers = OrderedDict()
    for schema_id, schema in merged_schemas.items():
        for operation in (OperationType.QUERY, OperationType.MUTATION):
            root_type = get_root_type(schema, operation)
            if root_type is None:
                continue
            _add_root_fields(
                registry, merge_info, schema_id, operation, root_type, namespace_root_fields,
                merged_root_fields[operation], delegating_resolvers
            )

    if callable(resolvers):
        resolvers = resolvers(merge_info)
    for type_name, field_name, fragment_source in get_fragment_sources(resolvers):
        registry.add_fragment(type_name, field_name, fragment_source)
    resolver_map = merge_resolver_maps(delegating_resolvers, resolvers)

    query_type = _make_merged_root_type(
        QUERY_TYPE_NAME, merged_root_fields[OperationType.QUERY]
    )
    if query_type is None:
        raise SchemaStructureError(
            'None of the input schemas has query root fields: {}'.format(list(schemas_by_id))
        )
    mutation_type = _make_merged_root_type(
        MUTATION_TYPE_NAME, merged_root_fields[OperationType.MUTATION]
    )
    merged_schema = GraphQLSchema(
        query=query_type,
        mutation=mutation_type,
        types=registry.get_all_types(),
    )

    for extension_document in extension_documents:
        merged_schema = extend_schema(merged_schema, extension_document)
        logger.debug(
            'Applied extension document with %d definitions.',
            len(extension_document.definitions)
        )

    return add_resolve_functions_to_schema(merged_schema, resolver_map)


def _keep_first_definition(existing_type, incoming_type):
    """Keep the type that was registered first."""
    return existing_type


def _get_schemas_by_id(schemas):
    """Return an OrderedDict from schema id to input, numbering the inputs if they are a list."""
    if isinstance(schemas, Mapping):
        schemas_by_id = OrderedDict(schemas.items())
    else:
        schemas_by_id = OrderedDict(
            ('Schema{}'.format(index), schema)
            for index, schema in enumerate(schemas)
        )
    if len(schemas_by_id) == 0:
        raise ValueError('Expected a nonzero number of schemas to merge.')
    return schemas_by_id


def _split_schemas_and_extensions(schemas_by_id):
    """Separate the input schemas from the documents to extend the merged schema with.

    Args:
        schemas_by_id: OrderedDict[str, Union[GraphQLSchema, str]]

    Returns:
        Tuple[OrderedDict[str, GraphQLSchema], List[DocumentNode]], the schemas to merge by
        schema id, and the extension documents in input order
    """
    merged_schemas = OrderedDict()
    extension_documents = []
    for schema_id, schema in schemas_by_id.items():
        if isinstance(schema, GraphQLSchema):
            merged_schemas[schema_id] = schema
            continue
        if not isinstance(schema, str):
            raise SchemaStructureError(
                'Input "{}" is neither a GraphQLSchema nor a string, but a "{}".'.format(
                    schema_id, type(schema).__name__
                )
            )

        # May raise GraphQLSyntaxError
        document = parse(schema)
        definitions, extensions = split_extension_definitions(document)

        built_schema = None
        if definitions:
            try:
                built_schema = build_ast_schema(DocumentNode(definitions=definitions))
            except Exception as e:  # Can't be more specific, build_ast_schema throws Exceptions
                logger.debug(
                    'Input "%s" is not a standalone schema, treating it as an extension. '
                    'Message: %s', schema_id, e
                )

        if built_schema is not None and built_schema.query_type is not None:
            merged_schemas[schema_id] = built_schema
            if extensions:
                extension_documents.append(DocumentNode(definitions=extensions))
                logger.debug('Queued %d extensions of input "%s".', len(extensions), schema_id)
        else:
            extension_documents.append(document)
            logger.debug('Queued input "%s" as an extension document.', schema_id)

    return merged_schemas, extension_documents


def _add_schema_types(registry, schema, on_type_conflict):
    """Register every named type of the schema, other than introspection and root types."""
    root_type_names = {
        root_type.name
        for root_type in (schema.query_type, schema.mutation_type, schema.subscription_type)
        if root_type is not None
    }
    for type_name, graphql_type in schema.type_map.items():
        if type_name.startswith('__') or type_name in root_type_names:
            continue
        registry.add_type(
            type_name, recreate_type(graphql_type, registry), on_type_conflict=on_type_conflict
        )


def _add_root_fields(registry, merge_info, schema_id, operation, root_type,
                     namespace_root_fields, merged_root_fields, delegating_resolvers):
    """Add the root fields of one schema to the merged root fields, with delegating resolvers.

    Args:
        registry: TypeRegistry, already holding the types of all schemas
        merge_info: MergeInfo, used by the delegating resolvers
        schema_id: str, id of the schema that the root fields belong to
        operation: OperationType, QUERY or MUTATION
        root_type: GraphQLObjectType, the root type of the schema for the operation
        namespace_root_fields: bool, whether to group the fields under a proxy type
        merged_root_fields: OrderedDict[str, GraphQLField], fields of the merged root type for
                            the operation. Modified by this function
        delegating_resolvers: OrderedDict[str, Dict[str, Dict[str, callable]]], type name to
                              field name to schema id to resolver. Modified by this function
    """
    fields = field_map_to_field_config_map(root_type.fields, registry)

    if namespace_root_fields:
        proxy_type_name = schema_id + PROXY_TYPE_SUFFIXES[operation]
        proxy_type = GraphQLObjectType(proxy_type_name, fields=fields)
        registry.add_type(proxy_type_name, proxy_type)
        merged_root_fields[schema_id] = GraphQLField(GraphQLNonNull(proxy_type))
        root_resolvers = delegating_resolvers.setdefault(
            MERGED_ROOT_TYPE_NAMES[operation], OrderedDict()
        )
        root_resolvers[schema_id] = {schema_id: _resolve_proxy}
        field_resolvers_type_name = proxy_type_name
    else:
        merged_root_fields.update(fields)
        field_resolvers_type_name = MERGED_ROOT_TYPE_NAMES[operation]

    field_resolvers = delegating_resolvers.setdefault(field_resolvers_type_name, OrderedDict())
    for field_name in fields:
        field_resolvers.setdefault(field_name, OrderedDict())[schema_id] = (
            _create_delegating_resolver(merge_info, operation, field_name)
        )


def _create_delegating_resolver(merge_info, operation, field_name):
    """Return a resolver that fetches the root field from the schema that defines it."""
    def resolve(root, info, **args):
        return merge_info.delegate(operation, field_name, args, info.context, info)
    return resolve


def _resolve_proxy(root, info, **args):
    """Resolve a namespaced root field to an empty object, whose fields delegate on their own."""
    return {}


def _make_merged_root_type(type_name, fields):
    """Return the merged root type with the given fields, or None if there are no fields."""
    if not fields:
        return None
    return GraphQLObjectType(type_name, fields=fields)
