# Copyright 2019-present Kensho Technologies, LLC.
from collections.abc import Mapping

from graphql import (
    GraphQLArgument, GraphQLEnumType, GraphQLEnumValue, GraphQLField, GraphQLInputField,
    GraphQLInputObjectType, GraphQLInterfaceType, GraphQLObjectType, GraphQLScalarType,
    GraphQLUnionType, Undefined, ast_from_value, default_field_resolver, is_enum_type,
    is_input_object_type, is_interface_type, is_object_type, is_scalar_type,
    is_specified_scalar_type, is_union_type, value_from_ast_untyped
)

from .utils import SchemaStitchingError, SchemaStructureError


def recreate_type(graphql_type, registry):
    """Return a version of the named type whose type references resolve through the registry.

    Object, interface, union and input object types are rebuilt. Their fields, interfaces and
    member types are thunks, resolved against the registry only when the merged schema is built,
    so types may refer to types registered later on.

    Values of enums and custom scalars cross the merged schema in their serialized form: the
    subschema serializes results and parses arguments itself. Enums are therefore rebuilt with
    each value standing for its own name, and custom scalars are rebuilt without serialization
    functions. Built-in scalars are shared by all schemas, and are returned unchanged.

    Args:
        graphql_type: GraphQLNamedType, from one of the subschemas
        registry: TypeRegistry, that will hold the canonical version of every type

    Returns:
        GraphQLNamedType, of the same name and kind as the input

    Raises:
        SchemaStructureError if the type is of an unsupported kind
    """
    if is_object_type(graphql_type):
        return GraphQLObjectType(
            graphql_type.name,
            description=graphql_type.description,
            fields=lambda: field_map_to_field_config_map(
                graphql_type.fields, registry, resolve=default_merged_resolver
            ),
            interfaces=lambda: [
                registry.resolve_type(interface) for interface in graphql_type.interfaces
            ],
        )
    elif is_interface_type(graphql_type):
        return GraphQLInterfaceType(
            graphql_type.name,
            description=graphql_type.description,
            fields=lambda: field_map_to_field_config_map(
                graphql_type.fields, registry, resolve=default_merged_resolver
            ),
            interfaces=lambda: [
                registry.resolve_type(interface) for interface in graphql_type.interfaces
            ],
            resolve_type=resolve_from_parent_typename,
        )
    elif is_union_type(graphql_type):
        return GraphQLUnionType(
            graphql_type.name,
            description=graphql_type.description,
            types=lambda: [
                registry.resolve_type(member_type) for member_type in graphql_type.types
            ],
            resolve_type=resolve_from_parent_typename,
        )
    elif is_input_object_type(graphql_type):
        return GraphQLInputObjectType(
            graphql_type.name,
            description=graphql_type.description,
            fields=lambda: input_field_map_to_field_config_map(graphql_type.fields, registry),
        )
    elif is_enum_type(graphql_type):
        return GraphQLEnumType(
            graphql_type.name,
            {
                value_name: GraphQLEnumValue(
                    value_name,
                    description=enum_value.description,
                    deprecation_reason=enum_value.deprecation_reason,
                )
                for value_name, enum_value in graphql_type.values.items()
            },
            description=graphql_type.description,
        )
    elif is_specified_scalar_type(graphql_type):
        return graphql_type
    elif is_scalar_type(graphql_type):
        return GraphQLScalarType(
            graphql_type.name,
            description=graphql_type.description,
            specified_by_url=graphql_type.specified_by_url,
        )
    else:
        raise SchemaStructureError('Invalid type "{}"'.format(graphql_type))


def field_map_to_field_config_map(fields, registry, resolve=None):
    """Return a dict of new GraphQLFields, with types and arguments resolved through registry.

    Args:
        fields: Dict[str, GraphQLField], fields of a type from one of the subschemas
        registry: TypeRegistry
        resolve: optional resolver to set on every new field

    Returns:
        Dict[str, GraphQLField], in the same order as the input
    """
    return {
        field_name: GraphQLField(
            registry.resolve_type(field.type),
            args={
                argument_name: _argument_to_argument_config(argument, registry)
                for argument_name, argument in field.args.items()
            },
            resolve=resolve,
            description=field.description,
            deprecation_reason=field.deprecation_reason,
        )
        for field_name, field in fields.items()
    }


def _argument_to_argument_config(argument, registry):
    return GraphQLArgument(
        registry.resolve_type(argument.type),
        default_value=_serialize_default_value(argument.default_value, argument.type),
        description=argument.description,
        deprecation_reason=argument.deprecation_reason,
    )


def input_field_map_to_field_config_map(fields, registry):
    """Return a dict of new GraphQLInputFields, with types resolved through registry."""
    return {
        field_name: GraphQLInputField(
            registry.resolve_type(field.type),
            default_value=_serialize_default_value(field.default_value, field.type),
            description=field.description,
            deprecation_reason=field.deprecation_reason,
        )
        for field_name, field in fields.items()
    }


def resolve_from_parent_typename(value, info, abstract_type):
    """Return the name of the concrete object type of a value, read off its __typename.

    Every selection delegated to a subschema under an interface or union requests __typename,
    so values of abstract types coming back from subschemas always carry it.

    Args:
        value: the resolved value of the interface or union typed field
        info: GraphQLResolveInfo of the field
        abstract_type: GraphQLInterfaceType or GraphQLUnionType being resolved

    Returns:
        str, name of an object type of the executing schema

    Raises:
        SchemaStitchingError if the value has no __typename, or it names no object type
    """
    if isinstance(value, Mapping):
        parent_typename = value.get('__typename')
    else:
        parent_typename = getattr(value, '__typename', None)
    if not parent_typename:
        raise SchemaStitchingError(
            'Did not fetch typename for object, unable to resolve "{}".'.format(
                abstract_type.name
            )
        )
    resolved_type = info.schema.get_type(parent_typename)
    if not is_object_type(resolved_type):
        raise SchemaStitchingError(
            '__typename did not match an object type: "{}"'.format(parent_typename)
        )
    return resolved_type.name


def default_merged_resolver(source, info, **args):
    """Resolve a field of a merged type, looking dicts up by the field's response key.

    Results of delegated queries are keyed by response key, which is the alias when the caller
    used one, rather than by field name.
    """
    if isinstance(source, Mapping):
        response_key = info.path.key
        if response_key in source:
            return source[response_key]
    return default_field_resolver(source, info, **args)


def _serialize_default_value(default_value, graphql_type):
    """Return the default value of a subschema argument or input field in serialized form."""
    if default_value is Undefined:
        return Undefined
    value_ast = ast_from_value(default_value, graphql_type)
    if value_ast is None:
        return Undefined
    return value_from_ast_untyped(value_ast)
