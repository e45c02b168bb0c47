# Copyright 2019-present Kensho Technologies, LLC.
from collections import OrderedDict
from collections.abc import Mapping

from graphql import (
    GraphQLScalarType, is_interface_type, is_object_type, is_scalar_type,
    is_specified_scalar_type
)

from .utils import SchemaStructureError


def merge_resolver_maps(delegating_resolvers, overlay_resolvers):
    """Merge a resolver overlay over the map of delegating resolvers.

    Args:
        delegating_resolvers: Dict[str, Dict[str, Dict[str, callable]]], mapping the name of a
                              merged type to field name to the id of the schema that the field
                              delegates to, to the delegating resolver
        overlay_resolvers: Dict[str, Union[Dict[str, Any], GraphQLScalarType]], mapping type
                           name to either a scalar implementation or a dict from field name to
                           either a resolver or a dict with 'resolve'/'subscribe'/'fragment'
                           keys. May be None

    Returns:
        Dict[str, Union[Dict[str, Any], GraphQLScalarType]], mapping type name to the field
        resolvers (or scalar implementation) to attach. For any type and field present in both
        inputs, the overlay's entry is used
    """
    merged_resolvers = OrderedDict()
    for type_name, field_resolvers in delegating_resolvers.items():
        merged_field_resolvers = OrderedDict()
        for field_name, resolvers_by_schema_id in field_resolvers.items():
            if len(resolvers_by_schema_id) != 1:
                raise AssertionError(
                    'Unreachable code reached. Field "{}.{}" delegates to schemas {}, but root '
                    'fields must have exactly one owner.'.format(
                        type_name, field_name, list(resolvers_by_schema_id)
                    )
                )
            merged_field_resolvers[field_name] = next(iter(resolvers_by_schema_id.values()))
        merged_resolvers[type_name] = merged_field_resolvers

    for type_name, type_resolvers in (overlay_resolvers or {}).items():
        if not isinstance(type_resolvers, Mapping):
            merged_resolvers[type_name] = type_resolvers
            continue
        merged_field_resolvers = merged_resolvers.get(type_name)
        if not isinstance(merged_field_resolvers, Mapping):
            merged_field_resolvers = OrderedDict()
            merged_resolvers[type_name] = merged_field_resolvers
        merged_field_resolvers.update(type_resolvers)

    return merged_resolvers


def get_fragment_sources(overlay_resolvers):
    """Return the (type name, field name, fragment text) of each field entry with a fragment."""
    fragment_sources = []
    for type_name, type_resolvers in (overlay_resolvers or {}).items():
        if not isinstance(type_resolvers, Mapping):
            continue
        for field_name, field_resolver in type_resolvers.items():
            if isinstance(field_resolver, Mapping) and 'fragment' in field_resolver:
                fragment_sources.append((type_name, field_name, field_resolver['fragment']))
    return fragment_sources


def add_resolve_functions_to_schema(schema, resolver_map):
    """Attach resolvers and scalar implementations to the types of an existing schema.

    The schema is modified in place.

    Args:
        schema: GraphQLSchema, whose fields and custom scalars will be modified
        resolver_map: Dict[str, Union[Dict[str, Any], GraphQLScalarType]], mapping the name of
                      an object or interface type to a dict from field name to either a resolver
                      or a dict with optional 'resolve' and 'subscribe' entries ('fragment'
                      entries are ignored here); or mapping the name of a custom scalar to a
                      GraphQLScalarType whose serialization functions are copied over

    Returns:
        the input schema

    Raises:
        SchemaStructureError if the map names a type or field missing from the schema, or
        gives an entry of the wrong kind for a type
    """
    for type_name, type_resolvers in resolver_map.items():
        graphql_type = schema.get_type(type_name)
        if graphql_type is None:
            raise SchemaStructureError(
                '"{}" defined in resolvers, but not in schema.'.format(type_name)
            )

        if is_scalar_type(graphql_type):
            _set_scalar_implementation(graphql_type, type_resolvers)
            continue

        if not (is_object_type(graphql_type) or is_interface_type(graphql_type)):
            raise SchemaStructureError(
                '"{}" is not an object or interface type, and cannot be given field '
                'resolvers.'.format(type_name)
            )
        if not isinstance(type_resolvers, Mapping):
            raise SchemaStructureError(
                'Resolvers of type "{}" must be a dict from field name to resolver, not '
                '"{}".'.format(type_name, type(type_resolvers).__name__)
            )

        for field_name, field_resolver in type_resolvers.items():
            field = graphql_type.fields.get(field_name)
            if field is None:
                raise SchemaStructureError(
                    '"{}.{}" defined in resolvers, but not in schema.'.format(
                        type_name, field_name
                    )
                )
            if isinstance(field_resolver, Mapping):
                if 'resolve' in field_resolver:
                    field.resolve = field_resolver['resolve']
                if 'subscribe' in field_resolver:
                    field.subscribe = field_resolver['subscribe']
            elif callable(field_resolver):
                field.resolve = field_resolver
            else:
                raise SchemaStructureError(
                    'Resolver for "{}.{}" must be callable or a dict, not "{}".'.format(
                        type_name, field_name, type(field_resolver).__name__
                    )
                )

    return schema


def _set_scalar_implementation(scalar_type, implementation):
    """Copy the serialization functions of implementation onto the custom scalar_type."""
    if is_specified_scalar_type(scalar_type):
        raise SchemaStructureError(
            'Cannot override the builtin scalar "{}".'.format(scalar_type.name)
        )
    if not isinstance(implementation, GraphQLScalarType):
        raise SchemaStructureError(
            'Implementation of scalar "{}" must be a GraphQLScalarType, not "{}".'.format(
                scalar_type.name, type(implementation).__name__
            )
        )
    scalar_type.serialize = implementation.serialize
    scalar_type.parse_value = implementation.parse_value
    scalar_type.parse_literal = implementation.parse_literal
