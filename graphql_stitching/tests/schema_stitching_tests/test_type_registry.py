# Copyright 2019-present Kensho Technologies, LLC.
from textwrap import dedent
import unittest

from graphql import (
    GraphQLField, GraphQLList, GraphQLNonNull, GraphQLObjectType, GraphQLString, build_schema,
    print_ast
)
from graphql.language.ast import OperationType

from ...schema_stitching.type_registry import TypeRegistry
from ...schema_stitching.utils import (
    FragmentParseError, RootFieldCollisionError, TypeConflictError, UnknownRootFieldError,
    UnknownTypeError
)
from .example_schemas import CATALOG_SCHEMA, REVIEWS_SCHEMA


def _make_object_type(name):
    return GraphQLObjectType(name, fields={'name': GraphQLField(GraphQLString)})


class TestTypeRegistry(unittest.TestCase):
    def test_add_and_get_type(self):
        registry = TypeRegistry()
        product_type = _make_object_type('Product')
        registry.add_type('Product', product_type)

        self.assertTrue(registry.has_type('Product'))
        self.assertFalse(registry.has_type('Review'))
        self.assertIs(product_type, registry.get_type('Product'))
        self.assertEqual([product_type], registry.get_all_types())

    def test_get_unknown_type(self):
        registry = TypeRegistry()
        with self.assertRaises(UnknownTypeError):
            registry.get_type('Product')

    def test_add_same_type_twice(self):
        registry = TypeRegistry()
        product_type = _make_object_type('Product')
        registry.add_type('Product', product_type)
        registry.add_type('Product', product_type)
        self.assertEqual([product_type], registry.get_all_types())

    def test_type_conflict_without_resolver(self):
        registry = TypeRegistry()
        registry.add_type('Product', _make_object_type('Product'))
        with self.assertRaises(TypeConflictError):
            registry.add_type('Product', _make_object_type('Product'))

    def test_type_conflict_with_resolver(self):
        registry = TypeRegistry()
        first_type = _make_object_type('Product')
        second_type = _make_object_type('Product')
        calls = []

        def keep_incoming(existing_type, incoming_type):
            calls.append((existing_type, incoming_type))
            return incoming_type

        registry.add_type('Product', first_type)
        registry.add_type('Product', second_type, on_type_conflict=keep_incoming)

        self.assertEqual([(first_type, second_type)], calls)
        self.assertIs(second_type, registry.get_type('Product'))
        self.assertEqual([second_type], registry.get_all_types())

    def test_resolve_type_keeps_modifiers(self):
        registry = TypeRegistry()
        canonical_type = _make_object_type('Product')
        registry.add_type('Product', canonical_type)

        other_type = _make_object_type('Product')
        wrapped_type = GraphQLNonNull(GraphQLList(GraphQLNonNull(other_type)))
        resolved_type = registry.resolve_type(wrapped_type)

        self.assertEqual('[Product!]!', str(resolved_type))
        self.assertIs(canonical_type, resolved_type.of_type.of_type.of_type)
        self.assertIs(canonical_type, registry.resolve_type(other_type))

    def test_resolve_type_is_idempotent(self):
        registry = TypeRegistry()
        canonical_type = _make_object_type('Product')
        registry.add_type('Product', canonical_type)

        resolved_type = registry.resolve_type(GraphQLList(_make_object_type('Product')))
        resolved_twice = registry.resolve_type(resolved_type)
        self.assertEqual(str(resolved_type), str(resolved_twice))
        self.assertIs(resolved_type.of_type, resolved_twice.of_type)

    def test_resolve_unknown_type(self):
        registry = TypeRegistry()
        with self.assertRaises(UnknownTypeError):
            registry.resolve_type(GraphQLList(_make_object_type('Product')))

    def test_root_field_ownership(self):
        registry = TypeRegistry()
        catalog_schema = build_schema(CATALOG_SCHEMA)
        reviews_schema = build_schema(REVIEWS_SCHEMA)
        registry.add_schema('Catalog', catalog_schema)
        registry.add_schema('Reviews', reviews_schema)

        for field_name in ('product', 'products', 'node', 'search'):
            self.assertEqual('Catalog', registry.get_schema_id_by_field('query', field_name))
            self.assertIs(catalog_schema, registry.get_schema_by_field('query', field_name))
        for field_name in ('reviews', 'review'):
            self.assertIs(
                reviews_schema, registry.get_schema_by_field(OperationType.QUERY, field_name)
            )
        self.assertIs(reviews_schema, registry.get_schema_by_field('mutation', 'addReview'))
        self.assertIs(catalog_schema, registry.get_schema('Catalog'))

    def test_unknown_root_field(self):
        registry = TypeRegistry()
        registry.add_schema('Reviews', build_schema(REVIEWS_SCHEMA))
        with self.assertRaises(UnknownRootFieldError):
            registry.get_schema_by_field('query', 'product')
        # Root fields are owned per operation
        with self.assertRaises(UnknownRootFieldError):
            registry.get_schema_by_field('query', 'addReview')

    def test_unsupported_operation(self):
        registry = TypeRegistry()
        registry.add_schema('Reviews', build_schema(REVIEWS_SCHEMA))
        with self.assertRaises(ValueError):
            registry.get_schema_by_field('subscription', 'reviews')

    def test_root_field_collision(self):
        registry = TypeRegistry()
        registry.add_schema('Catalog', build_schema(CATALOG_SCHEMA))
        other_schema = build_schema(dedent('''\
            type Query {
              product(id: ID!): String
            }
        '''))
        with self.assertRaises(RootFieldCollisionError):
            registry.add_schema('Other', other_schema)

    def test_add_fragment(self):
        registry = TypeRegistry()
        registry.add_fragment('Product', 'reviews', 'fragment ProductFragment on Product { id }')

        fragment_replacement = registry.get_fragment_replacement('Product', 'reviews')
        self.assertEqual('Product', fragment_replacement.type_condition.name.value)
        expected_fragment = dedent('''\
            ... on Product {
              id
            }''')
        self.assertEqual(expected_fragment, print_ast(fragment_replacement))
        self.assertIs(fragment_replacement, registry.fragment_replacements['Product']['reviews'])
        self.assertIsNone(registry.get_fragment_replacement('Product', 'name'))
        self.assertIsNone(registry.get_fragment_replacement('Review', 'reviews'))

    def test_add_fragment_without_fragment_definition(self):
        registry = TypeRegistry()
        with self.assertRaises(FragmentParseError):
            registry.add_fragment('Product', 'reviews', '{ product { id } }')

    def test_add_fragment_unparseable(self):
        registry = TypeRegistry()
        with self.assertRaises(FragmentParseError):
            registry.add_fragment('Product', 'reviews', 'fragment on on {')
