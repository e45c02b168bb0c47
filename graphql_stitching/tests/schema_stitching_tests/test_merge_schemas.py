# Copyright 2019-present Kensho Technologies, LLC.
from collections import OrderedDict
from textwrap import dedent
import unittest

from graphql import GraphQLSchema, GraphQLSyntaxError, build_schema, graphql_sync

from ...schema_stitching.merge_schemas import merge_schemas
from ...schema_stitching.utils import (
    FragmentParseError, RootFieldCollisionError, SchemaStructureError, TypeConflictError
)
from .example_schemas import (
    CATALOG_SCHEMA, LINK_SCHEMA_EXTENSION, REVIEWS_SCHEMA, make_catalog_schema,
    make_reviews_schema, make_stitched_schema
)


class TestMergeSchemas(unittest.TestCase):
    def test_flat_root_fields(self):
        merged_schema = merge_schemas(OrderedDict([
            ('Catalog', make_catalog_schema()),
            ('Reviews', make_reviews_schema()),
        ]))
        self.assertIsInstance(merged_schema, GraphQLSchema)
        self.assertEqual('Query', merged_schema.query_type.name)
        self.assertEqual(
            ['product', 'products', 'node', 'search', 'reviews', 'review'],
            list(merged_schema.query_type.fields)
        )
        self.assertEqual('Mutation', merged_schema.mutation_type.name)
        self.assertEqual(['addReview'], list(merged_schema.mutation_type.fields))
        self.assertEqual('[Review]', str(merged_schema.query_type.fields['reviews'].type))
        self.assertEqual(
            'ID!', str(merged_schema.query_type.fields['reviews'].args['productId'].type)
        )

    def test_all_types_are_merged(self):
        merged_schema = merge_schemas([make_catalog_schema(), make_reviews_schema()])
        for type_name in ('Product', 'Category', 'Node', 'SearchResult', 'Review'):
            self.assertIsNotNone(merged_schema.get_type(type_name))

        # The first definition of a type is kept by default
        self.assertEqual(['id', 'name', 'price'], list(merged_schema.get_type('Product').fields))
        # Types refer to the merged version of other types
        self.assertIs(
            merged_schema.get_type('Product'),
            merged_schema.get_type('Review').fields['product'].type
        )
        self.assertEqual(
            {'Product', 'Category'},
            {member.name for member in merged_schema.get_type('SearchResult').types}
        )
        self.assertIs(
            merged_schema.get_type('Node'), merged_schema.get_type('Product').interfaces[0]
        )

    def test_no_mutation_type(self):
        merged_schema = merge_schemas({'Catalog': make_catalog_schema()})
        self.assertIsNone(merged_schema.mutation_type)

    def test_type_conflict_resolver(self):
        calls = []

        def keep_incoming(existing_type, incoming_type):
            calls.append((existing_type.name, incoming_type.name))
            return incoming_type

        merged_schema = merge_schemas(
            OrderedDict([
                ('Catalog', make_catalog_schema()),
                ('Reviews', make_reviews_schema()),
            ]),
            on_type_conflict=keep_incoming,
        )
        self.assertEqual([('Product', 'Product')], calls)
        self.assertEqual(['id'], list(merged_schema.get_type('Product').fields))

    def test_namespaced_root_fields(self):
        merged_schema = make_stitched_schema(namespace_root_fields=True)
        self.assertEqual(['Catalog', 'Reviews'], list(merged_schema.query_type.fields))
        self.assertEqual(['Reviews'], list(merged_schema.mutation_type.fields))
        self.assertEqual('CatalogQueries!', str(merged_schema.query_type.fields['Catalog'].type))
        self.assertEqual(
            ['product', 'products', 'node', 'search'],
            list(merged_schema.get_type('CatalogQueries').fields)
        )
        self.assertEqual(
            ['reviews', 'review'], list(merged_schema.get_type('ReviewsQueries').fields)
        )
        self.assertEqual(['addReview'], list(merged_schema.get_type('ReviewsMutations').fields))

    def test_namespaced_execution(self):
        merged_schema = make_stitched_schema(namespace_root_fields=True)
        query = dedent('''\
            {
              Catalog {
                product(id: "1") {
                  name
                  reviews {
                    rating
                  }
                }
              }
              Reviews {
                review(id: "102") {
                  body
                }
              }
            }
        ''')
        result = graphql_sync(merged_schema, query)
        self.assertIsNone(result.errors)
        expected_data = {
            'Catalog': {
                'product': {'name': 'Lamp', 'reviews': [{'rating': 5}, {'rating': 3}]},
            },
            'Reviews': {
                'review': {'body': 'Sturdy'},
            },
        }
        self.assertEqual(expected_data, result.data)

    def test_proxy_type_name_clash(self):
        clashing_schema = build_schema(dedent('''\
            type Query {
              catalog: CatalogQueries
            }

            type CatalogQueries {
              name: String
            }
        '''))
        with self.assertRaises(TypeConflictError):
            merge_schemas(
                OrderedDict([('Catalog', make_catalog_schema()), ('Other', clashing_schema)]),
                namespace_root_fields=True,
            )

    def test_root_field_collision(self):
        other_schema = build_schema(dedent('''\
            type Query {
              reviews: String
            }
        '''))
        with self.assertRaises(RootFieldCollisionError):
            merge_schemas([make_reviews_schema(), other_schema])

    def test_empty_input(self):
        with self.assertRaises(ValueError):
            merge_schemas({})
        with self.assertRaises(ValueError):
            merge_schemas([])

    def test_invalid_input(self):
        with self.assertRaises(SchemaStructureError):
            merge_schemas([make_catalog_schema(), 42])

    def test_unparseable_input(self):
        with self.assertRaises(GraphQLSyntaxError):
            merge_schemas([make_catalog_schema(), 'type Query {'])

    def test_string_inputs(self):
        merged_schema = merge_schemas(OrderedDict([
            ('Catalog', CATALOG_SCHEMA),
            ('Reviews', REVIEWS_SCHEMA),
            ('Link', LINK_SCHEMA_EXTENSION),
        ]))
        self.assertEqual(
            ['id', 'name', 'price', 'reviews'], list(merged_schema.get_type('Product').fields)
        )
        self.assertEqual(
            '[Review]', str(merged_schema.get_type('Product').fields['reviews'].type)
        )
        self.assertIn('reviews', merged_schema.query_type.fields)

    def test_string_input_with_extensions(self):
        reviews_schema_with_extension = REVIEWS_SCHEMA + dedent('''\
            extend type Review {
              helpful: Boolean
            }
        ''')
        merged_schema = merge_schemas([CATALOG_SCHEMA, reviews_schema_with_extension])
        self.assertEqual(
            ['id', 'rating', 'body', 'product', 'helpful'],
            list(merged_schema.get_type('Review').fields)
        )

    def test_string_input_with_new_types(self):
        new_types = dedent('''\
            type Brand {
              name: String
            }

            extend type Product {
              brand: Brand
            }
        ''')
        merged_schema = merge_schemas([CATALOG_SCHEMA, new_types])
        self.assertEqual(['name'], list(merged_schema.get_type('Brand').fields))
        self.assertIn('brand', merged_schema.get_type('Product').fields)

    def test_resolver_overlay_wins(self):
        def make_resolvers(merge_info):
            return {
                'Query': {
                    'product': lambda root, info, **args: {'name': 'Overridden'},
                },
            }

        merged_schema = merge_schemas([make_catalog_schema()], resolvers=make_resolvers)
        result = graphql_sync(merged_schema, '{ product(id: "1") { name } }')
        self.assertIsNone(result.errors)
        self.assertEqual({'product': {'name': 'Overridden'}}, result.data)

        # Root fields without an override still delegate
        result = graphql_sync(merged_schema, '{ products(limit: 1) { name } }')
        self.assertIsNone(result.errors)
        self.assertEqual({'products': [{'name': 'Lamp'}]}, result.data)

    def test_resolver_overlay_as_dict(self):
        resolvers = {
            'Product': {
                'name': lambda product, info, **args: product['name'].upper(),
            },
        }
        merged_schema = merge_schemas([make_catalog_schema()], resolvers=resolvers)
        result = graphql_sync(merged_schema, '{ product(id: "2") { name } }')
        self.assertIsNone(result.errors)
        self.assertEqual({'product': {'name': 'DESK'}}, result.data)

    def test_resolver_for_unknown_field(self):
        resolvers = {
            'Product': {
                'color': lambda product, info, **args: 'red',
            },
        }
        with self.assertRaises(SchemaStructureError):
            merge_schemas([make_catalog_schema()], resolvers=resolvers)

    def test_invalid_fragment(self):
        resolvers = {
            'Product': {
                'name': {
                    'fragment': '{ product { id } }',
                    'resolve': lambda product, info, **args: 'name',
                },
            },
        }
        with self.assertRaises(FragmentParseError):
            merge_schemas([make_catalog_schema()], resolvers=resolvers)

    def test_no_query_root_fields(self):
        with self.assertRaises(SchemaStructureError):
            merge_schemas(['type Brand { name: String }'])
