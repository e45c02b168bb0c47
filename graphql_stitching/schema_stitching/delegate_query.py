# Copyright 2019-present Kensho Technologies, LLC.
from collections import OrderedDict, namedtuple
from copy import copy

from graphql import (
    TypeNameMetaFieldDef, get_named_type, is_abstract_type, is_interface_type, is_object_type
)
from graphql.language.ast import (
    ArgumentNode, DocumentNode, FieldNode, FragmentDefinitionNode, FragmentSpreadNode,
    InlineFragmentNode, NameNode, OperationDefinitionNode, SelectionSetNode,
    VariableDefinitionNode, VariableNode
)

from .utils import (
    VARIABLE_PREFIX, MissingArgumentDefinitionError, get_operation_type, get_variable_names,
    type_to_ast
)


TYPENAME_FIELD_NAME = '__typename'


VariableBinding = namedtuple(
    'VariableBinding', (
        'argument_name',  # str, name of a root field argument missing from the caller's query
        'variable_name',  # str, name of the new variable passed in as that argument
    )
)


ComposedDocument = namedtuple(
    'ComposedDocument', (
        'document',  # DocumentNode, the query to send to the subschema
        'variable_bindings',  # List[VariableBinding], the variables created for root arguments
    )
)


FilteredSelectionSet = namedtuple(
    'FilteredSelectionSet', (
        'selection_set',  # SelectionSetNode, containing only selections valid on the target
        'used_fragments',  # frozenset[str], names of fragments spread in the kept selections
        'used_variables',  # frozenset[str], names of variables used in the kept selections
    )
)


FilteredSelectionSetDeep = namedtuple(
    'FilteredSelectionSetDeep', (
        'selection_set',  # SelectionSetNode, containing only selections valid on the target
        'fragment_definitions',  # List[FragmentDefinitionNode], filtered, each one once
        'used_variables',  # frozenset[str], names of variables used in the selections/fragments
    )
)


def create_document(schema, fragment_replacements, root_type, root_field_name, operation,
                    selections, fragments, variable_definitions=None):
    """Build the document that fetches one root field from a subschema.

    The caller's selections of the field (written against the merged schema) are renamed to
    root_field_name, given variables for every argument of the target field they do not
    pass explicitly, and filtered down to what the target schema can answer. Only the
    fragments and variable definitions still in use are kept.

    Args:
        schema: GraphQLSchema, the subschema that the document will be executed against
        fragment_replacements: Dict[str, Dict[str, InlineFragmentNode]], type name to field
                               name to the inline fragment to use in place of fields that the
                               target type does not have
        root_type: GraphQLObjectType, the query or mutation type of schema
        root_field_name: str, name of the field of root_type to fetch
        operation: str or OperationType, 'query' or 'mutation'
        selections: List[SelectionNode], the caller's field nodes for the field
        fragments: Dict[str, FragmentDefinitionNode], all fragments of the caller's document
        variable_definitions: optional List[VariableDefinitionNode], the caller's variables

    Returns:
        ComposedDocument, with the new document and the variables created for root arguments

    Raises:
        MissingArgumentDefinitionError if a selection passes an argument that the target field
        does not define
    """
    root_field = root_type.fields[root_field_name]

    new_selections = []
    variable_bindings = OrderedDict()  # Dict[str, VariableBinding], keyed by variable name
    for selection in selections:
        if isinstance(selection, FieldNode):
            new_selection, selection_bindings = process_root_field(
                selection, root_field_name, root_field
            )
            for variable_binding in selection_bindings:
                variable_bindings[variable_binding.variable_name] = variable_binding
            new_selections.append(new_selection)
        else:
            new_selections.append(selection)

    new_variable_definitions = [
        _get_variable_definition(root_field_name, root_field, variable_binding)
        for variable_binding in variable_bindings.values()
    ]

    filtered = filter_selection_set_deep(
        schema, fragment_replacements, root_type, SelectionSetNode(selections=new_selections),
        fragments
    )

    kept_variable_definitions = [
        variable_definition
        for variable_definition in (variable_definitions or ())
        if variable_definition.variable.name.value in filtered.used_variables and
        variable_definition.variable.name.value not in variable_bindings
    ]

    operation_definition = OperationDefinitionNode(
        operation=get_operation_type(operation),
        name=None,
        variable_definitions=kept_variable_definitions + new_variable_definitions,
        directives=[],
        selection_set=filtered.selection_set,
    )
    document = DocumentNode(
        definitions=[operation_definition] + list(filtered.fragment_definitions)
    )
    return ComposedDocument(document=document, variable_bindings=list(variable_bindings.values()))


def process_root_field(selection, root_field_name, root_field):
    """Return the caller's root field selection rewritten to fetch root_field_name.

    The new field has no alias and no directives. Arguments that the caller passed are kept.
    Every other argument of the target field is passed a new variable, named after the
    argument with an underscore prefix.

    Args:
        selection: FieldNode, the caller's selection of the field being delegated
        root_field_name: str, name of the field on the root type of the target schema
        root_field: GraphQLField, the field on the root type of the target schema

    Returns:
        Tuple[FieldNode, List[VariableBinding]], the new field and the variables it uses for
        arguments the caller did not pass

    Raises:
        MissingArgumentDefinitionError if the selection passes an argument that root_field
        does not define
    """
    existing_arguments = list(selection.arguments or ())
    existing_argument_names = set()
    for argument in existing_arguments:
        argument_name = argument.name.value
        if argument_name not in root_field.args:
            raise MissingArgumentDefinitionError(
                'Argument "{}" is not defined on field "{}".'.format(
                    argument_name, root_field_name
                )
            )
        existing_argument_names.add(argument_name)

    variable_bindings = [
        VariableBinding(
            argument_name=argument_name,
            variable_name=VARIABLE_PREFIX + argument_name,
        )
        for argument_name in root_field.args
        if argument_name not in existing_argument_names
    ]
    missing_arguments = [
        ArgumentNode(
            name=NameNode(value=variable_binding.argument_name),
            value=VariableNode(name=NameNode(value=variable_binding.variable_name)),
        )
        for variable_binding in variable_bindings
    ]

    new_selection = FieldNode(
        alias=None,
        name=NameNode(value=root_field_name),
        arguments=existing_arguments + missing_arguments,
        directives=[],
        selection_set=selection.selection_set,
    )
    return new_selection, variable_bindings


def _get_variable_definition(root_field_name, root_field, variable_binding):
    """Return the definition of a new variable, typed like the argument it is passed to."""
    argument = root_field.args.get(variable_binding.argument_name)
    if argument is None:
        raise MissingArgumentDefinitionError(
            'Argument "{}" is not defined on field "{}".'.format(
                variable_binding.argument_name, root_field_name
            )
        )
    return VariableDefinitionNode(
        variable=VariableNode(name=NameNode(value=variable_binding.variable_name)),
        type=type_to_ast(argument.type),
        default_value=None,
        directives=[],
    )


def filter_selection_set_deep(schema, fragment_replacements, graphql_type, selection_set,
                              fragments):
    """Filter a selection set and, transitively, every fragment it spreads, against schema.

    Fragments whose type condition is not a type of schema are dropped, along with their
    spreads. Every other fragment reachable from the selection set is filtered exactly once,
    against its type condition, even if fragments spread each other in a cycle.

    Args:
        schema: GraphQLSchema, the subschema that the selections will be sent to
        fragment_replacements: Dict[str, Dict[str, InlineFragmentNode]], type name to field
                               name to the inline fragment to use in place of the field
        graphql_type: GraphQLType of schema that the selection set is selecting on
        selection_set: SelectionSetNode, not modified by this function
        fragments: Dict[str, FragmentDefinitionNode], all fragments of the caller's document

    Returns:
        FilteredSelectionSetDeep
    """
    fragments = fragments or {}
    valid_fragment_names = frozenset(
        fragment_name
        for fragment_name, fragment in fragments.items()
        if schema.get_type(fragment.type_condition.name.value) is not None
    )

    filtered = filter_selection_set(
        schema, fragment_replacements, graphql_type, selection_set, valid_fragment_names
    )
    used_variables = set(filtered.used_variables)

    new_fragments = OrderedDict()  # Dict[str, FragmentDefinitionNode]
    remaining_fragment_names = sorted(filtered.used_fragments, reverse=True)
    while remaining_fragment_names:
        fragment_name = remaining_fragment_names.pop()
        if fragment_name in new_fragments:
            continue
        fragment = fragments[fragment_name]
        inner_type = schema.get_type(fragment.type_condition.name.value)
        if inner_type is None:
            continue

        filtered_fragment = filter_selection_set(
            schema, fragment_replacements, inner_type, fragment.selection_set,
            valid_fragment_names
        )
        remaining_fragment_names.extend(sorted(filtered_fragment.used_fragments, reverse=True))
        used_variables.update(filtered_fragment.used_variables)
        used_variables.update(get_variable_names(fragment.directives or ()))
        new_fragments[fragment_name] = FragmentDefinitionNode(
            name=NameNode(value=fragment_name),
            variable_definitions=None,
            type_condition=fragment.type_condition,
            directives=list(fragment.directives or ()),
            selection_set=filtered_fragment.selection_set,
        )

    return FilteredSelectionSetDeep(
        selection_set=filtered.selection_set,
        fragment_definitions=list(new_fragments.values()),
        used_variables=frozenset(used_variables),
    )


def filter_selection_set(schema, fragment_replacements, graphql_type, selection_set,
                         valid_fragment_names):
    """Return the selections that are valid on graphql_type, recursing into subselections.

    - Fields that graphql_type does not have are replaced by their fragment replacement if
      one is registered for the type and field, and are dropped otherwise
    - Fragment spreads of fragments not in valid_fragment_names are dropped
    - Inline fragments on types that the schema does not have are dropped
    - Selections on interfaces and unions always include __typename
    - Selections left empty are given __typename, so that the document remains valid

    Args:
        schema: GraphQLSchema, the subschema that the selections will be sent to
        fragment_replacements: Dict[str, Dict[str, InlineFragmentNode]]
        graphql_type: GraphQLType of schema that the selection set is selecting on. May be
                      wrapped in List and NonNull
        selection_set: SelectionSetNode, not modified by this function
        valid_fragment_names: frozenset[str], names of fragments that may be spread

    Returns:
        FilteredSelectionSet
    """
    parent_type = get_named_type(graphql_type)

    new_selections = []
    used_fragments = set()
    used_variables = set()
    for selection in selection_set.selections:
        filtered = _filter_selection(
            schema, fragment_replacements, parent_type, selection, valid_fragment_names
        )
        if filtered is None:
            continue
        new_selection, selection_fragments, selection_variables = filtered
        new_selections.append(new_selection)
        used_fragments.update(selection_fragments)
        used_variables.update(selection_variables)

    if is_abstract_type(parent_type):
        if not _has_typename_field(new_selections):
            new_selections.append(_get_typename_field())
    elif not new_selections:
        new_selections.append(_get_typename_field())

    return FilteredSelectionSet(
        selection_set=SelectionSetNode(selections=new_selections),
        used_fragments=frozenset(used_fragments),
        used_variables=frozenset(used_variables),
    )


def _filter_selection(schema, fragment_replacements, parent_type, selection,
                      valid_fragment_names):
    """Return a FilteredSelectionSet-like triple for a single selection, or None to drop it."""
    if isinstance(selection, FieldNode):
        return _filter_field(
            schema, fragment_replacements, parent_type, selection, valid_fragment_names
        )
    elif isinstance(selection, FragmentSpreadNode):
        fragment_name = selection.name.value
        if fragment_name not in valid_fragment_names:
            return None
        return (
            selection,
            frozenset({fragment_name}),
            get_variable_names(selection.directives or ()),
        )
    elif isinstance(selection, InlineFragmentNode):
        return _filter_inline_fragment(
            schema, fragment_replacements, parent_type, selection, valid_fragment_names
        )
    else:
        raise AssertionError(
            'Unreachable code reached. Unexpected selection "{}".'.format(
                type(selection).__name__
            )
        )


def _filter_field(schema, fragment_replacements, parent_type, field, valid_fragment_names):
    field_name = field.name.value
    if is_object_type(parent_type) or is_interface_type(parent_type):
        if field_name == TYPENAME_FIELD_NAME:
            field_definition = TypeNameMetaFieldDef
        else:
            field_definition = parent_type.fields.get(field_name)
        if field_definition is None:
            fragment_replacement = fragment_replacements.get(parent_type.name, {}).get(
                field_name
            )
            if fragment_replacement is None:
                return None
            return _filter_inline_fragment(
                schema, fragment_replacements, parent_type, fragment_replacement,
                valid_fragment_names
            )
    elif field_name == TYPENAME_FIELD_NAME:
        # Unions have no fields other than __typename
        field_definition = TypeNameMetaFieldDef
    else:
        return None

    used_variables = get_variable_names(
        list(field.arguments or ()) + list(field.directives or ())
    )
    if field.selection_set is None:
        return field, frozenset(), used_variables

    filtered = filter_selection_set(
        schema, fragment_replacements, field_definition.type, field.selection_set,
        valid_fragment_names
    )
    new_field = copy(field)
    new_field.selection_set = filtered.selection_set
    return new_field, filtered.used_fragments, used_variables | filtered.used_variables


def _filter_inline_fragment(schema, fragment_replacements, parent_type, inline_fragment,
                            valid_fragment_names):
    if inline_fragment.type_condition is not None:
        inner_type = schema.get_type(inline_fragment.type_condition.name.value)
        if inner_type is None:
            return None
    else:
        inner_type = parent_type

    filtered = filter_selection_set(
        schema, fragment_replacements, inner_type, inline_fragment.selection_set,
        valid_fragment_names
    )
    new_inline_fragment = copy(inline_fragment)
    new_inline_fragment.selection_set = filtered.selection_set
    used_variables = get_variable_names(inline_fragment.directives or ())
    return new_inline_fragment, filtered.used_fragments, used_variables | filtered.used_variables


def _has_typename_field(selections):
    """Return whether __typename is always fetched, under its own name, by the selections."""
    return any(
        isinstance(selection, FieldNode) and
        selection.name.value == TYPENAME_FIELD_NAME and
        selection.alias is None and
        not selection.directives
        for selection in selections
    )


def _get_typename_field():
    return FieldNode(
        alias=None,
        name=NameNode(value=TYPENAME_FIELD_NAME),
        arguments=[],
        directives=[],
        selection_set=None,
    )


def get_variable_values(composed_document, args, variable_values):
    """Return the variable values to execute a composed document with.

    Each variable created for a root argument takes, in order of preference, the caller's
    argument value under the argument's name, the caller's argument value under the
    variable's name, or the caller's variable of the same name. Each of the caller's own
    variables takes the caller's value for it. Values are looked up by presence, so falsy
    values such as 0, False or '' are passed on. Variables with no value are left out.

    The merged schema keeps enum and custom scalar values in serialized form, so the values
    are passed on as they are and the target schema parses them.

    Args:
        composed_document: ComposedDocument
        args: Dict[str, Any], the caller's resolved argument values
        variable_values: Dict[str, Any], the caller's variable values. May be None

    Returns:
        Dict[str, Any], variable name to value
    """
    variable_values = variable_values or {}
    argument_name_by_variable = {
        variable_binding.variable_name: variable_binding.argument_name
        for variable_binding in composed_document.variable_bindings
    }

    operation_definition = composed_document.document.definitions[0]
    new_variable_values = {}
    for variable_definition in operation_definition.variable_definitions or ():
        variable_name = variable_definition.variable.name.value
        if variable_name in argument_name_by_variable:
            argument_name = argument_name_by_variable[variable_name]
            if argument_name in args:
                new_variable_values[variable_name] = args[argument_name]
            elif variable_name in args:
                new_variable_values[variable_name] = args[variable_name]
            elif variable_name in variable_values:
                new_variable_values[variable_name] = variable_values[variable_name]
        elif variable_name in variable_values:
            new_variable_values[variable_name] = variable_values[variable_name]
    return new_variable_values
