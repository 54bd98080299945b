from __future__ import annotations

import pytest
from conftest import QUERY, SUPER_QUERY

from pylivequery import ConfigurationError, FetchPolicy, Variable, build_document, print_document
from pylivequery import field as select
from pylivequery.models.options import validate_options


def test_documents_compare_by_content() -> None:
    rebuilt = build_document(
        select("people_one", select("name"), args={"id": Variable("id")}),
        variables={"id": "ID!"},
        operation_name="PersonName",
    )

    assert rebuilt == QUERY
    assert rebuilt is not QUERY
    assert rebuilt.document_id() == QUERY.document_id()
    assert SUPER_QUERY.document_id() != QUERY.document_id()


def test_document_id_ignores_attached_source() -> None:
    with_source = QUERY.model_copy(update={"source": "query PersonName { ... }"})

    assert with_source.document_id() == QUERY.document_id()


def test_empty_document_is_rejected() -> None:
    with pytest.raises(ValueError):
        build_document()


def test_missing_variables_lists_required_only() -> None:
    document = build_document(
        select("search", select("id"), args={"term": Variable("term"), "first": Variable("first")}),
        variables={"term": "String!", "first": "Int!"},
        defaults={"first": 10},
    )

    assert document.missing_variables({}) == ["term"]
    assert document.missing_variables({"term": "x"}) == []


def test_print_document_renders_query_text() -> None:
    document = build_document(
        select("people_one", select("name"), alias="luke", args={"id": Variable("id"), "lang": "en"}),
        variables={"id": "ID!"},
        operation_name="Person",
    )

    assert print_document(document) == (
        'query Person($id: ID!) {\n  luke: people_one(id: $id, lang: "en") {\n    name\n  }\n}'
    )


def test_print_document_prefers_source() -> None:
    document = QUERY.model_copy(update={"source": "query { people_one { name } }"})

    assert print_document(document) == "query { people_one { name } }"


def test_options_defaults() -> None:
    options = validate_options(query=QUERY, variables={"id": 1})

    assert options.poll_interval == 0
    assert options.fetch_policy == FetchPolicy.CACHE_FIRST
    assert options.return_partial_data is False


def test_legacy_force_fetch_maps_to_policy() -> None:
    forced = validate_options(query=QUERY, variables={"id": 1}, force_fetch=True)
    relaxed = forced.merged(force_fetch=False)

    assert forced.fetch_policy == FetchPolicy.FORCE_NETWORK
    assert forced.force_network
    assert relaxed.fetch_policy == FetchPolicy.CACHE_FIRST


@pytest.mark.parametrize(
    "fields",
    [
        {"variables": {}},
        {"variables": {"id": 1}, "poll_interval": -5},
        {"variables": {"id": 1}, "unknown_option": True},
        {"variables": {"id": 1}, "fetch_policy": "cache-and-network"},
    ],
)
def test_invalid_options_raise_configuration_error(fields: dict) -> None:
    with pytest.raises(ConfigurationError):
        validate_options(query=QUERY, **fields)
