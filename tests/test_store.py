from __future__ import annotations

from conftest import DATA_ONE, QUERY, SUPER_DATA_ONE, SUPER_QUERY, VARIABLES

from pylivequery import NormalizedStore, Variable, build_document
from pylivequery import field as select
from pylivequery.cache.keys import ROOT_QUERY


def test_complete_diff_returns_full_data() -> None:
    store = NormalizedStore()
    store.write(QUERY, VARIABLES, DATA_ONE)

    diff = store.diff(QUERY, VARIABLES)

    assert diff.complete is True
    assert diff.data == DATA_ONE


def test_incomplete_diff_hides_data_without_partial_flag() -> None:
    store = NormalizedStore()
    store.write(QUERY, VARIABLES, DATA_ONE)

    diff = store.diff(SUPER_QUERY, VARIABLES)

    assert diff.complete is False
    assert diff.data == {}


def test_incomplete_diff_returns_resolvable_subset_with_partial_flag() -> None:
    store = NormalizedStore()
    store.write(QUERY, VARIABLES, DATA_ONE)

    diff = store.diff(SUPER_QUERY, VARIABLES, return_partial_data=True)

    assert diff.complete is False
    assert diff.data == DATA_ONE


def test_overlapping_queries_share_path_based_records() -> None:
    store = NormalizedStore()
    store.write(SUPER_QUERY, VARIABLES, SUPER_DATA_ONE)
    store.write(QUERY, VARIABLES, {"people_one": {"name": "Luke"}})

    assert store.diff(SUPER_QUERY, VARIABLES).data == {"people_one": {"name": "Luke", "age": 21}}


def test_arguments_are_part_of_the_storage_key() -> None:
    store = NormalizedStore()
    store.write(QUERY, {"id": 1}, DATA_ONE)

    assert store.diff(QUERY, {"id": 2}).complete is False
    root = store.extract()[ROOT_QUERY]
    assert 'people_one({"id":1})' in root


def test_objects_with_typename_and_id_are_normalized_across_queries() -> None:
    hero = build_document(select("hero", select("__typename"), select("id"), select("name")))
    person = build_document(
        select("person", select("__typename"), select("id"), select("name"), args={"id": Variable("id")}),
        variables={"id": "ID!"},
    )
    store = NormalizedStore()
    store.write(hero, {}, {"hero": {"__typename": "Person", "id": "1", "name": "Luke"}})
    store.write(person, {"id": "1"}, {"person": {"__typename": "Person", "id": "1", "name": "Luke Skywalker"}})

    assert store.diff(hero, {}).data == {"hero": {"__typename": "Person", "id": "1", "name": "Luke Skywalker"}}
    assert "Person:1" in store.extract()


def test_lists_of_objects_round_trip() -> None:
    document = build_document(select("people", select("name"), select("tags")))
    data = {"people": [{"name": "Luke", "tags": ["jedi"]}, {"name": "Leia", "tags": []}]}
    store = NormalizedStore()
    store.write(document, {}, data)

    diff = store.diff(document, {})

    assert diff.complete is True
    assert diff.data == data


def test_alias_is_used_as_result_key_but_not_storage_key() -> None:
    aliased = build_document(select("people_one", select("name"), alias="luke", args={"id": 1}))
    plain = build_document(select("people_one", select("name"), args={"id": 1}))
    store = NormalizedStore()
    store.write(aliased, {}, {"luke": {"name": "Luke"}})

    assert store.diff(plain, {}).data == {"people_one": {"name": "Luke"}}


def test_variable_defaults_resolve_arguments() -> None:
    document = build_document(
        select("people_one", select("name"), args={"id": Variable("id")}),
        variables={"id": "ID"},
        defaults={"id": 1},
    )
    store = NormalizedStore()
    store.write(QUERY, VARIABLES, DATA_ONE)

    assert store.diff(document, {}).data == DATA_ONE


def test_null_fields_are_complete() -> None:
    store = NormalizedStore()
    store.write(QUERY, VARIABLES, {"people_one": None})

    diff = store.diff(QUERY, VARIABLES)

    assert diff.complete is True
    assert diff.data == {"people_one": None}


def test_write_reports_changes_and_bumps_version_only_when_needed() -> None:
    store = NormalizedStore()
    first = store.write(QUERY, VARIABLES, DATA_ONE)
    version = store.version
    second = store.write(QUERY, VARIABLES, DATA_ONE)

    assert first
    assert second == set()
    assert store.version == version


def test_diff_results_are_detached_from_records() -> None:
    document = build_document(select("config"))
    store = NormalizedStore()
    store.write(document, {}, {"config": {"theme": "dark"}})

    diff = store.diff(document, {})
    diff.data["config"]["theme"] = "light"

    assert store.diff(document, {}).data == {"config": {"theme": "dark"}}


def test_reset_clears_records() -> None:
    store = NormalizedStore()
    store.write(QUERY, VARIABLES, DATA_ONE)
    store.reset()

    assert store.extract() == {}
    assert store.diff(QUERY, VARIABLES).complete is False
