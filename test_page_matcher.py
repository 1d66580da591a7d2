"""Tests for page matching and ranking"""

import pytest

from conftest import person
from services.page_matcher import (
    InvalidRequestError,
    PageMatcher,
    build_image_url,
    is_grid_layout,
)

BASE_URL = "https://images.test/pages"


def matcher_for(make_store, *persons, representative="max_confidence"):
    return PageMatcher(make_store(*persons), BASE_URL, representative=representative)


def test_two_persons_on_first_page(make_store):
    matcher = matcher_for(
        make_store,
        person("alice", "Alice", [("f1", 1, 99.95)]),
        person("bob", "Bob", [("f1", 1, 98.0)]),
    )

    pages = matcher.find_matching_pages(["alice", "bob"])

    assert len(pages) == 1
    page = pages[0]
    assert page.match_count == 2
    assert page.matched_persons == ["Alice", "Bob"]
    assert page.is_grid_layout is False
    assert page.score == 2 ** 3 * 10000 + 100 + 30
    assert page.document_id == "f1"
    assert page.page_number == 1
    assert page.image_url == f"{BASE_URL}/f1/page-001.jpg"


def test_single_person_catalog_page_is_grid(make_store):
    matcher = matcher_for(
        make_store,
        person("carol", "Carol", [("f2", 5, 97.0)] * 3),
    )

    pages = matcher.find_matching_pages(["carol"])

    assert len(pages) == 1
    assert pages[0].match_count == 1
    assert pages[0].is_grid_layout is True
    assert pages[0].score == 9800


def test_grid_penalty_is_200_points(make_store):
    three = matcher_for(make_store, person("carol", "Carol", [("f2", 5, 97.0)] * 3))
    two = matcher_for(make_store, person("carol", "Carol", [("f2", 5, 97.0)] * 2))

    grid_page = three.find_matching_pages(["carol"])[0]
    plain_page = two.find_matching_pages(["carol"])[0]

    assert plain_page.is_grid_layout is False
    assert plain_page.score - grid_page.score == 200


def test_two_persons_repeated_is_grid(make_store):
    matcher = matcher_for(
        make_store,
        person("alice", "Alice", [("f1", 5, 97.0), ("f1", 5, 96.0)]),
        person("bob", "Bob", [("f1", 5, 97.0), ("f1", 5, 95.0)]),
    )

    page = matcher.find_matching_pages(["alice", "bob"])[0]

    assert page.is_grid_layout is True
    assert page.score == 80000 - 200


def test_one_repeated_person_among_two_is_not_grid(make_store):
    matcher = matcher_for(
        make_store,
        person("alice", "Alice", [("f1", 5, 97.0), ("f1", 5, 96.0)]),
        person("bob", "Bob", [("f1", 5, 97.0)]),
    )

    page = matcher.find_matching_pages(["alice", "bob"])[0]

    assert page.is_grid_layout is False
    assert page.score == 80000


def test_unknown_and_empty_persons_give_no_pages(make_store):
    matcher = matcher_for(make_store, person("dave", "Dave", []))

    assert matcher.find_matching_pages(["nobody", "dave"]) == []


@pytest.mark.parametrize("person_ids", [None, [], "alice", [1, 2], ["alice", None]])
def test_invalid_requests(make_store, person_ids):
    matcher = matcher_for(make_store, person("alice", "Alice", [("f1", 1, 99.0)]))

    with pytest.raises(InvalidRequestError):
        matcher.find_matching_pages(person_ids)


def test_unknown_ids_are_dropped(make_store):
    matcher = matcher_for(
        make_store,
        person("alice", "Alice", [("f1", 3, 97.0)]),
    )

    pages = matcher.find_matching_pages(["ghost", "alice", "ghost-2"])

    assert len(pages) == 1
    assert pages[0].matched_persons == ["Alice"]


def test_more_matches_always_outrank_fewer(make_store):
    # worst possible two-person page against the best single-person page
    matcher = matcher_for(
        make_store,
        person("alice", "Alice", [("deep", 40, 50.0)] * 2 + [("best", 1, 99.99)]),
        person("bob", "Bob", [("deep", 40, 50.0)] * 8),
    )

    pages = matcher.find_matching_pages(["alice", "bob"])

    assert [p.document_id for p in pages] == ["deep", "best"]
    deep, best = pages
    assert deep.match_count == 2 and deep.is_grid_layout
    assert deep.score == 80000 - 50 - 200 - (10 - 6) * 20
    assert best.score == 10000 + 100 + 30
    assert deep.score > best.score


def test_crowded_page_penalty(make_store):
    matcher = matcher_for(
        make_store,
        person("alice", "Alice", [("f1", 5, 95.0)]),
        person("bob", "Bob", [("f1", 5, 95.0)] * 7),
    )

    page = matcher.find_matching_pages(["alice", "bob"])[0]

    assert page.is_grid_layout is False
    assert page.score == 80000 - (8 - 6) * 20


@pytest.mark.parametrize("page_number, confidence, expected", [
    (1, 95.0, 10100),
    (9, 95.0, 10000),
    (10, 95.0, 9980),
    (19, 95.0, 9980),
    (20, 95.0, 9950),
    (5, 99.0, 10000),
    (5, 99.5, 10015),
    (5, 99.9, 10015),
    (5, 99.95, 10030),
])
def test_page_quality_adjustments(make_store, page_number, confidence, expected):
    matcher = matcher_for(make_store, person("alice", "Alice", [("f1", page_number, confidence)]))

    assert matcher.find_matching_pages(["alice"])[0].score == expected


def test_representative_is_highest_confidence(make_store):
    persons = (
        person("bob", "Bob", [("f1", 1, 98.0)]),
        person("alice", "Alice", [("f1", 1, 99.95)]),
    )

    best = matcher_for(make_store, *persons).find_matching_pages(["bob", "alice"])[0]
    first = matcher_for(make_store, *persons, representative="first_seen").find_matching_pages(["bob", "alice"])[0]

    assert best.score == 80130
    assert best.confidence == 99.95
    assert first.score == 80100
    assert first.confidence == 98.0


def test_unknown_representative_policy(make_store):
    with pytest.raises(ValueError):
        PageMatcher(make_store(), BASE_URL, representative="random")


def test_ties_keep_discovery_order(make_store):
    matcher = matcher_for(
        make_store,
        person("alice", "Alice", [("b-doc", 4, 97.0), ("a-doc", 4, 97.0)]),
        person("bob", "Bob", [("c-doc", 4, 97.0)]),
    )

    pages = matcher.find_matching_pages(["alice", "bob"])

    assert [p.document_id for p in pages] == ["b-doc", "a-doc", "c-doc"]
    assert len({p.score for p in pages}) == 1


def test_repeated_request_ids_count_once(make_store):
    matcher = matcher_for(make_store, person("carol", "Carol", [("f2", 5, 97.0)] * 2))

    page = matcher.find_matching_pages(["carol", "carol"])[0]

    assert page.is_grid_layout is False
    assert page.score == 10000


def test_results_are_idempotent(make_store):
    matcher = matcher_for(
        make_store,
        person("alice", "Alice", [("f1", 1, 99.95), ("f2", 12, 97.0), ("f3", 22, 99.2)]),
        person("bob", "Bob", [("f1", 1, 98.0), ("f3", 22, 96.0), ("f4", 2, 91.0)]),
    )

    first = matcher.find_matching_pages(["alice", "bob"])
    second = matcher.find_matching_pages(["alice", "bob"])

    assert [(p.document_id, p.page_number, p.score, p.match_count) for p in first] == \
        [(p.document_id, p.page_number, p.score, p.match_count) for p in second]


def test_match_count_equals_distinct_names(make_store):
    matcher = matcher_for(
        make_store,
        person("alice", "Alice", [("f1", 2, 90.0), ("f1", 2, 91.0), ("f2", 2, 90.0)]),
        person("bob", "Bob", [("f1", 2, 90.0)]),
        person("carol", "Carol", [("f1", 2, 90.0), ("f2", 2, 90.0)]),
    )

    pages = matcher.find_matching_pages(["alice", "bob", "carol"])

    for page in pages:
        assert page.match_count == len(set(page.matched_persons))
    assert {(p.document_id, p.match_count) for p in pages} == {("f1", 3), ("f2", 2)}


def test_pages_sorted_by_score(make_store):
    matcher = matcher_for(
        make_store,
        person("alice", "Alice", [("f1", 30, 90.0), ("f2", 1, 99.95), ("f3", 12, 99.5)]),
    )

    scores = [p.score for p in matcher.find_matching_pages(["alice"])]

    assert scores == sorted(scores, reverse=True)
    assert scores == [10130, 9995, 9950]


def test_build_image_url():
    assert build_image_url("https://x.test/base/", "VOL1/doc", 7) == "https://x.test/base/VOL1/doc/page-007.jpg"
    assert build_image_url("https://x.test", "d", 123) == "https://x.test/d/page-123.jpg"
    assert build_image_url("https://x.test", "d", 1234) == "https://x.test/d/page-1234.jpg"


def test_is_grid_layout_rules():
    assert is_grid_layout({}) is False
    assert is_grid_layout({"A": 2}) is False
    assert is_grid_layout({"A": 3}) is True
    assert is_grid_layout({"A": 5, "B": 1}) is False
    assert is_grid_layout({"A": 2, "B": 2}) is True
    assert is_grid_layout({"A": 2, "B": 1, "C": 2}) is True
