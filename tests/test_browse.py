import itertools
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from sqlalchemy.dialects import postgresql

from apps.api.services.browse import (
    PAGE_SIZE,
    BrowseFilters,
    BrowseService,
    Candidate,
    apply_post_filters,
    build_candidate_query,
    common_tag_count,
    compatible_targets,
    has_required_tags,
    is_compatible,
    normalize_tag,
    sort_candidates,
    tags_match,
)
from models import Profile, User
from models.profile import GENDERS, ORIENTATIONS

PARIS = (48.8566, 2.3522)
LYON = (45.7640, 4.8357)

ALL_ORIENTATIONS = (*ORIENTATIONS, None)


def _user(user_id: int) -> User:
    return User(id=user_id, username=f"user{user_id}", first_name="First", last_name="Last", is_verified=True)


def _profile(user_id: int, **fields) -> Profile:
    values = {"age": 25, "gender": "femme", "sexual_orientation": "hetero", "interests": [], "fame_rating": 0}
    values.update(fields)
    return Profile(user_id=user_id, **values)


def _candidate(user_id: int, distance=None, common=0, fame=0, age=25) -> Candidate:
    return Candidate(
        user=_user(user_id), profile=_profile(user_id, fame_rating=fame, age=age), distance=distance, common_tags=common
    )


def _sql(viewer: Profile, filters: BrowseFilters) -> str:
    return str(build_candidate_query(viewer, filters).compile(dialect=postgresql.dialect()))


# Compatibility


@pytest.mark.parametrize(
    "gender,orientation,expected",
    [
        ("homme", "hetero", [("femme", ["hetero", "bi"])]),
        ("femme", "hetero", [("homme", ["hetero", "bi"])]),
        ("homme", "homo", [("homme", ["homo", "bi"])]),
        ("femme", "homo", [("femme", ["homo", "bi"])]),
        ("homme", "bi", [("homme", ["homo", "bi"]), ("femme", ["hetero", "bi"])]),
        ("femme", None, [("homme", ["hetero", "bi"]), ("femme", ["homo", "bi"])]),
    ],
)
def test_compatible_targets(gender, orientation, expected):
    assert compatible_targets(gender, orientation) == expected


@pytest.mark.parametrize(
    "viewer,candidate",
    itertools.product(
        itertools.product(GENDERS, ALL_ORIENTATIONS), itertools.product(GENDERS, ALL_ORIENTATIONS)
    ),
)
def test_compatibility_is_symmetric(viewer, candidate):
    assert is_compatible(*viewer, *candidate) == is_compatible(*candidate, *viewer)


@pytest.mark.parametrize(
    "viewer,candidate",
    itertools.product(
        itertools.product(GENDERS, ALL_ORIENTATIONS), itertools.product(GENDERS, ALL_ORIENTATIONS)
    ),
)
def test_targets_agree_with_compatibility(viewer, candidate):
    candidate_gender, candidate_orientation = candidate
    targets = dict(compatible_targets(*viewer))
    accepted = candidate_gender in targets and (candidate_orientation or "bi") in targets[candidate_gender]
    assert accepted == is_compatible(*viewer, *candidate)


def test_hetero_man_never_sees_homo_woman():
    assert not is_compatible("homme", "hetero", "femme", "homo")
    assert not is_compatible("homme", "hetero", "homme", "bi")
    assert is_compatible("homme", "hetero", "femme", "bi")


# Tags


def test_normalize_tag():
    assert normalize_tag("Ciné-ma!") == "cinema"
    assert normalize_tag("  #Rock_Music ") == "rockmusic"
    assert normalize_tag("!!!") == ""


def test_tags_match_is_partial_and_insensitive():
    assert tags_match("#Cinéma", "cinema")
    assert tags_match("sport", "Sports")
    assert not tags_match("sport", "voyage")
    assert not tags_match("", "voyage")


def test_common_tag_count():
    assert common_tag_count(["Musique", "Cinéma"], ["cinema", "voyage", "MUSIQUE"]) == 2
    assert common_tag_count(["Musique"], None) == 0
    assert common_tag_count(None, ["Musique"]) == 0


def test_has_required_tags_needs_every_tag():
    interests = ["Cinéma", "Randonnée", "Jazz"]
    assert has_required_tags(interests, ["cinema", "jazz"])
    assert has_required_tags(interests, ["rando"])
    assert not has_required_tags(interests, ["cinema", "surf"])
    assert has_required_tags(interests, [])


# Query construction


def test_query_contains_fixed_exclusions():
    sql = _sql(_profile(1, gender="homme", sexual_orientation="hetero"), BrowseFilters())
    assert "users.id != " in sql
    assert "users.is_verified IS true" in sql
    assert "profiles.age IS NOT NULL" in sql
    assert "profiles.gender IS NOT NULL" in sql
    assert "likes.liker_id" in sql
    assert "blocks.blocker_id" in sql and "blocks.blocked_id" in sql


def test_query_adds_only_requested_filters():
    viewer = _profile(1, gender="homme", sexual_orientation="hetero")
    bare = _sql(viewer, BrowseFilters())
    assert "profiles.age >=" not in bare
    assert "profiles.fame_rating >=" not in bare
    assert "profiles.fame_rating <=" not in bare

    filtered = _sql(viewer, BrowseFilters(age_min=20, age_max=30, min_fame_rating=5, max_fame_rating=50))
    assert "profiles.age >=" in filtered
    assert "profiles.age <=" in filtered
    assert "profiles.fame_rating >=" in filtered
    assert "profiles.fame_rating <=" in filtered


# Filtering and sorting


def test_max_distance_excludes_unknown_distances():
    candidates = [_candidate(2, distance=10.0), _candidate(3, distance=None), _candidate(4, distance=500.0)]
    kept = apply_post_filters(candidates, BrowseFilters(max_distance=100))
    assert [c.user.id for c in kept] == [2]


def test_distance_sort_paris_before_lyon():
    viewer = _profile(1, gender="homme", location_lat=PARIS[0], location_lng=PARIS[1])
    rows = [
        (_user(3), _profile(3, location_lat=LYON[0], location_lng=LYON[1])),
        (_user(2), _profile(2, location_lat=PARIS[0], location_lng=PARIS[1])),
    ]
    ranked = BrowseService(MagicMock()).rank(viewer, rows, BrowseFilters(sort_by="distance", sort_order="asc"))
    assert [c.user.id for c in ranked] == [2, 3]
    assert ranked[0].distance == 0
    assert 390 < ranked[1].distance < 395


@pytest.mark.parametrize("order", ["asc", "desc"])
def test_unknown_distance_sorts_last(order):
    candidates = [_candidate(2, distance=None), _candidate(3, distance=5.0), _candidate(4, distance=50.0)]
    ranked = sort_candidates(candidates, "distance", order)
    assert ranked[-1].user.id == 2


def test_sort_defaults():
    assert BrowseFilters(sort_by="distance").effective_order == "asc"
    assert BrowseFilters(sort_by="age").effective_order == "asc"
    assert BrowseFilters(sort_by="fame_rating").effective_order == "desc"
    assert BrowseFilters(sort_by="common_tags").effective_order == "desc"
    assert BrowseFilters(sort_by="age", sort_order="desc").effective_order == "desc"


def test_sort_by_age_and_fame():
    candidates = [_candidate(2, age=30, fame=5), _candidate(3, age=22, fame=50), _candidate(4, age=26, fame=20)]
    assert [c.user.id for c in sort_candidates(candidates, "age", "asc")] == [3, 4, 2]
    assert [c.user.id for c in sort_candidates(candidates, "fame_rating", "desc")] == [3, 4, 2]


def test_intelligent_sort_is_lexicographic():
    candidates = [
        _candidate(2, common=1, fame=100, distance=1.0),
        _candidate(3, common=2, fame=10, distance=300.0),
        _candidate(4, common=2, fame=10, distance=20.0),
        _candidate(5, common=2, fame=40, distance=None),
    ]
    ranked = sort_candidates(candidates, "intelligent", "asc")
    assert [c.user.id for c in ranked] == [5, 4, 3, 2]


# Service


@pytest.mark.asyncio
async def test_browse_requires_complete_profile(mock_session, mock_result):
    mock_result.scalar_one_or_none.return_value = _profile(1, age=None)
    with pytest.raises(HTTPException) as exc:
        await BrowseService(mock_session).browse(1, BrowseFilters())
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_browse_caps_page_and_reports_total(mock_session, mock_result, monkeypatch):
    viewer = _profile(1, gender="homme", sexual_orientation="bi", interests=["jazz"])
    mock_result.scalar_one_or_none.return_value = viewer
    mock_result.all.return_value = [(_user(i), _profile(i, interests=["Jazz"])) for i in range(2, 62)]
    monkeypatch.setattr("apps.api.services.browse.load_photos", AsyncMock(return_value={2: [{"id": 9}]}))

    profiles, total = await BrowseService(mock_session).browse(1, BrowseFilters())

    assert total == 60
    assert len(profiles) == PAGE_SIZE
    assert profiles[0]["id"] == 2
    assert profiles[0]["common_tags_count"] == 1
    assert profiles[0]["photos"] == [{"id": 9}]
    assert profiles[1]["photos"] == []
    assert "email" not in profiles[0]
