import pytest

from vidshare.errors import InvalidArgument
from vidshare.models import Video
from vidshare.services.listing import PageRequest, contains_ci, resolve_sort


def test_page_request_offset():
    assert PageRequest(1, 10).offset == 0
    assert PageRequest(3, 10).offset == 20


@pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (-1, 5)])
def test_page_request_rejects_non_positive(page, limit):
    with pytest.raises(InvalidArgument):
        PageRequest(page, limit)


def test_default_sort_is_newest_first_with_id_tiebreak():
    clauses = resolve_sort(None, None)
    rendered = [str(c) for c in clauses]
    assert rendered == ["videos.created_at DESC", "videos.id DESC"]


def test_sort_accepts_allow_listed_field():
    clauses = resolve_sort("views", "ASC")
    assert [str(c) for c in clauses] == ["videos.views ASC", "videos.id ASC"]


@pytest.mark.parametrize("field", ["password_hash", "owner_id", "views; DROP TABLE videos"])
def test_sort_rejects_unknown_field(field):
    with pytest.raises(InvalidArgument):
        resolve_sort(field, "asc")


def test_sort_rejects_unknown_direction():
    with pytest.raises(InvalidArgument):
        resolve_sort("title", "up")


def test_contains_escapes_like_wildcards():
    clause = contains_ci(Video.title, "50%_off")
    pattern = clause.right.value
    assert pattern == "%50\\%\\_off%"
