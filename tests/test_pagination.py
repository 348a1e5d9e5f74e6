"""페이징 값 타입 테스트 (Paging value type tests)."""

import pytest
from pydantic import ValidationError
from sqlalchemy import select

from app.models.member import Member
from app.utils.exceptions import QueryCreationError
from app.utils.pagination import Direction, Order, Page, PageRequest, Slice, Sort, apply_sort


class TestSort:
    def test_by_and_combine(self):
        sort = Sort.by("age").and_(Sort.by("username", direction=Direction.DESC))
        assert sort.orders == (
            Order(property="age"),
            Order(property="username", direction=Direction.DESC),
        )
        assert sort.is_sorted
        assert not Sort.unsorted().is_sorted

    def test_apply_sort_sql(self):
        sql = str(apply_sort(select(Member), Member, Sort.by("username", direction=Direction.DESC)))
        assert "ORDER BY member.username DESC" in sql

    def test_apply_sort_unknown_property(self):
        with pytest.raises(QueryCreationError):
            apply_sort(select(Member), Member, Sort.by("team"))


class TestPageRequest:
    def test_offset_and_navigation(self):
        request = PageRequest.of(2, 10)
        assert request.offset == 20
        assert request.next().page == 3
        assert request.first().page == 0
        assert not request.sort.is_sorted

    @pytest.mark.parametrize("page, size", [(-1, 10), (0, 0)])
    def test_invalid_values(self, page, size):
        with pytest.raises(ValidationError):
            PageRequest.of(page, size)


class TestPage:
    def test_total_pages_rounds_up(self):
        page = Page(content=[1, 2, 3], number=0, size=3, total_elements=5)
        assert page.total_pages == 2
        assert page.number_of_elements == 3
        assert page.is_first
        assert page.has_next
        assert not page.has_previous

    def test_last_page(self):
        page = Page(content=[4, 5], number=1, size=3, total_elements=5)
        assert page.is_last
        assert page.has_previous

    def test_empty(self):
        page = Page(content=[], number=0, size=10, total_elements=0)
        assert page.total_pages == 0
        assert not page.has_content
        assert page.is_last

    def test_zero_size_rejected(self):
        with pytest.raises(ValidationError):
            Page(content=[], number=0, size=0, total_elements=0)
        with pytest.raises(ValidationError):
            Slice(content=[], number=0, size=0, has_next=False)

    def test_map_keeps_metadata(self):
        page = Page(content=[1, 2], number=0, size=2, total_elements=7)
        mapped = page.map(str)
        assert mapped.content == ["1", "2"]
        assert mapped.total_elements == 7
        assert mapped.total_pages == 4


class TestSlice:
    def test_slice_flags(self):
        chunk = Slice(content=["a", "b"], number=0, size=2, has_next=True)
        assert not chunk.is_last
        assert chunk.map(str.upper).content == ["A", "B"]
        assert chunk.map(str.upper).has_next
