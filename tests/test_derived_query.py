"""메서드 이름 파싱 테스트.

Derived query parsing tests — prefixes, subjects, operators, traversal,
ordering and the errors raised for names that cannot be resolved.
"""

import pytest

from app.models.member import Member
from app.models.team import Team
from app.repositories.derived_query import (
    Operator,
    Part,
    QueryKind,
    build_count,
    build_select,
    parse_method_name,
)
from app.utils.exceptions import QueryCreationError
from app.utils.pagination import Direction, Order


class TestParseMethodName:
    """파싱 결과 검증."""

    def test_and_with_comparison_suffix(self):
        tree = parse_method_name("find_by_username_and_age_greater_than", Member)
        assert tree.kind is QueryKind.SELECT
        assert tree.groups == [[
            Part(path=("username",), operator=Operator.EQUALS),
            Part(path=("age",), operator=Operator.GREATER_THAN),
        ]]
        assert tree.arity == 2

    def test_top_n_without_predicate(self):
        tree = parse_method_name("find_top3_hello_by", Member)
        assert tree.limit == 3
        assert tree.groups == []
        assert tree.arity == 0

    def test_first_defaults_to_one(self):
        assert parse_method_name("find_first_by_username", Member).limit == 1

    def test_or_groups(self):
        tree = parse_method_name("find_by_username_or_age_less_than_equal", Member)
        assert len(tree.groups) == 2
        assert tree.groups[1][0].operator is Operator.LESS_THAN_EQUAL

    def test_relationship_traversal_distinct_and_order(self):
        tree = parse_method_name("find_distinct_by_team_name_order_by_age_desc_username", Member)
        assert tree.distinct
        assert tree.groups[0][0].path == ("team", "name")
        assert tree.joins == ["team"]
        assert tree.orders == [
            Order(property="age", direction=Direction.DESC),
            Order(property="username", direction=Direction.ASC),
        ]

    def test_between_takes_two_arguments(self):
        tree = parse_method_name("count_by_age_between", Member)
        assert tree.kind is QueryKind.COUNT
        assert tree.arity == 2

    def test_null_takes_no_arguments(self):
        tree = parse_method_name("exists_by_team_id_is_null", Member)
        assert tree.kind is QueryKind.EXISTS
        assert tree.groups[0][0].operator is Operator.IS_NULL
        assert tree.arity == 0

    def test_ignore_case(self):
        part = parse_method_name("find_by_username_starting_with_ignore_case", Member).groups[0][0]
        assert part.operator is Operator.STARTING_WITH
        assert part.ignore_case

    def test_delete_prefix(self):
        assert parse_method_name("delete_by_username", Member).kind is QueryKind.DELETE
        assert parse_method_name("remove_by_name", Team).kind is QueryKind.DELETE


class TestParseErrors:
    """해석할 수 없는 이름."""

    def test_unknown_property(self):
        with pytest.raises(QueryCreationError):
            parse_method_name("find_by_nickname", Member)

    def test_unknown_prefix(self):
        with pytest.raises(QueryCreationError):
            parse_method_name("fetch_by_username", Member)

    def test_missing_by(self):
        with pytest.raises(QueryCreationError):
            parse_method_name("find_username_list", Member)

    def test_comparison_on_relationship(self):
        with pytest.raises(QueryCreationError):
            parse_method_name("find_by_team_greater_than", Member)

    @pytest.mark.parametrize(
        "name",
        ["find_by_age_greater_than_ignore_case", "find_by_age_between_ignore_case", "find_by_age_in_ignore_case"],
    )
    def test_ignore_case_on_non_string_operator(self, name):
        with pytest.raises(QueryCreationError, match="ignore_case"):
            parse_method_name(name, Member)

    def test_empty_part(self):
        with pytest.raises(QueryCreationError):
            parse_method_name("find_by_username_and", Member)


class TestBuildStatements:
    """SQL 생성 검증."""

    def test_select_sql(self):
        tree = parse_method_name("find_by_username_and_age_greater_than", Member)
        sql = str(build_select(tree, Member, ["aaa", 15]))
        assert "member.username = :username_1" in sql
        assert "member.age > :age_1" in sql

    def test_select_with_limit_and_order(self):
        tree = parse_method_name("find_top3_by_age_order_by_username_desc", Member)
        sql = str(build_select(tree, Member, [10]))
        assert "ORDER BY member.username DESC" in sql
        assert "LIMIT" in sql

    def test_traversal_joins_team(self):
        tree = parse_method_name("find_by_team_name", Member)
        sql = str(build_select(tree, Member, ["teamA"]))
        assert "JOIN team ON team.team_id = member.team_id" in sql
        assert "team.name = :name_1" in sql

    def test_count_sql(self):
        tree = parse_method_name("count_by_age_greater_than_equal", Member)
        sql = str(build_count(tree, Member, [20]))
        assert "count(*)" in sql
        assert "member.age >= :age_1" in sql

    def test_in_operator(self):
        tree = parse_method_name("find_by_username_in", Member)
        sql = str(build_select(tree, Member, [["a", "b"]]))
        assert "member.username IN" in sql
