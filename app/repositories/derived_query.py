"""메서드 이름 기반 쿼리 생성기.

Derived query builder: turns a snake_case repository method name into a
SQLAlchemy statement.

Grammar:
    <prefix>[_<subject>]_by[_<predicate>][_order_by_<orders>]

    prefix     find | read | get | query | search | stream | count | exists | delete | remove
    subject    distinct, top<N> / first<N>; any other word is ignored
    predicate  parts joined by _and_, groups joined by _or_
    part       <property>[_<operator>][_ignore_case]
    orders     <property>[_asc|_desc] ...

Examples:
    find_by_username_and_age_greater_than(username, age)
    find_top3_hello_by()
    count_by_team_name(name)
    find_by_age_order_by_username_desc(age)
"""

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import Select, and_, false, func, inspect, or_, select, true
from sqlalchemy.orm import InstrumentedAttribute

from app.utils.exceptions import QueryCreationError
from app.utils.pagination import Direction, Order


class QueryKind(str, Enum):
    """메서드 접두어로 결정되는 쿼리 종류 (Query kind chosen by the method prefix)."""

    SELECT = "select"
    COUNT = "count"
    EXISTS = "exists"
    DELETE = "delete"


_PREFIXES: dict[str, QueryKind] = {
    "find": QueryKind.SELECT,
    "read": QueryKind.SELECT,
    "get": QueryKind.SELECT,
    "query": QueryKind.SELECT,
    "search": QueryKind.SELECT,
    "stream": QueryKind.SELECT,
    "count": QueryKind.COUNT,
    "exists": QueryKind.EXISTS,
    "delete": QueryKind.DELETE,
    "remove": QueryKind.DELETE,
}

_LIMIT_TOKEN = re.compile(r"^(top|first)(\d*)$")


def _lower_if(column: Any, value: Any, ignore_case: bool) -> tuple[Any, Any]:
    if ignore_case:
        return func.lower(column), func.lower(value)
    return column, value


def _equals(column: Any, args: Sequence[Any], ignore_case: bool) -> Any:
    if args[0] is None:
        return column == None  # noqa: E711
    left, right = _lower_if(column, args[0], ignore_case)
    return left == right


def _not_equals(column: Any, args: Sequence[Any], ignore_case: bool) -> Any:
    if args[0] is None:
        return column != None  # noqa: E711
    left, right = _lower_if(column, args[0], ignore_case)
    return left != right


class Operator(Enum):
    """술어 연산자 — (인자 수, 조건식 생성 함수).

    Predicate operator: (number of bound arguments, clause builder).
    """

    EQUALS = (1, _equals)
    NOT = (1, _not_equals)
    GREATER_THAN = (1, lambda c, a, i: c > a[0])
    GREATER_THAN_EQUAL = (1, lambda c, a, i: c >= a[0])
    LESS_THAN = (1, lambda c, a, i: c < a[0])
    LESS_THAN_EQUAL = (1, lambda c, a, i: c <= a[0])
    BETWEEN = (2, lambda c, a, i: c.between(a[0], a[1]))
    IS_NULL = (0, lambda c, a, i: c.is_(None))
    IS_NOT_NULL = (0, lambda c, a, i: c.is_not(None))
    LIKE = (1, lambda c, a, i: c.ilike(a[0]) if i else c.like(a[0]))
    NOT_LIKE = (1, lambda c, a, i: c.not_ilike(a[0]) if i else c.not_like(a[0]))
    STARTING_WITH = (1, lambda c, a, i: c.istartswith(a[0], autoescape=True) if i else c.startswith(a[0], autoescape=True))
    ENDING_WITH = (1, lambda c, a, i: c.iendswith(a[0], autoescape=True) if i else c.endswith(a[0], autoescape=True))
    CONTAINING = (1, lambda c, a, i: c.icontains(a[0], autoescape=True) if i else c.contains(a[0], autoescape=True))
    NOT_CONTAINING = (1, lambda c, a, i: ~(c.icontains(a[0], autoescape=True) if i else c.contains(a[0], autoescape=True)))
    IN = (1, lambda c, a, i: c.in_(list(a[0])))
    NOT_IN = (1, lambda c, a, i: c.not_in(list(a[0])))
    TRUE = (0, lambda c, a, i: c == true())
    FALSE = (0, lambda c, a, i: c == false())

    @property
    def arity(self) -> int:
        return self.value[0]

    @property
    def build(self) -> Callable[[Any, Sequence[Any], bool], Any]:
        return self.value[1]


# 연산자 접미어 — 긴 것부터 매칭 (Operator suffixes, matched longest first)
_OPERATOR_SUFFIXES: list[tuple[tuple[str, ...], Operator]] = sorted(
    [
        (("is", "not", "null"), Operator.IS_NOT_NULL),
        (("not", "null"), Operator.IS_NOT_NULL),
        (("is", "null"), Operator.IS_NULL),
        (("null",), Operator.IS_NULL),
        (("greater", "than", "equal"), Operator.GREATER_THAN_EQUAL),
        (("is", "greater", "than", "equal"), Operator.GREATER_THAN_EQUAL),
        (("greater", "than"), Operator.GREATER_THAN),
        (("is", "greater", "than"), Operator.GREATER_THAN),
        (("less", "than", "equal"), Operator.LESS_THAN_EQUAL),
        (("is", "less", "than", "equal"), Operator.LESS_THAN_EQUAL),
        (("less", "than"), Operator.LESS_THAN),
        (("is", "less", "than"), Operator.LESS_THAN),
        (("after",), Operator.GREATER_THAN),
        (("is", "after"), Operator.GREATER_THAN),
        (("before",), Operator.LESS_THAN),
        (("is", "before"), Operator.LESS_THAN),
        (("between",), Operator.BETWEEN),
        (("is", "between"), Operator.BETWEEN),
        (("not", "like"), Operator.NOT_LIKE),
        (("is", "not", "like"), Operator.NOT_LIKE),
        (("like",), Operator.LIKE),
        (("is", "like"), Operator.LIKE),
        (("starting", "with"), Operator.STARTING_WITH),
        (("starts", "with"), Operator.STARTING_WITH),
        (("is", "starting", "with"), Operator.STARTING_WITH),
        (("ending", "with"), Operator.ENDING_WITH),
        (("ends", "with"), Operator.ENDING_WITH),
        (("is", "ending", "with"), Operator.ENDING_WITH),
        (("not", "containing"), Operator.NOT_CONTAINING),
        (("is", "not", "containing"), Operator.NOT_CONTAINING),
        (("containing",), Operator.CONTAINING),
        (("contains",), Operator.CONTAINING),
        (("is", "containing"), Operator.CONTAINING),
        (("not", "in"), Operator.NOT_IN),
        (("is", "not", "in"), Operator.NOT_IN),
        (("in",), Operator.IN),
        (("is", "in"), Operator.IN),
        (("true",), Operator.TRUE),
        (("is", "true"), Operator.TRUE),
        (("false",), Operator.FALSE),
        (("is", "false"), Operator.FALSE),
        (("is", "not"), Operator.NOT),
        (("not",), Operator.NOT),
        (("equals",), Operator.EQUALS),
        (("is",), Operator.EQUALS),
    ],
    key=lambda entry: len(entry[0]),
    reverse=True,
)

# 관계 속성에 허용되는 연산자 (Operators allowed on a relationship itself)
_RELATIONSHIP_OPERATORS = {Operator.EQUALS, Operator.NOT}

# 대소문자 무시가 의미 있는 문자열 연산자 (String operators that honour ignore_case)
_IGNORE_CASE_OPERATORS = {
    Operator.EQUALS,
    Operator.NOT,
    Operator.LIKE,
    Operator.NOT_LIKE,
    Operator.STARTING_WITH,
    Operator.ENDING_WITH,
    Operator.CONTAINING,
    Operator.NOT_CONTAINING,
}


@dataclass(frozen=True)
class Part:
    """술어의 한 조각 — 속성 경로 + 연산자.

    One predicate part: a property path (one or two attribute names) and an operator.
    """

    path: tuple[str, ...]
    operator: Operator = Operator.EQUALS
    ignore_case: bool = False

    def column(self, model: type[Any]) -> InstrumentedAttribute[Any]:
        if len(self.path) == 1:
            return getattr(model, self.path[0])
        target = inspect(model).relationships[self.path[0]].mapper.class_
        return getattr(target, self.path[1])


@dataclass
class PartTree:
    """메서드 이름 파싱 결과.

    Parsed method name: query kind, subject modifiers, OR-groups of AND-parts
    and static ordering.
    """

    kind: QueryKind
    distinct: bool = False
    limit: int | None = None
    groups: list[list[Part]] = field(default_factory=list)
    orders: list[Order] = field(default_factory=list)

    @property
    def parts(self) -> list[Part]:
        return [part for group in self.groups for part in group]

    @property
    def arity(self) -> int:
        return sum(part.operator.arity for part in self.parts)

    @property
    def joins(self) -> list[str]:
        """조인이 필요한 관계 이름, 선언 순서 (Relationships needing a join, in order)."""
        seen: list[str] = []
        for part in self.parts:
            if len(part.path) == 2 and part.path[0] not in seen:
                seen.append(part.path[0])
        return seen


def _split(tokens: list[str], separator: str) -> list[list[str]]:
    chunks: list[list[str]] = [[]]
    for token in tokens:
        if token == separator:
            chunks.append([])
        else:
            chunks[-1].append(token)
    return chunks


def _resolve_path(tokens: list[str], model: type[Any], method_name: str) -> tuple[str, ...]:
    """속성 토큰을 모델 속성 경로로 해석합니다 (Resolve property tokens against the model)."""
    mapper = inspect(model)
    name = "_".join(tokens)
    if name in mapper.column_attrs or name in mapper.relationships:
        return (name,)
    # 한 단계 관계 탐색 — One level of relationship traversal, e.g. team_name -> team.name
    for i in range(1, len(tokens)):
        relation, attribute = "_".join(tokens[:i]), "_".join(tokens[i:])
        if relation in mapper.relationships:
            target = mapper.relationships[relation].mapper
            if attribute in target.column_attrs:
                return (relation, attribute)
    raise QueryCreationError(
        f"No property '{name}' found for type {model.__name__} (method {method_name})"
    )


def _parse_part(tokens: list[str], model: type[Any], method_name: str) -> Part:
    if not tokens:
        raise QueryCreationError(f"Empty predicate part in method {method_name}")

    ignore_case = False
    if tokens[-2:] in (["ignore", "case"], ["ignoring", "case"]):
        ignore_case = True
        tokens = tokens[:-2]

    operator = Operator.EQUALS
    for suffix, candidate in _OPERATOR_SUFFIXES:
        if len(tokens) > len(suffix) and tuple(tokens[-len(suffix):]) == suffix:
            operator = candidate
            tokens = tokens[: -len(suffix)]
            break

    if ignore_case and operator not in _IGNORE_CASE_OPERATORS:
        raise QueryCreationError(
            f"Operator {operator.name} does not support ignore_case (method {method_name})"
        )

    path = _resolve_path(tokens, model, method_name)
    if len(path) == 1 and path[0] in inspect(model).relationships and (
        operator not in _RELATIONSHIP_OPERATORS or ignore_case
    ):
        raise QueryCreationError(
            f"Operator {operator.name} is not supported on relationship '{path[0]}' (method {method_name})"
        )
    return Part(path=path, operator=operator, ignore_case=ignore_case)


def _parse_orders(tokens: list[str], model: type[Any], method_name: str) -> list[Order]:
    if tokens and tokens[-1] not in ("asc", "desc"):
        tokens = tokens + ["asc"]
    orders: list[Order] = []
    pending: list[str] = []
    for token in tokens:
        if token in ("asc", "desc"):
            path = _resolve_path(pending, model, method_name)
            if len(path) != 1 or path[0] not in inspect(model).column_attrs:
                raise QueryCreationError(f"Cannot order by '{'_'.join(pending)}' (method {method_name})")
            orders.append(Order(property=path[0], direction=Direction(token)))
            pending = []
        else:
            pending.append(token)
    return orders


def parse_method_name(method_name: str, model: type[Any]) -> PartTree:
    """메서드 이름을 PartTree로 파싱합니다.

    Parse a snake_case method name into a PartTree, validating every
    property against the model's mapper.

    Args:
        method_name: 레포지토리 메서드 이름 (Repository method name)
        model: 대상 SQLAlchemy 모델 (Target SQLAlchemy model)

    Returns:
        PartTree: 파싱 결과 (Parsed query description)

    Raises:
        QueryCreationError: 접두어, 속성, 연산자를 해석할 수 없을 때
                            (Unknown prefix, property or operator)
    """
    tokens = method_name.split("_")
    kind = _PREFIXES.get(tokens[0])
    if kind is None:
        raise QueryCreationError(f"Method {method_name} does not start with a known query prefix")
    if "by" not in tokens[1:]:
        raise QueryCreationError(f"Method {method_name} has no '_by' clause")

    by_index = tokens.index("by", 1)
    tree = PartTree(kind=kind)

    # 주어 — Subject modifiers between the prefix and "by"
    for token in tokens[1:by_index]:
        if token == "distinct":
            tree.distinct = True
            continue
        match = _LIMIT_TOKEN.match(token)
        if match:
            tree.limit = int(match.group(2) or 1)

    predicate = tokens[by_index + 1:]
    for i in range(len(predicate) - 1):
        if predicate[i] == "order" and predicate[i + 1] == "by":
            tree.orders = _parse_orders(predicate[i + 2:], model, method_name)
            predicate = predicate[:i]
            break

    if predicate:
        tree.groups = [
            [_parse_part(part, model, method_name) for part in _split(group, "and")]
            for group in _split(predicate, "or")
        ]
    return tree


def build_where(tree: PartTree, model: type[Any], args: Sequence[Any]) -> Any | None:
    """바인딩 인자로 WHERE 절을 만듭니다 (Build the WHERE clause from bound arguments)."""
    if not tree.groups:
        return None
    values = list(args)
    groups = []
    for group in tree.groups:
        clauses = []
        for part in group:
            taken, values = values[: part.operator.arity], values[part.operator.arity:]
            clauses.append(part.operator.build(part.column(model), taken, part.ignore_case))
        groups.append(and_(*clauses))
    return or_(*groups) if len(groups) > 1 else groups[0]


def build_select(tree: PartTree, model: type[Any], args: Sequence[Any]) -> Select[Any]:
    """엔티티 SELECT 문을 만듭니다.

    Build the entity SELECT for a parsed tree: joins for traversed
    relationships, predicate, distinct, static ordering and the top-N limit.
    """
    query: Select[Any] = select(model)
    for relation in tree.joins:
        query = query.join(getattr(model, relation))
    where = build_where(tree, model, args)
    if where is not None:
        query = query.where(where)
    if tree.distinct:
        query = query.distinct()
    for order in tree.orders:
        column = getattr(model, order.property)
        query = query.order_by(column.desc() if order.direction is Direction.DESC else column.asc())
    if tree.limit is not None:
        query = query.limit(tree.limit)
    return query


def build_count(tree: PartTree, model: type[Any], args: Sequence[Any]) -> Select[Any]:
    """같은 술어에 대한 COUNT 문 (COUNT over the same predicate)."""
    query: Select[Any] = select(func.count()).select_from(model)
    for relation in tree.joins:
        query = query.join(getattr(model, relation))
    where = build_where(tree, model, args)
    if where is not None:
        query = query.where(where)
    return query
