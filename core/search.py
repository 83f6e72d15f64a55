# =============================================================================
# core/search.py - Search conditions and FIQL converter
# =============================================================================

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from core.exceptions import SearchCondError
from core.models import IdentityObject


class AttributeCondType(Enum):
    """Comparison applied by an attribute condition"""
    EQ = "EQ"
    NE = "NE"
    GT = "GT"
    LT = "LT"
    GE = "GE"
    LE = "LE"
    LIKE = "LIKE"
    ISNULL = "ISNULL"
    ISNOTNULL = "ISNOTNULL"


# Object fields take precedence over plain attributes with the same name
FIELD_ATTRIBUTES = {
    'key': 'key',
    'username': 'username',
    'name': 'name',
    'status': 'status',
    'workflowId': 'workflow_id',
    'workflow_id': 'workflow_id',
    'realm': 'realm',
}


def attribute_values(any_obj: IdentityObject, schema: str) -> List[str]:
    """Values of a field or plain attribute as strings, empty if unset"""
    field_name = FIELD_ATTRIBUTES.get(schema)
    if field_name and hasattr(any_obj, field_name):
        value = getattr(any_obj, field_name)
        return [] if value is None or value == "" else [str(value)]
    return [str(value) for value in any_obj.plain_attrs.get(schema, []) if value is not None]


def _compare(left: str, right: str) -> int:
    try:
        left_num, right_num = float(left), float(right)
    except ValueError:
        return (left > right) - (left < right)
    return (left_num > right_num) - (left_num < right_num)


@dataclass(frozen=True)
class AttributeCond:
    """Condition on a field or plain attribute"""
    schema: str
    cond_type: AttributeCondType
    expression: Optional[str] = None

    def matches(self, any_obj: IdentityObject) -> bool:
        values = attribute_values(any_obj, self.schema)

        if self.cond_type == AttributeCondType.ISNULL:
            return not values
        if self.cond_type == AttributeCondType.ISNOTNULL:
            return bool(values)
        if self.cond_type == AttributeCondType.NE:
            return not any(_compare(value, self.expression) == 0 for value in values)
        if self.cond_type == AttributeCondType.LIKE:
            pattern = re.compile(
                '^' + re.escape(self.expression).replace(r'\*', '.*') + '$', re.IGNORECASE
            )
            return any(pattern.match(value) for value in values)

        checks = {
            AttributeCondType.EQ: lambda result: result == 0,
            AttributeCondType.GT: lambda result: result > 0,
            AttributeCondType.LT: lambda result: result < 0,
            AttributeCondType.GE: lambda result: result >= 0,
            AttributeCondType.LE: lambda result: result <= 0,
        }
        check = checks[self.cond_type]
        return any(check(_compare(value, self.expression)) for value in values)


@dataclass(frozen=True)
class AnyTypeCond:
    """Condition restricting any objects to one any type"""
    any_type_name: str

    def matches(self, any_obj: IdentityObject) -> bool:
        return any_obj.type.key == self.any_type_name


class SearchCondType(Enum):
    LEAF = "LEAF"
    NOT_LEAF = "NOT_LEAF"
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class SearchCond:
    """Search condition tree"""
    type: SearchCondType
    leaf: Optional[Union[AttributeCond, AnyTypeCond]] = None
    left: Optional["SearchCond"] = None
    right: Optional["SearchCond"] = None

    @classmethod
    def get_leaf_cond(cls, leaf: Union[AttributeCond, AnyTypeCond]) -> "SearchCond":
        return cls(SearchCondType.LEAF, leaf=leaf)

    @classmethod
    def get_not_leaf_cond(cls, leaf: Union[AttributeCond, AnyTypeCond]) -> "SearchCond":
        return cls(SearchCondType.NOT_LEAF, leaf=leaf)

    @classmethod
    def get_and_cond(cls, left: "SearchCond", right: "SearchCond") -> "SearchCond":
        return cls(SearchCondType.AND, left=left, right=right)

    @classmethod
    def get_or_cond(cls, left: "SearchCond", right: "SearchCond") -> "SearchCond":
        return cls(SearchCondType.OR, left=left, right=right)

    def matches(self, any_obj: IdentityObject) -> bool:
        if self.type == SearchCondType.LEAF:
            return self.leaf.matches(any_obj)
        if self.type == SearchCondType.NOT_LEAF:
            return not self.leaf.matches(any_obj)
        if self.type == SearchCondType.AND:
            return self.left.matches(any_obj) and self.right.matches(any_obj)
        return self.left.matches(any_obj) or self.right.matches(any_obj)


class SearchCondConverter:
    """Converts FIQL expressions into SearchCond trees

    Supported syntax: ``;`` (AND), ``,`` (OR), parentheses and the
    comparisons ``==``, ``!=``, ``=gt=``, ``=lt=``, ``=ge=``, ``=le=``.
    A ``*`` in an equality value means LIKE, the value ``$null`` means
    ISNULL / ISNOTNULL, and the selector ``$type`` matches the any type.
    """

    NULL_VALUE = '$null'
    TYPE_SELECTOR = '$type'

    OPERATORS = {
        '==': AttributeCondType.EQ,
        '!=': AttributeCondType.NE,
        '=gt=': AttributeCondType.GT,
        '=lt=': AttributeCondType.LT,
        '=ge=': AttributeCondType.GE,
        '=le=': AttributeCondType.LE,
    }

    SELECTOR_RE = re.compile(r'[A-Za-z_$][\w.$-]*')
    OPERATOR_RE = re.compile(r'==|!=|=[a-z]+=')
    VALUE_RE = re.compile(r'"[^"]*"|\'[^\']*\'|[^;,()"\']+')

    def __init__(self, fiql: str):
        self.fiql = fiql
        self.pos = 0

    @classmethod
    def convert(cls, fiql: str) -> SearchCond:
        if not fiql or not fiql.strip():
            raise SearchCondError("Empty search condition")

        converter = cls(fiql.strip())
        cond = converter._parse_or()
        if converter.pos != len(converter.fiql):
            converter._fail("Unexpected input")
        return cond

    def _fail(self, message: str) -> None:
        raise SearchCondError(f"{message} at position {self.pos} in '{self.fiql}'")

    def _peek(self) -> str:
        return self.fiql[self.pos] if self.pos < len(self.fiql) else ''

    def _parse_or(self) -> SearchCond:
        cond = self._parse_and()
        while self._peek() == ',':
            self.pos += 1
            cond = SearchCond.get_or_cond(cond, self._parse_and())
        return cond

    def _parse_and(self) -> SearchCond:
        cond = self._parse_term()
        while self._peek() == ';':
            self.pos += 1
            cond = SearchCond.get_and_cond(cond, self._parse_term())
        return cond

    def _parse_term(self) -> SearchCond:
        if self._peek() == '(':
            self.pos += 1
            cond = self._parse_or()
            if self._peek() != ')':
                self._fail("Missing closing parenthesis")
            self.pos += 1
            return cond
        return self._parse_comparison()

    def _match(self, regex: re.Pattern, what: str) -> str:
        match = regex.match(self.fiql, self.pos)
        if not match:
            self._fail(f"Expected {what}")
        self.pos = match.end()
        return match.group(0)

    def _parse_comparison(self) -> SearchCond:
        selector = self._match(self.SELECTOR_RE, "selector")
        operator = self._match(self.OPERATOR_RE, "operator")
        value = self._match(self.VALUE_RE, "value")
        if value[0] in '"\'':
            value = value[1:-1]

        if operator not in self.OPERATORS:
            self._fail(f"Unsupported operator {operator}")
        cond_type = self.OPERATORS[operator]

        if selector == self.TYPE_SELECTOR:
            if cond_type not in (AttributeCondType.EQ, AttributeCondType.NE):
                self._fail("Any type can only be compared with == or !=")
            leaf = AnyTypeCond(value)
            if cond_type == AttributeCondType.NE:
                return SearchCond.get_not_leaf_cond(leaf)
            return SearchCond.get_leaf_cond(leaf)

        cond_type, expression = self._refine(cond_type, value)
        return SearchCond.get_leaf_cond(AttributeCond(selector, cond_type, expression))

    def _refine(self, cond_type: AttributeCondType, value: str) -> Tuple[AttributeCondType, Optional[str]]:
        if value == self.NULL_VALUE:
            if cond_type == AttributeCondType.EQ:
                return AttributeCondType.ISNULL, None
            if cond_type == AttributeCondType.NE:
                return AttributeCondType.ISNOTNULL, None
        if cond_type == AttributeCondType.EQ and '*' in value:
            return AttributeCondType.LIKE, value
        return cond_type, value
