"""Typed listing queries for the promotion catalogue."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Union

from sqlalchemy import ColumnElement

from foodhub_api.core.errors import ValidationError
from foodhub_api.models.promotion import Promotion, PromotionTypeEnum
from foodhub_api.services.money import to_decimal

MAX_LIMIT = 100
_CODE_PREFIX_PATTERN = re.compile(r"^[A-Z0-9_-]{1,32}$")


class PromotionSortField(str, Enum):
    CREATED_AT = "created_at"
    END_DATE = "end_date"
    DISCOUNT_VALUE = "discount_value"
    MINIMUM_ORDER = "minimum_order"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


_SORT_ALIASES = {
    "createdAt": PromotionSortField.CREATED_AT,
    "endDate": PromotionSortField.END_DATE,
    "discountValue": PromotionSortField.DISCOUNT_VALUE,
    "minimumOrder": PromotionSortField.MINIMUM_ORDER,
}


@dataclass(frozen=True)
class TypeFilter:
    types: tuple[PromotionTypeEnum, ...]
    kind: Literal["type"] = "type"


@dataclass(frozen=True)
class CodePrefixFilter:
    prefix: str
    kind: Literal["code_prefix"] = "code_prefix"


@dataclass(frozen=True)
class ApplicableToSubtotalFilter:
    """Only promotions whose minimum order is met by ``subtotal``."""

    subtotal: Decimal
    kind: Literal["applicable_to"] = "applicable_to"


PromotionFilter = Union[TypeFilter, CodePrefixFilter, ApplicableToSubtotalFilter]


@dataclass(frozen=True)
class PromotionQuery:
    filters: tuple[PromotionFilter, ...] = ()
    sort_field: PromotionSortField = PromotionSortField.CREATED_AT
    direction: SortDirection = SortDirection.DESC
    limit: int = 50

    def __post_init__(self) -> None:
        if not 1 <= self.limit <= MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")
        for entry in self.filters:
            if isinstance(entry, TypeFilter):
                if not entry.types:
                    raise ValidationError("type filter requires at least one promotion type")
            elif isinstance(entry, CodePrefixFilter):
                if not _CODE_PREFIX_PATTERN.match(entry.prefix):
                    raise ValidationError("codePrefix may only contain letters, digits, '-' and '_'")
            elif isinstance(entry, ApplicableToSubtotalFilter):
                if entry.subtotal < 0:
                    raise ValidationError("applicableTo must not be negative")
            else:
                raise ValidationError(f"Unsupported promotion filter: {entry!r}")

    @classmethod
    def from_params(
        cls,
        *,
        types: str | None = None,
        code_prefix: str | None = None,
        applicable_to: Any = None,
        sort: str | None = None,
        limit: int | None = None,
    ) -> "PromotionQuery":
        """Build a query from raw query-string values.

        ``types`` is a comma separated list, ``sort`` a field name optionally prefixed with
        ``-`` for descending order (``-endDate``).
        """

        filters: list[PromotionFilter] = []
        if types:
            parsed: list[PromotionTypeEnum] = []
            for raw in types.split(","):
                value = raw.strip()
                if not value:
                    continue
                try:
                    parsed.append(PromotionTypeEnum[value.upper()])
                except KeyError as exc:
                    raise ValidationError(f"Unknown promotion type: {value}") from exc
            filters.append(TypeFilter(types=tuple(parsed)))
        if code_prefix:
            filters.append(CodePrefixFilter(prefix=code_prefix.strip().upper()))
        if applicable_to is not None and applicable_to != "":
            try:
                subtotal = to_decimal(applicable_to)
            except TypeError as exc:
                raise ValidationError("applicableTo must be a number") from exc
            filters.append(ApplicableToSubtotalFilter(subtotal=subtotal))

        sort_field = PromotionSortField.CREATED_AT
        direction = SortDirection.DESC
        if sort:
            token = sort.strip()
            if token.startswith("-"):
                token = token[1:]
            else:
                direction = SortDirection.ASC
            sort_field = _SORT_ALIASES.get(token) or _parse_sort_field(token)

        return cls(
            filters=tuple(filters),
            sort_field=sort_field,
            direction=direction,
            limit=limit if limit is not None else 50,
        )

    def where_clauses(self) -> list[ColumnElement[bool]]:
        clauses: list[ColumnElement[bool]] = []
        for entry in self.filters:
            if isinstance(entry, TypeFilter):
                clauses.append(Promotion.promotion_type.in_(entry.types))
            elif isinstance(entry, CodePrefixFilter):
                clauses.append(Promotion.code.startswith(entry.prefix, autoescape=True))
            elif isinstance(entry, ApplicableToSubtotalFilter):
                clauses.append(Promotion.minimum_order <= entry.subtotal)
        return clauses

    def order_by(self) -> list[Any]:
        column = getattr(Promotion, self.sort_field.value)
        primary = column.asc() if self.direction is SortDirection.ASC else column.desc()
        return [primary, Promotion.code.asc()]


def _parse_sort_field(token: str) -> PromotionSortField:
    try:
        return PromotionSortField(token)
    except ValueError as exc:
        allowed = ", ".join(field.value for field in PromotionSortField)
        raise ValidationError(f"Unsupported sort field '{token}'. Allowed: {allowed}") from exc


__all__ = [
    "ApplicableToSubtotalFilter",
    "CodePrefixFilter",
    "PromotionFilter",
    "PromotionQuery",
    "PromotionSortField",
    "SortDirection",
    "TypeFilter",
]
