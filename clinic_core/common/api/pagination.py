# clinic_core/common/api/pagination.py
from __future__ import annotations

import math
from dataclasses import dataclass

from rest_framework import serializers
from rest_framework.pagination import PageNumberPagination


class DefaultPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 200


class PageQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200, default=50)


@dataclass(frozen=True)
class Page:
    items: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    def meta(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
        }


def page_of(queryset, *, page: int, limit: int) -> Page:
    """
    page/limit slicing used by list endpoints that return
      { <items>, pagination: { page, limit, total, total_pages } }
    """
    total = queryset.count()
    offset = (page - 1) * limit
    return Page(items=list(queryset[offset:offset + limit]), page=page, limit=limit, total=total)
