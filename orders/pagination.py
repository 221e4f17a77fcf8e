# orders/pagination.py: paginação por page/per_page com envelope {data, meta}
from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class PerPagePagination(PageNumberPagination):
    page_query_param = "page"
    page_size_query_param = "per_page"
    max_page_size = getattr(settings, "ORDERS_MAX_PAGE_SIZE", 100)

    def get_paginated_response(self, data):
        return Response({
            "data": data,
            "meta": {
                "current_page": self.page.number,
                "per_page": self.page.paginator.per_page,
                "total": self.page.paginator.count,
                "last_page": self.page.paginator.num_pages,
            },
        })

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "data": schema,
                "meta": {
                    "type": "object",
                    "properties": {
                        "current_page": {"type": "integer"},
                        "per_page": {"type": "integer"},
                        "total": {"type": "integer"},
                        "last_page": {"type": "integer"},
                    },
                },
            },
        }
