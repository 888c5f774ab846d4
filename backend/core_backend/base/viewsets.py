from rest_framework import viewsets, filters
from rest_framework.pagination import PageNumberPagination
from django_filters.rest_framework import DjangoFilterBackend


class StandardPagination(PageNumberPagination):
    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 200


class BaseViewSet(viewsets.ModelViewSet):
    """
    Base ViewSet that provides standard configuration for all ModelViewSets.

    Features:
    - Standard pagination, filtering, and ordering
    - ``select_related_fields`` / ``prefetch_related_fields`` applied to every query

    Usage:
        class TableViewSet(BaseViewSet):
            queryset = Table.objects.all()
            serializer_class = TableSerializer
            select_related_fields = ["current_session"]
    """

    pagination_class = StandardPagination

    filter_backends = [
        DjangoFilterBackend,
        filters.SearchFilter,
        filters.OrderingFilter,
    ]

    # Default ordering (can be overridden)
    ordering = ['-id']

    select_related_fields = ()
    prefetch_related_fields = ()

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.select_related_fields:
            queryset = queryset.select_related(*self.select_related_fields)
        if self.prefetch_related_fields:
            queryset = queryset.prefetch_related(*self.prefetch_related_fields)
        return queryset


class ReadOnlyBaseViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Base ViewSet for read-only endpoints. Same pagination and filtering
    as BaseViewSet, no write actions.
    """

    pagination_class = StandardPagination
    filter_backends = [
        DjangoFilterBackend,
        filters.SearchFilter,
        filters.OrderingFilter,
    ]
    ordering = ['-id']

    select_related_fields = ()
    prefetch_related_fields = ()

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.select_related_fields:
            queryset = queryset.select_related(*self.select_related_fields)
        if self.prefetch_related_fields:
            queryset = queryset.prefetch_related(*self.prefetch_related_fields)
        return queryset
