from rest_framework.pagination import PageNumberPagination


class BookingPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'  # allows ?page_size=<int>
    max_page_size = 100
