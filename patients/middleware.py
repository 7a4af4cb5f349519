from django.http import JsonResponse
from django.urls import Resolver404, resolve

from patients.exceptions import error_payload


class ApiRouteNotFoundMiddleware:
    """Return the JSON error envelope for unknown ``/api`` routes instead of Django's HTML 404."""
    PREFIX = '/api'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        path = request.path_info or ''
        if path == self.PREFIX or path.startswith(self.PREFIX + '/'):
            try:
                resolve(path)
            except Resolver404:
                return JsonResponse(
                    error_payload(f'Route {request.method} {path} not found', 'ROUTE_NOT_FOUND'),
                    status=404,
                )
        return self.get_response(request)
