"""Patient records application.

This package contains the patient model, the cache and query layers,
serializers, views and route registrations behind the ``/api`` surface.
"""
