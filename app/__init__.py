"""
Switch Games site application package.

Layered architecture:

  app/repositories/   pure I/O, loading from and persisting to JSON files.
  app/services/       business logic, validation, defaults, sessions, auth.
  app/errors.py       exceptions that carry the HTTP status to answer with.

``switchgames_web.create_app`` is the integration point: it builds one
repository and service instance per collection and stores them on
``app.extensions['switchgames']``.  Route handlers use those services and
never touch the JSON files directly.
"""
