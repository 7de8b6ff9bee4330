# safe_harbor/service/__init__.py

"""Service layer: configuration, compliance checks, audit entries and the
protection pipeline that ties the engine together."""
