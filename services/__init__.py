"""Content import, assembly and scoring services used by the API blueprints."""
