"""Linting collaborators bundled with lintd."""
