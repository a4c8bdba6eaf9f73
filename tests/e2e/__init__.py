# tests/e2e/__init__.py
