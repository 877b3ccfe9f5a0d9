"""Unit tests for SiteDPR web route modules.

Each route module has a corresponding test file. The shared ``app`` fixture
mounts every router on a bare FastAPI app whose lifespan opens an in-memory
report service, so routes run end to end without a database.

Testing pattern:
    - Use FastAPI's TestClient (entered as a context manager)
    - Replace AI-backed dependencies through ``app.dependency_overrides``
    - Test request/response validation and error mapping
"""
