"""
Integration tests for the kvcoord library.

PostgreSQL tests need a real database, either via:
- testcontainers (automatic container provisioning)
- an existing server named by KVCOORD_TEST_POSTGRES_URL

Tests are skipped automatically if required infrastructure is not available.
SQLite flows always run.

Run integration tests:
    pytest tests/integration/ -v

Skip integration tests:
    pytest tests/ -v -m "not integration"
"""
