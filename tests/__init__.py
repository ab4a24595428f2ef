"""
implstore Test Suite
====================

Test organization mirrors the source code structure:
    tests/
    ├── test_core/            → implstore.core (config, models, exceptions)
    ├── test_validation/      → implstore.validation (version, layout, safety)
    ├── test_infrastructure/  → implstore.infrastructure (manifest stores)
    ├── test_orchestration/   → implstore.orchestration (cache, deployer)
    ├── test_integrations/    → implstore.integrations (chain clients)
    ├── test_integration/     → End-to-end scenarios through the facade
    ├── factories.py          → Layout / artifact builders
    └── conftest.py           → Shared pytest fixtures

Running Tests:
    pytest                          # Run all tests
    pytest tests/test_validation/   # Run only validation tests
    pytest tests/test_core/         # Run only core tests
    pytest -m integration           # Run only integration tests
"""
