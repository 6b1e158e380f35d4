"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the bond depository.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Depository holds exactly what it owes
2. atomicity.py - Calls commit completely or not at all
3. idempotency.py - Replays detected, distinct calls kept distinct
4. determinism.py - Reproducible behavior
5. canonicalization.py - Content-addressable identity
6. temporal.py - The ledger clock drives everything
7. price_decay.py - Idle prices never rise

These tests use hypothesis for property-based testing.
"""
