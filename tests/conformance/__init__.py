"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the staking engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. staking_invariants.py - Share supply, custody, double entry, price ratchet
2. accrual_idempotence.py - Catch-up independent of how it is split
3. staking_atomicity.py - All-or-nothing lifecycle operations

These tests use hypothesis for property-based testing.
"""
