"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the collateralized debt engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing operation semantics
2. reentrancy.py - One operation in flight at a time
3. solvency.py - Aggregate solvency, per-account guard, liquidation rules, rounding

These tests use hypothesis for property-based testing.
"""
