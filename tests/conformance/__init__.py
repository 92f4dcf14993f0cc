"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the stablecoin engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing operation semantics
2. invariants.py - Non-negativity, solvency, custody, backing, conservation
   and health factor monotonicity

These tests use hypothesis for property-based testing.
"""
