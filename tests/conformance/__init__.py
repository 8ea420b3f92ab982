"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the sale pool.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. test_phase_ordering.py - Scheduled windows never overlap
2. test_allocation.py - A phase never sells more than its allocation
3. test_conservation.py - Sale and quote supplies are conserved
4. test_atomicity.py - Failed operations leave no trace
5. test_rounding.py - Costs and rewards truncate toward zero

These tests use hypothesis for property-based testing.
"""
