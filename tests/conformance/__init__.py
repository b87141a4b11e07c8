"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the pdastore runtime.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. determinism.py - Address derivation and replay are pure functions of their inputs
2. canonicalization.py - One byte encoding per payload
3. authorization.py - Only the signing authority mutates; no overwrite on create
4. atomicity.py - All-or-nothing transaction semantics
5. conservation.py - Lamports are conserved and records stay rent exempt
6. temporal.py - Time ordering and clock stamps

These tests use hypothesis for property-based testing.
"""
