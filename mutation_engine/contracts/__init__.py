"""
Contracts Module

This module defines the explicit interfaces and data transfer objects
that form the contracts between layers. All inter-layer communication
MUST use these contracts. No layer may import implementation details
from another layer.

DESIGN PRINCIPLES:
==================
1. All contract types are immutable (frozen dataclasses), except the
   append-only MutationFamily aggregate owned by the registry
2. Every public answer carries an explicit error state
3. All timestamps use UTC and are never mutated
4. Hash-based identity for duplicate detection and deterministic ids
"""
