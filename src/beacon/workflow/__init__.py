"""Workflow domain concepts.

This package holds:
- workflow definitions and their YAML source
- validation of definitions
- stage executors
- the run lifecycle state machine and the execution engine

Submodules are imported directly; nothing is re-exported here to keep the
storage and workflow packages free of import cycles.
"""

__all__: list[str] = []
