"""
Gate Check Kernel

The phase transition gate check engine for construction lots:
- Per-transition checklist templates (blocking / non-blocking items)
- One in-progress inspection round per lot and transition
- Idempotent item evaluation with deficiency linking
- Pass/fail derivation from blocking failures
- Immutable history of completed rounds
"""

__version__ = "0.1.0"
