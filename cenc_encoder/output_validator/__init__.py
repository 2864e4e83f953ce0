"""Output validator module.

Checks the output bucket after a finished encoding:
- Manifest existence
- Segment presence
"""

from .verifier import list_output_keys, verify_outputs

__all__ = [
    "list_output_keys",
    "verify_outputs",
]
