from __future__ import annotations


class GenerationError(RuntimeError):
    """A chunk could not be generated; the chunk stays absent and is retried."""


class TransferError(GenerationError):
    """A device read-back could not be completed (map failure, device lost)."""
