# hostwarden/cleaners/budget.py
from dataclasses import dataclass, replace

MB = 1024 * 1024


@dataclass(frozen=True)
class ByteBudget:
    """
    Bytes a reclamation pass may free in one run.

    The value is immutable: consume() returns the budget left for the next
    target, so the depletion order is explicit in the caller.
    """
    limit: int
    freed: int = 0

    @classmethod
    def from_megabytes(cls, mb):
        return cls(limit=max(0, int(mb * MB)))

    @property
    def remaining(self):
        return max(0, self.limit - self.freed)

    @property
    def exhausted(self):
        return self.remaining <= 0

    def consume(self, nbytes):
        return replace(self, freed=self.freed + max(0, int(nbytes)))
