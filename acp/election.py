from __future__ import annotations

from . import db
from .interfaces import Election, ElectionCallback, ElectionFactory


class NullElection(Election):
    """Election with a single candidate: entering wins, resigning loses."""

    def __init__(self, name: str, callback: ElectionCallback):
        self.name = name
        self.callback = callback
        self.entered = False

    def enter(self) -> None:
        self.entered = True
        db.log_event("INFO", f"Entered election '{self.name}' (no other candidates)")
        self.callback.elected()

    def resign(self) -> None:
        if not self.entered:
            return
        self.entered = False
        self.callback.rejected()


class NullElectionFactory(ElectionFactory):
    def get_election(self, name: str, callback: ElectionCallback) -> Election:
        return NullElection(name, callback)
