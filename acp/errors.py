from __future__ import annotations


class ScalerError(Exception):
    pass


class DiscoveryError(ScalerError):
    """The service source could not produce a service list."""


class ScalingError(ScalerError):
    """The scaler refused or failed a scale command."""


class AnalysisError(ScalerError):
    """A workload analyser could not produce a recommendation."""


class ElectionError(ScalerError):
    pass


class PartialUpdateError(ScalerError):
    """Some services could not be scheduled; the rest were applied.

    ``invalid`` maps service id -> reason.
    """

    def __init__(self, invalid: dict[str, str]):
        self.invalid = dict(invalid)
        detail = ", ".join(f"{sid} ({reason})" for sid, reason in sorted(self.invalid.items()))
        super().__init__(f"{len(self.invalid)} service(s) not scheduled: {detail}")
