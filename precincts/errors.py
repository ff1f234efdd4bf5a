"""
Error and warning taxonomy for the precinct results pipeline.

Fatal problems derive from PrecinctPipelineError and abort a single
(election, target) unit. Degradations derive from UserWarning and are
returned and recorded in result metadata instead of being raised.
"""

from typing import List, Optional, Sequence


class PrecinctPipelineError(Exception):
    """Base class for fatal pipeline errors."""


class SchemaResolutionError(PrecinctPipelineError):
    """A required column or property could not be resolved for a table."""

    def __init__(
        self,
        table: str,
        missing: Sequence[str],
        available: Optional[Sequence[str]] = None,
    ):
        self.table = table
        self.missing: List[str] = list(missing)
        self.available: List[str] = [str(col) for col in (available or [])]
        message = f"{table}: could not resolve required fields {self.missing}"
        if self.available:
            message += f" (available columns: {', '.join(self.available)})"
        super().__init__(message)


class MalformedNumericValue(ValueError):
    """A numeric field failed to parse. Only raised by strict parsing."""


class ZeroMatchWarning(UserWarning):
    """The administrative filter matched no boundary features."""

    def __init__(self, target: str, total_features: int):
        self.target = target
        self.total_features = total_features
        super().__init__(
            f"no boundary features matched target {target} "
            f"({total_features} features scanned)"
        )


class JoinModeUndetermined(UserWarning):
    """Neither identifier space matched the turnout table."""

    def __init__(self, turnout_ids: int, local_ids: int, global_ids: int):
        self.turnout_ids = turnout_ids
        self.local_ids = local_ids
        self.global_ids = global_ids
        super().__init__(
            f"none of {turnout_ids} turnout identifiers matched "
            f"{local_ids} local or {global_ids} global boundary identifiers"
        )
