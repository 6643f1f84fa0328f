# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Typed failures raised by the scenario simulation engine.

Callers switch on ``kind`` to present a specific message instead of a
generic failure.
"""

from typing import Dict, Optional


class SimulationError(Exception):
    """Base class for all scenario engine failures."""

    kind = "simulation_error"


class InvalidConfigurationError(SimulationError, ValueError):
    """A variable, option or engine setting is malformed."""

    kind = "invalid_configuration"


class DegenerateInputError(SimulationError, ValueError):
    """Inputs that cannot produce a meaningful simulation (no options, runs <= 0)."""

    kind = "degenerate_input"


class SimulationComputationError(SimulationError):
    """One or more options produced a non-finite metric.

    Attributes:
        failures: Mapping of option id to the reason it failed
    """

    kind = "computation_error"

    def __init__(self, failures: Dict[str, str], message: Optional[str] = None):
        self.failures = dict(failures)
        if message is None:
            detail = "; ".join(f"{option_id}: {reason}"
                               for option_id, reason in self.failures.items())
            message = f"Simulation failed for {len(self.failures)} option(s): {detail}"
        super().__init__(message)
