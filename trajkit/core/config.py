"""Numerical solver settings and their JSON save/load."""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from .constants import (
    DEFAULT_ABSOLUTE_TOLERANCE,
    DEFAULT_RELATIVE_TOLERANCE,
    DEFAULT_ROOT_SOLVER_MAXIMUM_ITERATION_COUNT,
    DEFAULT_ROOT_SOLVER_TOLERANCE,
    DEFAULT_TIME_STEP,
)
from .types import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class SolverSettings:
    """
    Serializable numerical solver configuration.

    Enum-valued fields hold member names so the file stays plain JSON.
    """
    # Integration
    log_type: str = "NO_LOG"
    stepper_type: str = "RUNGE_KUTTA_DOPRI5"
    time_step: float = DEFAULT_TIME_STEP
    relative_tolerance: float = DEFAULT_RELATIVE_TOLERANCE
    absolute_tolerance: float = DEFAULT_ABSOLUTE_TOLERANCE

    # Event location
    root_solver_maximum_iteration_count: int = DEFAULT_ROOT_SOLVER_MAXIMUM_ITERATION_COUNT
    root_solver_tolerance: float = DEFAULT_ROOT_SOLVER_TOLERANCE
    root_finding_strategy: str = "DENSE_OUTPUT"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SolverSettings":
        """
        Build settings from a dictionary, ignoring unknown keys.

        Raises:
            ConfigurationError: If a value has the wrong type
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown solver settings: %s", ", ".join(unknown))

        try:
            return cls(**{key: value for key, value in data.items() if key in known})
        except TypeError as e:
            raise ConfigurationError(f"Invalid solver settings: {e}") from e

    def save(self, path: Path | str) -> Path:
        """
        Save settings to a JSON file.

        Args:
            path: File path. A ".json" suffix is added if missing.

        Returns:
            Path written
        """
        path = Path(path)
        if not path.suffix:
            path = path.with_suffix(".json")

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.debug("Saved solver settings to %s", path)
        return path

    @classmethod
    def load(cls, path: Path | str) -> "SolverSettings":
        """
        Load settings from a JSON file.

        Raises:
            ConfigurationError: If the file is not valid JSON settings
        """
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Solver settings file {path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Solver settings file {path} must contain a JSON object")
        return cls.from_dict(data)
