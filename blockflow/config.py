"""
Experiment-level settings: output location, data format, window and logging options.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional
import json

DATA_FORMATS = ('csv', 'json')


@dataclass
class ExperimentSettings:
    """
    Settings for running an experiment.

    Attributes:
        name: Experiment name (used for default data file names)
        output_directory: Directory where data files are written
        data_file_name: Data file name (None = '<name>_data.<format>')
        data_format: 'csv' or 'json'
        save_on_finish: Write the data file automatically when the run ends
        window_width: Window width in pixels (ignored when fullscreen)
        window_height: Window height in pixels (ignored when fullscreen)
        fullscreen: Open the experiment window fullscreen
        log_level: Logging level name used by configure_logging()
        metadata: Additional metadata (creation date, version, etc.)
    """
    name: str = "experiment"
    output_directory: str = "."
    data_file_name: Optional[str] = None
    data_format: str = "csv"
    save_on_finish: bool = False
    window_width: int = 1280
    window_height: int = 720
    fullscreen: bool = False
    log_level: str = "INFO"
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Set creation timestamp if not already in metadata."""
        if 'created' not in self.metadata:
            self.metadata['created'] = datetime.now().isoformat()

    def get_data_file_name(self) -> str:
        """File name for the saved data, derived from name and format if unset."""
        return self.data_file_name or f"{self.name}_data.{self.data_format}"

    def validate(self) -> List[str]:
        """
        Validate settings.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if self.data_format not in DATA_FORMATS:
            errors.append(f"Unknown data format '{self.data_format}' (expected one of {DATA_FORMATS})")
        if not self.fullscreen and (self.window_width <= 0 or self.window_height <= 0):
            errors.append(f"Window size must be positive, got {self.window_width}x{self.window_height}")
        if not self.name:
            errors.append("Experiment name is empty")

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExperimentSettings':
        """
        Create settings from a dictionary.

        Unknown keys are ignored so older/newer files still load.
        """
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def save(self, filepath: str):
        """
        Save settings to JSON.

        Args:
            filepath: Path to save JSON file
        """
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, filepath: str) -> 'ExperimentSettings':
        """
        Load settings from JSON.

        Args:
            filepath: Path to JSON settings file
        """
        with open(filepath, 'r') as f:
            return cls.from_dict(json.load(f))
