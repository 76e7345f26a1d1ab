"""
DataCollector class for the blockflow framework.

Stores one record per completed step and exports them as CSV or JSON.
"""

from typing import Any, Callable, Dict, List, Optional
import json
import logging
import os
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class DataCollector:
    """
    Append-only store of step records.

    Responsibilities:
    - Collect records in completion order
    - Answer queries (all records, filtered records, last record)
    - Encode records as CSV/JSON and write them to disk

    Records are plain dictionaries. Any key is accepted, including the
    reserved 'level', 'startTime' and 'endTime' keys written by the experiment.
    """

    def __init__(self, records: Optional[List[Record]] = None,
                 output_dir: str = ".", experiment_name: str = "experiment"):
        """
        Initialize data collector.

        Args:
            records: Existing records to start from (copied)
            output_dir: Default directory for saved files
            experiment_name: Experiment name used in default file names
        """
        self.output_directory = output_dir
        self.experiment_name = experiment_name
        self._records: List[Record] = list(records) if records else []

    @classmethod
    def from_records(cls, records: List[Record], **kwargs) -> 'DataCollector':
        """
        Build a collector from a list of records.

        Useful to export a subset, e.g. the result of filter_records().
        """
        return cls(records=records, **kwargs)

    def add_record(self, record: Record):
        """
        Append a record to the end of the collection.

        Args:
            record: Mapping of field name to value
        """
        self._records.append(record)

    def get_all_records(self) -> List[Record]:
        """
        Get a copy of the record list.

        Removing items from the returned list does not remove them from the
        collector.
        """
        return list(self._records)

    def filter_records(self, predicate: Callable[[Record], bool]) -> List[Record]:
        """
        Get the records for which predicate(record) is true, in order.

        Args:
            predicate: Function(record) -> bool

        Example:
            top_level = collector.filter_records(lambda r: r['level'] == 0)
        """
        return [record for record in self._records if predicate(record)]

    def get_last_record(self) -> Record:
        """
        Get the most recent record.

        Returns:
            Last record, or an empty dict if nothing has been collected
        """
        return self._records[-1] if self._records else {}

    def record_count(self) -> int:
        """Number of records collected."""
        return len(self._records)

    def columns(self) -> List[str]:
        """All field names, in first-seen order."""
        keys: Dict[str, None] = {}
        for record in self._records:
            for key in record:
                keys.setdefault(key, None)
        return list(keys)

    def to_dataframe(self) -> pd.DataFrame:
        """
        Records as a DataFrame (one row per record, missing fields as NaN).

        Columns keep the object dtype so integer fields stay integers when
        some records lack them.
        """
        return pd.DataFrame(self._records, columns=self.columns(), dtype=object)

    def to_csv(self) -> str:
        """
        Encode records as CSV.

        Columns are the union of all field names in first-seen order; fields
        missing from a record are written as empty cells.
        """
        if not self._records:
            return ""
        return self.to_dataframe().to_csv(index=False)

    def to_json(self) -> str:
        """Encode records as a JSON list of objects."""
        return json.dumps(self._records, default=str)

    def save_as_csv(self, file_name: Optional[str] = None, directory: Optional[str] = None) -> Path:
        """
        Write records to a CSV file.

        Args:
            file_name: File name (default: '<experiment_name>_data.csv')
            directory: Target directory (default: output_directory)

        Returns:
            Path of the written file
        """
        path = self._create_data_file(file_name or f"{self.experiment_name}_data.csv", directory)
        path.write_text(self.to_csv(), encoding='utf-8')
        logger.info(f"Saved {len(self._records)} records to {path}")
        return path

    def save_as_json(self, file_name: Optional[str] = None, directory: Optional[str] = None) -> Path:
        """
        Write records to a JSON file.

        Args:
            file_name: File name (default: '<experiment_name>_data.json')
            directory: Target directory (default: output_directory)

        Returns:
            Path of the written file
        """
        path = self._create_data_file(file_name or f"{self.experiment_name}_data.json", directory)
        path.write_text(self.to_json(), encoding='utf-8')
        logger.info(f"Saved {len(self._records)} records to {path}")
        return path

    def _create_data_file(self, file_name: str, directory: Optional[str]) -> Path:
        """Resolve the output path and create its parent directories."""
        path = Path(directory or self.output_directory) / file_name
        os.makedirs(path.parent, exist_ok=True)
        return path

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self):
        return (
            f"DataCollector("
            f"experiment='{self.experiment_name}', "
            f"records={len(self._records)})"
        )
