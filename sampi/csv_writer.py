# CSV Writer for SAMPi
# Appends one row per completed hour to the day's output file

import csv
import logging
from datetime import date
from pathlib import Path
from typing import Callable, Optional, Union

from .aggregate import HourlyAggregate
from .exceptions import OutputError
from .shop_identity import output_file_name

logger = logging.getLogger(__name__)


class CSVWriter:
    """Writes hourly aggregates to <output_dir>/<yyyymmdd>_<shop>.csv.

    The file is opened on the first row and kept open, line buffered, until
    close() or until a row for another day arrives. Every row is flushed as
    soon as it is written so the file is always complete up to the last hour.
    """

    def __init__(self, output_dir: Union[str, Path], shop_id: str,
                 today: Callable[[], date] = date.today):
        self.output_dir = Path(output_dir)
        self.shop_id = shop_id
        self._today = today
        self._file = None
        self._writer = None
        self.path: Optional[Path] = None
        self.rows_written = 0

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def write(self, aggregate: HourlyAggregate, day: Optional[date] = None):
        """Append one hour to the file for day (default today).

        Writes the header row first if the file is new.
        """
        path = self.output_dir / output_file_name(self.shop_id, day or self._today())
        if path != self.path:
            self.close()
            self._open(path, aggregate.columns())

        try:
            self._writer.writerow(aggregate.to_row())
            self._file.flush()
        except OSError as e:
            logger.error("Error writing CSV output file at %s", path)
            raise OutputError(f"Error writing CSV output file at {path}: {e}") from e
        self.rows_written += 1
        logger.info("Wrote %s to %s", aggregate.hour_label, path)

    def _open(self, path: Path, columns):
        is_new = not path.exists()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(path, 'a', newline='', encoding='utf-8', buffering=1)
        except OSError as e:
            logger.error("Error opening CSV output file at %s", path)
            raise OutputError(f"Error opening CSV output file at {path}: {e}") from e

        self._writer = csv.writer(self._file, lineterminator='\n')
        self.path = path
        if is_new:
            logger.info("Creating CSV file %s", path)
            self._writer.writerow(columns)
        else:
            logger.info("Opening existing CSV file %s", path)

    def close(self):
        if self._file is not None:
            self._file.close()
            logger.info("Closed CSV file %s", self.path)
        self._file = None
        self._writer = None
        self.path = None
