# SAMPi Agent - reads the ECR, aggregates hourly sales and writes CSV
# Single-threaded poll loop gated by business hours

import sys
import time
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from . import __version__
from .aggregate import HourlyAggregate, PLURegistry
from .business_hours import BusinessHoursGate
from .config import AgentConfig
from .csv_writer import CSVWriter
from .ecr_parser import ECRParser
from .exceptions import SAMPiError
from .logging_config import AlertCallback, setup_logging
from .serial_reader import SerialLineReader, StreamLineReader
from .shop_identity import match_shop
from .update_client import StubUpdateClient, UpdateClient

logger = logging.getLogger(__name__)

# config.json beside main.py
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / 'config.json'


class SAMPiAgent:
    def __init__(self, config: AgentConfig, source=None, update_client=None,
                 clock: Callable[[], datetime] = datetime.now,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self._clock = clock
        self._sleep = sleep
        self.running = False
        self._last_update_check: Optional[datetime] = None
        # Label and calendar day of the hour being aggregated
        self._hour_started: Optional[Tuple[str, date]] = None

        self.registry = PLURegistry.from_file(config.plu_path)
        self.shop_id = match_shop(config.hostname, config.shops_path)
        self.writer = CSVWriter(config.output_dir, self.shop_id, today=lambda: self._clock().date())
        self.parser = ECRParser(self.registry, on_flush=self._write_hour,
                                currency_symbol=config.currency_symbol)
        self.gate = BusinessHoursGate(config.opening_hour, config.closing_hour,
                                      on_close=self._on_close,
                                      force_active=config.verbose_parser)

        if source is None:
            if config.replay_path:
                source = StreamLineReader(config.replay_path)
            else:
                source = SerialLineReader(config.serial_port, config.baudrate)
        self.source = source

        if update_client is None:
            if config.update_url:
                update_client = UpdateClient(config.update_url, config.artifact_path)
            else:
                update_client = StubUpdateClient()
        self.updater = update_client

    def _track_hour(self, now: datetime):
        label = self.parser.aggregate.hour_label
        if self._hour_started is None or self._hour_started[0] != label:
            self._hour_started = (label, now.date())

    def _write_hour(self, aggregate: HourlyAggregate):
        # 23.00-24.00 is flushed after midnight but belongs in the previous day's file
        day = None
        if self._hour_started and self._hour_started[0] == aggregate.hour_label:
            day = self._hour_started[1]
        self.writer.write(aggregate, day=day)

    def _on_close(self):
        # End of the trading day: write out the last hour and start clean
        self.parser.close_hour()
        self.writer.close()
        self.parser.reset()

    def start(self):
        logger.info("SAMPi v%s Initialising...", __version__)
        self.source.open()
        self.running = True

    def stop(self):
        self.running = False

    def run(self):
        """Main loop; returns after stop() or when a replayed stream ends"""
        self.start()
        try:
            while self.running:
                now = self._clock()
                ingest = self.gate.check(now)
                if ingest:
                    self.poll(now)
                if self.gate.idle:
                    self.idle_tasks(now)
                    if not ingest:
                        self._sleep(self.config.idle_poll_seconds)
        except KeyboardInterrupt:
            logger.info("Stopping...")
        finally:
            self.shutdown()

    def poll(self, now: datetime) -> bool:
        """Read and parse at most one line; True if a line was read"""
        line = self.source.read_line()
        if line is not None:
            self.parser.parse_line(line)
            self._track_hour(now)

        if not self.config.debug_clock:
            self.parser.check_clock(now)

        if line is None:
            if self.source.exhausted:
                logger.info("End of ECR data stream")
                # Nothing more will arrive for the open hour
                self.parser.close_hour()
                self.stop()
            else:
                self._sleep(self.config.poll_interval)
            return False
        return True

    def idle_tasks(self, now: datetime):
        """Check for a new version every update_check_minutes"""
        interval = timedelta(minutes=self.config.update_check_minutes)
        if self._last_update_check is not None and now - self._last_update_check < interval:
            return
        self._last_update_check = now

        logger.info("Checking for updates every %d minutes", self.config.update_check_minutes)
        if self.updater.check_for_update():
            logger.info("New version is available, updating and restarting")
            self.writer.close()
            self.source.close()
            try:
                self.updater.apply_update()
            except OSError as e:
                logger.error("Update failed, carrying on with the current version: %s", e)
                self.source.open()

    def shutdown(self):
        self.running = False
        self.writer.close()
        self.source.close()
        logger.info("Shutdown: %s", self.get_status())

    def get_status(self):
        return {
            'shop_id': self.shop_id,
            'idle': self.gate.idle,
            'hour': self.parser.aggregate.hour_label,
            'transaction_count': self.parser.state.transaction_count,
            'rows_written': self.writer.rows_written,
            'lines': {line_type.value: count for line_type, count in self.parser.line_counts.items()},
        }


def main(argv: Optional[List[str]] = None, alert: Optional[AlertCallback] = None) -> int:
    """Run the agent until stopped; returns the process exit status.

    alert, if given, is called with (message, level_name) for every logged
    error, including the fatal one that ends the run.
    """
    argv = sys.argv[1:] if argv is None else argv
    config_path = argv[0] if argv else DEFAULT_CONFIG_PATH

    try:
        config = AgentConfig.load(config_path)
        setup_logging(config.log_dir, verbose=config.verbose_parser, alert=alert)
        agent = SAMPiAgent(config)
        agent.run()
    except SAMPiError as e:
        logger.error("Fatal error, exiting: %s", e)
        return 1
    return 0
