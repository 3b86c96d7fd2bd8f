# ECR Parser for SAMPi
# Classifies SAM4S ECR serial lines and folds them into the hourly aggregate

import re
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Callable, Optional

from .aggregate import UNSET, HourlyAggregate, PLURegistry, normalise_plu

logger = logging.getLogger(__name__)


class ParserEvent(Enum):
    """Kind of data the parser last processed"""
    HEADER = 1
    TRANSACTION = 2
    OTHER = 3


class LineType(Enum):
    """Which handler a line was routed to"""
    HEADER = 'header'
    REPORT = 'report'
    CANCEL = 'cancel'
    REFUND = 'refund'
    NO_SALE = 'no_sale'
    DIAGNOSTIC = 'diagnostic'
    TRANSACTION = 'transaction'
    IGNORED = 'ignored'


# First match wins, order matters: a dated line mentioning REPORT is a header
EVENT_DISPATCH_TABLE = (
    (re.compile(r'^\d{1,2}/\d{2}/\d{4}'), LineType.HEADER, 'parse_header'),
    (re.compile(r'REPORT'), LineType.REPORT, 'parse_report'),
    (re.compile(r'^CANCEL|REPRINT'), LineType.CANCEL, 'parse_cancel_or_reprint'),
    (re.compile(r'^PAID\sOUT'), LineType.REFUND, 'parse_refund'),
    (re.compile(r'NOSALE'), LineType.NO_SALE, 'parse_no_sale'),
    (re.compile(r'='), LineType.DIAGNOSTIC, 'parse_diagnostic'),
)

# Keys that are not PLUs, checked in order before the PLU lookup
TRANSACTION_DISPATCH_TABLE = (
    (re.compile(r'TOTAL'), '_adjust_total'),
    (re.compile(r'CASH'), '_adjust_cash'),
    (re.compile(r'CHANGE'), '_adjust_change'),
    (re.compile(r'CHEQUE|CARD'), '_adjust_card'),
)

TIME_PATTERN = re.compile(r'(\d{2}:\d{2})')
AMOUNT_PATTERN = re.compile(r'-?(?:\d+(?:\.\d*)?|\.\d+)')

# Bytes the ECR or the serial link inject into otherwise printable lines
NOISE_CHARS = ('\x00', '\xc2')
# The ECR prints its pound sign as 0x9c, which sometimes arrives as '?'
CURRENCY_ARTIFACTS = ('\x9c', '?')


def normalise_line(line: str, currency_symbol: str = '£') -> str:
    """Strip serial noise and map corrupted bytes to the currency symbol"""
    for char in NOISE_CHARS:
        line = line.replace(char, '')
    for char in CURRENCY_ARTIFACTS:
        line = line.replace(char, currency_symbol)
    return line


@dataclass
class ParserState:
    """Where the parser is within the ECR stream"""
    current_event: ParserEvent = ParserEvent.OTHER
    previous_event: ParserEvent = ParserEvent.OTHER
    current_event_time: str = UNSET
    previous_event_time: str = UNSET
    current_event_hour: str = UNSET
    transaction_count: int = 0
    # Aggregate as it stood after the last header, restored on CANCEL/REPRINT
    aggregate_snapshot: Optional[HourlyAggregate] = None


@dataclass
class ParserContext:
    """Parser state plus the live aggregate, shared by every handler"""
    state: ParserState
    aggregate: HourlyAggregate

    @classmethod
    def for_registry(cls, registry: PLURegistry) -> 'ParserContext':
        aggregate = HourlyAggregate.for_registry(registry)
        return cls(state=ParserState(aggregate_snapshot=aggregate.clone()), aggregate=aggregate)


class ECRParser:
    """Line-by-line parser for the SAM4S ECR serial protocol.

    Each completed hour is handed to ``on_flush`` as an independent copy of
    the aggregate; hours with no takings are discarded.
    """

    def __init__(self, registry: PLURegistry,
                 on_flush: Optional[Callable[[HourlyAggregate], None]] = None,
                 currency_symbol: str = '£',
                 context: Optional[ParserContext] = None):
        self.registry = registry
        self.on_flush = on_flush
        self.currency_symbol = currency_symbol
        self.context = context or ParserContext.for_registry(registry)
        self.line_counts = Counter()

    @property
    def state(self) -> ParserState:
        return self.context.state

    @property
    def aggregate(self) -> HourlyAggregate:
        return self.context.aggregate

    def classify(self, line: str) -> LineType:
        """Return the line type of a normalised line without changing state"""
        for pattern, line_type, _ in EVENT_DISPATCH_TABLE:
            if pattern.search(line):
                return line_type
        return LineType.TRANSACTION

    def parse_line(self, raw_line: str) -> LineType:
        """Normalise, classify and handle one line of ECR output"""
        line = normalise_line(raw_line, self.currency_symbol)
        self._set_previous_event()

        line_type = LineType.IGNORED
        for pattern, rule_type, handler_name in EVENT_DISPATCH_TABLE:
            if pattern.search(line):
                getattr(self, handler_name)(line)
                line_type = rule_type
                break
        else:
            if self.parse_transaction(line):
                line_type = LineType.TRANSACTION

        self.line_counts[line_type] += 1
        return line_type

    def _set_previous_event(self):
        if self.state.current_event in (ParserEvent.OTHER, ParserEvent.TRANSACTION):
            self.state.previous_event = self.state.current_event

    # Event handlers

    def parse_header(self, line: str):
        """Handle a dated header, which starts every transaction or report"""
        state, aggregate = self.state, self.aggregate

        if state.previous_event is ParserEvent.TRANSACTION:
            logger.debug("Completed transaction group: %s", aggregate)

        match = TIME_PATTERN.search(line)
        if match:
            # Reports don't count towards the last transaction time
            if state.current_event_time != UNSET and state.current_event is not ParserEvent.OTHER:
                state.previous_event_time = state.current_event_time

            state.current_event_time = match.group(1)
            state.current_event_hour = state.current_event_time[:2]

            if not aggregate.is_unset and state.current_event_hour != aggregate.hour:
                self.flush()

            if aggregate.first_transaction_time == UNSET:
                aggregate.start_hour(state.current_event_hour, state.current_event_time)
        else:
            logger.info("Header without a time, updating customer count only: %r", line)

        aggregate.customer_count = state.transaction_count
        state.aggregate_snapshot = aggregate.clone()
        state.current_event = ParserEvent.HEADER
        logger.debug("HEADER AT %s", state.current_event_time)

    def parse_report(self, line: str):
        # Reports are ignored, totals are calculated from the transactions
        logger.debug("REPORT AT %s", self.state.current_event_time)
        self.state.current_event = ParserEvent.OTHER

    def parse_cancel_or_reprint(self, line: str):
        """Roll the aggregate back to how it stood after the last header"""
        state = self.state
        if state.current_event is ParserEvent.OTHER:
            logger.debug("Nothing to cancel for %r", line)
            return

        logger.info("Ignoring cancelled or reprinted transaction at %s", state.current_event_time)
        self.aggregate.restore(state.aggregate_snapshot)
        # A flush since the header has already zeroed the count
        state.transaction_count = max(state.transaction_count - 1, 0)
        self.aggregate.customer_count = state.transaction_count
        state.current_event = ParserEvent.OTHER

    def parse_refund(self, line: str):
        logger.info("Refund tracking is not implemented, ignoring %r", line)
        self.state.current_event = ParserEvent.OTHER

    def parse_no_sale(self, line: str):
        # Till opened without a sale, kept for security and training
        logger.info("Till opened but no transaction processed at %s", self.state.current_event_time)
        self.aggregate.no_sale_count += 1

    def parse_diagnostic(self, line: str):
        if self.state.current_event is not ParserEvent.OTHER:
            logger.info("Ignoring diagnostic output: %r", line)
            self.state.current_event = ParserEvent.OTHER

    def parse_transaction(self, line: str) -> bool:
        """Handle a "KEY£VALUE" line. Returns False if the line is not a transaction."""
        state = self.state
        if (state.current_event not in (ParserEvent.HEADER, ParserEvent.TRANSACTION)
                or self.currency_symbol not in line):
            logger.debug("Ignoring unrecognised line: %r", line)
            return False

        state.current_event = ParserEvent.TRANSACTION
        key, value_text = line.split(self.currency_symbol, 1)
        value = self._parse_amount(value_text, line)

        for pattern, handler_name in TRANSACTION_DISPATCH_TABLE:
            if pattern.search(key):
                getattr(self, handler_name)(value)
                return True

        code = self.registry.lookup(key)
        if code is None:
            logger.warning('"%s" is not a valid PLU, ignoring %r at %s',
                           normalise_plu(key), line, state.current_event_time)
            return True

        self.aggregate.plu_totals[code] += value
        logger.debug("Item %s for transaction %d", code, state.transaction_count)
        return True

    # Transaction key handlers

    def _adjust_total(self, value: Decimal):
        # A TOTAL line closes a sale; CANCEL/REPRINT takes the count back
        self.state.transaction_count += 1
        self.aggregate.total_takings += value

    def _adjust_cash(self, value: Decimal):
        self.aggregate.cash_total += value

    def _adjust_change(self, value: Decimal):
        self.aggregate.cash_total -= value

    def _adjust_card(self, value: Decimal):
        self.aggregate.card_total += value

    def _parse_amount(self, text: str, line: str) -> Decimal:
        """Parse the leading amount of a price string, 0 if there is none"""
        match = AMOUNT_PATTERN.match(text.replace(',', '').strip())
        if match:
            try:
                return Decimal(match.group(0))
            except InvalidOperation:
                pass
        logger.warning("Could not read an amount from %r, using 0", line)
        return Decimal('0')

    # Hour boundaries

    def flush(self) -> bool:
        """Close the current hour, emitting it unless it took no money.

        Returns True if a row was handed to ``on_flush``. An aggregate that
        has not started an hour is left alone, so a second trigger for the
        same hour does nothing.
        """
        state, aggregate = self.state, self.aggregate
        if aggregate.is_unset:
            return False

        aggregate.last_transaction_time = state.previous_event_time

        emitted = False
        if aggregate.total_takings == 0:
            logger.info("No transactions read for %s, discarding", aggregate.hour_label)
        else:
            aggregate.customer_count = state.transaction_count
            logger.info("Generating CSV for %s", aggregate.hour_label)
            if self.on_flush:
                self.on_flush(aggregate.clone())
            emitted = True

        self.reset()
        return emitted

    def check_clock(self, now: datetime) -> bool:
        """Flush when the wall clock has moved past the aggregate's hour"""
        hour = self.aggregate.hour
        if hour is None or int(hour) == now.hour:
            return False
        return self.close_hour()

    def close_hour(self) -> bool:
        """Flush without waiting for the next header.

        The latest header then counts as the hour's last transaction, as it
        would have once the next header arrived.
        """
        state = self.state
        if state.current_event_time != UNSET and state.current_event is not ParserEvent.OTHER:
            state.previous_event_time = state.current_event_time
        return self.flush()

    def reset(self):
        """Zero the aggregate and the hourly transaction count"""
        self.aggregate.clear()
        self.state.transaction_count = 0
        self.state.aggregate_snapshot = self.aggregate.clone()
