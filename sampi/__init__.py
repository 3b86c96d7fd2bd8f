# SAMPi - SAM4S ECR data reader, parser and logger
# Hourly sales aggregation from ECR serial output

__version__ = '1.0.0'

from .aggregate import HourlyAggregate, PLURegistry
from .ecr_parser import ECRParser, LineType, ParserContext, ParserEvent, ParserState, normalise_line
from .business_hours import BusinessHoursGate
from .csv_writer import CSVWriter
from .serial_reader import SerialLineReader, StreamLineReader
from .update_client import UpdateClient, StubUpdateClient
from .exceptions import SAMPiError, ConfigError, SourceError, OutputError

__all__ = [
    'HourlyAggregate',
    'PLURegistry',
    'ECRParser',
    'LineType',
    'ParserContext',
    'ParserEvent',
    'ParserState',
    'normalise_line',
    'BusinessHoursGate',
    'CSVWriter',
    'SerialLineReader',
    'StreamLineReader',
    'UpdateClient',
    'StubUpdateClient',
    'SAMPiError',
    'ConfigError',
    'SourceError',
    'OutputError',
]
