# Hourly aggregate and PLU registry for SAMPi
# Accumulates one hour of ECR sales and maps it to a CSV row

import copy
import logging
import re
from dataclasses import dataclass, field, fields
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

# Marker for an unset hour label or transaction time
UNSET = '0'

BASE_COLUMNS = ('Hours', 'Total Takings', 'Cash', 'Credit Cards')
TRAILING_COLUMNS = ('Customer Count', 'First Transaction', 'Last Transaction', 'No Sale')


def normalise_plu(code: str) -> str:
    """Trim a PLU code and Title Case each word ("  HOT  food" -> "Hot  Food")"""
    return re.sub(r'\w+', lambda m: m.group(0).capitalize(), code.strip())


class PLURegistry:
    """Ordered, immutable set of valid PLU codes.

    The order is the CSV column order. Lookups ignore case and surrounding
    whitespace, the codes themselves keep the spelling from the PLU file.
    """

    def __init__(self, codes: Iterable[str]):
        ordered: List[str] = []
        lookup: Dict[str, str] = {}
        for code in codes:
            code = code.strip()
            if not code:
                continue
            key = normalise_plu(code)
            if key in lookup:
                logger.debug("Duplicate PLU '%s' ignored", code)
                continue
            lookup[key] = code
            ordered.append(code)
        self._codes: Tuple[str, ...] = tuple(ordered)
        self._lookup = lookup

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'PLURegistry':
        """Read one PLU code per line"""
        try:
            with open(path, encoding='utf-8') as f:
                registry = cls(f.read().splitlines())
        except OSError as e:
            logger.error("Error reading PLU file %s", path)
            raise ConfigError(f"Error reading PLU file {path}: {e}") from e
        logger.info("Loaded %d PLUs from %s", len(registry), path)
        return registry

    @property
    def codes(self) -> Tuple[str, ...]:
        return self._codes

    def lookup(self, key: str) -> Optional[str]:
        """Return the registered code matching key, or None"""
        return self._lookup.get(normalise_plu(key))

    def __contains__(self, key: str) -> bool:
        return self.lookup(key) is not None

    def __len__(self) -> int:
        return len(self._codes)

    def __iter__(self):
        return iter(self._codes)


@dataclass
class HourlyAggregate:
    """Totals and counts for one business hour"""
    hour_label: str = UNSET
    total_takings: Decimal = Decimal('0')
    cash_total: Decimal = Decimal('0')
    card_total: Decimal = Decimal('0')
    plu_totals: Dict[str, Decimal] = field(default_factory=dict)
    customer_count: int = 0
    first_transaction_time: str = UNSET
    last_transaction_time: str = UNSET
    no_sale_count: int = 0

    @classmethod
    def for_registry(cls, registry: PLURegistry) -> 'HourlyAggregate':
        """Zeroed aggregate with one PLU total per registry entry"""
        return cls(plu_totals={code: Decimal('0') for code in registry})

    @property
    def is_unset(self) -> bool:
        return self.hour_label == UNSET

    @property
    def hour(self) -> Optional[str]:
        """Two-digit hour the aggregate covers, None while unset"""
        if self.is_unset:
            return None
        return self.hour_label[:2]

    def start_hour(self, hour: str, event_time: str):
        next_hour = int(hour) + 1
        self.hour_label = f"{int(hour):02d}.00-{next_hour:02d}.00"
        self.first_transaction_time = event_time

    def clone(self) -> 'HourlyAggregate':
        return copy.deepcopy(self)

    def restore(self, other: 'HourlyAggregate'):
        """Overwrite every field with an independent copy of other's"""
        for f in fields(self):
            setattr(self, f.name, copy.deepcopy(getattr(other, f.name)))

    def clear(self):
        """Reset to the zero state, keeping the PLU key set"""
        self.restore(HourlyAggregate(plu_totals={code: Decimal('0') for code in self.plu_totals}))

    def columns(self) -> List[str]:
        return [*BASE_COLUMNS, *self.plu_totals, *TRAILING_COLUMNS]

    def to_row(self) -> List[str]:
        """Values in the same order as columns()"""
        return [
            self.hour_label,
            str(self.total_takings),
            str(self.cash_total),
            str(self.card_total),
            *(str(value) for value in self.plu_totals.values()),
            str(self.customer_count),
            self.first_transaction_time,
            self.last_transaction_time,
            str(self.no_sale_count),
        ]
