# Shop identity lookup for SAMPi
# Matches the host name against config/shops.csv to name output files

import csv
import logging
import re
from datetime import date
from pathlib import Path
from typing import Optional, Union

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

UNKNOWN_SHOP = 'UNKNOWN'


def _normalize(name: str) -> str:
    """Normalize for matching: drop non-word characters, lowercase."""
    if not name:
        return ""
    return re.sub(r"[^\w]", "", name).lower()


def match_shop(hostname: str, shops_path: Union[str, Path]) -> str:
    """
    Return the shop ID whose name is contained in the host name.

    The last matching row wins. Unmatched hosts get UNKNOWN. A matched host
    with a digit in its name (e.g. "eastgate2") is one of several tills in
    the same shop, so the digit is appended: "12_2".
    """
    host = _normalize(hostname)
    matched_id: Optional[str] = None

    try:
        with open(shops_path, newline='', encoding='utf-8') as f:
            for row in csv.reader(f):
                if len(row) < 2:
                    continue
                shop_id, shop_name = row[0].strip(), ','.join(row[1:])
                shop_name = _normalize(shop_name)
                if shop_name and shop_name in host:
                    matched_id = shop_id
    except OSError as e:
        logger.error("Error opening %s: %s", shops_path, e)
        raise ConfigError(f"Error opening shops file {shops_path}: {e}") from e

    if not matched_id:
        logger.warning("No match found for '%s' in %s, using %s", host, shops_path, UNKNOWN_SHOP)
        return UNKNOWN_SHOP

    till = re.search(r'[0-9]', host)
    if till:
        matched_id = f"{matched_id}_{till.group(0)}"
    logger.debug("Matched host '%s' -> shop %s", hostname, matched_id)
    return matched_id


def output_file_name(shop_id: str, day: Optional[date] = None) -> str:
    """CSV file name for one shop and day, e.g. 20240105_12_2.csv"""
    day = day or date.today()
    return f"{day.strftime('%Y%m%d')}_{shop_id}.csv"
