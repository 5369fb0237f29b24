"""Decoding of time coordinates following the CF conventions, where values
are offsets from a reference date given in a ``units`` attribute such as
``"days since 1992-10-8 15:15:42.5 -6:00"``. Only the Gregorian calendar
is supported."""
import re
from datetime import date
from typing import Optional, Tuple

import numpy as np

CALENDARS = ('standard', 'gregorian', 'proleptic_gregorian')

UNIT_SECONDS = {
    'weeks': 604800, 'week': 604800,
    'days': 86400, 'day': 86400, 'd': 86400,
    'hours': 3600, 'hour': 3600, 'hr': 3600, 'h': 3600,
    'minutes': 60, 'minute': 60, 'min': 60, 'm': 60,
    'seconds': 1, 'second': 1, 'sec': 1, 's': 1,
}

_date_re = re.compile(
    r'^(?P<year>\d{1,4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})'
    r'(?:[ T](?P<hour>\d{1,2}):(?P<minute>\d{1,2})(?::(?P<second>\d{1,2}(?:\.\d*)?))?)?'
    r'(?:\s*(?:Z|UTC|(?P<tzsign>[+-])(?P<tzhour>\d{1,2})(?::?(?P<tzminute>\d{2}))?))?$'
)


def parse_reference_date(text: str) -> np.datetime64:
    """Parse a CF reference date, converting it to UTC."""
    m = _date_re.match(text.strip())
    if m is None:
        raise ValueError(f'invalid reference date: {text!r}')
    # CF allows unpadded fields, numpy only parses padded ISO 8601
    iso = '{:04d}-{:02d}-{:02d}T{:02d}:{:02d}'.format(
        int(m['year']), int(m['month']), int(m['day']), int(m['hour'] or 0),
        int(m['minute'] or 0))
    if m['second']:
        whole, _, frac = m['second'].partition('.')
        iso += ':{:02d}'.format(int(whole))
        if frac:
            iso += '.' + frac
    value = np.datetime64(iso, 'ns')
    if m['tzsign']:
        offset = np.timedelta64(int(m['tzhour']) * 60 + int(m['tzminute'] or 0), 'm')
        value = value - offset if m['tzsign'] == '+' else value + offset
    return value


def parse_cf_units(units: str) -> Tuple[int, np.datetime64]:
    """Split time units into seconds per unit and the reference date."""
    parts = units.strip().split(None, 2)
    if len(parts) != 3 or parts[1].lower() != 'since':
        raise ValueError(f'invalid time units: {units!r}')
    unit = parts[0].lower()
    if unit not in UNIT_SECONDS:
        raise ValueError(f'unsupported time unit: {parts[0]!r}')
    return UNIT_SECONDS[unit], parse_reference_date(parts[2])


def check_calendar(calendar: Optional[str]):
    if calendar and calendar.lower() not in CALENDARS:
        raise ValueError(f'unsupported calendar: {calendar!r}')


def decode_cf_times(values, units: str, calendar: Optional[str] = None) -> np.ndarray:
    """Convert numeric time offsets to ``datetime64[ns]``."""
    check_calendar(calendar)
    scale, origin = parse_cf_units(units)
    values = np.asarray(values, dtype='f8')
    offsets = np.round(values * scale * 1e9).astype('i8').astype('m8[ns]')
    return origin + offsets


def is_datetime_like(value) -> bool:
    return isinstance(value, (date, np.datetime64))
