# timeline.py
import math
from datetime import datetime, timedelta, timezone
from typing import Tuple

from astropy.time import Time

from config import config

def jd_to_datetime(jd: float) -> datetime:
    """Julian Date (UTC) to an aware UTC datetime, rounded to the nearest second."""
    moment = Time(jd, format='jd', scale='utc').to_datetime(timezone=timezone.utc)
    return (moment + timedelta(microseconds=500000)).replace(microsecond=0)

def datetime_to_jd(moment: datetime) -> float:
    """Julian Date of a datetime; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return float(Time(moment, scale='utc').jd)

def jd_to_date_string(jd: float) -> str:
    """ISO calendar date, e.g. '1997-04-01'."""
    return jd_to_datetime(jd).strftime("%Y-%m-%d")

def format_utc(jd: float) -> str:
    """Clock display form, e.g. '1997/04/01 03:15:24 UTC'."""
    return jd_to_datetime(jd).strftime("%Y/%m/%d %H:%M:%S UTC")

def timeline_epoch(base_jd: float, day_offset: float) -> float:
    """Epoch selected by a timeline position `day_offset` days after `base_jd`."""
    return base_jd + day_offset

def timeline_offset(base_jd: float, jd: float) -> int:
    """Whole days from `base_jd` to `jd`, as shown on the timeline."""
    return math.floor(jd - base_jd)

def speed_from_slider(value: float) -> float:
    """Simulation speed multiplier for a slider position; doubles every SPEED_DOUBLING_STEPS steps."""
    return config.Time.SPEED_BASE * 2.0 ** (value / config.Time.SPEED_DOUBLING_STEPS)

def advance_epoch(epoch: float, real_dt_seconds: float, speed: float, paused: bool = False) -> Tuple[float, float]:
    """
    Moves the simulation epoch forward by one frame.

    Returns:
        Tuple[float, float]: The new epoch (JD) and the simulated seconds that
                             elapsed, which is 0 while paused.
    """
    if paused or not (real_dt_seconds > 0) or not math.isfinite(speed):
        return epoch, 0.0
    dt_seconds = real_dt_seconds * speed
    return epoch + dt_seconds / config.Physics.SECONDS_PER_DAY, dt_seconds
