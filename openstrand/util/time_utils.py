from datetime import datetime, timezone


def iso_format_z(datetime_obj: datetime, microseconds: bool = True) -> str:
    """
    Format a datetime as an ISO 8601 timestamp. Includes the Z for clarity that it is UTC.

    Example with microseconds: 2015-09-12T08:41:12.397217Z
    Example without microseconds: 2015-09-12T08:41:12Z
    """
    timespec = "microseconds" if microseconds else "seconds"
    return datetime_obj.astimezone(timezone.utc).isoformat(timespec=timespec).replace("+00:00", "Z")


def now_iso() -> str:
    """
    Current UTC time as an ISO 8601 timestamp.
    """
    return iso_format_z(datetime.now(timezone.utc))


## Tests


def test_iso_format_z():
    dt = datetime(2015, 9, 12, 8, 41, 12, 397217, tzinfo=timezone.utc)
    assert iso_format_z(dt) == "2015-09-12T08:41:12.397217Z"
    assert iso_format_z(dt, microseconds=False) == "2015-09-12T08:41:12Z"
    assert now_iso().endswith("Z")
