"""Reporting sinks that persist cycle records."""

from typing import Protocol

from influxdb_client import InfluxDBClient, Point
from influxdb_client.client.write_api import SYNCHRONOUS

from .models import CycleReport

TOTAL_TAG = "total"


class ReportingSink(Protocol):
    """Protocol for report destinations."""

    def record(self, tags: dict[str, str], fields: dict[str, float]) -> None:
        """Queue one point."""
        ...

    def flush(self) -> None:
        """Write every queued point, raising if the write fails."""
        ...

    def close(self) -> None:
        """Release the connection."""
        ...


class InfluxSink:
    """Write report points to an InfluxDB 2 bucket."""

    def __init__(
        self,
        url: str,
        token: str,
        org: str,
        bucket: str,
        measurement: str = "balance",
    ):
        self.org = org
        self.bucket = bucket
        self.measurement = measurement
        self._client = InfluxDBClient(url=url, token=token, org=org)
        self._write_api = self._client.write_api(write_options=SYNCHRONOUS)
        self._pending: list[Point] = []

    def record(self, tags: dict[str, str], fields: dict[str, float]) -> None:
        point = Point(self.measurement)
        for key, value in tags.items():
            point = point.tag(key, value)
        for key, value in fields.items():
            point = point.field(key, float(value))
        self._pending.append(point)

    def flush(self) -> None:
        if not self._pending:
            return
        self._write_api.write(bucket=self.bucket, org=self.org, record=self._pending)
        self._pending = []

    def close(self) -> None:
        self._pending = []
        self._write_api.close()
        self._client.close()


def publish(report: CycleReport, sink: ReportingSink) -> int:
    """Record every row of a cycle report and flush the sink.

    Args:
        report: Finished cycle report
        sink: Destination for the points

    Returns:
        Number of points recorded
    """
    count = 0
    for record in report.securities + report.accounts:
        sink.record({"account": record.name}, record.to_fields())
        count += 1

    if report.totals is not None:
        totals = report.totals
        sink.record(
            {"account": TOTAL_TAG},
            {"basis": totals.basis, "market": totals.market, "gain": totals.gain},
        )
        count += 1

    sink.flush()
    return count
