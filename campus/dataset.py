"""Fetch, parse, and filter the remote student dataset."""

from __future__ import annotations

import enum
import logging
from typing import Callable, Dict, Iterable, List

import httpx

from .models import DatasetRecord

logger = logging.getLogger("campus.dataset")

DEFAULT_DATASET_URL = "https://bit.ly/48ejMhW"


class FetchError(RuntimeError):
    """Raised when the remote dataset cannot be retrieved or understood."""


class DatasetField(str, enum.Enum):
    NAME = "name"
    YMD = "YMD"
    NIM = "NIM"


_ACCESSORS: Dict[DatasetField, Callable[[DatasetRecord], str]] = {
    DatasetField.NAME: lambda record: record.name,
    DatasetField.YMD: lambda record: record.ymd,
    DatasetField.NIM: lambda record: record.nim,
}


def parse_dataset(raw_text: str) -> List[DatasetRecord]:
    """Split ``raw_text`` into records, skipping the header and malformed rows.

    Each line after the first must contain exactly three ``|``-separated
    columns (name, YMD, NIM); anything else is dropped.
    """

    lines = raw_text.split("\n")[1:]
    records: List[DatasetRecord] = []
    for line in lines:
        columns = line.split("|")
        if len(columns) != 3:
            continue
        name, ymd, nim = (column.strip() for column in columns)
        records.append(DatasetRecord(name=name, ymd=ymd, nim=nim))
    return records


def filter_records(
    records: Iterable[DatasetRecord],
    field: DatasetField,
    query: str,
) -> List[DatasetRecord]:
    """Return records whose ``field`` contains ``query``, ignoring case."""

    accessor = _ACCESSORS[DatasetField(field)]
    needle = query.casefold()
    return [record for record in records if needle in accessor(record).casefold()]


class DatasetFetcher:
    """Retrieve the raw dataset text from the remote JSON endpoint."""

    def __init__(self, url: str = DEFAULT_DATASET_URL) -> None:
        cleaned = (url or "").strip()
        if not cleaned:
            raise ValueError("Dataset URL must not be empty")
        self._url = cleaned

    def fetch(self) -> str:
        try:
            response = httpx.get(self._url, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to contact dataset endpoint: {exc}") from exc

        if not response.is_success:
            raise FetchError(f"Dataset endpoint responded with status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError("Dataset endpoint returned an invalid JSON body") from exc

        if not isinstance(payload, dict):
            raise FetchError("Dataset endpoint returned an unexpected response payload")

        data = payload.get("DATA")
        if not isinstance(data, str):
            raise FetchError("Dataset response is missing the DATA field")
        return data


class DatasetSearch:
    """Fetch the dataset afresh and filter it for a single query."""

    def __init__(self, fetcher: DatasetFetcher) -> None:
        self._fetcher = fetcher

    def search(self, field: DatasetField, query: str) -> List[DatasetRecord]:
        raw_text = self._fetcher.fetch()
        matches = filter_records(parse_dataset(raw_text), field, query)
        logger.info("Dataset search on %s for %r matched %d record(s)", DatasetField(field).value, query, len(matches))
        return matches


__all__ = [
    "DEFAULT_DATASET_URL",
    "DatasetFetcher",
    "DatasetField",
    "DatasetSearch",
    "FetchError",
    "filter_records",
    "parse_dataset",
]
