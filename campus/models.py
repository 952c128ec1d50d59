"""Domain models shared by the directory service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the directory database."""

    id: int
    name: str
    email: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class DatasetRecord:
    """A single row of the remote student dataset."""

    name: str
    ymd: str
    nim: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "YMD": self.ymd, "NIM": self.nim}


__all__ = ["DatasetRecord", "User"]
