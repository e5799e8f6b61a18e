"""Shared fixtures for plist table tests."""

import plistlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest
from pydantic import BaseModel
from prometheus_client import CollectorRegistry

from plist_table.config import PlistTableSettings, reset_settings
from plist_table.metrics import TableMetrics
from plist_table.table import PlistTable


@dataclass
class Country:
    code: str
    name: str
    continent: str
    population: int = 0
    tags: List[str] = field(default_factory=list)


class City(BaseModel):
    id: int
    name: str
    country: str


COUNTRY_ROWS: List[Dict[str, Any]] = [
    {"code": "NO", "name": "Norway", "continent": "Europe", "population": 5400000, "tags": ["nordic"]},
    {"code": "JP", "name": "Japan", "continent": "Asia", "population": 125000000, "tags": ["island"]},
    {"code": "FR", "name": "France", "continent": "Europe", "population": 68000000, "tags": []},
    {"code": "BR", "name": "Brazil", "continent": "South America", "population": 216000000},
    {"code": "DE", "name": "Germany", "continent": "Europe", "population": 84000000, "tags": ["eu"]},
]

CITY_ROWS: List[Dict[str, Any]] = [
    {"id": 1, "name": "Oslo", "country": "NO"},
    {"id": 2, "name": "Bergen", "country": "NO"},
    {"id": 3, "name": "Tokyo", "country": "JP"},
    {"id": 4, "name": "Paris", "country": "FR"},
    {"id": 5, "name": "Osaka", "country": "JP"},
]


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep PLIST_TABLE_* variables and .env files from leaking into tests."""
    import os

    for name in list(os.environ):
        if name.startswith("PLIST_TABLE_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> PlistTableSettings:
    """Settings with metrics disabled so tables never touch the global registry."""
    return PlistTableSettings(metrics_enabled=False)


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry) -> TableMetrics:
    return TableMetrics(registry=registry)


@pytest.fixture
def write_plist(tmp_path) -> Callable[..., Path]:
    """Factory writing a plist into tmp_path and returning its path."""

    def _write(name: str, root: Any, fmt: plistlib.PlistFormat = plistlib.FMT_XML,
               directory: Path = None) -> Path:
        directory = directory or tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        with path.open("wb") as handle:
            plistlib.dump(root, handle, fmt=fmt, sort_keys=False)
        return path

    return _write


@pytest.fixture
def countries(settings) -> PlistTable:
    return PlistTable.from_rows(COUNTRY_ROWS, Country, "code", name="countries", settings=settings)


@pytest.fixture
def cities(settings) -> PlistTable:
    return PlistTable.from_rows(CITY_ROWS, City, "id", name="cities", settings=settings)


@pytest.fixture
def country_cls():
    return Country


@pytest.fixture
def city_cls():
    return City


@pytest.fixture
def country_rows() -> List[Dict[str, Any]]:
    return [dict(row) for row in COUNTRY_ROWS]


@pytest.fixture
def city_rows() -> List[Dict[str, Any]]:
    return [dict(row) for row in CITY_ROWS]
