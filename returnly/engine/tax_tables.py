"""
tax_tables.py — SlabTable Provider.

Per-year slab tables and tax constants live in YAML files (one per financial
year) under engine/tables/ or settings.tax_tables_dir. Files are parsed
with yaml.safe_load, validated into TaxYearTables, and cached per directory,
so a process reads them once and every lookup afterwards is a pure dict hit.

Adding a year = adding a YAML file. No code changes.

Unknown financial years raise ConfigurationNotFound; no other year is
substituted.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

import yaml

from returnly.config import settings
from returnly.engine.schemas import (
    AgeCategory,
    TaxConfiguration,
    TaxRegime,
    TaxSlab,
    TaxYearTables,
)
from returnly.errors import ConfigurationNotFound

logger = logging.getLogger(__name__)


@lru_cache(maxsize=8)
def load_tax_tables(directory: Path) -> Mapping[str, TaxYearTables]:
    """
    Read and validate every *.yaml table in directory, keyed by financial year.

    Raises:
        FileNotFoundError: directory does not exist.
        ValueError: two files declare the same financial year, or a file is empty.
        pydantic.ValidationError: a table breaks a slab/surcharge invariant.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Tax table directory not found: {directory}")

    tables: dict[str, TaxYearTables] = {}
    for path in sorted(directory.glob("*.yaml")):
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
        if not raw:
            raise ValueError(f"Tax table file is empty: {path.name}")

        year_tables = TaxYearTables.model_validate(raw)
        fy = year_tables.configuration.financial_year
        if fy in tables:
            raise ValueError(f"Financial year {fy} is defined twice (second file: {path.name})")
        tables[fy] = year_tables

    logger.info("Loaded tax tables for %d financial year(s) from %s", len(tables), directory)
    return MappingProxyType(tables)


def _tables(directory: Optional[Path] = None) -> Mapping[str, TaxYearTables]:
    return load_tax_tables(Path(directory or settings.resolved_tax_tables_dir))


def available_financial_years(directory: Optional[Path] = None) -> tuple[str, ...]:
    return tuple(sorted(_tables(directory)))


def get_year_tables(financial_year: str, directory: Optional[Path] = None) -> TaxYearTables:
    tables = _tables(directory)
    try:
        return tables[financial_year]
    except KeyError:
        raise ConfigurationNotFound(financial_year, sorted(tables)) from None


def get_tax_configuration(financial_year: str, directory: Optional[Path] = None) -> TaxConfiguration:
    return get_year_tables(financial_year, directory).configuration


def get_slabs(
    financial_year: str,
    regime: TaxRegime,
    age: int,
    directory: Optional[Path] = None,
) -> tuple[TaxSlab, ...]:
    """
    Ordered slab table for the year, regime and taxpayer age.

    New-regime slabs ignore age. Old-regime slabs switch at 60 and 80.
    """
    year_tables = get_year_tables(financial_year, directory)
    return year_tables.slabs_for(TaxRegime(regime), AgeCategory.from_age(age))


__all__ = [
    "load_tax_tables",
    "available_financial_years",
    "get_year_tables",
    "get_tax_configuration",
    "get_slabs",
]
