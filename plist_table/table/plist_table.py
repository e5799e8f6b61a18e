"""Read-only tables backed by property list files.

A PlistTable reads its rows from a plist on first use, turns every row
into an instance of a record class and answers lookups by primary key,
by property value, by predicate and through named sort indexes. Tables
can be linked with named master/detail relationships.

Example::

    @dataclass
    class Country:
        code: str
        name: str
        continent: str

    countries = PlistTable.for_class(Country, "code", search_paths=["data"])
    countries.add_index("by_name", "name")
    europe = countries.find_all_matching("continent == 'Europe'", index_name="by_name")
"""

import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Type, Union

import pyarrow as pa
import structlog

from ..config import PlistTableSettings, get_settings
from ..exceptions import (
    DuplicatePrimaryKeyError,
    IndexNotFoundError,
    PlistFormatError,
    PlistTableError,
    RelationshipNotFoundError,
)
from ..logging import table_context
from ..loader.plist_loader import PlistSource, normalise_rows, read_plist, resolve_resource
from ..metrics.prometheus_metrics import TableMetrics, get_table_metrics
from ..models.definitions import IndexDefinition, RelationshipDefinition, SortDescriptor
from ..query.predicate import Predicate
from ..query.sorting import sort_records, value_for_key_path
from ..transformers.plist_to_arrow import PlistToArrowConverter
from ..transformers.record_mapper import RecordMapper
from ..transformers.type_resolver import TypeResolutionStrategy
from .index_cache import IndexCache

logger = structlog.get_logger(__name__)

PredicateLike = Union[Predicate, str, Callable[[Any], Any]]

# Marks a property whose values cannot be hashed
_UNHASHABLE = object()


class PlistTable:
    """A read-only, lazily loaded table of records from a plist."""

    def __init__(
        self,
        record_class: Type[Any],
        primary_key: str,
        *,
        source: Optional[PlistSource] = None,
        rows: Optional[Sequence[Dict[str, Any]]] = None,
        name: Optional[str] = None,
        settings: Optional[PlistTableSettings] = None,
        metrics: Optional[TableMetrics] = None,
        strict: Optional[bool] = None,
    ):
        """
        Initialize a table. Prefer the ``from_*`` and ``for_class`` constructors.

        Args:
            record_class: Class each row becomes an instance of (``dict`` keeps rows)
            primary_key: Property holding each row's unique key
            source: Plist path, package resource or raw bytes
            rows: In-memory rows used instead of a source
            name: Table name for logs and metrics
            settings: Settings (process-wide settings when omitted)
            metrics: Metrics sink (process-wide metrics when omitted)
            strict: Override ``settings.strict_mapping``
        """
        if (source is None) == (rows is None):
            raise ValueError("exactly one of source or rows must be given")
        if not primary_key:
            raise ValueError("primary_key cannot be empty")

        self.settings = settings or get_settings()
        self.record_class = record_class
        self.primary_key = primary_key
        self.source = source
        self.name = name or self._default_name(source, record_class)

        if metrics is None and self.settings.metrics_enabled:
            metrics = get_table_metrics()
        self.metrics = metrics

        strict = self.settings.strict_mapping if strict is None else strict
        self.mapper = RecordMapper(record_class, strict=strict, table=self.name)

        self._lock = threading.RLock()
        self._initial_rows = [dict(row) for row in rows] if rows is not None else None
        self._rows: List[Dict[str, Any]] = []
        self._records: List[Any] = []
        self._by_key: Dict[Any, Any] = {}
        self._value_maps: Dict[str, Any] = {}
        self._loaded = False

        self._indexes: Dict[str, IndexDefinition] = {}
        self._relationships: Dict[str, RelationshipDefinition] = {}
        self.index_cache = IndexCache(table_name=self.name)

    @staticmethod
    def _default_name(source: Optional[PlistSource], record_class: Type[Any]) -> str:
        if isinstance(source, (str, Path)):
            return Path(source).stem
        if source is not None and not isinstance(source, bytes):
            return Path(source.name).stem
        return getattr(record_class, "__name__", "table")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_resource(
        cls,
        resource_name: str,
        record_class: Type[Any],
        primary_key: str,
        *,
        search_paths: Optional[Sequence[Union[str, Path]]] = None,
        package: Optional[str] = None,
        settings: Optional[PlistTableSettings] = None,
        **kwargs: Any,
    ) -> "PlistTable":
        """
        Create a table over a named plist resource.

        The resource is looked up in ``package`` first (when given), then in
        ``search_paths``, which default to the configured resource paths
        followed by the current directory.

        Raises:
            ResourceNotFoundError: If the resource cannot be found
        """
        settings = settings or get_settings()
        if search_paths is None:
            search_paths = [*settings.resource_paths, Path.cwd()]
        source = resolve_resource(
            resource_name,
            search_paths=search_paths,
            package=package,
            extension=settings.resource_extension,
        )
        kwargs.setdefault("name", Path(resource_name).stem)
        return cls(record_class, primary_key, source=source, settings=settings, **kwargs)

    @classmethod
    def for_class(cls, record_class: Type[Any], primary_key: str, **kwargs: Any) -> "PlistTable":
        """Create a table over the resource named after ``record_class``."""
        return cls.from_resource(record_class.__name__, record_class, primary_key, **kwargs)

    @classmethod
    def from_path(
        cls,
        path: Union[str, Path],
        record_class: Type[Any],
        primary_key: str,
        **kwargs: Any,
    ) -> "PlistTable":
        """Create a table over an explicit plist file."""
        return cls(record_class, primary_key, source=Path(path), **kwargs)

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Dict[str, Any]],
        record_class: Type[Any],
        primary_key: str,
        **kwargs: Any,
    ) -> "PlistTable":
        """Create a table over rows already in memory."""
        return cls(record_class, primary_key, rows=rows, **kwargs)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load(self) -> "PlistTable":
        """Load rows now instead of on first query. Loading twice is a no-op."""
        if self._loaded:
            return self
        with self._lock:
            if not self._loaded:
                self._load_locked()
        return self

    def reload(self) -> "PlistTable":
        """
        Read the source again and replace the loaded records.

        Readers keep seeing the previous records until the new ones are
        complete. If the reload fails the previous records stay in place.
        """
        with self._lock:
            self._load_locked()
        return self

    def _load_locked(self) -> None:
        start_time = time.perf_counter()
        try:
            if self._initial_rows is not None:
                root: Any = self._initial_rows
            else:
                root = read_plist(self.source)

            rows = normalise_rows(root, self.primary_key, table=self.name)
            records = [self.mapper.map_row(row, number) for number, row in enumerate(rows)]
            by_key = self._build_key_map(rows, records)
        except PlistTableError:
            self._record_load("error")
            raise

        # Swap in fully built state; derived caches refer to the old records
        self._rows = rows
        self._records = records
        self._by_key = by_key
        self._value_maps = {}
        self.index_cache.clear()
        self._loaded = True
        self._record_load("success")

        logger.info(
            "plist_table_loaded",
            table=self.name,
            rows=len(records),
            record_class=getattr(self.record_class, "__name__", repr(self.record_class)),
            duration_ms=round((time.perf_counter() - start_time) * 1000, 3),
        )

    def _build_key_map(self, rows: List[Dict[str, Any]], records: List[Any]) -> Dict[Any, Any]:
        by_key: Dict[Any, Any] = {}
        for row, record in zip(rows, records):
            key = value_for_key_path(record, self.primary_key)
            if key is None:
                key = row[self.primary_key]
            try:
                duplicate = key in by_key
            except TypeError as e:
                raise PlistFormatError(
                    f"primary key value {key!r} is not hashable", table=self.name
                ) from e
            if duplicate:
                logger.error(
                    "plist_table_duplicate_primary_key",
                    table=self.name,
                    primary_key=self.primary_key,
                    value=repr(key),
                )
                raise DuplicatePrimaryKeyError(self.primary_key, key, table=self.name)
            by_key[key] = record
        return by_key

    def _record_load(self, status: str) -> None:
        if self.metrics is None:
            return
        self.metrics.loads.labels(table=self.name, status=status).inc()
        if status == "success":
            self.metrics.rows_loaded.labels(table=self.name).set(len(self._records))

    @contextmanager
    def _query(self, operation: str) -> Iterator[None]:
        with table_context(self.name, operation):
            self.load()
            start_time = time.perf_counter()
            try:
                yield
            finally:
                self._record_query(operation, start_time)

    def _record_query(self, operation: str, start_time: float) -> None:
        if self.metrics is None:
            return
        self.metrics.queries.labels(table=self.name, operation=operation).inc()
        self.metrics.query_duration.labels(table=self.name, operation=operation).observe(
            time.perf_counter() - start_time
        )

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def add_index(self, name: str, key: str, ascending: bool = True) -> None:
        """Define a single-key index."""
        self.add_index_with_descriptors(name, [SortDescriptor(key=key, ascending=ascending)])

    def add_index_with_descriptors(self, name: str, descriptors: Sequence[SortDescriptor]) -> None:
        """
        Define an index ordered by several sort keys.

        Redefining an existing index replaces it.

        Raises:
            ValueError: If no descriptors are given
        """
        definition = IndexDefinition(name=name, descriptors=list(descriptors))
        with self._lock:
            replaced = name in self._indexes
            self._indexes[name] = definition
            self.index_cache.invalidate(name)

        logger.debug(
            "plist_table_index_added",
            table=self.name,
            index=name,
            keys=[d.key for d in definition.descriptors],
            replaced=replaced,
        )

    def add_relationship(self, name: str, detail_table: "PlistTable", from_key: str, to_key: str) -> None:
        """
        Link this table to a detail table.

        The related records of a record ``m`` are the records ``d`` of
        ``detail_table`` with ``d.<to_key> == m.<from_key>``.
        """
        if not isinstance(detail_table, PlistTable):
            raise TypeError("detail_table must be a PlistTable")
        definition = RelationshipDefinition(
            name=name, detail_table=detail_table, from_key=from_key, to_key=to_key
        )
        with self._lock:
            self._relationships[name] = definition

        logger.debug(
            "plist_table_relationship_added",
            table=self.name,
            relationship=name,
            detail_table=detail_table.name,
            from_key=from_key,
            to_key=to_key,
        )

    @property
    def index_names(self) -> List[str]:
        return list(self._indexes)

    @property
    def relationship_names(self) -> List[str]:
        return list(self._relationships)

    def get_index(self, name: str) -> IndexDefinition:
        try:
            return self._indexes[name]
        except KeyError:
            logger.warning("plist_table_unknown_index", table=self.name, index=name)
            raise IndexNotFoundError(name, table=self.name) from None

    def get_relationship(self, name: str) -> RelationshipDefinition:
        try:
            return self._relationships[name]
        except KeyError:
            logger.warning("plist_table_unknown_relationship", table=self.name, relationship=name)
            raise RelationshipNotFoundError(name, table=self.name) from None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_all(self) -> List[Any]:
        """All records in file order."""
        with self._query("find_all"):
            return list(self._records)

    def find_all_matching(self, predicate: PredicateLike, index_name: Optional[str] = None) -> List[Any]:
        """
        Records satisfying a predicate.

        Args:
            predicate: Predicate, predicate format string or ``record -> bool``
            index_name: Order results by this index instead of file order

        Raises:
            PredicateSyntaxError: If a format string cannot be parsed
            IndexNotFoundError: If the index was never added
        """
        predicate = Predicate.coerce(predicate)
        with self._query("find_all_matching"):
            candidates = self._ordering(index_name) if index_name else self._records
            return [record for record in candidates if predicate.evaluate(record)]

    def find_all_using_index(self, index_name: str) -> List[Any]:
        """All records ordered by a named index."""
        with self._query("find_all_using_index"):
            return list(self._ordering(index_name))

    def find_by_primary_key(self, value: Any) -> Optional[Any]:
        """The record with the given primary key, or None."""
        with self._query("find_by_primary_key"):
            try:
                return self._by_key.get(value)
            except TypeError:
                return None

    def find_all_by_value(self, value: Any, property: str) -> List[Any]:
        """Records whose ``property`` equals ``value``, in file order."""
        with self._query("find_all_by_value"):
            value_map = self._value_map(property)
            if value_map is not _UNHASHABLE:
                try:
                    return list(value_map.get(value, ()))
                except TypeError:
                    pass
            return [
                record for record in self._records
                if value_for_key_path(record, property) == value
            ]

    def find_all_related(self, record: Any, relationship_name: str) -> List[Any]:
        """
        Detail records related to ``record`` through a named relationship.

        Raises:
            RelationshipNotFoundError: If the relationship was never added
        """
        relationship = self.get_relationship(relationship_name)
        with self._query("find_all_related"):
            value = value_for_key_path(record, relationship.from_key)
        if value is None:
            return []
        return relationship.table.find_all_by_value(value, relationship.to_key)

    def to_arrow(self, strategy: TypeResolutionStrategy = TypeResolutionStrategy.WIDEN) -> pa.Table:
        """Raw rows as an Arrow table with an inferred schema."""
        with self._query("to_arrow"):
            rows = list(self._rows)
        return PlistToArrowConverter(strategy=strategy).to_table(rows)

    def _ordering(self, index_name: str) -> List[Any]:
        definition = self.get_index(index_name)
        built = False

        def build() -> List[Any]:
            nonlocal built
            built = True
            return sort_records(self._records, definition.descriptors)

        with self._lock:
            ordering = self.index_cache.get_or_build(index_name, build)

        if built:
            self._record_index_cache("miss")
            self._record_index_cache("build")
        else:
            self._record_index_cache("hit")
        return ordering

    def _record_index_cache(self, result: str) -> None:
        if self.metrics is not None:
            self.metrics.index_cache.labels(table=self.name, result=result).inc()

    def _value_map(self, property: str) -> Any:
        value_map = self._value_maps.get(property)
        if value_map is not None:
            return value_map

        with self._lock:
            value_map = self._value_maps.get(property)
            if value_map is not None:
                return value_map

            built: Dict[Any, List[Any]] = {}
            try:
                for record in self._records:
                    built.setdefault(value_for_key_path(record, property), []).append(record)
                value_map = built
            except TypeError:
                logger.debug("plist_table_property_unhashable", table=self.name, property=property)
                value_map = _UNHASHABLE
            self._value_maps[property] = value_map
            return value_map

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_statistics(self) -> Dict[str, Any]:
        """Table state and index cache statistics."""
        return {
            "table": self.name,
            "loaded": self._loaded,
            "rows": len(self._records),
            "indexes": self.index_names,
            "relationships": self.relationship_names,
            "index_cache": self.index_cache.get_statistics(),
        }

    def __len__(self) -> int:
        self.load()
        return len(self._records)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.find_all())

    def __contains__(self, key: Any) -> bool:
        return self.find_by_primary_key(key) is not None

    def __repr__(self) -> str:
        state = f"{len(self._records)} rows" if self._loaded else "not loaded"
        return f"<PlistTable {self.name!r} key={self.primary_key!r} {state}>"
