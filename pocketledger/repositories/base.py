"""
Repository Base

A repository owns the in-memory collection of ONE entity family. It is the
only path through which records change:

    caller -> Repository.add/update/remove
                  -> validate (pydantic + references + family rules)
                  -> mutate memory
                  -> persist the whole family blob
                  -> publish a ChangeEvent

DESIGN DECISIONS:
1. Memory is the source of truth for the session. If the store write fails
   the change stands, observers still hear about it (persisted=False) and
   PersistenceFailedError reaches the caller.
2. Records handed out are copies. Editing one changes nothing; use update().
3. Cross-family references are declared with `link()`. Removing an owner
   settles its dependents (cascade or null out) BEFORE the owner disappears.
"""

from enum import Enum
from typing import (
    Any,
    Callable,
    ClassVar,
    Generic,
    Iterable,
    Iterator,
    Optional,
    TypeVar,
)
from uuid import UUID

import structlog
from pydantic import ValidationError

from pocketledger.codec.records import RecordCodec
from pocketledger.events.notifier import ChangeNotifier
from pocketledger.models.base import (
    IdFactory,
    Record,
    ValidationIssue,
    default_id_factory,
)
from pocketledger.models.events import ChangeEvent, ChangeKind
from pocketledger.services.storage.interface import (
    BlobStoreInterface,
    DecodeFailedError,
    DuplicateIdentifierError,
    NotFoundError,
    NotificationFailedError,
    PersistenceFailedError,
    StorageError,
    ValidationFailedError,
)


RecordT = TypeVar("RecordT", bound=Record)

Predicate = Callable[[Any], bool]
Mutator = Callable[[Any], Optional[Any]]


def issues_from_error(error: ValidationError) -> list[ValidationIssue]:
    """Flatten a pydantic ValidationError into ValidationIssues."""
    issues = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "__root__"
        issues.append(ValidationIssue(
            field=location,
            issue_type=detail.get("type", "invalid_value"),
            message=detail.get("msg", "Invalid value"),
            value=None if detail.get("input") is None else str(detail.get("input"))[:200],
        ))
    return issues


# =============================================================================
# QUERIES
# =============================================================================

class RecordQuery(Generic[RecordT]):
    """
    Lazy, restartable view over a repository.

    Nothing is evaluated until iteration, and every iteration re-reads the
    current collection. Results are never cached.
    """

    def __init__(
        self,
        source: Callable[[], Iterable[RecordT]],
        predicate: Optional[Predicate] = None,
    ):
        self._source = source
        self._predicate = predicate

    def __iter__(self) -> Iterator[RecordT]:
        for record in self._source():
            if self._predicate is None or self._predicate(record):
                yield record.model_copy(deep=True)

    def filter(self, predicate: Predicate) -> "RecordQuery[RecordT]":
        """Narrow the query further."""
        if self._predicate is None:
            return RecordQuery(self._source, predicate)
        outer = self._predicate
        return RecordQuery(self._source, lambda r: outer(r) and predicate(r))

    def all(self) -> list[RecordT]:
        return list(self)

    def first(self) -> Optional[RecordT]:
        return next(iter(self), None)

    def count(self) -> int:
        return sum(
            1 for r in self._source()
            if self._predicate is None or self._predicate(r)
        )

    def exists(self) -> bool:
        return self.first() is not None


# =============================================================================
# REFERENCES
# =============================================================================

class OnDelete(str, Enum):
    """What happens to dependents when the record they reference is removed."""
    CASCADE = "cascade"  # Remove the dependents too
    NULLIFY = "nullify"  # Clear the reference (or drop the id from a list)


class ReferenceLink:
    """
    `dependent.<field>` refers to records held by `owner`.

    The field may hold a single id (possibly None) or a list of ids.
    """

    def __init__(
        self,
        owner: "Repository",
        dependent: "Repository",
        field: str,
        on_delete: OnDelete,
    ):
        self.owner = owner
        self.dependent = dependent
        self.field = field
        self.on_delete = on_delete

    def referenced_ids(self, record: Record) -> list[UUID]:
        value = getattr(record, self.field)
        if value is None:
            return []
        if isinstance(value, (list, tuple, set, frozenset)):
            return list(value)
        return [value]

    def references_any(self, record: Record, ids: set[UUID]) -> bool:
        return any(ref in ids for ref in self.referenced_ids(record))

    def settle(self, removed_ids: set[UUID]) -> None:
        """Apply the delete policy to every dependent of the removed owners."""
        affected = [
            record.id for record in self.dependent._scan()
            if self.references_any(record, removed_ids)
        ]
        if not affected:
            return
        if self.on_delete == OnDelete.CASCADE:
            self.dependent._remove_many(affected)
        else:
            self.dependent._detach(affected, self.field, removed_ids)


def link(
    owner: "Repository",
    dependent: "Repository",
    field: str,
    on_delete: OnDelete,
) -> ReferenceLink:
    """
    Declare that `dependent.<field>` references records in `owner`.

    NULLIFY is only valid on Optional or list fields.

    Raises:
        ValueError: If the field is missing, or NULLIFY targets a
                    required field
    """
    model_fields = dependent.record_type.model_fields
    if field not in model_fields:
        raise ValueError(
            f"{dependent.record_type.__name__} has no field '{field}'"
        )
    if on_delete == OnDelete.NULLIFY and model_fields[field].is_required():
        raise ValueError(
            f"{dependent.record_type.__name__}.{field} is required; "
            "use OnDelete.CASCADE"
        )
    reference = ReferenceLink(owner, dependent, field, on_delete)
    owner._dependents.append(reference)
    dependent._references.append(reference)
    return reference


# =============================================================================
# REPOSITORY
# =============================================================================

class Repository(Generic[RecordT]):
    """
    In-memory owner of one entity family, with persistence and notification.

    Subclasses set `family` (the store key) and `record_type`, and may
    override `_validate` for family-specific rules.
    """

    family: ClassVar[str]
    record_type: ClassVar[type[Record]]

    def __init__(
        self,
        store: BlobStoreInterface,
        notifier: ChangeNotifier,
        id_factory: IdFactory = default_id_factory,
    ):
        self._store = store
        self._notifier = notifier
        self._id_factory = id_factory
        self._codec: RecordCodec = RecordCodec(self.record_type)
        self._records: dict[UUID, RecordT] = {}
        self._version = 0
        self._references: list[ReferenceLink] = []
        self._dependents: list[ReferenceLink] = []
        self._logger = structlog.get_logger(__name__).bind(family=self.family)

        self.load_error: Optional[DecodeFailedError] = None
        self.loaded_from_store = False
        self._load()

    # -------------------------------------------------------------------------
    # Loading & persistence
    # -------------------------------------------------------------------------

    def _load(self) -> None:
        data = self._store.get(self.family)
        if data is None:
            return

        try:
            records = self._codec.decode_many(data)
            ids = [record.id for record in records]
            if len(set(ids)) != len(ids):
                raise DecodeFailedError(
                    f"Duplicate identifiers in stored {self.family}"
                )
        except DecodeFailedError as e:
            # One corrupt family must not take the others down with it
            self._logger.error("family_decode_failed", error=str(e))
            self.load_error = e
            return

        self._records = {record.id: record for record in records}
        self.loaded_from_store = True
        self._logger.debug("family_loaded", count=len(self._records))

    def _persist(self) -> None:
        data = self._codec.encode_many(self._records.values())
        self._store.put(self.family, data)

    def _commit(self, kind: ChangeKind, ids: list[UUID]) -> None:
        """Persist, then notify. Memory has already changed."""
        self._version += 1

        failure: Optional[PersistenceFailedError] = None
        try:
            self._persist()
        except PersistenceFailedError as e:
            self._logger.error(
                "family_persist_failed",
                kind=kind.value,
                version=self._version,
                error=str(e),
            )
            failure = e

        event = ChangeEvent(
            family=self.family,
            kind=kind,
            ids=tuple(ids),
            version=self._version,
            persisted=failure is None,
        )
        self._logger.debug(
            f"record_{kind.value}",
            ids=[str(i) for i in ids],
            version=self._version,
            persisted=event.persisted,
        )

        try:
            self._notifier.publish(event)
        except NotificationFailedError as notify_error:
            if failure is not None:
                raise failure from notify_error
            raise
        if failure is not None:
            raise failure

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @property
    def version(self) -> int:
        """Bumped on every committed mutation."""
        return self._version

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __iter__(self) -> Iterator[RecordT]:
        return iter(self.query())

    def _scan(self) -> list[RecordT]:
        # Snapshot of the live records, for internal folds only
        return list(self._records.values())

    def get(self, record_id: UUID) -> RecordT:
        """
        Raises:
            NotFoundError: If no record has this id
        """
        record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(f"No {self.family} record with id {record_id}")
        return record.model_copy(deep=True)

    def find(self, record_id: Optional[UUID]) -> Optional[RecordT]:
        """Like get(), but returns None when absent."""
        if record_id is None or record_id not in self._records:
            return None
        return self.get(record_id)

    def query(self, predicate: Optional[Predicate] = None) -> RecordQuery[RecordT]:
        """Lazy view of the records matching predicate (all if None)."""
        return RecordQuery(self._scan, predicate)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _validate(self, record: RecordT) -> list[ValidationIssue]:
        """Family-specific rules. Override in subclasses."""
        return []

    def _check(self, record: RecordT) -> None:
        issues = []
        for reference in self._references:
            for ref_id in reference.referenced_ids(record):
                if ref_id not in reference.owner:
                    issues.append(ValidationIssue(
                        field=reference.field,
                        issue_type="dangling_reference",
                        message=f"No {reference.owner.family} record with id {ref_id}",
                        value=str(ref_id),
                    ))
        issues.extend(self._validate(record))

        if issues:
            raise ValidationFailedError(
                f"Invalid {self.record_type.__name__}: "
                + "; ".join(issue.message for issue in issues),
                issues=issues,
            )

    def _revalidate(self, record: Any) -> RecordT:
        if not isinstance(record, self.record_type):
            raise ValidationFailedError(
                f"Expected {self.record_type.__name__}, got {type(record).__name__}"
            )
        try:
            # Field values straight through, not a dump: a dump would
            # re-encode values such as colors
            return type(record).model_validate(dict(record))
        except ValidationError as e:
            raise ValidationFailedError(
                f"Invalid {self.record_type.__name__}",
                issues=issues_from_error(e),
            ) from e

    def _owner_for(self, field: str) -> Optional["Repository"]:
        for reference in self._references:
            if reference.field == field:
                return reference.owner
        return None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add(self, record: RecordT) -> RecordT:
        """
        Add a record built by the caller.

        Raises:
            DuplicateIdentifierError: If a record with the same id exists
            ValidationFailedError: If the record or its references are invalid
            PersistenceFailedError: If the store write failed (record is kept)
        """
        self._notifier.ensure_idle()
        stored = self._revalidate(record)
        if stored.id in self._records:
            raise DuplicateIdentifierError(
                f"{self.family} already has a record with id {stored.id}"
            )
        self._check(stored)

        with self._notifier.mutation():
            self._records[stored.id] = stored
            self._commit(ChangeKind.ADDED, [stored.id])
        return stored.model_copy(deep=True)

    def create(self, **fields: Any) -> RecordT:
        """Build a record with a fresh id from the id factory, then add it."""
        fields.pop("id", None)
        try:
            record = self.record_type(id=self._id_factory(), **fields)
        except ValidationError as e:
            raise ValidationFailedError(
                f"Invalid {self.record_type.__name__}",
                issues=issues_from_error(e),
            ) from e
        return self.add(record)

    def update(self, record_id: UUID, mutator: Mutator) -> RecordT:
        """
        Change a record through a mutator.

        The mutator receives a deep copy. It may edit it in place (return
        None) or return a replacement. The result is fully re-validated.

        Raises:
            NotFoundError: If no record has this id
            ValidationFailedError: If the result is invalid or its id changed
            PersistenceFailedError: If the store write failed (change is kept)
        """
        self._notifier.ensure_idle()
        current = self._records.get(record_id)
        if current is None:
            raise NotFoundError(f"No {self.family} record with id {record_id}")

        updated = self._apply(current, mutator)
        with self._notifier.mutation():
            self._records[record_id] = updated
            self._commit(ChangeKind.UPDATED, [record_id])
        return updated.model_copy(deep=True)

    def _apply(self, current: RecordT, mutator: Mutator) -> RecordT:
        candidate = current.model_copy(deep=True)
        try:
            result = mutator(candidate)
        except ValidationError as e:
            # validate_assignment rejected a field write inside the mutator
            raise ValidationFailedError(
                f"Invalid {self.record_type.__name__}",
                issues=issues_from_error(e),
            ) from e
        if result is None:
            result = candidate

        updated = self._revalidate(result)
        if updated.id != current.id:
            raise ValidationFailedError(
                "Record identity cannot change",
                issues=[ValidationIssue(
                    field="id",
                    issue_type="identity_changed",
                    message="Record identity cannot change",
                    value=str(updated.id),
                )],
            )
        updated = self._prepare_update(current, updated)
        self._check(updated)
        return updated

    def _prepare_update(self, current: RecordT, updated: RecordT) -> RecordT:
        """Hook for fields the repository maintains itself."""
        return updated

    def remove(self, record_id: UUID) -> RecordT:
        """
        Remove a record, settling its dependents first.

        Returns:
            The removed record

        Raises:
            NotFoundError: If no record has this id
            PersistenceFailedError: If a store write failed (removal is kept)
        """
        self._notifier.ensure_idle()
        record = self._records.get(record_id)
        if record is None:
            raise NotFoundError(f"No {self.family} record with id {record_id}")
        with self._notifier.mutation():
            self._remove_many([record_id])
        return record

    def _remove_many(self, ids: list[UUID]) -> None:
        removed_ids = set(ids)

        failure: Optional[StorageError] = None
        for reference in self._dependents:
            try:
                reference.settle(removed_ids)
            except (PersistenceFailedError, NotificationFailedError) as e:
                # Memory is already settled; finish the removal, report afterwards
                failure = failure or e

        removed = [self._records.pop(record_id) for record_id in ids]
        self._on_removed(removed)
        try:
            self._commit(ChangeKind.REMOVED, ids)
        except (PersistenceFailedError, NotificationFailedError) as e:
            failure = failure or e
        if failure is not None:
            raise failure

    def _on_removed(self, records: list[RecordT]) -> None:
        """Hook for cleaning up resources owned by removed records."""

    def _detach(self, ids: list[UUID], field: str, removed_ids: set[UUID]) -> None:
        """Clear references to removed owners from the given records."""
        for record_id in ids:
            candidate = self._records[record_id].model_copy(deep=True)
            value = getattr(candidate, field)
            if isinstance(value, list):
                setattr(candidate, field, [v for v in value if v not in removed_ids])
            else:
                setattr(candidate, field, None)
            self._records[record_id] = self._revalidate(candidate)
        self._commit(ChangeKind.UPDATED, ids)
