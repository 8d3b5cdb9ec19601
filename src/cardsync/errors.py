"""
Error taxonomy for sync runs.

Every stage failure is raised as a ``SyncError`` subclass tagged with the
stage it originated in, so callers can report ``{stage, detail}`` without
inspecting driver exceptions.
"""

from typing import Any

from .models import SyncStage


class SyncError(Exception):
    """Base exception for sync run failures."""

    stage: SyncStage = SyncStage.FAILED

    def __init__(
        self,
        detail: str,
        *,
        stage: SyncStage | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(detail)
        self.detail = detail
        if stage is not None:
            self.stage = stage
        self.cause = cause

    @property
    def error_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "error_type": self.error_type,
            "detail": self.detail,
        }

    def __str__(self) -> str:
        return f"[{self.stage.value}] {self.detail}"


class SourceUnavailable(SyncError):
    """Source connection or ping failed."""

    stage = SyncStage.READING


class SourceQueryFailed(SyncError):
    """Extraction query failed or the driver failed while fetching."""

    stage = SyncStage.READING


class RowDecodeFailed(SyncError):
    """A source row could not be decoded into a record."""

    stage = SyncStage.READING

    def __init__(
        self,
        detail: str,
        *,
        row_index: int,
        staff_id: Any = None,
        card_identifier: Any = None,
        cause: BaseException | None = None,
    ):
        super().__init__(detail, cause=cause)
        self.row_index = row_index
        self.staff_id = staff_id
        self.card_identifier = card_identifier

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            row_index=self.row_index,
            staff_id=self.staff_id,
            card_identifier=self.card_identifier,
        )
        return data


class EmptyExtraction(SyncError):
    """Source returned no rows; treated as an error, never as a wipe."""

    stage = SyncStage.READING


class DestinationUnavailable(SyncError):
    """Destination connection could not be opened."""

    stage = SyncStage.RECONCILING


class SyncInProgress(SyncError):
    """Another sync run currently holds the run lock."""

    stage = SyncStage.IDLE


class SchemaInspectionFailed(SyncError):
    stage = SyncStage.RECONCILING


class SchemaMigrationFailed(SyncError):
    stage = SyncStage.RECONCILING


class TransactionStartFailed(SyncError):
    stage = SyncStage.LOADING


class WriteFailed(SyncError):
    """Delete or insert failed inside the load transaction."""

    stage = SyncStage.LOADING

    def __init__(
        self,
        detail: str,
        *,
        row_index: int | None = None,
        staff_id: int | None = None,
        card_identifier: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(detail, cause=cause)
        self.row_index = row_index
        self.staff_id = staff_id
        self.card_identifier = card_identifier

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.row_index is not None:
            data.update(
                row_index=self.row_index,
                staff_id=self.staff_id,
                card_identifier=self.card_identifier,
            )
        return data


class CommitFailed(SyncError):
    """Commit raised after every insert succeeded; the transaction was rolled back."""

    stage = SyncStage.LOADING


class ConfigurationError(ValueError):
    """Raised when configuration values are missing or malformed."""

    pass


class CardNotFound(LookupError):
    """Raised by the read side when no record matches a card identifier."""

    def __init__(self, card_identifier: str):
        super().__init__(f"Card not found: {card_identifier}")
        self.card_identifier = card_identifier


class ReadFailed(RuntimeError):
    """Raised by the read side when a destination query fails."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause
