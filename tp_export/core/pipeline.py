"""Three-phase export pipeline: transform, validate, export."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from tp_export.adapters.base import ExportAdapter
from tp_export.core.errors import log_error_with_auth_downgrade
from tp_export.core.models import ExportResult

logger = logging.getLogger(__name__)


class ExportCancelled(RuntimeError):
    """Raised when a cancellation token fires between phases."""


class ExportPhase(str, Enum):
    TRANSFORM = "transform"
    VALIDATE = "validate"
    EXPORT = "export"


@dataclass(frozen=True)
class ExportProgress:
    phase: ExportPhase
    message: str


ProgressCallback = Callable[[ExportProgress], None]


class CancellationToken:
    """Cooperative cancellation checked at phase boundaries."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExportCancelled("Export cancelled")


class ExportPipeline:
    """Run one adapter through transform, validate and export.

    Never raises: every failure is folded into the returned ExportResult.
    A pipeline instance runs at most one export at a time.
    """

    def __init__(self, adapter: ExportAdapter, progress: Optional[ProgressCallback] = None) -> None:
        self.adapter = adapter
        self.progress = progress
        self._lock = threading.Lock()

    def _report(self, phase: ExportPhase, message: str) -> None:
        logger.debug("[%s] %s: %s", self.adapter.id, phase.value, message)
        if self.progress is not None:
            self.progress(ExportProgress(phase=phase, message=message))

    def _failed(self, config: Any, errors: List[str], warnings: Optional[list] = None) -> ExportResult:
        return ExportResult(
            success=False,
            file_name=self.adapter.default_file_name(config),
            format=self.adapter.format,
            items_exported=0,
            warnings=list(warnings or []),
            errors=errors,
        )

    def run(
        self,
        items: List[Any],
        config: Any,
        cancel_token: Optional[CancellationToken] = None,
        dry_run: bool = False,
    ) -> ExportResult:
        if not self._lock.acquire(blocking=False):
            return self._failed(config, ["Export already in progress"])
        try:
            return self._run(items, config, cancel_token, dry_run)
        finally:
            self._lock.release()

    def _run(
        self,
        items: List[Any],
        config: Any,
        cancel_token: Optional[CancellationToken],
        dry_run: bool,
    ) -> ExportResult:
        token = cancel_token or CancellationToken()
        try:
            token.raise_if_cancelled()
            self._report(ExportPhase.TRANSFORM, f"Transforming {len(items)} item(s) for {self.adapter.name}")
            output = self.adapter.transform(items, config)

            token.raise_if_cancelled()
            self._report(ExportPhase.VALIDATE, f"Validating {len(output.items)} item(s)")
            validation = self.adapter.validate(output)
            warnings = list(output.warnings) + list(validation.warnings)

            if not validation.is_valid:
                logger.warning(
                    "Validation failed for %s: %s",
                    self.adapter.name,
                    "; ".join(message.message for message in validation.errors),
                )
                return self._failed(config, [message.message for message in validation.errors], warnings)

            if dry_run:
                return ExportResult(
                    success=True,
                    file_name=self.adapter.default_file_name(config),
                    format=self.adapter.format,
                    items_exported=0,
                    warnings=warnings,
                    payload=self.adapter.preview(output),
                )

            token.raise_if_cancelled()
            self._report(ExportPhase.EXPORT, f"Exporting {len(output.items)} item(s) to {self.adapter.name}")
            result = self.adapter.export(output, config)
            result.warnings = warnings + list(result.warnings)
            if not result.success:
                result.items_exported = 0
            logger.info(
                "Export to %s finished: success=%s items=%d",
                self.adapter.name,
                result.success,
                result.items_exported,
            )
            return result
        except ExportCancelled as exc:
            logger.info("Export to %s cancelled", self.adapter.name)
            return self._failed(config, [str(exc)])
        except Exception as exc:
            log_error_with_auth_downgrade(logger, f"Export to {self.adapter.name} failed:", exc)
            return self._failed(config, [str(exc) or exc.__class__.__name__])
