"""Upload orchestrator — validate, store, record, analyze.

Drives a design through its status machine:

    pending --(analysis started)--> analyzing --(result saved)--> completed
                                    analyzing --(any error)-----> failed

`completed` and `failed` are terminal; a new attempt means a new upload.
A blob whose design row could not be inserted is left in storage.
"""

from __future__ import annotations

import uuid

import structlog

from furnicraft.analysis.analyzers import Analyzer
from furnicraft.analysis.validation import ImageUpload, validate_image, validate_title
from furnicraft.errors import DesignNotFoundError, DesignStateError, FurniCraftError
from furnicraft.models.contracts import AnalysisPayload, Design, priority_rank
from furnicraft.store.base import DesignStore
from furnicraft.utils.storage import ImageStorage

logger = structlog.get_logger()

STORAGE_PREFIX = "designs"


class UploadOrchestrator:
    def __init__(
        self,
        store: DesignStore,
        storage: ImageStorage,
        analyzer: Analyzer,
        *,
        max_upload_bytes: int,
    ) -> None:
        self.store = store
        self.storage = storage
        self.analyzer = analyzer
        self.max_upload_bytes = max_upload_bytes

    def validate(
        self,
        data: bytes,
        content_type: str | None,
        filename: str | None,
        title: str | None,
    ) -> tuple[str, ImageUpload]:
        clean_title = validate_title(title)
        image = validate_image(data, content_type, filename, max_bytes=self.max_upload_bytes)
        return clean_title, image

    async def upload(
        self,
        data: bytes,
        *,
        filename: str | None,
        content_type: str | None,
        title: str | None,
        description: str | None = None,
    ) -> tuple[Design, ImageUpload]:
        """Store the image and create a pending design.

        Raises ValidationError, UploadError or DatabaseError.
        """
        clean_title, image = self.validate(data, content_type, filename, title)
        description = description.strip() if description and description.strip() else None

        path = f"{STORAGE_PREFIX}/{uuid.uuid4()}.{image.extension}"
        image_url = await self.storage.upload(path, image.data, image.content_type)

        try:
            design = await self.store.create_design(
                title=clean_title,
                description=description,
                image_url=image_url,
                original_filename=image.filename,
            )
        except FurniCraftError:
            logger.error("design_insert_failed_blob_orphaned", path=path)
            raise

        logger.info(
            "design_uploaded",
            design_id=design.id,
            path=path,
            size=len(image.data),
            width=image.width,
            height=image.height,
        )
        return design, image

    async def analyze(self, design: Design, image: ImageUpload) -> AnalysisPayload:
        """Run analysis for a pending design and persist the result.

        The stored status decides, not the `design` snapshot: a design that
        is no longer pending raises DesignStateError and is left untouched.
        Any later failure marks the design `failed` and is re-raised.
        """
        log = logger.bind(design_id=design.id, analyzer=self.analyzer.name)
        try:
            design = await self.store.start_analysis(design.id)
            log.info("analysis_started")
            normalized = await self.analyzer.analyze(design, image)
            result, materials = await self.store.save_analysis(design.id, normalized)
            await self.store.set_status(design.id, "completed")
        except (DesignStateError, DesignNotFoundError):
            raise
        except Exception as exc:
            log.error(
                "analysis_failed",
                error_type=type(exc).__name__,
                error=str(exc)[:500],
            )
            await self._mark_failed(design.id)
            raise

        log.info(
            "analysis_completed",
            analysis_id=result.id,
            material_count=len(materials),
            source=normalized.source,
        )
        materials.sort(key=lambda m: priority_rank(m.priority))
        return AnalysisPayload(analysis=result, materials=materials)

    async def _mark_failed(self, design_id: str) -> None:
        try:
            await self.store.set_status(design_id, "failed")
        except FurniCraftError:
            # The original error is what the caller needs to see
            logger.exception("design_mark_failed_error", design_id=design_id)

    async def submit(
        self,
        data: bytes,
        *,
        filename: str | None,
        content_type: str | None,
        title: str | None,
        description: str | None = None,
    ) -> AnalysisPayload:
        """Upload then analyze in one call."""
        design, image = await self.upload(
            data,
            filename=filename,
            content_type=content_type,
            title=title,
            description=description,
        )
        return await self.analyze(design, image)

    async def analyze_in_background(self, design: Design, image: ImageUpload) -> None:
        """Deferred trigger: errors are already recorded as a failed design."""
        try:
            await self.analyze(design, image)
        except FurniCraftError as exc:
            logger.warning("background_analysis_failed", design_id=design.id, error_code=exc.code)
        except Exception:
            logger.exception("background_analysis_crashed", design_id=design.id)
