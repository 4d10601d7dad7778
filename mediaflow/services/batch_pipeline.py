"""
Batch Pipeline

Enumerates the objects under a prefix, downloads each into a scratch area,
runs single-shot analysis on it, transforms the object once per result and
optionally compresses and re-uploads the transformed artifacts.

One object failing to download, analyze or transform never aborts the batch:
it becomes an absence record (or a record without an artifact) and the loop
moves on. Listing failures, directory conflicts and I/O errors on required
directories abort the run.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence, Set

from mediaflow.core.config import settings
from mediaflow.core.errors import RemoteCallError
from mediaflow.core.logger import logger
from mediaflow.core.scratch import ScratchArea, file_destination
from mediaflow.schemas.batch_models import AnalysisResult, BatchRecord, ObjectRef
from mediaflow.utils.log_record import log_batch_record

DOWNLOADS = "downloads"
ARTIFACTS = "artifacts"


# ============================================================================
# INTERFACES (PROTOCOLS)
# ============================================================================

class RemoteObjectStore(Protocol):
    """Interface for the object storage the batch reads from and writes to."""

    def list(self, prefix: str) -> List[ObjectRef]:
        """Enumerate the objects under `prefix`, in a stable order."""
        ...

    def download(self, ref: ObjectRef, destination: Path) -> Path:
        """Copy `ref` to `destination` and return the local path."""
        ...

    def upload(self, local_path: Path, ref: ObjectRef) -> None:
        """Store `local_path` at `ref`."""
        ...


class RemoteAnalysisService(Protocol):
    """Interface for single-shot analysis (one call, immediate results)."""

    def analyze(self, ref: ObjectRef) -> List[AnalysisResult]:
        """Return zero or more detections for the object."""
        ...


class Compressor(Protocol):
    """Interface for in-place compression of a directory of artifacts."""

    def compress(self, directory: Path) -> None:
        ...


class ArtifactTransform(Protocol):
    """
    Produces a transformed artifact from a downloaded object and one result.

    `required_attributes` lists the attributes that must be present in the
    result for the transform to run; plain callables without it require none.
    """

    required_attributes: Sequence[str]

    def __call__(self, source: Path, result: AnalysisResult, destination: Path) -> Path:
        ...


# ============================================================================
# MAIN SERVICE
# ============================================================================

class BatchPipeline:
    """
    Runs download -> analyze -> transform over every object under a prefix.

    Records come back in enumeration order whatever `max_workers` is. Each
    object writes only below its own key-derived path in the scratch area,
    and every file path is handed out once per run.

    The artifact stage is optional: a scratch area with only a downloads
    stage supports analysis-only runs (`transform=None`).
    """

    def __init__(
        self,
        object_store: RemoteObjectStore,
        analysis_service: RemoteAnalysisService,
        scratch: Optional[ScratchArea] = None,
        compressor: Optional[Compressor] = None,
        upload_prefix: Optional[str] = None,
        upload_container: Optional[str] = None,
        max_workers: Optional[int] = None
    ):
        """Initialize with dependency injection."""
        self.object_store = object_store
        self.analysis_service = analysis_service
        self.scratch = scratch or ScratchArea({
            DOWNLOADS: Path(settings.DOWNLOAD_DIR),
            ARTIFACTS: Path(settings.ARTIFACT_DIR),
        })
        self.compressor = compressor
        self.upload_prefix = upload_prefix
        self.upload_container = upload_container
        self.max_workers = max_workers or settings.BATCH_MAX_WORKERS
        self._reserved: Set[Path] = set()
        self._reserve_lock = threading.Lock()

        if DOWNLOADS not in self.scratch.stages:
            raise ValueError(f"ScratchArea is missing the '{DOWNLOADS}' stage")

    @property
    def artifact_dir(self) -> Optional[Path]:
        return self.scratch.stages.get(ARTIFACTS)

    def run(
        self,
        object_prefix: str,
        transform: Optional[Callable[[Path, AnalysisResult, Path], Path]] = None,
        replace_existing: bool = False
    ) -> List[BatchRecord]:
        """
        Process every object under `object_prefix`.

        Returns one record per (object, result) pair, or one absence record
        per object without a usable result. On success the download stage is
        deleted and the artifact stage is kept for inspection.

        Raises:
            ValueError: `transform` is given but the scratch area has no
                artifact stage.
            ScratchConflictError: a scratch directory already exists.
            RemoteCallError: the objects could not be listed.
        """
        if transform is not None and self.artifact_dir is None:
            raise ValueError(f"A transform needs the '{ARTIFACTS}' scratch stage")

        start_time = time.time()
        self.scratch.create(replace_existing=replace_existing)
        self._reserved.clear()

        try:
            refs = list(self.object_store.list(object_prefix))
        except Exception as e:
            # Nothing was produced yet, so the fresh directories go too
            self.scratch.release_all()
            logger.error(f"Failed to list objects under '{object_prefix}': {e}")
            raise RemoteCallError(f"Failed to list objects under '{object_prefix}': {e}", operation="list") from e

        logger.info(f"Batch started: {len(refs)} objects under '{object_prefix}' (workers={self.max_workers})")

        per_object = self._process_all(refs, object_prefix, transform)
        records = [record for group in per_object for record in group]

        if self.compressor is not None and any(r.artifact_path for r in records):
            self.compressor.compress(self.artifact_dir)

        if self.upload_prefix is not None:
            records = [self._upload(record) for record in records]

        self.scratch.release(DOWNLOADS)

        absent = sum(1 for r in records if r.is_absent)
        logger.info(
            f"Batch completed in {time.time() - start_time:.2f}s: "
            f"objects={len(refs)}, records={len(records)}, absent={absent}"
        )
        return records

    def _process_all(self, refs, object_prefix, transform) -> List[List[BatchRecord]]:
        if self.max_workers <= 1 or len(refs) <= 1:
            return [self._process_object(ref, object_prefix, transform) for ref in refs]

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="batch") as executor:
            futures = [
                executor.submit(self._process_object, ref, object_prefix, transform)
                for ref in refs
            ]
            # Collected in submission order, not completion order
            return [future.result() for future in futures]

    def _process_object(self, ref: ObjectRef, object_prefix: str, transform) -> List[BatchRecord]:
        relative = ref.relative_key(object_prefix)
        download_path = self._reserve(self.scratch.path(DOWNLOADS), relative)

        try:
            local_path = self.object_store.download(ref, download_path)
        except Exception as e:
            logger.error(f"Download failed for {ref}: {e}")
            return [self._emit(BatchRecord.absent(ref, error=f"download failed: {e}"))]

        try:
            results = list(self.analysis_service.analyze(ref))
        except Exception as e:
            logger.error(f"Analysis failed for {ref}: {e}")
            return [self._emit(BatchRecord.absent(ref, error=f"analysis failed: {e}"))]

        if not results:
            logger.info(f"No results for {ref}")
            return [self._emit(BatchRecord.absent(ref))]

        required = tuple(getattr(transform, "required_attributes", ()))
        records = []
        for index, result in enumerate(results):
            artifact_path = None
            error = None
            if transform is None:
                logger.debug(f"No transform for {ref} result {index}")
            elif not result.has_attributes(required):
                missing = [name for name in required if name not in result.attributes]
                logger.info(f"Skipping transform for {ref} result {index}: missing {missing}")
            else:
                destination = self._reserve(self.artifact_dir, relative, index)
                try:
                    artifact_path = transform(Path(local_path), result, destination)
                except Exception as e:
                    logger.error(f"Transform failed for {ref} result {index}: {e}")
                    error = f"transform failed: {e}"
            records.append(self._emit(BatchRecord(
                object_ref=ref,
                result=result,
                artifact_path=artifact_path,
                error=error
            )))
        return records

    def _upload(self, record: BatchRecord) -> BatchRecord:
        if record.artifact_path is None:
            return record

        container = self.upload_container or record.object_ref.container
        if not container:
            return record.model_copy(update={"error": "upload skipped: no target container"})

        artifact = Path(record.artifact_path)
        if not artifact.exists():
            return record.model_copy(update={"error": f"upload skipped: {artifact} no longer exists"})

        try:
            relative = artifact.relative_to(self.artifact_dir).as_posix()
        except ValueError:
            relative = artifact.name
        key = f"{self.upload_prefix}{relative}"
        target = ObjectRef(container=container, key=key)
        try:
            self.object_store.upload(artifact, target)
        except Exception as e:
            logger.error(f"Upload failed for {artifact} -> {target}: {e}")
            return record.model_copy(update={"error": f"upload failed: {e}"})

        logger.info(f"Uploaded {artifact} -> {target}")
        return record.model_copy(update={"uploaded_ref": target})

    def _reserve(self, directory: Path, relative: str, index: int = 0) -> Path:
        """
        Hand out a path under `directory` that no other object or result of
        this run has received. `a.jpg` result 1 and the key `a_1.jpg` would
        both map to `a_1.jpg`; the later request moves on to the next free
        suffix.
        """
        with self._reserve_lock:
            suffix = index
            while True:
                candidate = file_destination(directory, relative, suffix)
                if candidate not in self._reserved and not candidate.exists():
                    self._reserved.add(candidate)
                    return candidate
                suffix += 1

    @staticmethod
    def _emit(record: BatchRecord) -> BatchRecord:
        log_batch_record(record)
        return record
