"""
Image Stager

Uploads a local folder of images after fitting each one to the target size.
Images are staged in a scratch directory that is removed once every upload
has been attempted.
"""

from pathlib import Path
from typing import List, Optional, Tuple

from mediaflow.core.config import settings
from mediaflow.core.logger import logger
from mediaflow.core.scratch import ScratchArea, file_destination
from mediaflow.schemas.batch_models import AnalysisResult, BatchRecord, ObjectRef
from mediaflow.services.batch_pipeline import RemoteObjectStore
from mediaflow.services.image_tools import normalize_image
from mediaflow.utils.log_record import log_batch_record

STAGING = "staging"


class ImageStager:

    def __init__(
        self,
        source_store: RemoteObjectStore,
        target_store: RemoteObjectStore,
        scratch: Optional[ScratchArea] = None,
        size: Optional[Tuple[int, int]] = None
    ):
        self.source_store = source_store
        self.target_store = target_store
        self.scratch = scratch or ScratchArea({STAGING: Path(settings.STAGING_DIR)})
        self.size = size

    def run(self, source_dir: str, container: str, prefix: str = "", replace_existing: bool = False) -> List[BatchRecord]:
        """
        Normalize every image under `source_dir` and upload it to
        `container` under `prefix`, keeping the relative layout.

        Returns one record per image; failed images carry an error and no
        uploaded_ref.
        """
        refs = self.source_store.list(source_dir)
        self.scratch.create(replace_existing=replace_existing)
        staging_dir = self.scratch.path(STAGING)

        records = []
        try:
            for ref in refs:
                relative = ref.relative_key(source_dir)
                staged = file_destination(staging_dir, relative)
                target = ObjectRef(container=container, key=f"{prefix}{relative}")
                try:
                    self.source_store.download(ref, staged)
                    normalize_image(staged, staged, self.size)
                    self.target_store.upload(staged, target)
                except Exception as e:
                    logger.error(f"Staging upload failed for {ref}: {e}")
                    record = BatchRecord.absent(ref, error=f"staging upload failed: {e}")
                else:
                    record = BatchRecord(object_ref=ref, result=AnalysisResult(), uploaded_ref=target)
                records.append(log_batch_record(record))
        finally:
            self.scratch.release_all()

        uploaded = sum(1 for r in records if r.uploaded_ref is not None)
        logger.info(f"Uploaded {uploaded}/{len(records)} images to s3://{container}/{prefix}")
        return records
