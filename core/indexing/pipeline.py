# Path: core/indexing/pipeline.py
# Purpose: Ingest a directory of images into the blob store and the vector index.
# Layer: core/indexing.
# Details: Chains hash/check, batch-embed, and index/upload stages over bounded worker pools.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple, Union

from PIL import Image
from tqdm import tqdm

from config.settings import PipelineSettings
from core.blob_store.base import BlobStore
from core.embedders.base import Embedder
from core.errors import BatchError, ConfigurationError, ItemFailure, PipelineError
from core.hashing import hash_file, stored_object_key
from core.models.domain import EmbeddedImage, HashedImage, IndexedPoint, IngestReport
from core.pipeline.workers import StagePool, batched
from core.vector_store.base import VectorStore, ensure_collection
from .scanner import ImageScanner

logger = logging.getLogger(__name__)

Item = Union[Path, HashedImage, EmbeddedImage]


@dataclass
class _IndexOutcome:
    """Result of indexing one batch; upload failures are attributed per item."""

    indexed: int = 0
    uploaded: int = 0
    upload_failures: List[Tuple[HashedImage, BaseException]] = field(default_factory=list)


def _label(item: Item) -> str:
    if isinstance(item, EmbeddedImage):
        return str(item.source.path)
    if isinstance(item, HashedImage):
        return str(item.path)
    return str(item)


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def load_rgb(path: Path) -> Image.Image:
    """Decode an image file fully into memory as RGB."""

    with Image.open(path) as image:
        return image.convert("RGB")


class IngestPipeline:
    """Make every image under a root present in the blob store and the vector index.

    Stages:
    1. hash + existence check (IO pool): images whose blob already exists are
       short-circuited and never decoded or embedded.
    2. batch embed (compute pool): decoded images are sent to the embedder in
       ordered sub-batches.
    3. index + upload (network pool): each batch is upserted in chunks, then the
       original bytes of new images are uploaded.

    Points are upserted before their bytes are uploaded, so a run that dies between
    the two leaves a missing blob, which the next run notices and repairs.

    Byte-identical files share one point and are embedded once. Copies stored under
    another extension get their own blob once the first copy has been indexed.
    """

    def __init__(
        self,
        embedder: Embedder,
        blob_store: BlobStore,
        vector_store: VectorStore,
        collection: str,
        settings: Optional[PipelineSettings] = None,
        batch_size: int = 16,
        upsert_chunk_size: int = 32,
        on_disk: bool = True,
        quantization: bool = True,
        show_progress: bool = False,
    ) -> None:
        self.embedder = embedder
        self.blob_store = blob_store
        self.vector_store = vector_store
        self.collection = collection
        self.settings = settings or PipelineSettings()
        self.batch_size = batch_size
        self.upsert_chunk_size = upsert_chunk_size
        self.on_disk = on_disk
        self.quantization = quantization
        self.show_progress = show_progress

    def bootstrap(self) -> bool:
        """Create the target collection if needed; fail on a dimensionality mismatch."""

        try:
            return ensure_collection(
                self.vector_store,
                self.collection,
                self.embedder.output_size,
                on_disk=self.on_disk,
                quantization=self.quantization,
            )
        except ConfigurationError:
            raise
        except Exception as exc:  # noqa: BLE001 - an unreachable index is a startup failure
            raise ConfigurationError(f"Could not prepare collection {self.collection}: {exc}") from exc

    def run(self, root: Path | str) -> IngestReport:
        """
        Ingest every supported image below ``root``.

        Only startup problems raise; per-item failures are logged and collected in
        the returned report.

        External calls:
        - core/blob_store/base.py::BlobStore.exists / put - dedup check and upload.
        - core/embedders/base.py::Embedder.predict_batch - vectors for new images.
        - core/vector_store/base.py::VectorStore.upsert - chunked point writes.
        """

        root = Path(root).resolve()
        if not root.is_dir():
            raise ConfigurationError(f"Input directory not found: {root}")

        self.bootstrap()
        entries = ImageScanner(root).scan()
        report = IngestReport(discovered=len(entries))
        logger.info("Discovered %d image(s) under %s", len(entries), root)

        settings = self.settings
        leaders: Dict[str, HashedImage] = {}
        followers: Dict[str, List[HashedImage]] = {}
        indexed_hashes: Set[str] = set()
        with tqdm(total=len(entries), desc="Ingesting", unit="img", disable=not self.show_progress) as progress:

            def on_error(stage: str):
                def record(item: Union[Item, List[Item]], exc: BaseException) -> None:
                    items = item if isinstance(item, list) else [item]
                    for entry in items:
                        self._fail(report, stage, _label(entry), exc)
                    progress.update(len(items))

                return record

            def count_embedded(
                stream: Iterable[Tuple[List[HashedImage], List[EmbeddedImage]]],
            ) -> Iterator[List[EmbeddedImage]]:
                for _, vectors in stream:
                    report.embedded += len(vectors)
                    yield vectors

            with StagePool("hash", settings.io_workers) as hash_pool, StagePool(
                "embed", settings.compute_workers
            ) as embed_pool, StagePool("index", settings.network_workers) as index_pool:
                hashed = hash_pool.map_unordered(lambda path: self._hash_and_check(root, path), entries, on_error("hash"))
                to_embed = self._drop_stored(hashed, report, progress, leaders, followers)
                embedded = embed_pool.map_unordered(self._embed_batch, batched(to_embed, self.batch_size), on_error("embed"))
                for batch, outcome in index_pool.map_unordered(self._index_batch, count_embedded(embedded), on_error("index")):
                    indexed_hashes.update(item.source.content_hash for item in batch)
                    report.indexed += outcome.indexed
                    report.uploaded += outcome.uploaded
                    for source, exc in outcome.upload_failures:
                        self._fail(report, "upload", str(source.path), exc)
                    progress.update(len(batch))

                to_upload = self._settle_duplicates(leaders, followers, indexed_hashes, report, progress)
                for _item, _ in index_pool.map_unordered(self._upload, to_upload, on_error("upload")):
                    report.uploaded += 1
                    progress.update(1)

        logger.info(
            "Ingest finished: %d discovered, %d skipped, %d indexed, %d uploaded, %d failed",
            report.discovered,
            report.skipped,
            report.indexed,
            report.uploaded,
            len(report.failures),
        )
        return report

    def _hash_and_check(self, root: Path, path: Path) -> HashedImage:
        """Hash the file and decode it only if it still needs an embedding."""

        content_hash = hash_file(path)
        key = stored_object_key(content_hash, path)
        stored = self.blob_store.exists(key)
        image = None
        if not stored or self.settings.reindex_existing:
            image = load_rgb(path)
        return HashedImage(
            path=path,
            relative_path=path.relative_to(root).as_posix(),
            content_hash=content_hash,
            key=key,
            stored=stored,
            image=image,
        )

    def _drop_stored(
        self,
        hashed: Iterable[Tuple[Path, HashedImage]],
        report: IngestReport,
        progress: tqdm,
        leaders: Dict[str, HashedImage],
        followers: Dict[str, List[HashedImage]],
    ) -> Iterator[HashedImage]:
        """Forward the first copy of each content hash; hold back later copies.

        Items whose blob is already stored are counted as skipped. Later copies of
        content forwarded earlier in this run wait in ``followers`` until the first
        copy is either indexed or has failed.
        """

        for _, item in hashed:
            if item.image is None:
                report.skipped += 1
                progress.update(1)
                continue
            if item.content_hash in leaders:
                logger.debug("Holding %s: duplicate content within this run", item.path)
                item.image = None
                followers.setdefault(item.content_hash, []).append(item)
                continue
            leaders[item.content_hash] = item
            yield item

    def _settle_duplicates(
        self,
        leaders: Dict[str, HashedImage],
        followers: Dict[str, List[HashedImage]],
        indexed_hashes: Set[str],
        report: IngestReport,
        progress: tqdm,
    ) -> List[HashedImage]:
        """Resolve held-back copies and return those whose bytes still need uploading.

        A copy is skipped when its key is already stored or claimed by another copy.
        A copy under a new key (same bytes, other extension) is uploaded without a
        second embedding. Copies of content that was not indexed are failures.
        """

        to_upload: List[HashedImage] = []
        for content_hash, items in followers.items():
            claimed = {leaders[content_hash].key}
            for item in items:
                if content_hash not in indexed_hashes:
                    self._fail(
                        report,
                        "duplicate",
                        str(item.path),
                        PipelineError(f"identical content in {leaders[content_hash].path} was not indexed"),
                    )
                    progress.update(1)
                elif item.stored or item.key in claimed:
                    report.skipped += 1
                    progress.update(1)
                else:
                    claimed.add(item.key)
                    to_upload.append(item)
        return to_upload

    def _embed_batch(self, batch: List[HashedImage]) -> List[EmbeddedImage]:
        vectors = self.embedder.predict_batch([item.image for item in batch])
        if len(vectors) != len(batch):
            raise BatchError(f"Embedder returned {len(vectors)} vector(s) for {len(batch)} image(s).")

        embedded = [EmbeddedImage(source=item, vector=vector) for item, vector in zip(batch, vectors)]
        for item in batch:
            item.image = None
        return embedded

    def _index_batch(self, batch: List[EmbeddedImage]) -> _IndexOutcome:
        points = [IndexedPoint.from_embedded(item, self.blob_store.url_for(item.source.key)) for item in batch]
        self.vector_store.upsert(self.collection, points, chunk_size=self.upsert_chunk_size)

        outcome = _IndexOutcome(indexed=len(points))
        for item in batch:
            source = item.source
            if source.stored:
                continue
            try:
                self._upload(source)
            except Exception as exc:  # noqa: BLE001 - attributed to this item only
                outcome.upload_failures.append((source, exc))
                continue
            outcome.uploaded += 1
        return outcome

    def _upload(self, item: HashedImage) -> None:
        self.blob_store.put(item.key, item.path.read_bytes())

    @staticmethod
    def _fail(report: IngestReport, stage: str, label: str, exc: BaseException) -> None:
        failure = ItemFailure(stage=stage, label=label, error=_describe(exc))
        report.failures.append(failure)
        logger.warning("Failed to ingest %s", failure)
