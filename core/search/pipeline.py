# Path: core/search/pipeline.py
# Purpose: Orchestrate probe-set searches and retrieval of the matched images.
# Layer: core/search.
# Details: Embeds each tag group, reduces its vectors, runs a recommend query, and downloads matches.

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional, Tuple

import httpx
import numpy as np
from PIL import Image
from tqdm import tqdm

from config.settings import PipelineSettings
from core.blob_store.base import BlobStore
from core.embedders.base import Embedder
from core.errors import BatchError, ConfigurationError, DimensionMismatchError, ItemFailure, PayloadError
from core.hashing import stored_object_key
from core.indexing.pipeline import load_rgb
from core.indexing.scanner import ImageScanner
from core.models.domain import GroupReport, QueryReport, SearchParams, SearchResult, TagGroup
from core.pipeline.workers import StagePool, batched
from core.vector_store.base import VectorStore
from .reduction import reduce_vectors

logger = logging.getLogger(__name__)


def default_output(input_path: Path) -> Path:
    """Directory inputs write next to themselves under ``output``; file inputs into their folder."""

    if input_path.is_dir():
        return input_path.parent / "output"
    return input_path.parent


class QueryPipeline:
    """High-level service that turns probe images into downloaded matches.

    Tag groups are processed one after another and never influence each other.
    The worker pools are shared by all groups of a run.
    """

    def __init__(
        self,
        embedder: Embedder,
        blob_store: BlobStore,
        vector_store: VectorStore,
        collection: str,
        settings: Optional[PipelineSettings] = None,
        batch_size: int = 128,
        http_client: Optional[httpx.Client] = None,
        show_progress: bool = False,
    ) -> None:
        self.embedder = embedder
        self.blob_store = blob_store
        self.vector_store = vector_store
        self.collection = collection
        self.settings = settings or PipelineSettings()
        self.batch_size = batch_size
        self.http_client = http_client
        self.show_progress = show_progress

    def run(
        self,
        input_path: Path | str,
        output: Optional[Path | str] = None,
        params: Optional[SearchParams] = None,
        use_http: bool = False,
    ) -> QueryReport:
        """
        Search the index for every tag group found in ``input_path``.

        External calls:
        - core/embedders/base.py::Embedder.predict_batch - probe vectors.
        - core/search/reduction.py::reduce_vectors - caps the number of positives.
        - core/vector_store/base.py::VectorStore.recommend - similarity query.
        - core/blob_store/base.py::BlobStore.get or httpx GET - fetch matched bytes.
        """

        input_path = Path(input_path).resolve()
        if not input_path.exists():
            raise ConfigurationError(f"Input not found: {input_path}")
        output_root = Path(output) if output is not None else default_output(input_path)
        params = params or SearchParams()
        self._check_collection()

        groups = ImageScanner(input_path).tag_groups()
        report = QueryReport(output=output_root)
        if not groups:
            logger.warning("No probe images found in %s", input_path)
            return report

        owns_client = use_http and self.http_client is None
        client = httpx.Client(timeout=60.0, follow_redirects=True) if owns_client else self.http_client
        settings = self.settings
        try:
            with StagePool("decode", settings.io_workers) as decode_pool, StagePool(
                "embed", settings.compute_workers
            ) as embed_pool, StagePool("download", settings.download_workers) as download_pool:
                for group in groups:
                    target = output_root.joinpath(*PurePosixPath(group.output_subdir).parts)
                    report.groups.append(
                        self._search_group(group, target, params, client if use_http else None, decode_pool, embed_pool, download_pool)
                    )
        finally:
            if owns_client and client is not None:
                client.close()

        for group_report in report.groups:
            logger.info(
                "Group %s: %d probe(s), %d vector(s), %d match(es), %d downloaded, %d failed",
                group_report.tag,
                group_report.probes,
                group_report.vectors,
                group_report.matches,
                group_report.downloaded,
                len(group_report.failures),
            )
        return report

    def _check_collection(self) -> None:
        """Fail before any probe is processed if the collection is missing or has another size."""

        try:
            exists = self.vector_store.collection_exists(self.collection)
            info = self.vector_store.collection_info(self.collection) if exists else None
        except Exception as exc:  # noqa: BLE001 - an unreachable index is a startup failure
            raise ConfigurationError(f"Could not reach collection {self.collection}: {exc}") from exc
        if info is None:
            raise ConfigurationError(f"Collection {self.collection} does not exist.")
        if info.dim != self.embedder.output_size:
            raise DimensionMismatchError(self.collection, expected=self.embedder.output_size, actual=info.dim)

    def _search_group(
        self,
        group: TagGroup,
        target: Path,
        params: SearchParams,
        client: Optional[httpx.Client],
        decode_pool: StagePool,
        embed_pool: StagePool,
        download_pool: StagePool,
    ) -> GroupReport:
        group_report = GroupReport(tag=group.tag, subdir=group.output_subdir, probes=len(group.files))
        with tqdm(total=len(group.files), desc=group.tag, unit="img", disable=not self.show_progress) as progress:
            images = self._load_probes(group, decode_pool, group_report)
            vectors = self._embed_probes(group, images, embed_pool, group_report)
            progress.update(len(group.files))
            if not vectors:
                logger.warning("Group %s has no usable probe vectors", group.tag)
                return group_report

            positives = reduce_vectors(vectors)
            group_report.vectors = len(positives)
            try:
                matches = self.vector_store.recommend(self.collection, positives, params)
            except Exception as exc:  # noqa: BLE001 - a failed query only fails this group
                self._fail(group_report, "search", group.tag, exc)
                return group_report

            group_report.matches = len(matches)
            progress.total += len(matches)
            progress.refresh()

            def on_download_error(result: SearchResult, exc: BaseException) -> None:
                self._fail(group_report, "download", f"{group.tag}/{result.path}", exc)
                progress.update(1)

            for _result, _path in download_pool.map_unordered(
                lambda result: self._download(result, target, client), matches, on_download_error
            ):
                group_report.downloaded += 1
                progress.update(1)
        return group_report

    def _load_probes(self, group: TagGroup, pool: StagePool, group_report: GroupReport) -> List[Image.Image]:
        """Decode probe files concurrently and return them in file order."""

        loaded: Dict[int, Image.Image] = {}

        def on_error(entry: Tuple[int, Path], exc: BaseException) -> None:
            self._fail(group_report, "decode", str(entry[1]), exc)

        for (index, _path), image in pool.map_unordered(lambda entry: load_rgb(entry[1]), enumerate(group.files), on_error):
            loaded[index] = image
        return [loaded[index] for index in sorted(loaded)]

    def _embed_probes(
        self, group: TagGroup, images: List[Image.Image], pool: StagePool, group_report: GroupReport
    ) -> List[np.ndarray]:
        """Embed probe images in ordered sub-batches and concatenate the vectors in order."""

        results: Dict[int, List[np.ndarray]] = {}

        def on_error(entry: Tuple[int, List[Image.Image]], exc: BaseException) -> None:
            self._fail(group_report, "embed", f"{group.tag} batch {entry[0]} ({len(entry[1])} image(s))", exc)

        for (index, _batch), vectors in pool.map_unordered(
            lambda entry: self._predict(entry[1]), enumerate(batched(images, self.batch_size)), on_error
        ):
            results[index] = vectors
        return [vector for index in sorted(results) for vector in results[index]]

    def _predict(self, batch: List[Image.Image]) -> List[np.ndarray]:
        vectors = self.embedder.predict_batch(batch)
        if len(vectors) != len(batch):
            raise BatchError(f"Embedder returned {len(vectors)} vector(s) for {len(batch)} image(s).")
        return list(vectors)

    def _download(self, result: SearchResult, target: Path, client: Optional[httpx.Client]) -> Path:
        """Fetch a match by URL or by blob key and write it under ``target``."""

        destination = self._destination(target, result)
        if client is not None:
            response = client.get(result.url)
            response.raise_for_status()
            data = response.content
        else:
            data = self.blob_store.get(stored_object_key(result.hash, result.path))

        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(data)
        return destination

    @staticmethod
    def _destination(target: Path, result: SearchResult) -> Path:
        relative = PurePosixPath(result.path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise PayloadError(f"Refusing to write outside the output directory: {result.path!r}")
        return target.joinpath(*relative.parts)

    @staticmethod
    def _fail(group_report: GroupReport, stage: str, label: str, exc: BaseException) -> None:
        failure = ItemFailure(stage=stage, label=label, error=f"{type(exc).__name__}: {exc}")
        group_report.failures.append(failure)
        logger.warning("Query failure %s", failure)
