# Path: core/embedders/wd_tagger.py
# Purpose: Run the WD SwinV2 tagger ONNX model as a batch embedding service.
# Layer: core/embedders.
# Details: Downloads the model with huggingface-hub and shares one ONNX Runtime session across threads.

from __future__ import annotations

import logging
from typing import Any, List, Sequence, Tuple, Union

import numpy as np
from PIL import Image

from core.errors import ConfigurationError
from .base import Embedder
from .preprocess import letterbox

logger = logging.getLogger(__name__)

DEFAULT_REPO = "SmilingWolf/wd-swinv2-tagger-v3"


class WdTaggerEmbedder(Embedder):
    """Embedder backed by the WD tagger; the tag probability vector is the embedding.

    The model expects NHWC float32 BGR input in the 0-255 range, which is what
    :func:`letterbox` produces.
    """

    def __init__(self, session: Any) -> None:
        self.name = "wd-tagger"
        self._session = session
        model_input = session.get_inputs()[0]
        model_output = session.get_outputs()[0]
        self._input_name = model_input.name
        self._output_name = model_output.name
        self.target_size = int(model_input.shape[1])
        self.output_size = int(model_output.shape[1])

    @classmethod
    def from_pretrained(
        cls,
        repo_id: str = DEFAULT_REPO,
        filename: str = "model.onnx",
        device_id: int = 0,
        num_threads: int = 16,
    ) -> "WdTaggerEmbedder":
        """Download (or reuse the cached) model and open an inference session.

        The CUDA provider is used when ONNX Runtime exposes it; otherwise the CPU provider.
        """

        import onnxruntime as ort
        from huggingface_hub import hf_hub_download

        try:
            model_path = hf_hub_download(repo_id=repo_id, filename=filename)
        except Exception as exc:  # noqa: BLE001 - any download failure is a startup error
            raise ConfigurationError(f"Could not fetch {filename} from {repo_id}: {exc}") from exc

        options = ort.SessionOptions()
        options.intra_op_num_threads = num_threads

        available = set(ort.get_available_providers())
        providers: List[Union[str, Tuple[str, dict]]] = []
        if "CUDAExecutionProvider" in available:
            providers.append(("CUDAExecutionProvider", {"device_id": device_id}))
        providers.append("CPUExecutionProvider")

        session = ort.InferenceSession(model_path, sess_options=options, providers=providers)
        logger.info("Loaded %s from %s with providers %s", filename, repo_id, session.get_providers())
        return cls(session)

    def predict_batch(self, images: Sequence[Image.Image]) -> np.ndarray:
        if not images:
            return np.empty((0, self.output_size), dtype=np.float32)

        batch = np.stack([letterbox(image, self.target_size) for image in images])
        (outputs,) = self._session.run([self._output_name], {self._input_name: batch})
        return self._check_batch(outputs, len(images))
