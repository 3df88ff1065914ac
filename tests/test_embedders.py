"""Tests for preprocessing and the embedder implementations."""

from types import SimpleNamespace

import numpy as np
import pytest
from PIL import Image

from core.embedders import PixelEmbedder, WdTaggerEmbedder, letterbox
from core.errors import BatchError


def test_letterbox_pads_with_white_and_emits_bgr():
    image = Image.new("RGB", (20, 10), (255, 0, 0))

    pixels = letterbox(image, 20)

    assert pixels.shape == (20, 20, 3)
    assert pixels.dtype == np.float32
    np.testing.assert_array_equal(pixels[0, 0], [255.0, 255.0, 255.0])
    np.testing.assert_array_equal(pixels[19, 10], [255.0, 255.0, 255.0])
    np.testing.assert_array_equal(pixels[10, 10], [0.0, 0.0, 255.0])


def test_letterbox_resizes_to_target():
    pixels = letterbox(Image.new("L", (40, 30), 128), 8)
    assert pixels.shape == (8, 8, 3)


@pytest.mark.parametrize("count", [1, 2, 5])
def test_pixel_embedder_batches_are_positionally_aligned(count):
    embedder = PixelEmbedder()
    images = [Image.new("RGB", (12, 12), (40 * i, 255 - 40 * i, 10)) for i in range(count)]

    batch = embedder.predict_batch(images)

    assert batch.shape == (count, embedder.output_size)
    for row, image in zip(batch, images):
        np.testing.assert_allclose(row, embedder.predict(image), rtol=1e-6)


def test_pixel_embedder_vectors_are_unit_length():
    vector = PixelEmbedder().predict(Image.new("RGB", (8, 8), (10, 200, 30)))
    assert np.linalg.norm(vector) == pytest.approx(1.0, rel=1e-5)


class FakeSession:
    """Mimics the slice of onnxruntime.InferenceSession used by the embedder."""

    def __init__(self, size=8, classes=3, drop_last=False):
        self.size = size
        self.classes = classes
        self.drop_last = drop_last
        self.feeds = []

    def get_inputs(self):
        return [SimpleNamespace(name="input_1", shape=["batch", self.size, self.size, 3])]

    def get_outputs(self):
        return [SimpleNamespace(name="predictions", shape=["batch", self.classes])]

    def run(self, output_names, feeds):
        assert output_names == ["predictions"]
        batch = feeds["input_1"]
        self.feeds.append(batch.shape)
        # One row per image: its mean B, G and R values.
        rows = batch.mean(axis=(1, 2))[:, : self.classes]
        if self.drop_last:
            rows = rows[:-1]
        return [rows.astype(np.float32)]


def test_wd_tagger_reads_sizes_from_session_and_keeps_order():
    session = FakeSession()
    embedder = WdTaggerEmbedder(session)
    red = Image.new("RGB", (8, 8), (255, 0, 0))
    blue = Image.new("RGB", (8, 8), (0, 0, 255))

    vectors = embedder.predict_batch([red, blue])

    assert embedder.target_size == 8
    assert embedder.output_size == 3
    assert session.feeds == [(2, 8, 8, 3)]
    np.testing.assert_allclose(vectors[0], [0.0, 0.0, 255.0])
    np.testing.assert_allclose(vectors[1], [255.0, 0.0, 0.0])


def test_wd_tagger_rejects_misaligned_batches():
    embedder = WdTaggerEmbedder(FakeSession(drop_last=True))
    images = [Image.new("RGB", (8, 8), (i, i, i)) for i in range(3)]
    with pytest.raises(BatchError):
        embedder.predict_batch(images)


def test_wd_tagger_empty_batch_skips_inference():
    session = FakeSession()
    vectors = WdTaggerEmbedder(session).predict_batch([])
    assert vectors.shape == (0, 3)
    assert session.feeds == []
