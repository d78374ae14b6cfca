import json

import numpy as np
import pytest
import torch
from PIL import Image

from core.InferenceModel import Model
from core.StyleTransferPipeline import StyleTransferPipeline
from utilities.ConfigManager import DEFAULT_CONFIG


class CountingModel(Model):
    """In-memory model that counts invocations."""

    def __init__(self, name, input_shapes, output_shape, fn):
        super().__init__(name, input_shapes, output_shape)
        self.calls = 0
        self._fn = fn

    def _run(self, tensors):
        self.calls += 1
        return self._fn(*tensors)


def mean_color(style):
    return style.mean(axis=(1, 2), keepdims=True)


def half_blend(content, vector):
    return np.clip(content * 0.5 + vector * 0.5, 0.0, 1.0)


class TinyPredict(torch.nn.Module):
    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return torch.mean(x, dim=[1, 2], keepdim=True)


class TinyTransfer(torch.nn.Module):
    def forward(self, content: torch.Tensor, style: torch.Tensor) -> torch.Tensor:
        return torch.clamp(content * 0.5 + style * 0.5, 0.0, 1.0)


def gradient_image(width, height):
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    red = np.tile(xs, (height, 1))
    green = np.tile(ys[:, None], (1, width))
    blue = np.full((height, width), 128, dtype=np.float32)
    return Image.fromarray(np.stack([red, green, blue], axis=2).astype(np.uint8), mode="RGB")


@pytest.fixture
def predict_model():
    return CountingModel("predict", [[1, 256, 256, 3]], [1, 1, 1, 3], mean_color)


@pytest.fixture
def transfer_model():
    return CountingModel("transfer", [[1, 384, 384, 3], [1, 1, 1, 3]], [1, 384, 384, 3], half_blend)


@pytest.fixture
def pipeline(predict_model, transfer_model):
    return StyleTransferPipeline(predict_model, transfer_model)


@pytest.fixture
def content_image():
    return gradient_image(512, 384)


@pytest.fixture
def style_image():
    return Image.new("RGB", (256, 256), color=(200, 40, 40))


@pytest.fixture
def tiny_assets(tmp_path):
    """Assets directory with sample images, TorchScript models and a config file."""
    assets = tmp_path / "assets"
    assets.mkdir()
    gradient_image(40, 30).save(assets / "image1.jpg", "JPEG")
    Image.new("RGB", (20, 20), color=(30, 90, 200)).save(assets / "style1.jpg", "JPEG")
    torch.jit.script(TinyPredict()).save(str(assets / "predict.pt"))
    torch.jit.script(TinyTransfer()).save(str(assets / "transfer.pt"))

    config = dict(DEFAULT_CONFIG)
    config.update({
        "assets_dir": str(assets),
        "predict_model": "predict.pt",
        "transfer_model": "transfer.pt",
        "input_shapes": {
            "predict": [[1, 16, 16, 3]],
            "transfer": [[1, 24, 24, 3], [1, 1, 1, 3]],
        },
        "share_file": str(tmp_path / "share.jpg"),
    })
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps(config))
    return {"dir": assets, "config": config, "config_path": config_path}


@pytest.fixture
def make_gradient():
    return gradient_image


@pytest.fixture
def make_model():
    return CountingModel
