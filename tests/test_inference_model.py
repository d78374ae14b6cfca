import numpy as np
import pytest
import torch

from core.Errors import AssetLoadError, InferenceError
from core.InferenceModel import TFLiteModel, TorchScriptModel, dequantize, load_model, quantize


def test_invoke_checks_input_count(predict_model):
    with pytest.raises(InferenceError, match="expected 1 input"):
        predict_model.invoke()


def test_invoke_checks_input_shape(predict_model):
    with pytest.raises(InferenceError, match=r"expected \[1, 256, 256, 3\]"):
        predict_model.invoke(np.zeros((1, 128, 128, 3), dtype=np.float32))
    assert predict_model.calls == 0


def test_invoke_returns_float32(make_model):
    model = make_model("identity", [[1, 2, 2, 1]], [1, 2, 2, 1], lambda x: x.astype(np.float64))
    output = model.invoke(np.ones((1, 2, 2, 1), dtype=np.float32))
    assert output.dtype == np.float32


def test_quantize_uint8_input():
    detail = {"dtype": np.uint8, "quantization": (1 / 255, 0)}
    quantized = quantize(np.array([0.0, 0.2, 1.0, 2.0], dtype=np.float32), detail)
    assert quantized.dtype == np.uint8
    assert quantized.tolist() == [0, 51, 255, 255]


def test_quantize_float_input_passes_through():
    detail = {"dtype": np.float32, "quantization": (0.0, 0)}
    tensor = np.array([0.25], dtype=np.float32)
    assert quantize(tensor, detail).tolist() == [0.25]


def test_dequantize_int8_output():
    detail = {"dtype": np.int8, "quantization": (0.5, -10)}
    values = dequantize(np.array([-10, 0, 10], dtype=np.int8), detail)
    assert values.dtype == np.float32
    assert values.tolist() == [0.0, 5.0, 10.0]


def test_torchscript_model_discovers_output_shape(tiny_assets):
    model = TorchScriptModel(tiny_assets["dir"] / "predict.pt", [[1, 16, 16, 3]])
    assert model.name == "predict"
    assert model.input_shapes == [(1, 16, 16, 3)]
    assert model.output_shape == (1, 1, 1, 3)

    output = model.invoke(np.full((1, 16, 16, 3), 0.5, dtype=np.float32))
    assert np.allclose(output, 0.5)


class Picky(torch.nn.Module):
    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if bool(x.sum() > 0):
            raise RuntimeError("positive input")
        return x


def test_torchscript_runtime_error_becomes_inference_error(tmp_path):
    path = tmp_path / "picky.pt"
    torch.jit.script(Picky()).save(str(path))
    model = load_model(path, [[1, 2, 2, 1]])
    with pytest.raises(InferenceError, match="invocation failed"):
        model.invoke(np.ones((1, 2, 2, 1), dtype=np.float32))


def test_load_model_missing_file(tmp_path):
    with pytest.raises(AssetLoadError, match="not found"):
        load_model(tmp_path / "predict_int8.tflite")


def test_load_model_unsupported_format(tmp_path):
    path = tmp_path / "model.onnx"
    path.write_bytes(b"\x00")
    with pytest.raises(AssetLoadError, match="Unsupported"):
        load_model(path)


def test_load_torchscript_requires_shapes(tiny_assets):
    with pytest.raises(AssetLoadError, match="input_shapes"):
        load_model(tiny_assets["dir"] / "predict.pt")


def test_load_corrupt_model(tmp_path):
    path = tmp_path / "broken.pt"
    path.write_bytes(b"definitely not a zip archive")
    with pytest.raises(AssetLoadError, match="Failed to load"):
        load_model(path, [[1, 4, 4, 3]])


def test_tflite_model_through_load_model(tmp_path):
    tf = pytest.importorskip("tensorflow")

    class MeanColor(tf.Module):
        @tf.function(input_signature=[tf.TensorSpec([1, 8, 8, 3], tf.float32)])
        def __call__(self, x):
            return tf.reduce_mean(x, axis=[1, 2], keepdims=True)

    module = MeanColor()
    converter = tf.lite.TFLiteConverter.from_concrete_functions(
        [module.__call__.get_concrete_function()], module
    )
    path = tmp_path / "mean_color.tflite"
    path.write_bytes(converter.convert())

    model = load_model(path)
    assert isinstance(model, TFLiteModel)
    assert model.name == "mean_color"
    assert model.input_shapes == [(1, 8, 8, 3)]
    assert model.output_shape == (1, 1, 1, 3)

    image = np.zeros((1, 8, 8, 3), dtype=np.float32)
    image[..., 0] = 1.0
    image[:, :4, :, 1] = 0.5
    output = model.invoke(image)
    assert output.dtype == np.float32
    assert np.allclose(output.reshape(3), [1.0, 0.25, 0.0], atol=1e-5)


def test_tflite_model_rejects_wrong_shape(tmp_path):
    tf = pytest.importorskip("tensorflow")

    class Identity(tf.Module):
        @tf.function(input_signature=[tf.TensorSpec([1, 2, 2, 1], tf.float32)])
        def __call__(self, x):
            return x + 1.0

    module = Identity()
    converter = tf.lite.TFLiteConverter.from_concrete_functions(
        [module.__call__.get_concrete_function()], module
    )
    path = tmp_path / "identity.tflite"
    path.write_bytes(converter.convert())

    model = load_model(path)
    with pytest.raises(InferenceError, match=r"expected \[1, 2, 2, 1\]"):
        model.invoke(np.zeros((1, 3, 3, 1), dtype=np.float32))
