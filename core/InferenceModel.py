from pathlib import Path
import logging

import numpy as np
import torch

from core.Errors import AssetLoadError, InferenceError
from utilities.Logger import Logger

logger = Logger.setup_logger(logger_name="InferenceModel", log_level=logging.INFO)

TFLITE_SUFFIXES = (".tflite",)
TORCHSCRIPT_SUFFIXES = (".pt", ".pth")


class Model:
    """
    Handle over a loaded inference graph with fixed input and output shapes.

    Subclasses load the graph and implement _run. Handles are read-only after
    load but not safe for concurrent invoke calls.
    """

    def __init__(self, name, input_shapes, output_shape):
        self.name = name
        self.input_shapes = [tuple(int(dim) for dim in shape) for shape in input_shapes]
        self.output_shape = tuple(int(dim) for dim in output_shape)

    def invoke(self, *tensors):
        """
        Run the graph on float32 NHWC tensors.
        :return: Output tensor as float32.
        """
        if len(tensors) != len(self.input_shapes):
            raise InferenceError(
                f"{self.name}: expected {len(self.input_shapes)} input(s), got {len(tensors)}"
            )
        for index, (tensor, shape) in enumerate(zip(tensors, self.input_shapes)):
            if tuple(np.shape(tensor)) != shape:
                raise InferenceError(
                    f"{self.name}: input {index} has shape {list(np.shape(tensor))}, expected {list(shape)}"
                )

        try:
            output = self._run([np.asarray(tensor, dtype=np.float32) for tensor in tensors])
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceError(f"{self.name}: invocation failed: {e}") from e

        return np.asarray(output, dtype=np.float32)

    def _run(self, tensors):
        raise NotImplementedError

    def __repr__(self):
        inputs = ", ".join(str(list(shape)) for shape in self.input_shapes)
        return f"{type(self).__name__}({self.name!r}, inputs=[{inputs}], output={list(self.output_shape)})"


def quantize(tensor, detail):
    """Map float values onto a quantized input tensor using its (scale, zero_point)."""
    dtype = np.dtype(detail["dtype"])
    if not np.issubdtype(dtype, np.integer):
        return tensor.astype(dtype)

    scale, zero_point = detail.get("quantization", (0.0, 0))
    if not scale:
        return tensor.astype(dtype)

    info = np.iinfo(dtype)
    quantized = np.round(tensor / scale + zero_point)
    return np.clip(quantized, info.min, info.max).astype(dtype)


def dequantize(tensor, detail):
    """Inverse of quantize for an output tensor; float outputs pass through."""
    scale, zero_point = detail.get("quantization", (0.0, 0))
    if not np.issubdtype(tensor.dtype, np.integer) or not scale:
        return tensor.astype(np.float32)
    return ((tensor.astype(np.float32) - zero_point) * scale).astype(np.float32)


class TFLiteModel(Model):
    """TensorFlow Lite flatbuffer run through tf.lite.Interpreter."""

    def __init__(self, model_path, name=None, num_threads=None):
        import tensorflow as tf

        model_path = Path(model_path)
        self._interpreter = tf.lite.Interpreter(model_path=str(model_path), num_threads=num_threads)
        self._interpreter.allocate_tensors()
        self._inputs = self._interpreter.get_input_details()
        self._output = self._interpreter.get_output_details()[0]

        super().__init__(
            name or model_path.stem,
            [detail["shape"] for detail in self._inputs],
            self._output["shape"],
        )

    def _run(self, tensors):
        for detail, tensor in zip(self._inputs, tensors):
            self._interpreter.set_tensor(detail["index"], quantize(tensor, detail))
        self._interpreter.invoke()
        return dequantize(self._interpreter.get_tensor(self._output["index"]), self._output)


class TorchScriptModel(Model):
    """
    Scripted torch module taking NHWC float tensors. TorchScript carries no input
    shapes, so they are supplied by the caller and the output shape is read from
    a warm-up call on zeros.
    """

    def __init__(self, model_path, input_shapes, name=None):
        model_path = Path(model_path)
        self._module = torch.jit.load(str(model_path), map_location="cpu")
        self._module.eval()

        warm_up = self._run([np.zeros(shape, dtype=np.float32) for shape in input_shapes])
        super().__init__(name or model_path.stem, input_shapes, warm_up.shape)

    def _run(self, tensors):
        with torch.no_grad():
            output = self._module(*[torch.from_numpy(np.ascontiguousarray(t)) for t in tensors])
        return output.cpu().numpy()


def load_model(model_path, input_shapes=None, name=None):
    """
    Load a model handle, picking the backend from the file suffix.

    :param model_path: Path to a .tflite or TorchScript (.pt/.pth) file.
    :param input_shapes: Input shapes, required for TorchScript models.
    :param name: Display name (default: file stem).
    :return: Model instance.
    """
    model_path = Path(model_path)
    suffix = model_path.suffix.lower()

    if not model_path.is_file():
        raise AssetLoadError(f"Model file '{model_path}' not found.")
    if suffix not in TFLITE_SUFFIXES + TORCHSCRIPT_SUFFIXES:
        raise AssetLoadError(f"Unsupported model format '{suffix}' for '{model_path}'.")
    if suffix in TORCHSCRIPT_SUFFIXES and not input_shapes:
        raise AssetLoadError(f"TorchScript model '{model_path}' needs input_shapes in the configuration.")

    try:
        if suffix in TFLITE_SUFFIXES:
            model = TFLiteModel(model_path, name=name)
        else:
            model = TorchScriptModel(model_path, input_shapes, name=name)
    except Exception as e:
        logger.error(f"Failed to load model '{model_path}': {e}")
        raise AssetLoadError(f"Failed to load model '{model_path}': {e}") from e

    logger.info(f"Loaded {model}")
    return model
