from dataclasses import dataclass
from pathlib import Path
import logging

from PIL import Image

from core.Errors import AssetLoadError, InvalidImageError
from core.HuggingFaceHandler import HuggingFaceHandler
from core.ImageCodec import ImageCodec
from core.InferenceModel import Model, load_model
from utilities.ConfigManager import DEFAULT_CONFIG
from utilities.Logger import Logger

logger = Logger.setup_logger(logger_name="AssetLoader", log_level=logging.INFO)


@dataclass(frozen=True)
class Samples:
    """Bundled content/style pair shown before the user picks their own images."""
    content: Image.Image
    style: Image.Image


class AssetLoader:
    def __init__(self, config=None):
        """
        Locate bundled sample images and model files.

        :param config: Configuration dictionary (default: DEFAULT_CONFIG).
        """
        self.config = config or DEFAULT_CONFIG
        self.assets_dir = Path(self.config["assets_dir"])

    def _read_image(self, file_name):
        path = self.assets_dir / file_name
        if not path.is_file():
            raise AssetLoadError(f"Sample image '{path}' not found.")
        try:
            return ImageCodec.decode_image(path)
        except InvalidImageError as e:
            raise AssetLoadError(f"Sample image '{path}' is corrupt: {e}") from e

    def load_samples(self) -> Samples:
        """
        Read the bundled sample content and style images.

        :return: Samples pair.
        """
        samples = Samples(
            content=self._read_image(self.config["content_sample"]),
            style=self._read_image(self.config["style_sample"]),
        )
        logger.info(f"Loaded samples from {self.assets_dir}: content {samples.content.size}, style {samples.style.size}")
        return samples

    def _fetch_missing_models(self, file_names):
        missing = [name for name in file_names if not (self.assets_dir / name).is_file()]
        repo_id = self.config.get("hf_repo_id")
        if not missing or not repo_id:
            return

        self.assets_dir.mkdir(parents=True, exist_ok=True)
        try:
            HuggingFaceHandler(token=self.config.get("hf_token")).download_files(repo_id, missing, self.assets_dir)
        except Exception as e:
            raise AssetLoadError(f"Could not fetch {', '.join(missing)} from '{repo_id}': {e}") from e

    def load_models(self):
        """
        Load the predict and transfer models, fetching them from the Hub first when configured.

        :return: (predict, transfer) Model handles.
        """
        predict_name = self.config["predict_model"]
        transfer_name = self.config["transfer_model"]
        self._fetch_missing_models([predict_name, transfer_name])

        shapes = self.config.get("input_shapes") or {}
        predict = load_model(self.assets_dir / predict_name, shapes.get("predict"), name="predict")
        transfer = load_model(self.assets_dir / transfer_name, shapes.get("transfer"), name="transfer")
        AssetLoader.check_compatible(predict, transfer)
        return predict, transfer

    @staticmethod
    def check_compatible(predict: Model, transfer: Model):
        """
        The transfer model takes (content, style vector); its second input must match
        the predict model's output.
        """
        if len(predict.input_shapes) != 1:
            raise AssetLoadError(f"Predict model must take one input, found {len(predict.input_shapes)}.")
        if len(transfer.input_shapes) != 2:
            raise AssetLoadError(f"Transfer model must take two inputs, found {len(transfer.input_shapes)}.")
        if transfer.input_shapes[1] != predict.output_shape:
            raise AssetLoadError(
                f"Style vector shape mismatch: predict produces {list(predict.output_shape)}, "
                f"transfer expects {list(transfer.input_shapes[1])}."
            )
