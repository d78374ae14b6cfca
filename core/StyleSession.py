from pathlib import Path
import logging

from core.AssetLoader import AssetLoader
from core.Errors import InvalidImageError
from core.ImageCodec import ImageCodec
from core.MergeWorker import MergeWorker
from core.StyleTransferPipeline import StyleTransferPipeline
from utilities.Logger import Logger

logger = Logger.setup_logger(logger_name="StyleSession", log_level=logging.INFO)


class StyleSession:
    """
    Owns the content and style slots and the latest result.

    Replacing either slot clears the result and schedules a merge on the worker;
    results reach the optional sinks as well as the `result` property.
    """

    def __init__(self, pipeline, samples=None, share_file="share.jpg", jpeg_quality=80,
                 on_result=None, on_error=None):
        self.pipeline = pipeline
        self.share_file = Path(share_file)
        self.jpeg_quality = jpeg_quality
        self.worker = MergeWorker(pipeline, on_result=on_result, on_error=on_error)

        self.content = samples.content if samples else None
        self.style = samples.style if samples else None
        self.merge()

    @classmethod
    def from_config(cls, config, **sinks):
        """
        Load bundled assets and models and start a session on the sample pair.
        Raises AssetLoadError when anything bundled is missing.
        """
        loader = AssetLoader(config)
        samples = loader.load_samples()
        predict, transfer = loader.load_models()
        pipeline = StyleTransferPipeline.from_config(predict, transfer, config)
        return cls(
            pipeline,
            samples=samples,
            share_file=config["share_file"],
            jpeg_quality=config["jpeg_quality"],
            **sinks,
        )

    @property
    def result(self):
        return self.worker.result

    @property
    def error(self):
        return self.worker.error

    @property
    def pending(self):
        return self.worker.pending

    def set_content(self, image):
        self.content = image
        return self.merge()

    def set_style(self, image):
        self.style = image
        return self.merge()

    def merge(self):
        """Submit the current pair. Returns the request id, or None while a slot is empty."""
        if self.content is None or self.style is None:
            return None
        return self.worker.submit(self.content, self.style)

    def wait(self, timeout=None):
        return self.worker.wait(timeout)

    def result_jpeg(self):
        """
        :return: The current result as JPEG bytes.
        """
        if self.result is None:
            raise InvalidImageError("No stylized result to export yet.")
        return ImageCodec.to_jpeg(self.result, quality=self.jpeg_quality)

    def share(self, path=None):
        """
        Write the current result as a JPEG for handing to a share action.

        :param path: Output path (default: the configured share file).
        :return: Path of the written file.
        """
        data = self.result_jpeg()
        path = Path(path or self.share_file)
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info(f"Result written to {path} ({len(data)} bytes)")
        return path
