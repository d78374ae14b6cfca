import logging
import threading
import time

from core.Errors import InvalidImageError
from core.ImageCodec import ImageCodec, RESTORE_MODES
from utilities.Logger import Logger

logger = Logger.setup_logger(logger_name="StyleTransferPipeline", log_level=logging.INFO)


class StyleTransferPipeline:
    """
    Blends a content image with a style image using a predict model (style image -> style
    vector) and a transfer model ((content, style vector) -> stylized image).

    The style vector of the last style image is kept so that swapping only the content
    image skips the predict pass. The cache entry holds the style image itself and is
    matched by identity, never by value.
    """

    def __init__(self, predict, transfer, codec=None, cache_style=True, preserve_aspect=True,
                 restore="crop", blend_ratio=0.0):
        if restore not in RESTORE_MODES:
            raise ValueError(f"restore must be one of {RESTORE_MODES}, got '{restore}'")
        if not 0.0 <= blend_ratio <= 1.0:
            raise ValueError(f"blend_ratio must be within [0, 1], got {blend_ratio}")

        self.predict = predict
        self.transfer = transfer
        self.codec = codec or ImageCodec()
        self.cache_style = cache_style
        self.preserve_aspect = preserve_aspect
        self.restore = restore
        self.blend_ratio = blend_ratio

        self._cache = None
        # Models are not safe for concurrent invoke calls
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, predict, transfer, config):
        codec = ImageCodec(input_range=config["input_range"], output_range=config["output_range"])
        return cls(
            predict,
            transfer,
            codec=codec,
            cache_style=config["cache_style"],
            preserve_aspect=config["preserve_aspect"],
            restore=config["restore"],
            blend_ratio=config["blend_ratio"],
        )

    def reset_style(self):
        """Forget the cached style vector; the next merge runs the predict model again."""
        if self._cache is not None:
            logger.debug("Style vector cache cleared")
        self._cache = None

    def _predict_vector(self, image):
        return self.predict.invoke(self.codec.to_tensor(image, self.predict.input_shapes[0]))

    def style_vector(self, style, use_cache=True):
        """
        Encode a style image, reusing the cached vector when it was computed from this same image.
        """
        cache = self._cache
        if use_cache and self.cache_style and cache is not None and cache[0] is style:
            logger.debug("Style vector cache hit")
            return cache[1]

        vector = self._predict_vector(style)
        if use_cache and self.cache_style:
            self._cache = (style, vector)
        return vector

    def merge(self, content, style, use_cache=True):
        """
        Stylize the content image with the style image.

        :param content: Content PIL Image.
        :param style: Style PIL Image.
        :param use_cache: Read and update the style vector cache (default: True).
        :return: Stylized PIL Image, with the content aspect ratio when preserve_aspect is set.
        """
        if content.width == 0 or content.height == 0:
            raise InvalidImageError(f"Content image has degenerate size {content.size}")

        start_time = time.time()
        with self._lock:
            vector = self.style_vector(style, use_cache=use_cache)
            if self.blend_ratio > 0:
                content_vector = self._predict_vector(content)
                vector = self.blend_ratio * content_vector + (1 - self.blend_ratio) * vector

            content_tensor = self.codec.to_tensor(content, self.transfer.input_shapes[0], restore=self.restore)
            output = self.transfer.invoke(content_tensor, vector)

        aspect_ratio = content.width / content.height if self.preserve_aspect else None
        result = self.codec.to_image(output, aspect_ratio=aspect_ratio, restore=self.restore)

        logger.info(f"Merge complete in {time.time() - start_time:.3f}s, result {result.size}")
        return result
