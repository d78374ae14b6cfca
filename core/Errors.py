class StyleBlendError(Exception):
    """Base class for errors raised by the style transfer core."""


class InvalidImageError(StyleBlendError):
    """A source image could not be decoded or has degenerate dimensions."""


class InferenceError(StyleBlendError):
    """A model invocation failed: bad input shape, corrupt model or engine failure."""


class AssetLoadError(StyleBlendError):
    """Bundled sample images or model files are missing or corrupt."""
