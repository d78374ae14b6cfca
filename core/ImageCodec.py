from io import BytesIO
from pathlib import Path

import numpy as np
import torch
import torchvision.transforms.functional as TF
from torchvision.transforms import InterpolationMode
from PIL import Image, ImageOps, UnidentifiedImageError

from core.Errors import InvalidImageError

RESTORE_MODES = ("crop", "resize")


class ImageCodec:
    """
    Converts between PIL images and the NHWC float tensors the style models consume.
    """

    def __init__(self, input_range=(0.0, 1.0), output_range=(0.0, 1.0)):
        """
        :param input_range: Value range the models expect for pixel intensities.
        :param output_range: Value range the transfer model produces.
        """
        self.input_range = ImageCodec._check_range(input_range, "input_range")
        self.output_range = ImageCodec._check_range(output_range, "output_range")

    @staticmethod
    def _check_range(value_range, name):
        if len(value_range) != 2 or float(value_range[0]) == float(value_range[1]):
            raise ValueError(f"{name} must be two distinct numbers, got {value_range!r}")
        return float(value_range[0]), float(value_range[1])

    @staticmethod
    def decode_image(data):
        """
        Decode an image from raw bytes, a path or a binary file object.
        :param data: Encoded image.
        :return: RGB PIL Image.
        """
        try:
            if isinstance(data, (bytes, bytearray)):
                img = Image.open(BytesIO(data))
            elif isinstance(data, (str, Path)) or hasattr(data, "read"):
                img = Image.open(data)
            else:
                raise InvalidImageError(f"Cannot decode image from {type(data).__name__}")
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise InvalidImageError(f"Failed to decode image: {e}") from e

        img = ImageOps.exif_transpose(img).convert("RGB")
        if img.width == 0 or img.height == 0:
            raise InvalidImageError(f"Image has degenerate size {img.size}")
        return img

    @staticmethod
    def to_jpeg(image, quality=80):
        """
        Compress an image for sharing.
        :param image: PIL Image.
        :param quality: JPEG quality, 1-95.
        :return: JPEG bytes.
        """
        buffer = BytesIO()
        image.convert("RGB").save(buffer, format="JPEG", quality=quality)
        return buffer.getvalue()

    def to_tensor(self, image, target_shape, restore="crop"):
        """
        Fit the image to the model input and rescale intensities.

        With restore="crop" the image is padded to a centered square whose side is the
        larger of width and height, so no content is cropped away and to_image can cut
        the padding back out. With restore="resize" it is stretched straight to the
        input size and to_image stretches it back.

        :param image: PIL Image.
        :param target_shape: Model input shape [1, height, width, channels].
        :param restore: "crop" or "resize", matching the to_image call that follows.
        :return: float32 array with shape target_shape.
        """
        if restore not in RESTORE_MODES:
            raise ValueError(f"restore must be one of {RESTORE_MODES}, got '{restore}'")

        width, height = image.size
        if width == 0 or height == 0:
            raise InvalidImageError(f"Image has degenerate size {image.size}")
        if len(target_shape) != 4 or target_shape[0] != 1:
            raise ValueError(f"Expected a [1, height, width, channels] shape, got {list(target_shape)}")

        _, target_h, target_w, channels = (int(dim) for dim in target_shape)
        mode = {1: "L", 3: "RGB"}.get(channels)
        if mode is None:
            raise ValueError(f"Unsupported channel count {channels}")
        if image.mode != mode:
            image = image.convert(mode)

        if restore == "crop":
            side = max(width, height)
            image = TF.center_crop(image, [side, side])
        resized = TF.resize(image, [target_h, target_w], interpolation=InterpolationMode.BILINEAR)

        tensor = TF.to_tensor(resized)
        low, high = self.input_range
        tensor = low + tensor * (high - low)

        return tensor.permute(1, 2, 0).unsqueeze(0).numpy().astype(np.float32)

    def to_image(self, tensor, aspect_ratio=None, restore="crop"):
        """
        Turn a model output back into an image, optionally restoring the content aspect ratio.

        :param tensor: Array shaped [1, height, width, channels] or [height, width, channels].
        :param aspect_ratio: Content width / height, or None to keep the tensor's shape.
        :param restore: "crop" removes the padding added by to_tensor, "resize" stretches back what to_tensor stretched.
        :return: PIL Image.
        """
        if restore not in RESTORE_MODES:
            raise ValueError(f"restore must be one of {RESTORE_MODES}, got '{restore}'")

        array = np.asarray(tensor, dtype=np.float32)
        if array.ndim == 4:
            array = array[0]
        if array.ndim != 3:
            raise ValueError(f"Expected an HWC or NHWC tensor, got shape {array.shape}")

        low, high = self.output_range
        array = (array - low) / (high - low)
        chw = torch.from_numpy(np.ascontiguousarray(array)).permute(2, 0, 1).clamp(0.0, 1.0)
        image = TF.to_pil_image(chw)

        if aspect_ratio is None or image.width != image.height:
            return image

        side = image.width
        if aspect_ratio >= 1:
            width, height = side, max(1, round(side / aspect_ratio))
        else:
            width, height = max(1, round(side * aspect_ratio)), side

        if restore == "crop":
            return TF.center_crop(image, [height, width])
        return TF.resize(image, [height, width], interpolation=InterpolationMode.BILINEAR)
