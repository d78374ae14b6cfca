import argparse
import os
import sys
from core.AssetLoader import AssetLoader
from core.Errors import StyleBlendError
from core.ImageCodec import ImageCodec, RESTORE_MODES
from core.StyleTransferPipeline import StyleTransferPipeline
from utilities.ConfigManager import ConfigManager
from utilities.Logger import Logger
import logging

# Set up logger
logger = Logger.setup_logger(logger_name="CLI", log_level=logging.INFO)


def build_parser():
    parser = argparse.ArgumentParser(description="StyleBlend: blend a content photo with a style photo.")
    parser.add_argument("--content", help="Path to content image (default: bundled sample)")
    parser.add_argument("--style", help="Path to style image (default: bundled sample)")
    parser.add_argument("--output", required=True, help="Path to save the styled image")
    parser.add_argument("--config", help="Path to a JSON configuration file")
    parser.add_argument("--blend", type=float, help="Share of the content's own style to keep, 0-1")
    parser.add_argument("--restore", choices=RESTORE_MODES, help="How to restore the content aspect ratio")
    parser.add_argument("--no-aspect", action="store_true", help="Keep the square model output")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = ConfigManager.load_config(args.config)
    except (ValueError, IOError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    Logger.set_level_all(config["log_level"])
    if config["log_file"]:
        Logger.add_file_output_all(config["log_file"], config["log_level"])

    if args.blend is not None:
        config["blend_ratio"] = args.blend
    if args.restore:
        config["restore"] = args.restore
    if args.no_aspect:
        config["preserve_aspect"] = False

    try:
        logger.info("[1/4] Loading models...")
        loader = AssetLoader(config)
        predict, transfer = loader.load_models()
        pipeline = StyleTransferPipeline.from_config(predict, transfer, config)

        logger.info("[2/4] Loading images...")
        samples = loader.load_samples() if not (args.content and args.style) else None
        content = ImageCodec.decode_image(args.content) if args.content else samples.content
        style = ImageCodec.decode_image(args.style) if args.style else samples.style

        logger.info("[3/4] Applying style transfer...")
        styled_image = pipeline.merge(content, style)

        logger.info("[4/4] Saving result...")
        output_dir = os.path.dirname(args.output)
        if output_dir and not os.path.exists(output_dir):
            os.makedirs(output_dir)
        if args.output.lower().endswith((".jpg", ".jpeg")):
            with open(args.output, "wb") as f:
                f.write(ImageCodec.to_jpeg(styled_image, quality=config["jpeg_quality"]))
        else:
            styled_image.save(args.output)
    except (StyleBlendError, ValueError, OSError) as e:
        logger.error(f"Style transfer failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Styled image saved to: {args.output}")
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
