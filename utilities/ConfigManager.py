import copy
import json
import os

DEFAULT_CONFIG = {
    "assets_dir": "assets",
    "content_sample": "image1.jpg",
    "style_sample": "style1.jpg",
    "predict_model": "predict_int8.tflite",
    "transfer_model": "transfer_int8.tflite",
    # Hugging Face Hub repository to fetch missing model files from
    "hf_repo_id": None,
    "hf_token": None,
    # Only read for TorchScript models; .tflite files declare their own shapes
    "input_shapes": {
        "predict": [[1, 256, 256, 3]],
        "transfer": [[1, 384, 384, 3], [1, 1, 1, 100]],
    },
    "input_range": [0.0, 1.0],
    "output_range": [0.0, 1.0],
    "cache_style": True,
    "preserve_aspect": True,
    "restore": "crop",
    "blend_ratio": 0.0,
    "jpeg_quality": 80,
    "share_file": "share.jpg",
    "log_file": None,
    "log_level": "INFO",
}


class ConfigManager:
    @staticmethod
    def load_config(config_path=None, default_config=None):
        """
        Load configuration from a file. If the file does not exist and default_config is provided,
        create the file with the default configuration. Keys missing from the file are filled in
        from default_config.

        :param config_path: Path to the configuration file, or None for the defaults only.
        :param default_config: A dictionary with default configuration values (default: DEFAULT_CONFIG).
        :return: Loaded configuration as a dictionary.
        """
        if default_config is None:
            default_config = DEFAULT_CONFIG

        if config_path is None:
            return copy.deepcopy(default_config)

        if not os.path.exists(config_path):
            ConfigManager.save_config(default_config, config_path)
            return copy.deepcopy(default_config)

        try:
            with open(config_path, "r") as f:
                loaded = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file '{config_path}': {e}")

        if not isinstance(loaded, dict):
            raise ValueError(f"Config file '{config_path}' must contain a JSON object.")

        config = copy.deepcopy(default_config)
        config.update({key: value for key, value in loaded.items() if key in default_config})
        return config

    @staticmethod
    def save_config(config, config_path):
        """
        Save configuration to a file.

        :param config: Dictionary containing configuration values.
        :param config_path: Path to save the configuration file.
        """
        try:
            with open(config_path, "w") as f:
                json.dump(config, f, indent=4)
        except OSError as e:
            raise IOError(f"Failed to save config to '{config_path}': {e}") from e
