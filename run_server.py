#!/usr/bin/env python3
"""
StyleBlend Server Runner
Loads the configuration and serves the API with uvicorn
"""

import argparse
import sys

import uvicorn

from api.FastAPIHandler import create_app
from utilities.ConfigManager import ConfigManager
from utilities.Logger import Logger


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the StyleBlend API server")
    parser.add_argument("--config", help="Path to a JSON configuration file")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind")
    args = parser.parse_args(argv)

    config = ConfigManager.load_config(args.config)
    Logger.set_level_all(config["log_level"])
    if config["log_file"]:
        Logger.add_file_output_all(config["log_file"], config["log_level"])

    uvicorn.run(create_app(config=config), host=args.host, port=args.port,
                log_level=str(config["log_level"]).lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
