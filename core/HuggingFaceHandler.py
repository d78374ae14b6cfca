from huggingface_hub import snapshot_download
import logging
from utilities.Logger import Logger

logger = Logger.setup_logger(logger_name="HuggingFaceHandler", log_level=logging.INFO)


class HuggingFaceHandler:
    def __init__(self, token=None):
        """
        Initialize Hugging Face Handler for fetching model files.

        :param token: Hugging Face API token, None for public repositories.
        """
        self.token = token

    def download_files(self, repo_id: str, filenames, local_dir):
        """
        Download selected files of a Hub repository into a local directory.

        :param repo_id: Repository name (e.g., 'username/repo_name').
        :param filenames: File names to fetch from the repository root.
        :param local_dir: Directory the files are written to.
        :return: Path to the local directory.
        """
        try:
            logger.info(f"Fetching {', '.join(filenames)} from Hugging Face Hub repository '{repo_id}'...")
            path = snapshot_download(
                repo_id=repo_id,
                allow_patterns=list(filenames),
                local_dir=str(local_dir),
                token=self.token,
            )
            logger.info(f"Model files downloaded to {path}.")
            return path
        except Exception as e:
            logger.error(f"Failed to download from '{repo_id}': {e}")
            raise
