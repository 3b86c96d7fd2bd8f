# Update Client for SAMPi
# Downloads the latest release, compares it with the running copy and restarts

import filecmp
import logging
import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import requests

logger = logging.getLogger(__name__)


def _exec_restart(argv: Sequence[str]):
    """Replace the current process with a fresh interpreter"""
    os.execv(sys.executable, [sys.executable, *argv])


class UpdateClient:
    """Fetches a candidate artifact over HTTP and swaps it in when it differs"""

    def __init__(self, update_url: str, artifact_path: Union[str, Path],
                 timeout: int = 30, download_path: Union[str, Path, None] = None,
                 restart: Callable[[Sequence[str]], None] = _exec_restart):
        self.update_url = update_url
        self.artifact_path = Path(artifact_path)
        self.timeout = timeout
        self.download_path = Path(download_path) if download_path else (
            Path(tempfile.gettempdir()) / self.artifact_path.name
        )
        self._restart = restart
        self.session = requests.Session()
        self.session.headers.update({'User-Agent': 'SAMPi/1.0'})
        self.update_available = False

    def check_for_update(self) -> bool:
        """Download the latest version; True if it differs from the running one"""
        logger.info("Checking for update at %s", self.update_url)
        self.update_available = False

        try:
            response = self.session.get(self.update_url, timeout=self.timeout, stream=True)
            response.raise_for_status()
            with open(self.download_path, 'wb') as f:
                for chunk in response.iter_content(chunk_size=8192):
                    f.write(chunk)
        except requests.exceptions.Timeout:
            logger.warning("Timeout downloading update from %s", self.update_url)
            return False
        except requests.exceptions.RequestException as e:
            logger.warning("Error downloading update from %s: %s", self.update_url, e)
            return False
        except OSError as e:
            logger.warning("Could not save update to %s: %s", self.download_path, e)
            return False

        try:
            same = filecmp.cmp(self.artifact_path, self.download_path, shallow=False)
        except OSError as e:
            logger.warning("Could not compare %s with %s: %s", self.artifact_path, self.download_path, e)
            return False

        self.update_available = not same
        if self.update_available:
            logger.info("New version is available at %s", self.update_url)
        else:
            logger.info("No update found, will try again later")
        return self.update_available

    def apply_update(self, argv: Optional[Sequence[str]] = None):
        """Overwrite the running artifact with the download and restart"""
        if not self.update_available:
            raise RuntimeError("apply_update() called with no update available")

        logger.info("Update found, overwriting %s with %s", self.artifact_path, self.download_path)
        shutil.copyfile(self.download_path, self.artifact_path)
        logger.info("Restarting...")
        self._restart(list(argv if argv is not None else sys.argv))


# Used when no update URL is configured
class StubUpdateClient:
    """Update client that never finds an update"""

    update_available = False

    def __init__(self, *args, **kwargs):
        self.check_count = 0

    def check_for_update(self) -> bool:
        self.check_count += 1
        logger.debug("[STUB] Update checks disabled")
        return False

    def apply_update(self, argv: Optional[Sequence[str]] = None):
        raise RuntimeError("Stub update client cannot apply updates")
