import logging
import threading

import requests

from ..config import Config
from ..errors import NotFound, RemoteRequestError, TransientNetworkError
from ..sync.models import RootPointer

logger = logging.getLogger(__name__)

ROOT_ENDPOINT = "sync/v3/root"
FILES_ENDPOINT = "sync/v3/files"
HEADER_RM_FILENAME = "rm-filename"

_TIMEOUT = (10, 60)


class StorageClient:
    """Read-only client for the content-addressed storage API.

    Returns raw bytes and root pointers; it never interprets blob content.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.base_url = config.storage_url.rstrip("/")

    @property
    def session(self) -> requests.Session:
        """Session for the calling thread."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["Authorization"] = f"Bearer {self.config.token}"
        session.verify = not self.config.insecure
        return session

    def _get(self, url: str, what: str, **kwargs) -> requests.Response:
        """
        Issue a GET and translate transport failures into rmcloud errors.
        """
        try:
            response = self._get_session().get(
                url, timeout=_TIMEOUT, **kwargs
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientNetworkError(
                f"Failed to fetch {what}: {exc}"
            ) from exc
        except requests.RequestException as exc:
            # Truncated bodies, bad encodings, redirect loops
            raise TransientNetworkError(
                f"Failed to fetch {what}: {exc}"
            ) from exc

        status = response.status_code
        if status == 404:
            raise NotFound(f"{what} not found on server")
        if status == 429 or status >= 500:
            raise TransientNetworkError(
                f"Failed to fetch {what}: HTTP {status}"
            )
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise RemoteRequestError(
                f"Failed to fetch {what}: {exc}"
            ) from exc
        return response

    def get_root_pointer(self) -> RootPointer:
        """
        Fetch the hash identifying the current state of the whole store.
        """
        response = self._get(
            f"{self.base_url}/{ROOT_ENDPOINT}",
            "root pointer",
            headers={
                "Accept": "application/json",
                HEADER_RM_FILENAME: "roothash",
            },
        )
        try:
            data = response.json()
        except ValueError as exc:
            raise RemoteRequestError(
                f"Root pointer response is not JSON: {exc}"
            ) from exc
        if not isinstance(data, dict) or not data.get("hash"):
            raise RemoteRequestError("Missing hash in root pointer response")
        pointer = RootPointer(
            hash=str(data["hash"]),
            generation=int(data.get("generation") or 0),
        )
        logger.debug(
            "Root pointer: %s (generation %d)",
            pointer.hash,
            pointer.generation,
        )
        return pointer

    def get_blob(self, blob_hash: str) -> bytes:
        """
        Fetch any content-addressed blob by its hash.
        """
        response = self._get(
            f"{self.base_url}/{FILES_ENDPOINT}/{blob_hash}",
            f"blob {blob_hash}",
        )
        return response.content
