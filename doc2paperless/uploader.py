# uploader.py
import logging
from pathlib import Path

import requests

logger = logging.getLogger(__name__)

DOCUMENT_FIELD = "document"
TITLE_FIELD = "title"


class UploadError(Exception):
    """An upload attempt did not succeed. The local file is left untouched."""

    # Transport problems and rejected responses count towards upload_retries
    counts_as_retry = False


class UploadTransportError(UploadError):
    counts_as_retry = True


class UploadRejectedError(UploadError):
    counts_as_retry = True

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Failed to upload document: Status {status_code}, Response: {body}")
        self.status_code = status_code
        self.body = body


class LocalFileError(UploadError):
    pass


class DocumentUploader:
    """
    Sends one file to the Paperless post_document endpoint.

    `client` is anything with requests.Session's send(prepared, timeout=...)
    signature. Only HTTP 200 is success; every other outcome raises an
    UploadError subclass. Nothing is retried here.
    """

    def __init__(self, filesystem, client, upload_url: str, auth_token: str, timeout: float = 60.0):
        self.fs = filesystem
        self.client = client
        self.upload_url = upload_url
        self.auth_token = auth_token
        self.timeout = timeout

    def build_request(self, filepath: Path, fileobj) -> requests.PreparedRequest:
        title = Path(filepath).name
        request = requests.Request(
            "POST",
            self.upload_url,
            headers={"Authorization": f"Token {self.auth_token}"},
            files={DOCUMENT_FIELD: (title, fileobj)},
            data={TITLE_FIELD: title},
        )
        # prepare() reads the file into a multipart body and sets the boundary header
        return request.prepare()

    def upload(self, filepath: Path):
        try:
            fileobj = self.fs.open(filepath)
        except OSError as e:
            raise LocalFileError(f"Could not open {filepath}: {e}") from e

        with fileobj:
            try:
                prepared = self.build_request(filepath, fileobj)
            except requests.RequestException as e:
                # e.g. MissingSchema or InvalidURL for a malformed upload URL
                raise UploadTransportError(f"Could not build request for {self.upload_url}: {e}") from e
            except OSError as e:
                raise LocalFileError(f"Could not read {filepath}: {e}") from e

        try:
            response = self.client.send(prepared, timeout=self.timeout)
        except requests.RequestException as e:
            raise UploadTransportError(f"Request to {self.upload_url} failed: {e}") from e

        if response.status_code != 200:
            body = response.text
            logger.error(f"Failed to upload document: Status {response.status_code}, Response: {body}")
            raise UploadRejectedError(response.status_code, body)
        logger.debug(f"Paperless accepted {filepath}: {response.text}")
