import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from io import BytesIO
from typing import Iterator, Optional, Protocol

from flask import send_file

from artifacts import EncodedArtifact
from errors import DownloadEnvironmentError

logger = logging.getLogger(__name__)


class Element(Protocol):
    def set_attribute(self, name: str, value: str) -> None: ...

    def click(self) -> None: ...


class Body(Protocol):
    def append_child(self, element: Element) -> None: ...

    def remove_child(self, element: Element) -> None: ...


class DocumentSurface(Protocol):
    body: Body

    def create_element(self, tag: str) -> Element: ...


@dataclass(frozen=True)
class DownloadRequest:
    artifact: EncodedArtifact
    filename: str


def download_filename(name: str, artifact: EncodedArtifact) -> str:
    """
    Turn a caller supplied name into a safe file name for the artifact.
    Path separators and unusual characters become dashes and the extension
    matching the artifact type is appended when missing.
    """
    cleaned = re.sub(r"[^a-zA-Z0-9._-]+", "-", name.strip()).strip(".-")
    if not cleaned:
        cleaned = "qr-code"
    suffix = f".{artifact.extension}"
    if not cleaned.lower().endswith(suffix):
        cleaned += suffix
    return cleaned


@contextmanager
def attached_element(document: DocumentSurface, tag: str) -> Iterator[Element]:
    element = document.create_element(tag)
    document.body.append_child(element)
    try:
        yield element
    finally:
        document.body.remove_child(element)


def trigger_download(artifact: EncodedArtifact, filename: str,
                     document: Optional[DocumentSurface]) -> None:
    """
    Ask the host document to save the artifact under filename.

    An anchor pointing at the data URI is attached, clicked once and detached,
    even when the click raises. The file write itself happens in the host.
    Every call starts a separate download.
    """
    if document is None:
        raise DownloadEnvironmentError("no document surface available to trigger a download")
    if not filename or not filename.strip():
        raise ValueError("filename is required")

    request = DownloadRequest(artifact=artifact, filename=filename)
    with attached_element(document, "a") as link:
        link.set_attribute("href", request.artifact.data)
        link.set_attribute("download", request.filename)
        link.click()
    logger.debug("Triggered download of %s", request.filename)


def send_artifact(artifact: EncodedArtifact, filename: str):
    """Serve the artifact as a file attachment."""
    buffer = BytesIO(artifact.raw_bytes())
    return send_file(
        buffer,
        mimetype=artifact.mime_type,
        as_attachment=True,
        download_name=download_filename(filename, artifact),
    )
