"""Response sink that captures handler output for the gateway."""

import base64
import io
import re
from typing import Optional, Union

from multidict import CIMultiDict

from apigateway.events import ProxyResponse
from apigateway.headers import add_header, collapse_headers, set_header

DEFAULT_CONTENT_TYPE = "text/plain; charset=utf8"

_MEDIA_TYPE_RE = re.compile(
    r"^[!#$%&'*+\-.^_`|~0-9a-z]+/[!#$%&'*+\-.^_`|~0-9a-z]+$"
)

TEXT_MEDIA_TYPES = frozenset(
    [
        "image/svg+xml",
        "application/json",
        "application/xml",
    ]
)


def is_text_mime(content_type: str) -> bool:
    """Whether a Content-Type value denotes textual data.

    Parameters (``; charset=...``) are ignored. A value that is not a valid
    ``type/subtype`` pair is not textual.
    """
    media_type = content_type.split(";", 1)[0].strip().lower()
    if not _MEDIA_TYPE_RE.match(media_type):
        return False
    if media_type.startswith("text/"):
        return True
    return media_type in TEXT_MEDIA_TYPES


def is_binary(headers: CIMultiDict) -> bool:
    """Whether a response with these headers must be base64 encoded."""
    if not is_text_mime(headers.get("Content-Type", "")):
        return True
    if headers.get("Content-Encoding", "").strip().lower() == "gzip":
        return True
    return False


class ResponseWriter:
    """Buffers status, headers, and body written by a handler.

    Headers are committed by the first ``write`` or ``write_header`` call;
    changes made to ``header()`` afterwards are not sent. ``end`` turns the
    captured state into the outbound envelope.
    """

    def __init__(self) -> None:
        self._header: CIMultiDict = CIMultiDict()
        self._committed: Optional[CIMultiDict] = None
        self._status = 0
        self._buf = io.BytesIO()
        self._finalized = False

    def header(self) -> CIMultiDict:
        """The header multimap to be sent with the response."""
        return self._header

    def set_header(self, key: str, value: str) -> None:
        set_header(self._header, key, value)

    def add_header(self, key: str, value: str) -> None:
        add_header(self._header, key, value)

    @property
    def status(self) -> int:
        return self._status

    @property
    def headers_committed(self) -> bool:
        return self._committed is not None

    def write_header(self, status: int) -> None:
        """Commit the status code and headers. Later calls are no-ops."""
        if self._committed is not None:
            return

        if not self._header.get("Content-Type"):
            self.set_header("Content-Type", DEFAULT_CONTENT_TYPE)

        self._status = int(status)
        self._committed = self._header.copy()

    def write(self, data: Union[bytes, bytearray, str]) -> int:
        """Append body bytes, committing a 200 status first if needed.

        Returns:
            Number of bytes written
        """
        if self._finalized:
            raise RuntimeError("write after response was finalized")
        if self._committed is None:
            self.write_header(200)
        if isinstance(data, str):
            data = data.encode("utf-8")
        return self._buf.write(data)

    def end(self) -> ProxyResponse:
        """Finalize the response into the outbound envelope.

        Repeated calls return equal envelopes.
        """
        if self._committed is None:
            self.write_header(200)
        self._finalized = True

        body = self._buf.getvalue()
        binary = is_binary(self._committed)
        headers, multi_value_headers = collapse_headers(self._committed)

        return ProxyResponse(
            status_code=self._status,
            headers=headers,
            multi_value_headers=multi_value_headers,
            body=(
                base64.b64encode(body).decode("ascii")
                if binary
                else body.decode("utf-8", errors="replace")
            ),
            is_base64_encoded=binary,
        )
