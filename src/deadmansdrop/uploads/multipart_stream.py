"""Incremental ``multipart/form-data`` reader for video uploads.

The request body is fed chunk by chunk as it arrives. File bytes go straight
into the sink returned by ``open_file`` so no part of the upload is buffered
in memory or spooled before the size cap is applied.
"""

from __future__ import annotations

from typing import Callable

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from ..exceptions import MalformedUploadError
from ..storage.file_store import PendingUpload

MAX_FIELD_BYTES = 4096

OpenFile = Callable[[str, str | None], PendingUpload]


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


class MultipartUploadReader:
    """Route one file field to a :class:`PendingUpload` and collect text fields.

    Parts that carry a filename under any other field name are discarded.
    Errors raised by the sink (for example the size cap) propagate out of
    :meth:`feed`; the caller is expected to :meth:`abort` afterwards.
    """

    def __init__(
        self,
        content_type_header: str | None,
        *,
        open_file: OpenFile,
        file_field: str = "video",
        max_field_bytes: int = MAX_FIELD_BYTES,
    ) -> None:
        media_type, params = parse_options_header(content_type_header or "")
        boundary = params.get(b"boundary")
        if media_type != b"multipart/form-data" or not boundary:
            raise MalformedUploadError("expected multipart/form-data with a boundary")

        self.file: PendingUpload | None = None
        self.file_content_type: str | None = None
        self.fields: dict[str, str] = {}

        self._open_file = open_file
        self._file_field = file_field
        self._max_field_bytes = max_field_bytes
        self._headers: dict[bytes, bytes] = {}
        self._header_field = b""
        self._header_value = b""
        self._target: str | None = None
        self._field_name = ""
        self._field_value = bytearray()
        self._complete = False
        self._parser = MultipartParser(
            boundary,
            {
                "on_part_begin": self._on_part_begin,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_end": self._on_end,
            },
        )

    def feed(self, chunk: bytes) -> None:
        if not chunk:
            return
        try:
            self._parser.write(chunk)
        except MultipartParseError as exc:
            raise MalformedUploadError(str(exc)) from exc

    def finish(self) -> None:
        self._parser.finalize()
        if not self._complete:
            raise MalformedUploadError("multipart body ended before the closing boundary")

    def abort(self) -> None:
        if self.file is not None:
            self.file.abort()

    def _on_part_begin(self) -> None:
        self._headers = {}
        self._target = None

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        _, options = parse_options_header(self._headers.get(b"content-disposition", b""))
        name = _decode(options.get(b"name", b""))
        if b"filename" in options:
            filename = _decode(options[b"filename"])
            # browsers send an empty filename when no file was chosen
            if name != self._file_field or not filename:
                return
            if self.file is not None:
                raise MalformedUploadError(f"more than one '{self._file_field}' file part")
            content_type = self._headers.get(b"content-type")
            self.file_content_type = _decode(content_type) if content_type else None
            self.file = self._open_file(filename, self.file_content_type)
            self._target = "file"
            return
        self._field_name = name
        self._field_value = bytearray()
        self._target = "field"

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._target == "file":
            self.file.write(data[start:end])
        elif self._target == "field":
            self._field_value += data[start:end]
            if len(self._field_value) > self._max_field_bytes:
                raise MalformedUploadError(f"form field '{self._field_name}' is too long")

    def _on_part_end(self) -> None:
        if self._target == "field":
            self.fields[self._field_name] = _decode(bytes(self._field_value))
        self._target = None

    def _on_end(self) -> None:
        self._complete = True


__all__ = ["MAX_FIELD_BYTES", "MultipartUploadReader"]
