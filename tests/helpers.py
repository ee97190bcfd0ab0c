"""Test doubles and builders shared by unit and integration tests."""

from collections.abc import AsyncIterator, Sequence

from ragchat.agent.flow import FlowEvent, FlowInput
from ragchat.models.fragments import Fragment


def make_pdf(pages: Sequence[str], padding: int = 0) -> bytes:
    """Build a PDF with one page per entry in ``pages`` and a valid xref table.

    Args:
        pages: Text drawn on each page, in order.
        padding: Whitespace bytes appended to every page's content stream,
            to reach a given file size without changing the text.
    """
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    kids = []
    for text in pages:
        escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        content = f"BT /F1 12 Tf 72 720 Td ({escaped}) Tj ET".encode("latin-1") + b" " * padding
        page_number = len(objects) + 1
        kids.append(b"%d 0 R" % page_number)
        objects.append(
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            b"/Contents %d 0 R /Resources << /Font << /F1 3 0 R >> >> >>" % (page_number + 1)
        )
        objects.append(b"<< /Length %d >>\nstream\n" % len(content) + content + b"\nendstream")
    objects[1] = b"<< /Type /Pages /Kids [%s] /Count %d >>" % (b" ".join(kids), len(pages))

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_offset,
    )
    return bytes(out)


def make_text_pdf(text: str) -> bytes:
    """Build a minimal one-page PDF containing ``text``."""
    return make_pdf([text])


class FakeFlow:
    """Generation flow that replays scripted events, then optionally raises."""

    def __init__(
        self,
        events: Sequence[FlowEvent] = (),
        error: Exception | None = None,
    ) -> None:
        self.events = list(events)
        self.error = error
        self.inputs: list[FlowInput] = []
        self.closed = False

    async def run(self, flow_input: FlowInput) -> AsyncIterator[FlowEvent]:
        self.inputs.append(flow_input)
        try:
            for event in self.events:
                yield event
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


class FakeIndex:
    """Fragment index that keeps every batch it receives."""

    def __init__(self, error: Exception | None = None) -> None:
        self.batches: list[list[Fragment]] = []
        self.error = error

    @property
    def fragments(self) -> list[Fragment]:
        return [fragment for batch in self.batches for fragment in batch]

    async def add_fragments(self, fragments: Sequence[Fragment]) -> None:
        if self.error is not None:
            raise self.error
        self.batches.append(list(fragments))


class BytesReader:
    """Async readable over in-memory bytes, like an uploaded file."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._position = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data) - self._position
        chunk = self._data[self._position : self._position + size]
        self._position += len(chunk)
        return chunk


def parse_sse(body: str) -> list[tuple[str, str]]:
    """Split an SSE body into ``(event, data)`` pairs."""
    frames = []
    for block in body.split("\n\n"):
        if not block.strip():
            continue
        event = data = ""
        for line in block.split("\n"):
            if line.startswith("event: "):
                event = line.removeprefix("event: ")
            elif line.startswith("data: "):
                data = line.removeprefix("data: ")
        frames.append((event, data))
    return frames
