"""
Reasoning extraction for models that think out loud.

Some models wrap their chain of thought in a tag such as ``<think>...</think>``
inside ordinary text output. The extractor splits such a text stream into
reasoning and text chunks. Tags may be split across chunk boundaries, so
a possible partial tag at the end of the buffer is held back until more
text arrives.
"""

from aichatbot.ai.providers.base import InferenceChunk


def _partial_tag_length(buffer: str, tag: str) -> int:
    """Length of the longest suffix of buffer that is a proper prefix of tag."""
    for size in range(min(len(tag) - 1, len(buffer)), 0, -1):
        if buffer.endswith(tag[:size]):
            return size
    return 0


class ReasoningExtractor:
    """Split tagged reasoning out of a stream of text chunks."""

    def __init__(self, tag: str = "think"):
        self.open_tag = f"<{tag}>"
        self.close_tag = f"</{tag}>"
        self._buffer = ""
        self._in_reasoning = False

    def _emit(self, text: str, out: list[InferenceChunk]) -> None:
        if text:
            chunk_type = "reasoning" if self._in_reasoning else "text"
            out.append(InferenceChunk(type=chunk_type, text=text))

    def feed(self, text: str) -> list[InferenceChunk]:
        """Consume a text fragment and return the chunks it completes."""
        self._buffer += text
        out: list[InferenceChunk] = []

        while self._buffer:
            tag = self.close_tag if self._in_reasoning else self.open_tag
            index = self._buffer.find(tag)
            if index >= 0:
                self._emit(self._buffer[:index], out)
                self._buffer = self._buffer[index + len(tag) :]
                self._in_reasoning = not self._in_reasoning
                continue

            held = _partial_tag_length(self._buffer, tag)
            self._emit(self._buffer[: len(self._buffer) - held], out)
            self._buffer = self._buffer[len(self._buffer) - held :]
            break

        return out

    def flush(self) -> list[InferenceChunk]:
        """Emit whatever is still held back at end of stream."""
        out: list[InferenceChunk] = []
        self._emit(self._buffer, out)
        self._buffer = ""
        return out
