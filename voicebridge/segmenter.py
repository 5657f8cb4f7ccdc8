"""Splitting streamed model output into speakable pieces at punctuation."""

import re

# Punctuation followed by any ASCII whitespace.
_PUNCTUATION = re.compile(r"([.,;:!?，。！？；：])[\t\n\f\r ]*")


def split_segments(buffer):
    """Split ``buffer`` after each punctuation mark.

    Returns the complete segments and the text left over after the last mark.
    """
    segments = []
    last = 0
    for match in _PUNCTUATION.finditer(buffer):
        segment = buffer[last : match.end()]
        if segment:
            segments.append(segment)
        last = match.end()
    return segments, buffer[last:]


class SentenceSegmenter:
    """Accumulates streamed text and yields it piece by piece at punctuation."""

    def __init__(self):
        self.buffer = ""

    def feed(self, text):
        """Add ``text`` and return the segments it completes."""
        segments, self.buffer = split_segments(self.buffer + text)
        return segments

    def flush(self):
        """Return whatever text is still pending and clear it."""
        rest, self.buffer = self.buffer, ""
        return rest