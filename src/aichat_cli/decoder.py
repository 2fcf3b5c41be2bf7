"""Incremental decoders for streamed chat responses.

Both providers stream a chunked HTTP body whose chunk boundaries fall
anywhere, including inside a line or inside a multi-byte character. Lines
are reassembled here and turned into a lazy sequence of text fragments.

- OpenRouter sends Server-Sent Events: ``data: {json}`` records, ending with
  ``data: [DONE]``.
- Ollama sends newline-delimited JSON objects, the last one with
  ``"done": true``.

Records that fail to parse are skipped. Writing fragments to the terminal is
left to the caller.
"""

import codecs
import json
from typing import Iterable, Iterator

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def iter_lines(chunks: Iterable[bytes]) -> Iterator[str]:
    """Yield complete lines from a stream of byte chunks.

    A trailing piece without its newline is held until the newline arrives;
    if the stream ends first it is dropped.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    for chunk in chunks:
        buffer += decoder.decode(chunk)
        *lines, buffer = buffer.split("\n")
        for line in lines:
            yield line.rstrip("\r")


def decode_sse(chunks: Iterable[bytes]) -> Iterator[str]:
    """Yield ``choices[0].delta.content`` fragments from an SSE body."""
    for line in iter_lines(chunks):
        if not line.startswith(DATA_PREFIX):
            continue
        data = line[len(DATA_PREFIX):]
        if data.strip() == DONE_SENTINEL:
            return

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            continue

        content = dig(payload, "choices", 0, "delta", "content")
        if isinstance(content, str) and content:
            yield content


def decode_ndjson(chunks: Iterable[bytes]) -> Iterator[str]:
    """Yield ``message.content`` fragments from a newline-delimited JSON body."""
    for line in iter_lines(chunks):
        if not line.strip():
            continue

        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            continue

        content = dig(payload, "message", "content")
        if isinstance(content, str) and content:
            yield content
        if isinstance(payload, dict) and payload.get("done"):
            return


def dig(payload, *path):
    """Follow a path of dict keys / list indexes, returning None on any miss."""
    node = payload
    for key in path:
        if isinstance(key, int):
            if not isinstance(node, list) or len(node) <= key:
                return None
        elif not isinstance(node, dict):
            return None
        node = node[key] if isinstance(key, int) else node.get(key)
        if node is None:
            return None
    return node
