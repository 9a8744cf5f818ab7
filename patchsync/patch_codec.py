"""
PatchSync - Patch Codec

This module computes, applies, encodes and decodes text deltas:
- Line-based diff between two text states (difflib.SequenceMatcher)
- Replay of a delta against its base text
- Filename-safe and JSON-safe text encoding of a delta
- Line ending normalization and content hashing shared by client and server

Delta format:
    A delta is a list of DeltaOperation values applied left to right:
    - "=" N  retain the next N characters of the base text
    - "-" N  delete the next N characters of the base text
    - "+" T  insert text T
    A trailing retain is implicit, so identical texts produce an empty delta.

Encoded form:
    Operations are rendered as tab-separated tokens ("=12", "-3", "+new%0A")
    with insert text percent-quoted, and the resulting string is URL-safe
    base64 encoded.
"""

import base64
import binascii
import difflib
import hashlib
import logging
from dataclasses import dataclass
from typing import List
from urllib.parse import quote, unquote

from patchsync.exceptions import CodecError, PatchApplyError

logger = logging.getLogger(__name__)


# ==================== Delta Model ====================

RETAIN = "="
DELETE = "-"
INSERT = "+"

# Characters left unquoted in insert text (everything else is percent-encoded)
SAFE_INSERT_CHARACTERS = " !~*'();/?:@&=+$,#"


@dataclass(frozen=True)
class DeltaOperation:
    """
    A single edit step of a delta

    kind is one of RETAIN, DELETE or INSERT. Retain and delete carry a
    character count in length; insert carries its text (length mirrors len(text)).
    """
    kind: str
    length: int = 0
    text: str = ""


Delta = List[DeltaOperation]


def Retain(length: int) -> DeltaOperation:
    return DeltaOperation(RETAIN, length)


def Delete(length: int) -> DeltaOperation:
    return DeltaOperation(DELETE, length)


def Insert(text: str) -> DeltaOperation:
    return DeltaOperation(INSERT, len(text), text)


def _AppendOperation(delta: Delta, operation: DeltaOperation) -> None:
    """Append an operation, merging it into the previous one when both have the same kind"""
    if delta and delta[-1].kind == operation.kind:
        previous = delta.pop()
        if operation.kind == INSERT:
            delta.append(Insert(previous.text + operation.text))
        else:
            delta.append(DeltaOperation(operation.kind, previous.length + operation.length))
    else:
        delta.append(operation)


# ==================== Text Helpers ====================

def NormalizeLineEndings(text: str) -> str:
    """
    Convert CRLF and CR line endings to LF

    Applied before hashing or diffing so that the same document produces the
    same hash and delta on every platform.

    Args:
        text: Raw text

    Returns:
        str: Text with only LF line endings
    """
    return text.replace("\r\n", "\n").replace("\r", "\n")


def HashText(text: str) -> str:
    """
    Calculate the content hash of a text state

    Args:
        text: Full text content

    Returns:
        str: Hex-encoded SHA-256 hash of the UTF-8 encoded text
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


# ==================== Diff and Patch ====================

def ComputeDelta(old_text: str, new_text: str) -> Delta:
    """
    Compute the delta that turns old_text into new_text

    Lines are matched with difflib's longest matching subsequence algorithm
    (autojunk disabled so the result depends only on the inputs), then the
    matched and unmatched runs are expressed as character operations.

    Args:
        old_text: Base text (may be empty)
        new_text: Target text

    Returns:
        Delta: List of operations, empty when the texts are equal
    """
    old_lines = old_text.splitlines(keepends=True)
    new_lines = new_text.splitlines(keepends=True)

    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    delta: Delta = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            _AppendOperation(delta, Retain(sum(len(line) for line in old_lines[i1:i2])))
            continue

        # 'replace' is a delete followed by an insert
        if i2 > i1:
            _AppendOperation(delta, Delete(sum(len(line) for line in old_lines[i1:i2])))
        if j2 > j1:
            _AppendOperation(delta, Insert("".join(new_lines[j1:j2])))

    # The remainder of the base text is retained implicitly
    while delta and delta[-1].kind == RETAIN:
        delta.pop()

    return delta


def ApplyDelta(base_text: str, delta: Delta) -> str:
    """
    Apply a delta to its base text

    Args:
        base_text: Text the delta was computed against
        delta: List of operations

    Returns:
        str: Resulting text

    Raises:
        PatchApplyError: If an operation is malformed or reaches past the end of base_text
    """
    pieces = []
    cursor = 0

    for index, operation in enumerate(delta):
        if not isinstance(operation, DeltaOperation):
            raise PatchApplyError(f"Delta entry {index} is not an operation: {operation!r}")

        if operation.kind == INSERT:
            pieces.append(operation.text)
            continue

        if operation.kind not in (RETAIN, DELETE):
            raise PatchApplyError(f"Unknown operation '{operation.kind}' at position {index}")

        if operation.length <= 0:
            raise PatchApplyError(f"Operation {index} has invalid length {operation.length}")

        end = cursor + operation.length
        if end > len(base_text):
            raise PatchApplyError(
                f"Operation {index} ('{operation.kind}{operation.length}') spans characters "
                f"{cursor}-{end} but base text has only {len(base_text)}"
            )

        if operation.kind == RETAIN:
            pieces.append(base_text[cursor:end])
        cursor = end

    pieces.append(base_text[cursor:])
    return "".join(pieces)


# ==================== Encoding ====================

def _DeltaToText(delta: Delta) -> str:
    tokens = []
    for operation in delta:
        if operation.kind == INSERT:
            tokens.append(INSERT + quote(operation.text, safe=SAFE_INSERT_CHARACTERS))
        else:
            tokens.append(f"{operation.kind}{operation.length}")
    return "\t".join(tokens)


def _TextToDelta(text: str) -> Delta:
    if text == "":
        return []

    delta: Delta = []
    for index, token in enumerate(text.split("\t")):
        if not token:
            raise CodecError(f"Empty token at position {index}")

        kind, body = token[0], token[1:]

        if kind == INSERT:
            try:
                delta.append(Insert(unquote(body, errors="strict")))
            except UnicodeDecodeError as e:
                raise CodecError(f"Insert text at position {index} is not valid UTF-8: {e}")
        elif kind in (RETAIN, DELETE):
            if not (body.isascii() and body.isdigit()):
                raise CodecError(f"Invalid length '{body}' at position {index}")
            length = int(body)
            if length == 0:
                raise CodecError(f"Zero length operation at position {index}")
            delta.append(DeltaOperation(kind, length))
        else:
            raise CodecError(f"Unknown operation '{kind}' at position {index}")

    return delta


def EncodeDelta(delta: Delta) -> str:
    """
    Encode a delta into a filename-safe and JSON-safe string

    Args:
        delta: List of operations

    Returns:
        str: URL-safe base64 text (empty string for an empty delta)
    """
    return base64.urlsafe_b64encode(_DeltaToText(delta).encode("utf-8")).decode("ascii")


def DecodeDelta(encoded: str) -> Delta:
    """
    Decode a string produced by EncodeDelta

    Args:
        encoded: URL-safe base64 text

    Returns:
        Delta: List of operations

    Raises:
        CodecError: If the text is not valid base64, not UTF-8, or holds a malformed operation
    """
    try:
        raw = base64.b64decode(encoded.encode("ascii"), altchars=b"-_", validate=True)
    except (UnicodeEncodeError, binascii.Error) as e:
        raise CodecError(f"Encoded delta is not valid base64: {e}")

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CodecError(f"Encoded delta is not valid UTF-8: {e}")

    return _TextToDelta(text)


def DeltaSize(encoded: str) -> int:
    """Number of characters the operations of an encoded delta insert or delete"""
    return sum(operation.length for operation in DecodeDelta(encoded) if operation.kind != RETAIN)
