"""Local hashed-feature embeddings and chunk payload preparation."""

from __future__ import annotations

import hashlib
import math
import struct
from dataclasses import dataclass

DEFAULT_MODEL_ID = "miniLM-L6-v2-local-v1"
DEFAULT_MODEL_NAME = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_EMBEDDING_DIM = 384
DEFAULT_NORMALIZATION = "l2"
DEFAULT_BACKEND = "local-hash-v1"

_MASK64 = (1 << 64) - 1
_EMBEDDABLE_TYPES = frozenset({"clause", "annex", "table"})
_F32 = struct.Struct("<f")


@dataclass
class SemanticModelConfig:
    model_id: str
    model_name: str
    dimensions: int
    normalization: str
    backend: str


def resolve_model_config(model_id: str) -> SemanticModelConfig:
    """Resolve a model id (blank means the default) to its configuration."""
    resolved_id = model_id.strip() or DEFAULT_MODEL_ID
    model_name = DEFAULT_MODEL_NAME if resolved_id == DEFAULT_MODEL_ID else resolved_id
    return SemanticModelConfig(
        model_id=resolved_id,
        model_name=model_name,
        dimensions=DEFAULT_EMBEDDING_DIM,
        normalization=DEFAULT_NORMALIZATION,
        backend=DEFAULT_BACKEND,
    )


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces and trim the ends."""
    return " ".join(text.split())


def chunk_payload_for_embedding(
    chunk_type: str,
    reference: str,
    heading: str,
    text: str | None,
    table_md: str | None,
) -> str | None:
    """Build the text that is embedded for a chunk, or None if it is not eligible."""
    chunk_type_norm = chunk_type.strip().lower()
    if chunk_type_norm not in _EMBEDDABLE_TYPES:
        return None

    parts = [
        value
        for value in (normalize_whitespace(reference), normalize_whitespace(heading))
        if value
    ]

    if chunk_type_norm == "table":
        body_source = table_md if table_md is not None else text
    else:
        body_source = text

    body_norm = normalize_whitespace(body_source) if body_source is not None else ""
    if not body_norm:
        return None
    if not parts:
        return body_norm
    return "\n".join(parts) + "\n\n" + body_norm


def embedding_text_hash(payload: str) -> str:
    """Hex SHA-256 digest of the payload's UTF-8 bytes."""
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _to_f32(value: float) -> float:
    return _F32.unpack(_F32.pack(value))[0]


def embed_text_local(payload: str, dimensions: int) -> list[float]:
    """Embed text into an L2-normalised hashed bag of words and bigrams."""
    dims = max(dimensions, 8)
    vector = [0.0] * dims
    tokens = tokenize_payload(payload)
    if not tokens:
        return vector

    for token in tokens:
        hashed = stable_hash(token)
        index = hashed % dims
        sign = 1.0 if (hashed >> 63) & 1 == 0 else -1.0
        weight = _to_f32(1.0 + _to_f32(((hashed >> 48) & 0xFF) / 255.0))
        vector[index] = _to_f32(vector[index] + sign * weight)

    _normalize_vector(vector)
    return vector


def cosine_similarity(left: list[float], right: list[float]) -> float:
    """Dot product of two equally sized (already normalised) vectors; 0.0 otherwise."""
    if len(left) != len(right) or not left:
        return 0.0
    return sum(a * b for a, b in zip(left, right))


def encode_embedding_blob(values: list[float]) -> bytes:
    """Pack floats as little-endian 32-bit values."""
    return struct.pack(f"<{len(values)}f", *values)


def decode_embedding_blob(blob: bytes, expected_dim: int) -> list[float] | None:
    """Unpack a little-endian f32 blob of exactly ``expected_dim`` values."""
    if expected_dim <= 0 or len(blob) != expected_dim * 4:
        return None
    return list(struct.unpack(f"<{expected_dim}f", blob))


def _rotl(value: int, shift: int) -> int:
    return ((value << shift) | (value >> (64 - shift))) & _MASK64


def _sip_round(v0: int, v1: int, v2: int, v3: int) -> tuple[int, int, int, int]:
    v0 = (v0 + v1) & _MASK64
    v1 = _rotl(v1, 13) ^ v0
    v0 = _rotl(v0, 32)
    v2 = (v2 + v3) & _MASK64
    v3 = _rotl(v3, 16) ^ v2
    v0 = (v0 + v3) & _MASK64
    v3 = _rotl(v3, 21) ^ v0
    v2 = (v2 + v1) & _MASK64
    v1 = _rotl(v1, 17) ^ v2
    v2 = _rotl(v2, 32)
    return v0, v1, v2, v3


def _siphash13(data: bytes, k0: int = 0, k1: int = 0) -> int:
    v0 = k0 ^ 0x736F6D6570736575
    v1 = k1 ^ 0x646F72616E646F6D
    v2 = k0 ^ 0x6C7967656E657261
    v3 = k1 ^ 0x7465646279746573

    full = len(data) - len(data) % 8
    for offset in range(0, full, 8):
        block = int.from_bytes(data[offset : offset + 8], "little")
        v3 ^= block
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
        v0 ^= block

    last = ((len(data) & 0xFF) << 56) | int.from_bytes(data[full:], "little")
    v3 ^= last
    v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
    v0 ^= last

    v2 ^= 0xFF
    for _ in range(3):
        v0, v1, v2, v3 = _sip_round(v0, v1, v2, v3)
    return v0 ^ v1 ^ v2 ^ v3


def stable_hash(value: str) -> int:
    """Process-independent 64-bit hash of a string (SipHash-1-3, zero keys)."""
    return _siphash13(value.encode("utf-8") + b"\xff")


def _ascii_alnum_lower(word: str) -> str:
    return "".join(ch for ch in word if ch.isascii() and ch.isalnum()).lower()


def tokenize_payload(payload: str) -> list[str]:
    """Word (``w:``) and adjacent-bigram (``b:``) features of a payload."""
    normalized = normalize_whitespace(payload)
    if not normalized:
        return []

    words = [word for word in map(_ascii_alnum_lower, normalized.split(" ")) if word]
    features: list[str] = []
    for word, following in zip(words, words[1:] + [None]):
        features.append(f"w:{word}")
        if following is not None:
            features.append(f"b:{word}_{following}")
    return features


def _normalize_vector(values: list[float]) -> None:
    squared_norm = sum(value * value for value in values)
    if squared_norm <= 0.0:
        return
    norm = _to_f32(math.sqrt(squared_norm))
    if norm == 0.0:
        return
    values[:] = [_to_f32(value / norm) for value in values]