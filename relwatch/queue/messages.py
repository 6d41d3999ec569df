"""Work messages exchanged over the source-requests queue."""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

import msgspec

_NonEmpty = typ.Annotated[str, msgspec.Meta(min_length=1)]


class WorkMessage(msgspec.Struct, frozen=True):
    """Request to ingest new releases for one GitHub repository."""

    owner: _NonEmpty
    repo: _NonEmpty


class MalformedWorkMessageError(ValueError):
    """Raised when a delivery body does not decode into a WorkMessage."""

    @classmethod
    def from_decode_error(
        cls, error: msgspec.DecodeError
    ) -> MalformedWorkMessageError:
        """Wrap a msgspec decoding failure."""
        return cls(f"Malformed work message: {error}")


_DECODER = msgspec.json.Decoder(WorkMessage)
_ENCODER = msgspec.json.Encoder()


def decode_work_message(body: bytes) -> WorkMessage:
    """Decode a JSON delivery body into a :class:`WorkMessage`.

    Raises
    ------
    MalformedWorkMessageError
        If the body is not JSON or is missing ``owner``/``repo`` strings.

    """
    try:
        return _DECODER.decode(body)
    except msgspec.DecodeError as exc:
        raise MalformedWorkMessageError.from_decode_error(exc) from exc


def encode_work_message(message: WorkMessage) -> bytes:
    """Encode a work message as a compact JSON body."""
    return _ENCODER.encode(message)


def death_count(headers: cabc.Mapping[str, object] | None) -> int:
    """Return how many times a message has been dead-lettered.

    RabbitMQ records dead-lettering in the ``x-death`` header, a list of
    tables whose first entry tracks the most recent queue. Absent or
    malformed headers count as zero deaths.
    """
    if not headers:
        return 0
    deaths = headers.get("x-death")
    if not isinstance(deaths, cabc.Sequence) or isinstance(deaths, (str, bytes)):
        return 0
    if not deaths:
        return 0
    latest = deaths[0]
    if not isinstance(latest, cabc.Mapping):
        return 0
    count = latest.get("count")
    if isinstance(count, bool) or not isinstance(count, int):
        return 0
    return count
