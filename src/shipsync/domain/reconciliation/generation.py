"""Pick the authoritative carrier generation for a tracking number.

Carriers re-use tracking numbers (return to sender, re-labelling), so one lookup can
return several unrelated life-cycles. The generation identifier starts with a sequence
number (``"12029~794635405505~FDEG"``); the highest sequence is authoritative. When no
sequence decides, the generation with the most recent scan wins and the selection is
flagged ambiguous.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shipsync.domain.model import CarrierTrackResult

log = getLogger(__name__)

_SEQUENCE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\s*(\d+)")
_EPOCH: Final[datetime] = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class GenerationSelection:
    winner: CarrierTrackResult
    discarded: tuple[CarrierTrackResult, ...] = ()
    ambiguous: bool = False


def generation_sequence(generation_id: str | None) -> int | None:
    """Return the leading numeric sequence of a generation identifier, if any."""

    if not generation_id:
        return None
    match = _SEQUENCE_PATTERN.match(generation_id)
    return int(match.group(1)) if match else None


def select_generation(results: Sequence[CarrierTrackResult]) -> GenerationSelection:
    if not results:
        raise ValueError("select_generation() requires at least one carrier result")
    if len(results) == 1:
        return GenerationSelection(winner=results[0])

    sequences = [generation_sequence(result.generation_id) for result in results]
    known = [sequence for sequence in sequences if sequence is not None]
    if known:
        highest = max(known)
        candidates = [
            index for index, sequence in enumerate(sequences) if sequence == highest
        ]
    else:
        candidates = list(range(len(results)))

    ambiguous = len(candidates) > 1
    if ambiguous:
        # max() keeps the first of equal keys, so input order breaks remaining ties
        winner_index = max(
            candidates,
            key=lambda index: results[index].latest_event_at() or _EPOCH,
        )
        log.warning(
            "Ambiguous carrier generations for %s (%s candidates); "
            "picked %s by most recent scan",
            results[winner_index].tracking_number,
            len(candidates),
            results[winner_index].generation_id,
        )
    else:
        winner_index = candidates[0]

    return GenerationSelection(
        winner=results[winner_index],
        discarded=tuple(
            result for index, result in enumerate(results) if index != winner_index
        ),
        ambiguous=ambiguous,
    )
