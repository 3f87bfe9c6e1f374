'''
Pack notification payloads into batches whose encoded size stays under a rune budget.

A batch serializes as a JSON array: 2 runes of envelope ("[" and "]") plus each
payload's encoding and one separator per payload.
'''

from collections.abc import Callable, Iterable
from dataclasses import replace

import structlog

from feedrelay.errors import OversizedPayloadDropped
from feedrelay.models import NotificationPayload

logger = structlog.get_logger()

ENVELOPE_OVERHEAD = 2
SEPARATOR_OVERHEAD = 1
# Chat platform limit on a post's serialized attachment props, in runes
DEFAULT_MAX_RUNES = 400_000

Batch = list[NotificationPayload]


def encoded_size(payload: NotificationPayload) -> int:
    return len(payload.encode())


def encode_batch(batch: Batch) -> str:
    return '[' + ','.join(p.encode() for p in batch) + ']'


class NotificationBatcher:
    def __init__(self, max_size: int = DEFAULT_MAX_RUNES, group_messages: bool = True) -> None:
        if max_size <= ENVELOPE_OVERHEAD + SEPARATOR_OVERHEAD:
            raise ValueError(f'max_size too small: {max_size}')
        self.max_size = max_size
        self.group_messages = group_messages

    def trim(
        self,
        payload: NotificationPayload,
        size: int,
        on_drop: Callable[[OversizedPayloadDropped], None] | None = None,
    ) -> NotificationPayload | None:
        '''
        Cut exactly (size - max_size) characters off the tail of the payload text.
        Returns None, after logging and notifying on_drop, if no text would remain.
        '''
        keep = len(payload.text) - (size - self.max_size)
        if keep > 0:
            return replace(payload, text=payload.text[:keep])
        err = OversizedPayloadDropped(payload, size, self.max_size)
        logger.warning('payload too large and text could not be trimmed', title=payload.title, size=size)
        if on_drop is not None:
            on_drop(err)
        return None

    def group(
        self,
        payloads: Iterable[NotificationPayload],
        on_drop: Callable[[OversizedPayloadDropped], None] | None = None,
    ) -> list[Batch]:
        '''
        Greedy forward packing in input order. Every batch is non-empty; payloads
        that cannot be trimmed to fit are skipped.
        '''
        batches: list[Batch] = []
        current: Batch = []
        size = ENVELOPE_OVERHEAD

        for payload in payloads:
            encoded = encoded_size(payload)

            if encoded > self.max_size:
                # Oversized payloads always travel alone
                if current:
                    batches.append(current)
                    current, size = [], ENVELOPE_OVERHEAD
                trimmed = self.trim(payload, encoded, on_drop)
                if trimmed is not None:
                    batches.append([trimmed])
                continue

            if not self.group_messages:
                batches.append([payload])
                continue

            size += encoded + SEPARATOR_OVERHEAD
            if size > self.max_size and current:
                batches.append(current)
                current = []
                size = ENVELOPE_OVERHEAD + encoded + SEPARATOR_OVERHEAD
            current.append(payload)

        if current:
            batches.append(current)
        return batches
