"""Bounded polling of relayer transaction state."""

import asyncio
import logging
from typing import Awaitable, Callable, FrozenSet, Iterable, Optional

from .exceptions import TransactionFailedError
from .models import PollResult, RelayTransactionRecord, RelayTransactionState

logger = logging.getLogger(__name__)

DEFAULT_TERMINAL_STATES = frozenset({
    RelayTransactionState.MINED,
    RelayTransactionState.CONFIRMED,
    RelayTransactionState.FAILED,
})

FetchRecord = Callable[[str], Awaitable[RelayTransactionRecord]]
Sleep = Callable[[float], Awaitable[None]]


class TransactionPoller:
    """
    Poll a relayer transaction until it reaches a terminal state.

    At most ``max_polls`` status fetches are made, ``interval`` seconds apart.
    A FAILED state raises immediately. Running out of attempts returns a
    timed-out PollResult: the transaction may still land, so callers must
    re-check on-chain state instead of assuming failure.
    """

    def __init__(
        self,
        interval: float = 3.0,
        max_polls: int = 40,
        terminal_states: Optional[Iterable[RelayTransactionState]] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        if max_polls < 1:
            raise ValueError("max_polls must be at least 1")
        self.interval = interval
        self.max_polls = max_polls
        self.terminal_states: FrozenSet[RelayTransactionState] = (
            frozenset(terminal_states) if terminal_states is not None else DEFAULT_TERMINAL_STATES
        )
        self._sleep = sleep

    async def poll(self, transaction_id: str, fetch: FetchRecord) -> PollResult:
        """
        Poll ``fetch(transaction_id)`` until a terminal state or the budget runs out.

        Raises:
            TransactionFailedError: If the relayer reports the transaction FAILED
        """
        record = RelayTransactionRecord(transaction_id=transaction_id)

        for attempt in range(1, self.max_polls + 1):
            record = await fetch(transaction_id)
            logger.debug(
                f"Relayer tx {transaction_id} poll {attempt}/{self.max_polls}: {record.state.value}"
            )

            if record.state in self.terminal_states:
                if record.state == RelayTransactionState.FAILED:
                    logger.error(f"Relayer tx {transaction_id} failed after {attempt} polls")
                    raise TransactionFailedError(
                        "Relayer reported transaction as FAILED",
                        stage="polling",
                        transaction_id=transaction_id,
                    )
                logger.info(f"Relayer tx {transaction_id} reached {record.state.value}")
                return PollResult(record=record, attempts=attempt)

            if attempt < self.max_polls:
                await self._sleep(self.interval)

        logger.warning(
            f"Relayer tx {transaction_id} still {record.state.value} after "
            f"{self.max_polls} polls ({self.max_polls * self.interval:.0f}s)"
        )
        return PollResult(record=record, attempts=self.max_polls, timed_out=True)
