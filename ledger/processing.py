"""
Message Processing
Broadcast and confirmation of encoded messages

ENCODED -> SUBMITTED -> AWAITING_BLOCK -> RESOLVED_SUCCESS | RESOLVED_FAILURE

The wait is bounded in block intervals. Each new block observed after the
shard locator consumes one interval; so does every `block_interval` seconds
without a new block, which keeps the wait finite on a stalled chain.
Failed broadcasts are never retried here.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Dict, NoReturn, Optional, Tuple, Union

from loguru import logger

from .abi import Abi
from .errors import (
    ConfirmationTimeout,
    FundingError,
    InsufficientBalance,
    LedgerError,
    NetworkError,
    TransactionAborted,
)
from .events import EventCallback, EventDispatcher
from .types import (
    EventKind,
    LifecycleEvent,
    Message,
    PendingSubmission,
    ProcessingState,
    ShardLocator,
    TransactionResult,
)

if TYPE_CHECKING:
    from .funding import FundedAddress

Observer = Union[EventCallback, EventDispatcher, None]


class MessageProcessor:
    """
    Drives messages to a terminal TransactionResult

    Holds no per-message state, so one processor can serve any number of
    concurrent orchestrations over a shared network layer.
    """

    def __init__(
        self,
        network,
        max_block_intervals: int = 20,
        poll_interval: float = 0.5,
        block_interval: float = 2.0,
        max_fetch_failures: int = 5,
        observer_timeout: float = 0.5,
    ):
        """
        Initialize Message Processor

        Args:
            network: NetworkLayer implementation
            max_block_intervals: Block intervals to wait before the message expires
            poll_interval: Seconds between head polls
            block_interval: Nominal seconds per block, counted when no block arrives
            max_fetch_failures: Consecutive node failures tolerated while waiting
            observer_timeout: Seconds to let an async observer catch up once a message resolves
        """
        if max_block_intervals < 1:
            raise ValueError("max_block_intervals must be at least 1")
        if block_interval <= 0:
            raise ValueError("block_interval must be positive")

        self.network = network
        self.max_block_intervals = int(max_block_intervals)
        self.poll_interval = float(poll_interval)
        self.block_interval = float(block_interval)
        self.max_fetch_failures = int(max_fetch_failures)
        self.observer_timeout = float(observer_timeout)

    @classmethod
    def from_config(cls, network, config: Dict) -> 'MessageProcessor':
        processing = config.get('processing', {})
        return cls(
            network,
            max_block_intervals=processing.get('max_block_intervals', 20),
            poll_interval=processing.get('poll_interval_s', 0.5),
            block_interval=processing.get('block_interval_s', 2.0),
            max_fetch_failures=processing.get('max_fetch_failures', 5),
            observer_timeout=processing.get('observer_timeout_s', 0.5),
        )

    async def process_message(
        self,
        message: Message,
        abi: Any,
        on_event: Observer = None,
        funded: Optional['FundedAddress'] = None,
    ) -> TransactionResult:
        """
        Send a message and wait for its transaction

        A message whose transaction is already on-chain is not broadcast
        again; its existing result is returned.

        Args:
            message: Signed message
            abi: ABI of the destination contract
            on_event: Observer for lifecycle events
            funded: Funding token for the payer of a deploy message

        Returns:
            TransactionResult of a successful transaction
        """
        abi = Abi.from_json(abi)
        events, owned = self._dispatcher(on_event)

        try:
            prior = await self.network.lookup_result(message, abi)
            if prior is not None:
                if self._matches(message, prior):
                    logger.info(f"Message {message.message_id} already processed in block {prior.block_number}")
                    self._emit(
                        events, EventKind.DUPLICATE_DETECTED, ProcessingState.SUBMITTED, message,
                        block_number=prior.block_number,
                    )
                    return self._resolve(prior, message, None, events)
                logger.warning(
                    f"Transaction {prior.transaction_hash} targets {prior.address}, "
                    f"expected {message.address} - not a duplicate"
                )

            if message.is_deploy:
                await self._check_deploy_eligible(message, funded)

            pending = await self.send_message(message, abi, events)
            return await self.wait_for_transaction(pending, events)

        finally:
            if owned:
                await events.close()

    async def send_message(
        self,
        message: Message,
        abi: Any,
        on_event: Observer = None,
    ) -> PendingSubmission:
        """
        Hand a message to the node

        Returns:
            PendingSubmission holding the shard locator
        """
        events, owned = self._dispatcher(on_event)

        try:
            self._emit(events, EventKind.WILL_SEND, ProcessingState.ENCODED, message)

            try:
                locator = await self.network.submit(message)
            except LedgerError as e:
                logger.error(f"Message {message.message_id} was not sent: {e}")
                self._emit(events, EventKind.SEND_FAILED, ProcessingState.RESOLVED_FAILURE, message, error=str(e))
                raise

            logger.debug(f"Message {message.message_id} sent at block {locator.block_number}")
            self._emit(
                events, EventKind.DID_SEND, ProcessingState.SUBMITTED, message,
                locator=locator, block_number=locator.block_number,
            )
            return PendingSubmission(message=message, shard_locator=locator, abi=Abi.from_json(abi))

        finally:
            if owned:
                await events.close()

    async def wait_for_transaction(
        self,
        pending: PendingSubmission,
        on_event: Observer = None,
    ) -> TransactionResult:
        """
        Wait for the block holding a submitted message

        Once a block past the shard locator exists, the result is looked up
        on every poll, so a receipt indexed after its block still resolves.

        Raises:
            ConfirmationTimeout: window exhausted without a matching transaction
            TransactionAborted: transaction found but its execution failed
            NetworkError: node unreachable for max_fetch_failures polls in a row
        """
        message = pending.message
        locator = pending.shard_locator
        loop = asyncio.get_running_loop()
        events, owned = self._dispatcher(on_event)

        last_block = locator.block_number + self.max_block_intervals
        if message.expire_block is not None:
            last_block = min(last_block, message.expire_block)

        seen = locator.block_number
        last_progress = loop.time()
        failures = 0
        fetch_next = True
        ignored = set()

        try:
            while True:
                if fetch_next:
                    self._emit(
                        events, EventKind.WILL_FETCH_NEXT_BLOCK, ProcessingState.AWAITING_BLOCK, message,
                        locator=locator, block_number=seen,
                    )
                    fetch_next = False

                try:
                    head = await self.network.block_number()
                    result = None
                    if max(head, seen) > locator.block_number:
                        result = await self.network.lookup_result(message, pending.abi)
                except LedgerError as e:
                    failures += 1
                    self._emit(
                        events, EventKind.FETCH_NEXT_BLOCK_FAILED, ProcessingState.AWAITING_BLOCK, message,
                        locator=locator, block_number=seen, error=str(e),
                    )
                    if failures >= self.max_fetch_failures:
                        raise NetworkError(
                            f"Node unreachable for {failures} polls while waiting",
                            address=message.address, message_id=message.message_id,
                        ) from e
                    await asyncio.sleep(self.poll_interval)
                    continue

                failures = 0

                if head > seen:
                    seen = head
                    last_progress = loop.time()
                    fetch_next = True
                    self._emit(
                        events, EventKind.BLOCK_RECEIVED, ProcessingState.AWAITING_BLOCK, message,
                        locator=locator, block_number=head,
                    )

                if result is not None:
                    if self._matches(message, result):
                        return self._resolve(result, message, locator, events)
                    if result.transaction_hash not in ignored:
                        ignored.add(result.transaction_hash)
                        logger.warning(
                            f"Transaction {result.transaction_hash} targets {result.address}, "
                            f"expected {message.address} - ignoring"
                        )

                idle = int((loop.time() - last_progress) / self.block_interval)
                consumed = (seen - locator.block_number) + idle

                if seen >= last_block or consumed >= self.max_block_intervals:
                    self._expire(message, locator, seen, events)

                await asyncio.sleep(self.poll_interval)

        except asyncio.CancelledError:
            logger.info(f"Wait for message {message.message_id} abandoned at block {seen}")
            raise

        finally:
            if owned:
                await events.close()

    async def _check_deploy_eligible(self, message: Message, funded: Optional['FundedAddress']):
        """Deploys need a funding token covering max cost, or a payer balance that does"""
        payer = message.payer
        if payer is None:
            raise FundingError("Deploy message has no payer", address=message.address)

        if funded is not None:
            if funded.address.lower() != payer.lower():
                raise FundingError(
                    f"Funding went to {funded.address}, but the deploy is paid by {payer}",
                    address=payer,
                )
            if funded.amount >= message.max_cost:
                return
            logger.warning(f"Funding of {funded.amount} is below max cost {message.max_cost}, checking balance")

        snapshot = await self.network.fetch_account_state(payer)
        if snapshot.balance < message.max_cost:
            raise InsufficientBalance(
                f"Balance {snapshot.balance} of {payer} cannot cover {message.max_cost}",
                address=payer,
                balance=snapshot.balance,
                required=message.max_cost,
            )

    def _dispatcher(self, on_event: Observer) -> Tuple[EventDispatcher, bool]:
        """Dispatcher for on_event, and whether this call owns (and closes) it"""
        if isinstance(on_event, EventDispatcher):
            return on_event, False
        return EventDispatcher(on_event, drain_timeout=self.observer_timeout), True

    @staticmethod
    def _matches(message: Message, result: TransactionResult) -> bool:
        return result.address.lower() == message.address.lower()

    def _resolve(
        self,
        result: TransactionResult,
        message: Message,
        locator: Optional[ShardLocator],
        events: EventDispatcher,
    ) -> TransactionResult:
        state = ProcessingState.RESOLVED_SUCCESS if result.success else ProcessingState.RESOLVED_FAILURE
        self._emit(
            events, EventKind.TRANSACTION_RESOLVED, state, message,
            locator=locator, block_number=result.block_number,
        )

        if not result.success:
            logger.error(f"Transaction {result.transaction_hash} aborted in block {result.block_number}")
            raise TransactionAborted(f"Transaction {result.transaction_hash} was aborted", result)

        logger.success(f"Transaction {result.transaction_hash} confirmed in block {result.block_number}")
        return result

    def _expire(
        self,
        message: Message,
        locator: ShardLocator,
        seen: int,
        events: EventDispatcher,
    ) -> NoReturn:
        error = f"Message {message.message_id} expired: no transaction by block {seen}"
        self._emit(
            events, EventKind.MESSAGE_EXPIRED, ProcessingState.RESOLVED_FAILURE, message,
            locator=locator, block_number=seen, error=error,
        )
        logger.warning(error)
        raise ConfirmationTimeout(error, address=message.address, message_id=message.message_id, last_block=seen)

    @staticmethod
    def _emit(
        events: EventDispatcher,
        kind: EventKind,
        state: ProcessingState,
        message: Message,
        locator: Optional[ShardLocator] = None,
        block_number: Optional[int] = None,
        error: Optional[str] = None,
    ):
        events.emit(LifecycleEvent(
            kind=kind,
            state=state,
            message_id=message.message_id,
            address=message.address,
            shard_locator=locator,
            block_number=block_number,
            error=error,
        ))
