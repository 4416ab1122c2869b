"""In-process VRF coordinator for development chains and tests."""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

from ..lottery.errors import RaffleError
from .errors import (
    InsufficientSubscriptionBalance,
    InvalidConsumer,
    InvalidSubscription,
    NonexistentRequest,
)

logger = logging.getLogger(__name__)

# Flat fee (in LINK base units) charged per fulfilled request.
BASE_FEE = 250_000_000_000_000_000
# LINK charged per unit of callback gas.
GAS_PRICE_LINK = 1_000_000_000
MAX_NUM_WORDS = 500


class RandomnessConsumer(Protocol):
    @property
    def address(self) -> str: ...

    def fulfill_random_words(self, request_id, random_words: Sequence[int]): ...


@dataclass
class Subscription:
    subscription_id: int
    owner: Optional[str] = None
    balance: int = 0
    consumers: Dict[str, RandomnessConsumer] = field(default_factory=dict)


@dataclass(frozen=True)
class RandomWordsRequest:
    request_id: int
    subscription_id: int
    consumer: str
    key_hash: str
    request_confirmations: int
    callback_gas_limit: int
    num_words: int


def derive_random_word(request_id: int, index: int) -> int:
    """Deterministic 256-bit word for ``request_id`` and word ``index``."""
    digest = hashlib.sha3_256(f"{request_id}:{index}".encode("utf-8")).digest()
    return int.from_bytes(digest, "big")


class VRFCoordinatorMock:
    """Coordinator that answers only when told to.

    Requests are queued by :meth:`request_random_words` and delivered by an
    explicit :meth:`fulfill_random_words` call, which lets tests reproduce
    delayed, reordered or missing callbacks.
    """

    def __init__(
        self, base_fee: int = BASE_FEE, gas_price_link: int = GAS_PRICE_LINK
    ) -> None:
        self.base_fee = base_fee
        self.gas_price_link = gas_price_link
        self._lock = threading.Lock()
        self._subscriptions: Dict[int, Subscription] = {}
        self._requests: Dict[int, RandomWordsRequest] = {}
        self._next_subscription_id = 1
        self._next_request_id = 1

    # -------- subscriptions --------
    def create_subscription(self, owner: Optional[str] = None) -> int:
        with self._lock:
            subscription_id = self._next_subscription_id
            self._next_subscription_id += 1
            self._subscriptions[subscription_id] = Subscription(
                subscription_id=subscription_id, owner=owner
            )
        logger.info(f"Created subscription {subscription_id}")
        return subscription_id

    def get_subscription(self, subscription_id: int) -> Subscription:
        try:
            return self._subscriptions[subscription_id]
        except KeyError:
            raise InvalidSubscription(subscription_id) from None

    def fund_subscription(self, subscription_id: int, amount: int) -> int:
        """Add ``amount`` to the subscription and return the new balance."""
        if amount <= 0:
            raise ValueError("amount must be positive")
        with self._lock:
            subscription = self.get_subscription(subscription_id)
            subscription.balance += amount
            return subscription.balance

    def add_consumer(self, subscription_id: int, consumer: RandomnessConsumer) -> None:
        with self._lock:
            subscription = self.get_subscription(subscription_id)
            subscription.consumers[consumer.address] = consumer
        logger.info(f"Added consumer {consumer.address} to subscription {subscription_id}")

    def remove_consumer(self, subscription_id: int, address: str) -> None:
        with self._lock:
            subscription = self.get_subscription(subscription_id)
            if subscription.consumers.pop(address, None) is None:
                raise InvalidConsumer(subscription_id, address)

    def consumer_is_added(self, subscription_id: int, address: str) -> bool:
        return address in self.get_subscription(subscription_id).consumers

    # -------- requests --------
    def payment_for(self, request: RandomWordsRequest) -> int:
        """Charge for fulfilling ``request``, assuming its whole gas budget is used."""
        return self.base_fee + self.gas_price_link * request.callback_gas_limit

    @property
    def pending_requests(self) -> List[RandomWordsRequest]:
        with self._lock:
            return sorted(self._requests.values(), key=lambda req: req.request_id)

    def request_random_words(
        self,
        *,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        consumer: str,
    ) -> int:
        if num_words < 1 or num_words > MAX_NUM_WORDS:
            raise ValueError(f"num_words must be between 1 and {MAX_NUM_WORDS}")
        with self._lock:
            subscription = self.get_subscription(subscription_id)
            if consumer not in subscription.consumers:
                raise InvalidConsumer(subscription_id, consumer)
            request_id = self._next_request_id
            self._next_request_id += 1
            self._requests[request_id] = RandomWordsRequest(
                request_id=request_id,
                subscription_id=subscription_id,
                consumer=consumer,
                key_hash=key_hash,
                request_confirmations=request_confirmations,
                callback_gas_limit=callback_gas_limit,
                num_words=num_words,
            )
        logger.debug(f"Queued request {request_id} from {consumer}")
        return request_id

    def fulfill_random_words(
        self,
        request_id: int,
        consumer_address: str,
        words: Optional[Sequence[int]] = None,
    ) -> bool:
        """Deliver random words for ``request_id`` to ``consumer_address``.

        The request is consumed and the subscription charged whether or not
        the consumer accepts the words, mirroring an on-chain coordinator.

        Returns
        -------
        bool
            ``True`` if the consumer accepted the callback.

        Raises
        ------
        NonexistentRequest
            If ``request_id`` is unknown or already fulfilled.
        """
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                raise NonexistentRequest(request_id)
            subscription = self.get_subscription(request.subscription_id)
            consumer = subscription.consumers.get(consumer_address)
            if consumer is None:
                raise InvalidConsumer(request.subscription_id, consumer_address)

            if words is None:
                words = [
                    derive_random_word(request_id, i) for i in range(request.num_words)
                ]
            elif len(words) != request.num_words:
                raise ValueError(
                    f"Expected {request.num_words} words, got {len(words)}"
                )

            payment = self.payment_for(request)
            if subscription.balance < payment:
                raise InsufficientSubscriptionBalance(
                    subscription.subscription_id, subscription.balance, payment
                )
            subscription.balance -= payment
            del self._requests[request_id]

        try:
            consumer.fulfill_random_words(request_id, list(words))
        except RaffleError as exc:
            logger.warning(f"Consumer {consumer_address} rejected request {request_id}: {exc}")
            return False
        return True


__all__ = [
    "BASE_FEE",
    "GAS_PRICE_LINK",
    "MAX_NUM_WORDS",
    "RandomWordsRequest",
    "RandomnessConsumer",
    "Subscription",
    "VRFCoordinatorMock",
    "derive_random_word",
]
