import unittest

from raffle.lottery import UnknownOrStaleRequest
from raffle.oracle.errors import (
    InsufficientSubscriptionBalance,
    InvalidConsumer,
    InvalidSubscription,
    NonexistentRequest,
)
from raffle.oracle.mock import (
    BASE_FEE,
    GAS_PRICE_LINK,
    VRFCoordinatorMock,
    derive_random_word,
)

PAYMENT = BASE_FEE + GAS_PRICE_LINK * 500000


class RecordingConsumer:
    def __init__(self, address="raffle", reject=False):
        self._address = address
        self.reject = reject
        self.deliveries = []

    @property
    def address(self):
        return self._address

    def fulfill_random_words(self, request_id, random_words):
        self.deliveries.append((request_id, random_words))
        if self.reject:
            raise UnknownOrStaleRequest(str(request_id), None)


class VRFCoordinatorMockTestCase(unittest.TestCase):
    def setUp(self):
        self.coordinator = VRFCoordinatorMock()
        self.consumer = RecordingConsumer()
        self.subscription_id = self.coordinator.create_subscription(owner="deployer")
        self.coordinator.fund_subscription(self.subscription_id, 2 * BASE_FEE)
        self.coordinator.add_consumer(self.subscription_id, self.consumer)

    def _request(self, num_words=1):
        return self.coordinator.request_random_words(
            key_hash="0xlane",
            subscription_id=self.subscription_id,
            request_confirmations=3,
            callback_gas_limit=500000,
            num_words=num_words,
            consumer="raffle",
        )

    def test_subscription_lifecycle(self):
        self.assertEqual(self.subscription_id, 1)
        self.assertEqual(self.coordinator.create_subscription(), 2)
        subscription = self.coordinator.get_subscription(self.subscription_id)
        self.assertEqual(subscription.owner, "deployer")
        self.assertEqual(subscription.balance, 2 * BASE_FEE)
        self.assertTrue(self.coordinator.consumer_is_added(self.subscription_id, "raffle"))

        self.coordinator.remove_consumer(self.subscription_id, "raffle")
        self.assertFalse(self.coordinator.consumer_is_added(self.subscription_id, "raffle"))
        with self.assertRaises(InvalidConsumer):
            self.coordinator.remove_consumer(self.subscription_id, "raffle")

    def test_unknown_subscription_and_bad_funding(self):
        with self.assertRaises(InvalidSubscription):
            self.coordinator.get_subscription(99)
        with self.assertRaises(ValueError):
            self.coordinator.fund_subscription(self.subscription_id, 0)

    def test_request_requires_registered_consumer(self):
        with self.assertRaises(InvalidConsumer):
            self.coordinator.request_random_words(
                key_hash="0xlane",
                subscription_id=self.subscription_id,
                request_confirmations=3,
                callback_gas_limit=500000,
                num_words=1,
                consumer="stranger",
            )
        with self.assertRaises(ValueError):
            self._request(num_words=0)
        self.assertEqual(self.coordinator.pending_requests, [])

    def test_fulfill_delivers_derived_words(self):
        request_id = self._request(num_words=2)
        self.assertEqual(request_id, 1)

        self.assertTrue(self.coordinator.fulfill_random_words(request_id, "raffle"))

        expected = [derive_random_word(1, 0), derive_random_word(1, 1)]
        self.assertEqual(self.consumer.deliveries, [(1, expected)])
        self.assertNotEqual(expected[0], expected[1])
        self.assertEqual(self.coordinator.pending_requests, [])
        self.assertEqual(
            self.coordinator.get_subscription(self.subscription_id).balance,
            2 * BASE_FEE - PAYMENT,
        )

    def test_payment_covers_callback_gas(self):
        request_id = self._request()
        (request,) = self.coordinator.pending_requests
        self.assertEqual(self.coordinator.payment_for(request), PAYMENT)

        free = VRFCoordinatorMock(base_fee=0, gas_price_link=0)
        self.assertEqual(free.payment_for(request), 0)
        self.assertEqual(request.request_id, request_id)

    def test_fulfill_unknown_request(self):
        with self.assertRaises(NonexistentRequest) as ctx:
            self.coordinator.fulfill_random_words(5, "raffle")
        self.assertIn("nonexistent request", str(ctx.exception))

    def test_request_is_delivered_once(self):
        request_id = self._request()
        self.coordinator.fulfill_random_words(request_id, "raffle", [7])
        with self.assertRaises(NonexistentRequest):
            self.coordinator.fulfill_random_words(request_id, "raffle", [7])
        self.assertEqual(self.consumer.deliveries, [(1, [7])])

    def test_word_count_must_match(self):
        request_id = self._request()
        with self.assertRaises(ValueError):
            self.coordinator.fulfill_random_words(request_id, "raffle", [1, 2])
        self.assertEqual(len(self.coordinator.pending_requests), 1)

    def test_underfunded_subscription_keeps_request(self):
        coordinator = VRFCoordinatorMock()
        subscription_id = coordinator.create_subscription()
        coordinator.add_consumer(subscription_id, self.consumer)
        request_id = coordinator.request_random_words(
            key_hash="0xlane",
            subscription_id=subscription_id,
            request_confirmations=3,
            callback_gas_limit=500000,
            num_words=1,
            consumer="raffle",
        )

        with self.assertRaises(InsufficientSubscriptionBalance):
            coordinator.fulfill_random_words(request_id, "raffle")
        self.assertEqual(len(coordinator.pending_requests), 1)

        coordinator.fund_subscription(subscription_id, PAYMENT)
        self.assertTrue(coordinator.fulfill_random_words(request_id, "raffle"))

    def test_rejected_callback_still_consumes_request(self):
        self.consumer.reject = True
        request_id = self._request()

        self.assertFalse(self.coordinator.fulfill_random_words(request_id, "raffle", [3]))

        self.assertEqual(self.coordinator.pending_requests, [])
        self.assertEqual(
            self.coordinator.get_subscription(self.subscription_id).balance,
            2 * BASE_FEE - PAYMENT,
        )


if __name__ == "__main__":
    unittest.main()
