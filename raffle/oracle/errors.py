"""Errors raised by randomness coordinators."""


class CoordinatorError(Exception):
    """Base class for coordinator-side rejections."""


class InvalidSubscription(CoordinatorError):
    def __init__(self, subscription_id: int) -> None:
        self.subscription_id = subscription_id
        super().__init__(f"Subscription {subscription_id} does not exist")


class InvalidConsumer(CoordinatorError):
    def __init__(self, subscription_id: int, consumer: str) -> None:
        self.subscription_id = subscription_id
        self.consumer = consumer
        super().__init__(
            f"{consumer!r} is not a consumer of subscription {subscription_id}"
        )


class NonexistentRequest(CoordinatorError):
    def __init__(self, request_id) -> None:
        self.request_id = request_id
        super().__init__(f"nonexistent request {request_id!r}")


class InsufficientSubscriptionBalance(CoordinatorError):
    def __init__(self, subscription_id: int, balance: int, payment: int) -> None:
        self.subscription_id = subscription_id
        self.balance = balance
        self.payment = payment
        super().__init__(
            f"Subscription {subscription_id} holds {balance}, {payment} required"
        )
