"""Deployment settings for the raffle."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

from dotenv import load_dotenv

WEI_PER_ETHER = 10**18

# Minimum confirmation depth the coordinator waits before answering.
REQUEST_CONFIRMATIONS = 3
# Exactly one random value is consumed per draw.
NUM_WORDS = 1

DEVELOPMENT_CHAINS = ("localhost", "hardhat")
DEFAULT_CHAIN_ID = 31337
DEFAULT_RAFFLE_NAME = "raffle"


def parse_ether(value: str) -> int:
    """Convert a decimal ether amount such as ``"0.25"`` to wei."""

    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid ether amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Invalid ether amount: {value!r}")
    wei = amount * WEI_PER_ETHER
    if wei != wei.to_integral_value():
        raise ValueError(f"Ether amount {value!r} has more than 18 decimals")
    if wei < 0:
        raise ValueError("Ether amount must not be negative")
    return int(wei)


VRF_FUND_AMOUNT = parse_ether("1")


@dataclass(frozen=True)
class NetworkConfig:
    """Per-network deployment preset."""

    name: str
    vrf_coordinator: str
    entrance_fee: int
    gas_lane: str
    subscription_id: int
    callback_gas_limit: int
    interval: int

    @property
    def is_development(self) -> bool:
        return self.name in DEVELOPMENT_CHAINS


NETWORK_CONFIG: Dict[int, NetworkConfig] = {
    31337: NetworkConfig(
        name="localhost",
        vrf_coordinator="0x2Ca8E0C643bDe4C2E08ab1fA0da3401AdAD7734D",
        entrance_fee=parse_ether("0.25"),
        gas_lane="0x79d3d8832d904592c0bf9818b621522c988bb8b0c05cdc3b15aea1b6e8db0c15",
        subscription_id=0,
        callback_gas_limit=500000,
        interval=30,
    ),
    5: NetworkConfig(
        name="goerli",
        vrf_coordinator="0x2Ca8E0C643bDe4C2E08ab1fA0da3401AdAD7734D",
        entrance_fee=parse_ether("0.25"),
        gas_lane="0x79d3d8832d904592c0bf9818b621522c988bb8b0c05cdc3b15aea1b6e8db0c15",
        subscription_id=0,
        callback_gas_limit=500000,
        interval=30,
    ),
    11155111: NetworkConfig(
        name="sepolia",
        vrf_coordinator="0x8103B0A8A00be2DDC778e6e7eaa21791Cd364625",
        entrance_fee=parse_ether("0.25"),
        gas_lane="0x474e34a077df58807dbe9c96d3c009b23b3c6d0cce433e59bbf5b34f823bc56c",
        subscription_id=3906,
        callback_gas_limit=500000,
        interval=30,
    ),
    80001: NetworkConfig(
        name="mumbai",
        vrf_coordinator="0x7a1BaC17Ccc5b313516C5E16fb24f7659aA5ebed",
        entrance_fee=parse_ether("0.0005"),
        gas_lane="0x4b09e658ed251bcafeebbc69400383d49f344ace09b9576fe248bb02c003fe9f",
        subscription_id=0,
        callback_gas_limit=500000,
        interval=30,
    ),
}


@dataclass(frozen=True)
class RaffleSettings:
    """Immutable configuration fixed when a raffle is deployed.

    Attributes
    ----------
    name : str
        Deployment name; also the consumer identity given to the coordinator.
    network : str
        Network the raffle is deployed on.
    entrance_fee : int
        Minimum stake per entry, in wei.
    interval : int
        Seconds that must elapse between draws.
    key_hash : str
        Coordinator gas lane.
    subscription_id : int
        Coordinator subscription funding the requests. Development deployments
        replace it with a freshly created mock subscription.
    callback_gas_limit : int
        Resource budget for the fulfillment callback.
    request_confirmations : int
        Confirmation depth requested from the coordinator.
    """

    name: str
    network: str
    entrance_fee: int
    interval: int
    key_hash: str
    subscription_id: int
    callback_gas_limit: int
    request_confirmations: int = REQUEST_CONFIRMATIONS

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("name must not be empty")
        if self.entrance_fee < 0:
            raise ValueError("entrance_fee must not be negative")
        if self.interval < 0:
            raise ValueError("interval must not be negative")
        if self.callback_gas_limit <= 0:
            raise ValueError("callback_gas_limit must be positive")
        if self.request_confirmations < 0:
            raise ValueError("request_confirmations must not be negative")

    @property
    def is_development(self) -> bool:
        return self.network in DEVELOPMENT_CHAINS

    @classmethod
    def from_network(
        cls, network: NetworkConfig, name: str = DEFAULT_RAFFLE_NAME
    ) -> "RaffleSettings":
        return cls(
            name=name,
            network=network.name,
            entrance_fee=network.entrance_fee,
            interval=network.interval,
            key_hash=network.gas_lane,
            subscription_id=network.subscription_id,
            callback_gas_limit=network.callback_gas_limit,
        )

    def with_overrides(self, **changes) -> "RaffleSettings":
        return replace(self, **changes)


def _env_int(key: str) -> Optional[int]:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer") from None


def load_settings(
    chain_id: Optional[int] = None, *, name: Optional[str] = None
) -> RaffleSettings:
    """Build settings from the network preset and environment overrides.

    ``RAFFLE_CHAIN_ID`` selects the preset when ``chain_id`` is omitted.
    ``RAFFLE_ENTRANCE_FEE`` (ether), ``RAFFLE_INTERVAL``, ``VRF_KEY_HASH``,
    ``VRF_SUBSCRIPTION_ID``, ``VRF_CALLBACK_GAS_LIMIT`` and
    ``VRF_REQUEST_CONFIRMATIONS`` override individual values.
    """

    load_dotenv()
    if chain_id is None:
        chain_id = _env_int("RAFFLE_CHAIN_ID") or DEFAULT_CHAIN_ID
    try:
        network = NETWORK_CONFIG[chain_id]
    except KeyError:
        raise ValueError(f"No network preset for chain id {chain_id}") from None

    settings = RaffleSettings.from_network(
        network, name=name or os.getenv("RAFFLE_NAME", DEFAULT_RAFFLE_NAME)
    )

    overrides: dict = {}
    fee = os.getenv("RAFFLE_ENTRANCE_FEE")
    if fee:
        overrides["entrance_fee"] = parse_ether(fee)
    key_hash = os.getenv("VRF_KEY_HASH")
    if key_hash:
        overrides["key_hash"] = key_hash
    for field_name, env_key in (
        ("interval", "RAFFLE_INTERVAL"),
        ("subscription_id", "VRF_SUBSCRIPTION_ID"),
        ("callback_gas_limit", "VRF_CALLBACK_GAS_LIMIT"),
        ("request_confirmations", "VRF_REQUEST_CONFIRMATIONS"),
    ):
        value = _env_int(env_key)
        if value is not None:
            overrides[field_name] = value

    return settings.with_overrides(**overrides) if overrides else settings


__all__ = [
    "DEFAULT_CHAIN_ID",
    "DEVELOPMENT_CHAINS",
    "NETWORK_CONFIG",
    "NUM_WORDS",
    "NetworkConfig",
    "RaffleSettings",
    "REQUEST_CONFIRMATIONS",
    "VRF_FUND_AMOUNT",
    "load_settings",
    "parse_ether",
]
