import os
import unittest
from unittest.mock import patch

from raffle.config import (
    NETWORK_CONFIG,
    VRF_FUND_AMOUNT,
    RaffleSettings,
    load_settings,
    parse_ether,
)


class TestParseEther(unittest.TestCase):
    def test_converts_to_wei(self):
        self.assertEqual(parse_ether("0.25"), 250_000_000_000_000_000)
        self.assertEqual(parse_ether("1"), 10**18)
        self.assertEqual(VRF_FUND_AMOUNT, 10**18)
        self.assertEqual(parse_ether(" 0.000000000000000001 "), 1)

    def test_rejects_invalid_amounts(self):
        for value in ("abc", "-1", "0.0000000000000000001", "inf", "NaN"):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_ether(value)


class TestRaffleSettings(unittest.TestCase):
    def test_from_network_preset(self):
        settings = RaffleSettings.from_network(NETWORK_CONFIG[11155111])
        self.assertEqual(settings.network, "sepolia")
        self.assertEqual(settings.subscription_id, 3906)
        self.assertEqual(settings.entrance_fee, parse_ether("0.25"))
        self.assertEqual(settings.interval, 30)
        self.assertEqual(settings.request_confirmations, 3)
        self.assertFalse(settings.is_development)

    def test_development_networks(self):
        self.assertTrue(NETWORK_CONFIG[31337].is_development)
        settings = RaffleSettings.from_network(NETWORK_CONFIG[31337])
        self.assertTrue(settings.with_overrides(network="hardhat").is_development)

    def test_validation(self):
        base = RaffleSettings.from_network(NETWORK_CONFIG[31337])
        for changes in (
            {"name": " "},
            {"entrance_fee": -1},
            {"interval": -1},
            {"callback_gas_limit": 0},
            {"request_confirmations": -1},
        ):
            with self.subTest(changes=changes):
                with self.assertRaises(ValueError):
                    base.with_overrides(**changes)


@patch("raffle.config.load_dotenv")
class TestLoadSettings(unittest.TestCase):
    def test_defaults_to_local_network(self, mock_load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings()
        self.assertEqual(settings.network, "localhost")
        self.assertEqual(settings.name, "raffle")
        mock_load_dotenv.assert_called_once()

    def test_chain_id_from_environment(self, mock_load_dotenv):
        with patch.dict(os.environ, {"RAFFLE_CHAIN_ID": "80001"}, clear=True):
            settings = load_settings()
        self.assertEqual(settings.network, "mumbai")
        self.assertEqual(settings.entrance_fee, parse_ether("0.0005"))

    def test_environment_overrides(self, mock_load_dotenv):
        env = {
            "RAFFLE_NAME": "weekly",
            "RAFFLE_ENTRANCE_FEE": "0.1",
            "RAFFLE_INTERVAL": "3600",
            "VRF_KEY_HASH": "0xfeed",
            "VRF_SUBSCRIPTION_ID": "12",
            "VRF_CALLBACK_GAS_LIMIT": "250000",
            "VRF_REQUEST_CONFIRMATIONS": "5",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_settings(5)
        self.assertEqual(settings.network, "goerli")
        self.assertEqual(settings.name, "weekly")
        self.assertEqual(settings.entrance_fee, parse_ether("0.1"))
        self.assertEqual(settings.interval, 3600)
        self.assertEqual(settings.key_hash, "0xfeed")
        self.assertEqual(settings.subscription_id, 12)
        self.assertEqual(settings.callback_gas_limit, 250000)
        self.assertEqual(settings.request_confirmations, 5)

    def test_explicit_name_wins(self, mock_load_dotenv):
        with patch.dict(os.environ, {"RAFFLE_NAME": "weekly"}, clear=True):
            self.assertEqual(load_settings(name="daily").name, "daily")

    def test_unknown_chain(self, mock_load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                load_settings(1)

    def test_non_integer_override(self, mock_load_dotenv):
        with patch.dict(os.environ, {"RAFFLE_INTERVAL": "soon"}, clear=True):
            with self.assertRaises(ValueError):
                load_settings()


if __name__ == "__main__":
    unittest.main()
