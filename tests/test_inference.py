"""Tests for payment and tag inference."""

import unittest

from bounty_scout.config import Heuristics
from bounty_scout.inference import derive_tags, infer_payment
from bounty_scout.models import PAYMENT_CRYPTO, PAYMENT_FIAT, PAYMENT_P2P, PAYMENT_UNKNOWN


class TestInferPayment(unittest.TestCase):
    """Labels win over body text; body text wins over defaults."""

    def test_default_is_funded_usd(self):
        info = infer_payment(["bounty"], "please fix")
        self.assertEqual((info.amount, info.currency, info.kind), ("Funded", "USD", PAYMENT_FIAT))

    def test_dollar_label(self):
        info = infer_payment(["💎 Bounty", "$250"])
        self.assertEqual((info.amount, info.currency, info.kind), ("$250", "USD", PAYMENT_FIAT))

    def test_crypto_label(self):
        info = infer_payment(["100 USDC"], "pay via paypal")
        self.assertEqual((info.amount, info.currency, info.kind), ("100 USDC", "USDC", PAYMENT_CRYPTO))

    def test_crypto_label_beats_dollar_label(self):
        info = infer_payment(["$50", "0.5 eth"])
        self.assertEqual(info.kind, PAYMENT_CRYPTO)
        self.assertEqual(info.currency, "ETH")

    def test_body_crypto(self):
        info = infer_payment(["bounty"], "Reward paid in SOL on completion")
        self.assertEqual((info.currency, info.kind), ("SOL", PAYMENT_CRYPTO))
        self.assertEqual(info.amount, "Funded")

    def test_token_match_is_word_bounded(self):
        info = infer_payment(["solution"], "a resolution for the ethics page")
        self.assertEqual(info.kind, PAYMENT_FIAT)

    def test_body_paypal_and_cashapp(self):
        self.assertEqual(infer_payment([], "PayPal only").currency, "PAYPAL")
        info = infer_payment([], "I can send via Cash App")
        self.assertEqual((info.currency, info.kind), ("CASHAPP", PAYMENT_P2P))
        self.assertEqual(infer_payment([], "cashapp").kind, PAYMENT_P2P)

    def test_custom_defaults(self):
        info = infer_payment([], "", default_amount="", default_currency="", default_kind=PAYMENT_UNKNOWN)
        self.assertEqual((info.amount, info.currency, info.kind), ("", "", PAYMENT_UNKNOWN))


class TestDeriveTags(unittest.TestCase):
    def test_base_tag_and_order(self):
        tags = derive_tags("URGENT: fix the bot", labels=["Funded"], source_tags=["solana", "web3"])
        self.assertEqual(tags, ["active", "solana", "web3", "urgent", "dev", "automation", "funded"])

    def test_plain_title(self):
        self.assertEqual(derive_tags("Write docs"), ["active"])

    def test_custom_urgency_keywords(self):
        heuristics = Heuristics.build(urgency_keywords=["rush"])
        self.assertEqual(derive_tags("Rush job", heuristics=heuristics), ["active", "urgent"])
        self.assertEqual(derive_tags("ASAP job", heuristics=heuristics), ["active"])


if __name__ == "__main__":
    unittest.main()
