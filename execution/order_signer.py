"""
Order Signer
Builds the CTF exchange order struct and signs it with EIP-712 typed hashing.

Signing is pure: no network access, deterministic for a given salt.
"""
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from eth_abi import encode
from eth_account import Account
from eth_account.messages import SignableMessage
from eth_keys.exceptions import ValidationError as KeyValidationError
from eth_utils import keccak, to_checksum_address
from loguru import logger

import config as cfg
from execution.errors import ConfigError, InvalidOrderField
from models import OrderSide


PROTOCOL_NAME = "Polymarket CTF Exchange"
PROTOCOL_VERSION = "1"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Signature types understood by the exchange contract
EOA = 0
POLY_PROXY = 1
POLY_GNOSIS_SAFE = 2

SIDE_CODES = {OrderSide.BUY: 0, OrderSide.SELL: 1}

DOMAIN_TYPEHASH = keccak(
    text="EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
ORDER_TYPEHASH = keccak(
    text=(
        "Order(uint256 salt,address maker,address signer,address taker,"
        "uint256 tokenId,uint256 makerAmount,uint256 takerAmount,"
        "uint256 expiration,uint256 nonce,uint256 feeRateBps,"
        "uint8 side,uint8 signatureType)"
    )
)

# ABI layout of the struct hash, in field order, after the typehash
_ORDER_ABI_TYPES = [
    "bytes32",
    "uint256", "address", "address", "address",
    "uint256", "uint256", "uint256", "uint256", "uint256", "uint256",
    "uint8", "uint8",
]

Numeric = Union[int, str]


def _to_uint(name: str, value: Numeric) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidOrderField(name, value) from None
    if number < 0:
        raise InvalidOrderField(name, value)
    return number


def _to_address(name: str, value: str) -> str:
    try:
        return to_checksum_address(value)
    except (TypeError, ValueError):
        raise InvalidOrderField(name, value) from None


def domain_separator(chain_id: int, verifying_contract: str) -> bytes:
    """Hash of the EIP-712 domain that binds signatures to one exchange deployment."""
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                DOMAIN_TYPEHASH,
                keccak(text=PROTOCOL_NAME),
                keccak(text=PROTOCOL_VERSION),
                chain_id,
                to_checksum_address(verifying_contract),
            ],
        )
    )


def signature_type_for(signer_address: str, funder: Optional[str]) -> int:
    """POLY_PROXY when a distinct funder wallet holds the funds, else EOA."""
    if funder and to_checksum_address(funder) != to_checksum_address(signer_address):
        return POLY_PROXY
    return EOA


@dataclass(frozen=True)
class OrderStruct:
    """Canonical order fields in the exchange's fixed order."""
    salt: int
    maker: str
    signer: str
    taker: str
    token_id: int
    maker_amount: int
    taker_amount: int
    expiration: int
    nonce: int
    fee_rate_bps: int
    side: OrderSide
    signature_type: int

    def struct_hash(self) -> bytes:
        return keccak(
            encode(
                _ORDER_ABI_TYPES,
                [
                    ORDER_TYPEHASH,
                    self.salt,
                    self.maker,
                    self.signer,
                    self.taker,
                    self.token_id,
                    self.maker_amount,
                    self.taker_amount,
                    self.expiration,
                    self.nonce,
                    self.fee_rate_bps,
                    SIDE_CODES[self.side],
                    self.signature_type,
                ],
            )
        )


@dataclass(frozen=True)
class SignedOrder:
    """An order struct plus its signature. Never reused across attempts."""
    order: OrderStruct
    signature: str

    def to_payload(self) -> Dict[str, Any]:
        """JSON body fields the CLOB expects for a signed order."""
        o = self.order
        return {
            "salt": o.salt,
            "maker": o.maker,
            "signer": o.signer,
            "taker": o.taker,
            "tokenId": str(o.token_id),
            "makerAmount": str(o.maker_amount),
            "takerAmount": str(o.taker_amount),
            "expiration": str(o.expiration),
            "nonce": str(o.nonce),
            "feeRateBps": str(o.fee_rate_bps),
            "side": o.side.value,
            "signatureType": o.signature_type,
            "signature": self.signature,
        }


class OrderSigner:
    """
    Signs exchange orders with the account's private key.

    When a funder (proxy wallet) address is configured and differs from the
    key's own address, orders are made by the funder and signed by the key
    with the POLY_PROXY signature type. Otherwise the key trades directly.
    """

    def __init__(
        self,
        private_key: str,
        chain_id: int = cfg.CHAIN_ID,
        exchange_address: str = cfg.EXCHANGE_CONTRACT,
        funder: Optional[str] = None,
    ):
        try:
            self._account = Account.from_key(private_key)
        except (TypeError, ValueError, KeyValidationError):
            # Never echo the key itself
            raise ConfigError("POLYMARKET_PK is not a valid private key") from None

        self.signer_address: str = self._account.address
        self.chain_id = chain_id
        self.exchange_address = to_checksum_address(exchange_address)

        self.signature_type = signature_type_for(self.signer_address, funder)
        if self.signature_type == POLY_PROXY:
            self.maker_address = to_checksum_address(funder)
        else:
            self.maker_address = self.signer_address

        self.domain_separator = domain_separator(chain_id, self.exchange_address)
        self._last_salt = 0

        mode = "proxy" if self.signature_type == POLY_PROXY else "EOA"
        logger.info(f"Initialized Order Signer [{mode}] trading as {self.maker_address}")

    def new_salt(self) -> int:
        """Fresh, strictly increasing salt derived from the current time."""
        salt = max(time.time_ns() // 1000, self._last_salt + 1)
        self._last_salt = salt
        return salt

    def build_order(
        self,
        token_id: Numeric,
        maker_amount: Numeric,
        taker_amount: Numeric,
        side: OrderSide,
        salt: Optional[int] = None,
        expiration: Numeric = 0,
        nonce: Numeric = 0,
        fee_rate_bps: Numeric = cfg.FEE_RATE_BPS,
        taker: str = ZERO_ADDRESS,
    ) -> OrderStruct:
        return OrderStruct(
            salt=self.new_salt() if salt is None else _to_uint("salt", salt),
            maker=self.maker_address,
            signer=self.signer_address,
            taker=_to_address("taker", taker),
            token_id=_to_uint("tokenId", token_id),
            maker_amount=_to_uint("makerAmount", maker_amount),
            taker_amount=_to_uint("takerAmount", taker_amount),
            expiration=_to_uint("expiration", expiration),
            nonce=_to_uint("nonce", nonce),
            fee_rate_bps=_to_uint("feeRateBps", fee_rate_bps),
            side=side,
            signature_type=self.signature_type,
        )

    def signable(self, order: OrderStruct) -> SignableMessage:
        # 0x19 0x01 prefix + domain separator + struct hash
        return SignableMessage(
            version=b"\x01",
            header=self.domain_separator,
            body=order.struct_hash(),
        )

    def digest(self, order: OrderStruct) -> bytes:
        """Final hash that gets signed."""
        return keccak(b"\x19\x01" + self.domain_separator + order.struct_hash())

    def sign(self, order: OrderStruct) -> SignedOrder:
        signed = self._account.sign_message(self.signable(order))
        signature = "0x" + bytes(signed.signature).hex()
        return SignedOrder(order=order, signature=signature)
