"""
Event decoder for the XBurn minter and NFT contracts.

Raw logs are matched to their contract by address and to an event by
topic0, using the contract interfaces shipped in `xburn_indexer/abi`.
Indexed arguments come from the remaining topics, the rest from the data
section. Results are normalized (lower-case addresses, integer amounts as
decimal strings) into the `DomainEvent` variants.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import structlog
from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from xburn_indexer.utils.amounts import split_burn_amount
from xburn_indexer.utils.exceptions import DecodeError
from xburn_indexer.utils.time import from_unix
from .event_types import (
    DecodedArgs,
    DomainEvent,
    LockBurned,
    LockClaimed,
    LockCreated,
    NftTransferred,
    RawLog,
    RewardTokenBurned,
    TokenBurned,
)

ABI_DIR = Path(__file__).resolve().parent.parent / "abi"

MINTER = "XBurnMinter"
NFT = "XBurnNFT"

MAX_TERM_DAYS = 2**31 - 1


def event_signature(event_abi: Dict[str, Any]) -> str:
    types = ",".join(item["type"] for item in event_abi.get("inputs", []))
    return f"{event_abi['name']}({types})"


def event_topic(event_abi: Dict[str, Any]) -> str:
    return Web3.to_hex(Web3.keccak(text=event_signature(event_abi))).lower()


def load_abi(contract_name: str, abi_dir: Path = ABI_DIR) -> List[Dict[str, Any]]:
    with open(abi_dir / f"{contract_name}.json", "r", encoding="utf-8") as f:
        abi = json.load(f)
    if isinstance(abi, dict):
        abi = abi.get("abi", [])
    return abi


def _hex_to_bytes(value: str) -> bytes:
    text = value[2:] if value.startswith(("0x", "0X")) else value
    return bytes.fromhex(text)


def _normalize(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("0x"):
        return value.lower()
    if isinstance(value, bytes):
        return "0x" + value.hex()
    return value


@dataclass
class ContractInterface:
    name: str
    address: str
    events_by_topic: Dict[str, Dict[str, Any]]

    @property
    def topics(self) -> List[str]:
        return list(self.events_by_topic.keys())


class EventDecoder:
    """Maps raw logs of the two indexed contracts to domain events"""

    def __init__(self, minter_address: str, nft_address: str, abi_dir: Optional[Path] = None):
        self.logger = structlog.get_logger()
        abi_dir = abi_dir or ABI_DIR

        self.contracts: Dict[str, ContractInterface] = {}
        for name, address in ((MINTER, minter_address), (NFT, nft_address)):
            abi = load_abi(name, abi_dir)
            events_by_topic = {
                event_topic(item): item
                for item in abi
                if item.get("type") == "event" and not item.get("anonymous")
            }
            self.contracts[address.lower()] = ContractInterface(
                name=name,
                address=address.lower(),
                events_by_topic=events_by_topic,
            )

        self._builders: Dict[str, Callable[[DecodedArgs, Dict[str, Any]], DomainEvent]] = {
            "XENBurned": self._build_token_burned,
            "XBURNBurned": self._build_reward_token_burned,
            "BurnNFTMinted": self._build_lock_created,
            "BurnLockCreated": self._build_lock_created,
            "XBURNClaimed": self._build_lock_claimed,
            "LockBurned": self._build_lock_burned,
            "Transfer": self._build_nft_transferred,
        }

    @property
    def addresses(self) -> List[str]:
        return list(self.contracts.keys())

    def topics_for(self, address: str) -> List[str]:
        """Known topic0 values for one indexed contract"""
        contract = self.contracts.get(address.lower())
        if contract is None:
            raise ValueError(f"Address {address} is not an indexed contract")
        return contract.topics

    def decode_args(self, raw_log: RawLog) -> DecodedArgs:
        contract = self.contracts.get(raw_log.address.lower())
        if contract is None:
            raise DecodeError(
                f"Log from unindexed contract {raw_log.address}",
                tx_hash=raw_log.tx_hash,
                log_index=raw_log.log_index,
            )
        if not raw_log.topics:
            raise DecodeError("Log has no topics", tx_hash=raw_log.tx_hash, log_index=raw_log.log_index)

        event_abi = contract.events_by_topic.get(raw_log.topics[0].lower())
        if event_abi is None:
            raise DecodeError(
                f"Unknown topic {raw_log.topics[0]} for {contract.name}",
                tx_hash=raw_log.tx_hash,
                log_index=raw_log.log_index,
            )

        inputs = event_abi.get("inputs", [])
        indexed = [item for item in inputs if item.get("indexed")]
        non_indexed = [item for item in inputs if not item.get("indexed")]

        if len(raw_log.topics) != len(indexed) + 1:
            raise DecodeError(
                f"{event_abi['name']} expects {len(indexed)} indexed topics, got {len(raw_log.topics) - 1}",
                tx_hash=raw_log.tx_hash,
                log_index=raw_log.log_index,
            )

        values: Dict[str, Any] = {}
        try:
            for item, topic in zip(indexed, raw_log.topics[1:]):
                (values[item["name"]],) = abi_decode([item["type"]], _hex_to_bytes(topic))
            if non_indexed:
                decoded = abi_decode([item["type"] for item in non_indexed], _hex_to_bytes(raw_log.data))
                for item, value in zip(non_indexed, decoded):
                    values[item["name"]] = value
        except (DecodingError, ValueError, TypeError) as e:
            raise DecodeError(
                f"Malformed {event_abi['name']} log: {e}",
                tx_hash=raw_log.tx_hash,
                log_index=raw_log.log_index,
            )

        return DecodedArgs(name=event_abi["name"], values={k: _normalize(v) for k, v in values.items()})

    def decode(self, raw_log: RawLog, block_timestamp: int) -> DomainEvent:
        """Decode a log into its domain event; raises DecodeError on any failure"""
        args = self.decode_args(raw_log)
        builder = self._builders.get(args.name)
        if builder is None:
            raise DecodeError(
                f"No domain mapping for event {args.name}",
                tx_hash=raw_log.tx_hash,
                log_index=raw_log.log_index,
            )

        common = {
            "tx_hash": raw_log.tx_hash,
            "log_index": raw_log.log_index,
            "block_number": raw_log.block_number,
            "timestamp": from_unix(block_timestamp),
            "contract": self.contracts[raw_log.address.lower()].name,
            "name": args.name,
        }
        try:
            return builder(args, common)
        except (KeyError, ValueError) as e:
            raise DecodeError(
                f"Invalid {args.name} arguments: {e}",
                tx_hash=raw_log.tx_hash,
                log_index=raw_log.log_index,
            )

    @staticmethod
    def _build_token_burned(args: DecodedArgs, common: Dict[str, Any]) -> DomainEvent:
        amount = int(args.values["amount"])
        accumulated, direct = split_burn_amount(amount)
        return TokenBurned(
            **common,
            user=args.values["user"],
            amount=str(amount),
            accumulated_amount=accumulated,
            direct_burn_amount=direct,
        )

    @staticmethod
    def _build_reward_token_burned(args: DecodedArgs, common: Dict[str, Any]) -> DomainEvent:
        return RewardTokenBurned(**common, user=args.values["user"], amount=str(int(args.values["amount"])))

    @staticmethod
    def _build_lock_created(args: DecodedArgs, common: Dict[str, Any]) -> DomainEvent:
        # BurnNFTMinted names the amount xenAmount, BurnLockCreated names it amount
        xen_amount = args.values["xenAmount"] if "xenAmount" in args.values else args.values["amount"]
        term_days = int(args.values["termDays"])
        if term_days > MAX_TERM_DAYS:
            raise ValueError(f"termDays out of range: {term_days}")
        return LockCreated(
            **common,
            token_id=str(int(args.values["tokenId"])),
            user=args.values["user"],
            xen_amount=str(int(xen_amount)),
            term_days=term_days,
        )

    @staticmethod
    def _build_lock_claimed(args: DecodedArgs, common: Dict[str, Any]) -> DomainEvent:
        return LockClaimed(
            **common,
            token_id=str(int(args.values["tokenId"])),
            user=args.values["user"],
            base_amount=str(int(args.values["baseAmount"])),
            bonus_amount=str(int(args.values["bonusAmount"])),
            total_amount=str(int(args.values["totalAmount"])),
        )

    @staticmethod
    def _build_lock_burned(args: DecodedArgs, common: Dict[str, Any]) -> DomainEvent:
        return LockBurned(**common, token_id=str(int(args.values["tokenId"])))

    @staticmethod
    def _build_nft_transferred(args: DecodedArgs, common: Dict[str, Any]) -> DomainEvent:
        return NftTransferred(
            **common,
            token_id=str(int(args.values["tokenId"])),
            from_address=args.values["from"],
            to_address=args.values["to"],
        )
