#!/usr/bin/env python3
"""
Example of locking an asset through the Palette wrapper and reading the lock event.
"""
import os

from palette_bridge import (
    BridgeConfig,
    ChainRPC,
    EventDecoder,
    LockSubmitter,
    TransactionEngine,
)


def main():
    config = BridgeConfig.load()
    signer = config.palette_signer()
    if signer is None or not config.wrapper or not config.lock_proxy:
        print("ERROR: PALETTE_PRIVATE_KEY, wrapper and lockProxy are required")
        return

    engine = TransactionEngine(
        ChainRPC(config.palette_rpc_url, name="palette"),
        signer,
        gas_limit=config.gas_limit,
        gas_price_multiplier=config.gas_multiplier(),
        poll_interval=config.poll_interval,
        max_wait=config.max_wait,
    )
    decoder = EventDecoder(min_logs=config.min_logs, log_check=config.log_check)
    submitter = LockSubmitter(engine, config.lock_proxy, decoder=decoder)

    record, event = submitter.lock(
        wrapper=config.wrapper,
        from_asset=os.environ["LOCK_ASSET"],
        to_chain_id=int(os.environ.get("LOCK_TO_CHAIN_ID", "2")),
        to_address=os.environ["LOCK_TO_ADDRESS"],
        amount=int(os.environ.get("LOCK_AMOUNT", "1000")),
    )
    print(f"Lock {record.tx_hash}: {event.amount} to chain {event.to_chain_id} ({event.to_address})")


if __name__ == "__main__":
    main()
