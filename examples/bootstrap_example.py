#!/usr/bin/env python3
"""
Example of running the genesis bootstrap from a config file.
"""
import logging
import os

from palette_bridge import (
    BridgeConfig,
    GenesisBootstrap,
    LocalSigner,
    PhaseError,
)


def main():
    """
    Run one bootstrap phase against the chains named in the config.

    Environment:
        PALETTE_CONFIG_PATH: JSON config (defaults to ./config.json)
        PALETTE_PRIVATE_KEY / RELAY_PRIVATE_KEY: operator keys
        BOOTSTRAP_PHASE: register, approve, push or pull
        VALIDATOR_PRIVATE_KEY: optional approver key for the approve phase
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = BridgeConfig.load()
    bootstrap = GenesisBootstrap.from_config(config)
    phase = os.environ.get("BOOTSTRAP_PHASE", "register")

    try:
        if phase == "register":
            result = bootstrap.register_side_chain(config.descriptor())
        elif phase == "approve":
            approver = LocalSigner.from_env("VALIDATOR_PRIVATE_KEY")
            result = bootstrap.approve_registration(config.side_chain_id, approver=approver)
        elif phase == "push":
            result = bootstrap.push_genesis(config.side_chain_id)
            print(f"Synced header {result.header.height} ({result.header.block_hash})")
        elif phase == "pull":
            result = bootstrap.pull_genesis(config.genesis_epoch)
            print(f"Installed {len(result.validators)} relay validators")
        else:
            print(f"ERROR: unknown phase {phase}")
            return
    except PhaseError as e:
        print(f"ERROR: {e}")
        return

    print(f"{result.phase} confirmed: {result.tx_hash} in block {result.record.block_number}")


if __name__ == "__main__":
    main()
