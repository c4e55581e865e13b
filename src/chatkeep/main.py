"""Administrative CLI for the key registry.

    # Create the api_keys / users tables
    chatkeep migrate

    # Issue a key (a secret is generated when none is given)
    chatkeep issue [secret]

    # Check a key and print its prefix
    chatkeep verify <secret>

    # Revoke a key by its hex prefix, removing every session it authorized
    chatkeep revoke <prefix-hex>

    # List registered key prefixes
    chatkeep keys

Settings come from ``CHATKEEP_*`` environment variables and, when
``CHATKEEP_CONFIG_PATH`` is set, from that YAML file.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING, NoReturn

from chatkeep.config.settings import AppConfig
from chatkeep.engine.client import ChatKeepEngine
from chatkeep.errors.chatkeep_errors import ChatKeepError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


async def _with_engine(
    config: AppConfig, action: Callable[[ChatKeepEngine], Awaitable[None]]
) -> None:
    engine = ChatKeepEngine(config)
    await engine.initialize()
    try:
        await action(engine)
    finally:
        await engine.close()


async def _cmd_migrate(engine: ChatKeepEngine) -> None:  # noqa: ASYNC910
    # initialize() already created the tables.
    print("Schema is up to date.")


def _cmd_issue(secret: str | None) -> Callable[[ChatKeepEngine], Awaitable[None]]:
    async def _run(engine: ChatKeepEngine) -> None:
        if secret is None:
            generated, prefix = await engine.key_registry.generate()
            print(f"Secret: {generated}")
        else:
            prefix = await engine.key_registry.issue(secret)
        print(f"Prefix: {prefix.hex()}")

    return _run


def _cmd_verify(secret: str) -> Callable[[ChatKeepEngine], Awaitable[None]]:
    async def _run(engine: ChatKeepEngine) -> None:
        prefix = await engine.key_registry.verify(secret)
        print(f"Valid key, prefix {prefix.hex()}")

    return _run


def _cmd_revoke(prefix_hex: str) -> Callable[[ChatKeepEngine], Awaitable[None]]:
    async def _run(engine: ChatKeepEngine) -> None:
        removed = await engine.key_registry.revoke(bytes.fromhex(prefix_hex))
        print(f"Revoked {prefix_hex} ({removed} sessions removed)")

    return _run


async def _cmd_keys(engine: ChatKeepEngine) -> None:
    for prefix in await engine.key_registry.list_prefixes():
        print(prefix.hex())


def _usage(message: str) -> NoReturn:
    print(message)
    sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        _usage(__doc__ or "")

    config = AppConfig()
    logging.basicConfig(
        level=config.log_level.value,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cmd = args[0].lower()
    if cmd == "migrate":
        action = _cmd_migrate
    elif cmd == "issue":
        action = _cmd_issue(args[1] if len(args) > 1 else None)
    elif cmd == "verify":
        if len(args) < 2:
            _usage("Usage: chatkeep verify <secret>")
        action = _cmd_verify(args[1])
    elif cmd == "revoke":
        if len(args) < 2:
            _usage("Usage: chatkeep revoke <prefix-hex>")
        try:
            bytes.fromhex(args[1])
        except ValueError:
            _usage(f"Not a hex prefix: {args[1]}")
        action = _cmd_revoke(args[1])
    elif cmd == "keys":
        action = _cmd_keys
    else:
        _usage(f"Unknown command: {cmd}\n{__doc__}")

    try:
        asyncio.run(_with_engine(config, action))
    except ChatKeepError as exc:
        logger.debug("Command %s failed", cmd, exc_info=True)
        print(f"Error ({exc.code}): {exc.message}")
        sys.exit(2)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(2)


if __name__ == "__main__":
    main()
