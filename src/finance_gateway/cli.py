"""Finance gateway command line interface.

Operational tools for:
- Listing a tenant's accounts
- Balance and statement queries
- Transfer status lookups
- Provider configuration checks

Usage:
    python -m finance_gateway.cli accounts --tenant-id X
    python -m finance_gateway.cli balance --tenant-id X --account-id Y
    python -m finance_gateway.cli statement --tenant-id X --account-id Y --start 2025-01-01 --end 2025-01-31
    python -m finance_gateway.cli transfer-status --tenant-id X --account-id Y --token Z
    python -m finance_gateway.cli check-config
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import datetime
import json
import sys
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, TextIO

from finance_gateway.bootstrap import build_runtime, configure_logging, load_gateway_config
from finance_gateway.config import get_settings
from finance_gateway.gateway.config import validate_production_config
from finance_gateway.gateway.errors import GatewayError
from finance_gateway.gateway.facade import FinancialGateway


class Runtime(Protocol):
    gateway: FinancialGateway

    async def aclose(self) -> None:
        ...


def parse_date(s: str) -> datetime.date:
    """Parse ISO date string."""
    return datetime.date.fromisoformat(s)


def to_jsonable(value: Any) -> Any:
    """Convert gateway dataclasses into JSON-friendly structures."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


async def _default_runtime() -> Runtime:
    return await build_runtime(get_settings())


class GatewayCli:
    """Finance gateway command line interface."""

    def __init__(
        self,
        runtime_factory: Callable[[], Awaitable[Runtime]] | None = None,
        out: TextIO | None = None,
    ) -> None:
        self.runtime_factory = runtime_factory or _default_runtime
        self.out = out or sys.stdout
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m finance_gateway.cli",
            description="Finance gateway operational tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        accounts = subparsers.add_parser("accounts", help="List active accounts")
        accounts.add_argument("--tenant-id", required=True, help="Tenant ID")

        balance = subparsers.add_parser("balance", help="Fetch account balance")
        balance.add_argument("--tenant-id", required=True, help="Tenant ID")
        balance.add_argument(
            "--account-id",
            help="Account ID (omit to fetch every balance-capable account)",
        )

        statement = subparsers.add_parser("statement", help="Fetch account statement")
        statement.add_argument("--tenant-id", required=True, help="Tenant ID")
        statement.add_argument("--account-id", required=True, help="Account ID")
        statement.add_argument("--start", type=parse_date, required=True, help="First day (YYYY-MM-DD)")
        statement.add_argument("--end", type=parse_date, required=True, help="Last day (YYYY-MM-DD)")

        status = subparsers.add_parser("transfer-status", help="Show recorded transfer state")
        status.add_argument("--tenant-id", required=True, help="Tenant ID")
        status.add_argument("--account-id", required=True, help="Account ID")
        status.add_argument("--token", required=True, help="Idempotency token")

        subparsers.add_parser("check-config", help="Validate provider configuration")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        if parsed.command == "check-config":
            return self._cmd_check_config(parsed)

        handlers: dict[str, Callable[[FinancialGateway, argparse.Namespace], Awaitable[Any]]] = {
            "accounts": self._cmd_accounts,
            "balance": self._cmd_balance,
            "statement": self._cmd_statement,
            "transfer-status": self._cmd_transfer_status,
        }
        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1
        return asyncio.run(self._run_with_gateway(handler, parsed))

    async def _run_with_gateway(
        self,
        handler: Callable[[FinancialGateway, argparse.Namespace], Awaitable[Any]],
        args: argparse.Namespace,
    ) -> int:
        runtime = await self.runtime_factory()
        try:
            result = await handler(runtime.gateway, args)
        except GatewayError as exc:
            self._print(exc.to_dict())
            return 2
        finally:
            await runtime.aclose()
        self._print(result)
        return 0

    def _print(self, payload: Any) -> None:
        print(json.dumps(to_jsonable(payload), indent=2, sort_keys=True), file=self.out)

    async def _cmd_accounts(self, gateway: FinancialGateway, args: argparse.Namespace) -> Any:
        accounts = await gateway.list_accounts(args.tenant_id)
        return [
            {
                "account_id": a.account_id,
                "label": a.label,
                "provider": a.provider,
                "environment": a.environment,
                "category": a.category,
                "capabilities": a.capabilities.enabled(),
            }
            for a in accounts
        ]

    async def _cmd_balance(self, gateway: FinancialGateway, args: argparse.Namespace) -> Any:
        if args.account_id:
            return await gateway.get_balance(args.tenant_id, args.account_id)
        outcomes = await gateway.fetch_all_balances(args.tenant_id)
        return [
            {
                "account_id": o.account.account_id,
                "balance": o.balance,
                "error": o.error.to_dict() if o.error else None,
            }
            for o in outcomes
        ]

    async def _cmd_statement(self, gateway: FinancialGateway, args: argparse.Namespace) -> Any:
        return await gateway.get_statement(args.tenant_id, args.account_id, args.start, args.end)

    async def _cmd_transfer_status(
        self, gateway: FinancialGateway, args: argparse.Namespace
    ) -> Any:
        return await gateway.get_transfer(args.tenant_id, args.account_id, args.token)

    def _cmd_check_config(self, args: argparse.Namespace) -> int:
        """Validate provider configuration for production use."""
        config = load_gateway_config(get_settings())
        issues = validate_production_config(config)
        self._print({"providers": [p.name for p in config.providers], "issues": issues})
        return 1 if any(i.startswith("CRITICAL") for i in issues) else 0


def main() -> int:
    """CLI entry point."""
    configure_logging(get_settings().log_level)
    cli = GatewayCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
