"""CLI to drive the paper trading API.

Usage:
  poetry run trade-cli health
  poetry run trade-cli --user-id alice buy AAPL 10
  poetry run trade-cli --user-id alice sell BINANCE:BTCUSDT 0.25 --asset-type crypto
  poetry run trade-cli --user-id alice portfolio
  poetry run trade-cli --user-id alice transactions --limit 5
  poetry run trade-cli quote stock AAPL
"""
import argparse
import json
import os
import sys

import httpx


def print_json(data: object) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_health(client: httpx.Client, _: argparse.Namespace) -> int:
    r = client.get("/")
    r.raise_for_status()
    print_json(r.json())
    return 0


def _trade(client: httpx.Client, side: str, args: argparse.Namespace) -> int:
    r = client.post(
        f"/trade/{side}",
        json={"symbol": args.symbol, "quantity": args.quantity, "asset_type": args.asset_type},
    )
    data = r.json()
    print_json(data)
    # Rejected trades still carry a TradeResult body.
    if isinstance(data, dict) and "success" in data:
        return 0 if data["success"] else 1
    r.raise_for_status()
    return 0


def cmd_buy(client: httpx.Client, args: argparse.Namespace) -> int:
    return _trade(client, "buy", args)


def cmd_sell(client: httpx.Client, args: argparse.Namespace) -> int:
    return _trade(client, "sell", args)


def cmd_portfolio(client: httpx.Client, _: argparse.Namespace) -> int:
    r = client.get("/portfolio")
    r.raise_for_status()
    print_json(r.json())
    return 0


def cmd_transactions(client: httpx.Client, args: argparse.Namespace) -> int:
    r = client.get("/trade/transactions", params={"limit": args.limit})
    r.raise_for_status()
    data = r.json()
    print(f"Found {len(data)} transactions")
    print_json(data)
    return 0


def cmd_quote(client: httpx.Client, args: argparse.Namespace) -> int:
    r = client.get(f"/quotes/{args.asset_type}/{args.symbol}")
    r.raise_for_status()
    print_json(r.json())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Drive the paper trading API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--base-url",
        default=os.getenv("PAPER_TRADER_URL", "http://localhost:8000"),
        help="API base URL (default: $PAPER_TRADER_URL or http://localhost:8000)",
    )
    parser.add_argument(
        "--user-id",
        default=os.getenv("PAPER_TRADER_USER_ID"),
        help="User id sent as X-User-Id (default: $PAPER_TRADER_USER_ID)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Request timeout in seconds (default: 30)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command")

    subparsers.add_parser("health", help="GET / health check")

    for side in ("buy", "sell"):
        p = subparsers.add_parser(side, help=f"POST /trade/{side}")
        p.add_argument("symbol", help="Ticker or pair (e.g. AAPL, BINANCE:BTCUSDT)")
        p.add_argument("quantity", help="Decimal quantity (e.g. 10, 0.25)")
        p.add_argument(
            "--asset-type",
            choices=("stock", "crypto"),
            default="stock",
            help="Asset class (default: stock)",
        )

    subparsers.add_parser("portfolio", help="GET /portfolio")

    p = subparsers.add_parser("transactions", help="GET /trade/transactions")
    p.add_argument("--limit", type=int, default=20, help="Max transactions (default: 20)")

    p = subparsers.add_parser("quote", help="GET /quotes/{asset_type}/{symbol}")
    p.add_argument("asset_type", choices=("stock", "crypto"))
    p.add_argument("symbol")
    return parser


HANDLERS = {
    "health": cmd_health,
    "buy": cmd_buy,
    "sell": cmd_sell,
    "portfolio": cmd_portfolio,
    "transactions": cmd_transactions,
    "quote": cmd_quote,
}

USER_COMMANDS = {"buy", "sell", "portfolio", "transactions"}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command in USER_COMMANDS and not args.user_id:
        parser.error(f"--user-id (or PAPER_TRADER_USER_ID) is required for '{args.command}'")

    headers = {"X-User-Id": args.user_id} if args.user_id else {}
    handler = HANDLERS[args.command]
    try:
        with httpx.Client(
            base_url=args.base_url.rstrip("/"), headers=headers, timeout=args.timeout
        ) as client:
            return handler(client, args)
    except httpx.HTTPStatusError as e:
        print(f"HTTP error: {e.response.status_code}", file=sys.stderr)
        if e.response.content:
            try:
                print(e.response.json(), file=sys.stderr)
            except ValueError:
                print(e.response.text, file=sys.stderr)
        return 1
    except httpx.RequestError as e:
        print(f"Request error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
