from __future__ import annotations

import argparse
import logging
import time
from datetime import datetime, timezone

from .accounts import shorten_address
from .config import SEED_SOURCES, Settings
from .draw import WinnerPolicy, format_sol
from .errors import RaffleError
from .randomness import (
    FileSeedProvider,
    HashRandomnessSource,
    RpcSeedProvider,
    local_seed,
)
from .registry import RaffleRegistry
from .store import load_registry, save_registry
from .verify import build_audit, verify_audit, write_audit

log = logging.getLogger("raffle")


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(
        state_file_override=args.state,
        rpc_url_override=args.rpc_url,
        seed_source_override=args.seed_source,
    )


def _open_registry(args: argparse.Namespace) -> tuple[Settings, RaffleRegistry]:
    settings = _settings(args)

    if settings.seed_source == "rpc":
        provider = RpcSeedProvider(settings.rpc_url, timeout_s=args.timeout)
    elif settings.seed_source == "file":
        if not args.block_feed_file:
            raise SystemExit("--block-feed-file is required with the file seed source.")
        provider = FileSeedProvider(args.block_feed_file, slot=args.slot)
    else:
        provider = local_seed

    registry = load_registry(
        settings.state_file,
        HashRandomnessSource(provider),
        reward_policy=settings.reward_policy(),
        winner_policy=WinnerPolicy(args.winner_policy),
        max_tickets_per_purchase=settings.max_tickets_per_purchase,
    )
    return settings, registry


def _fmt_time(ts: int) -> str:
    return datetime.fromtimestamp(ts, timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def cmd_create(args: argparse.Namespace) -> int:
    settings, registry = _open_registry(args)
    end_time = args.end_time if args.end_time else int(time.time()) + args.duration
    raffle_id = registry.create_raffle(
        creator=args.creator,
        title=args.title,
        description=args.description,
        category=args.category,
        ticket_price=args.ticket_price,
        end_time=end_time,
        num_winners=args.winners,
        creator_fee_bps=args.fee_bps,
        max_tickets=args.max_tickets,
        allow_multiple_entries=not args.single_entry,
    )
    save_registry(registry, settings.state_file)
    print(f"Created raffle {raffle_id} (ends {_fmt_time(end_time)})")
    return 0


def cmd_buy(args: argparse.Namespace) -> int:
    settings, registry = _open_registry(args)
    raffle = registry.get_raffle_info(args.raffle_id)
    payment = args.payment if args.payment is not None else raffle.ticket_price * args.count
    receipt = registry.buy_tickets(args.raffle_id, args.participant, args.count, payment)
    save_registry(registry, settings.state_file)
    print(f"Tickets       : {', '.join(str(n) for n in receipt.ticket_numbers)}")
    print(f"Paid          : {format_sol(receipt.amount_paid)}")
    print(f"Pool          : {format_sol(receipt.total_pool)}")
    return 0


def cmd_finalize(args: argparse.Namespace) -> int:
    settings, registry = _open_registry(args)
    receipt = registry.finalize(args.raffle_id, args.caller)
    save_registry(registry, settings.state_file)

    print("========================================")
    print(f"RAFFLE {args.raffle_id} FINALIZED")
    print("========================================")
    print(f"Trigger       : {'expiry' if receipt.triggered_by_expiry else 'sold out'}")
    print(f"Finalizer fee : {format_sol(receipt.finalization_reward)}")
    print(f"Creator fee   : {format_sol(receipt.creator_reward)}")
    print("----------------------------------------")
    for i, (winner, amount) in enumerate(zip(receipt.winners, receipt.payouts), start=1):
        print(f"#{i:<3} {winner}  {format_sol(amount)}")
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    _, registry = _open_registry(args)
    r = registry.get_raffle_info(args.raffle_id)
    state = registry.get_raffle_state(args.raffle_id)
    sold = len(registry.get_participants(args.raffle_id))
    print(f"Raffle        : {r.id} - {r.title}")
    print(f"Category      : {r.category or '-'}")
    print(f"Creator       : {r.creator}")
    print(f"State         : {state.value}")
    print(f"Ticket price  : {format_sol(r.ticket_price)}")
    print(f"Tickets sold  : {sold}" + (f" / {r.max_tickets}" if r.max_tickets else ""))
    print(f"Ends          : {_fmt_time(r.end_time)}")
    print(f"Winners       : {r.num_winners}")
    print(f"Creator fee   : {r.creator_fee_bps / 100:.2f}%")
    print(f"Multi-entry   : {'yes' if r.allow_multiple_entries else 'no'}")
    print(f"Pool          : {format_sol(r.total_pool)}")
    if r.winners:
        print(f"Drawn         : {', '.join(shorten_address(w) for w in r.winners)}")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    _, registry = _open_registry(args)
    for r in registry.get_raffles(args.start, args.count):
        state = registry.get_raffle_state(r.id)
        print(f"{r.id:>5}  {state.value:<9}  {format_sol(r.total_pool):>18}  {r.title}")
    return 0


def cmd_participants(args: argparse.Namespace) -> int:
    _, registry = _open_registry(args)
    for ticket, participant in enumerate(registry.get_participants(args.raffle_id)):
        print(f"{ticket:>6}  {participant}")
    return 0


def cmd_winners(args: argparse.Namespace) -> int:
    _, registry = _open_registry(args)
    for winner in registry.get_winners(args.raffle_id):
        print(winner)
    return 0


def cmd_tickets(args: argparse.Namespace) -> int:
    _, registry = _open_registry(args)
    print(registry.get_user_tickets(args.raffle_id, args.participant))
    return 0


def cmd_balances(args: argparse.Namespace) -> int:
    _, registry = _open_registry(args)
    balances = getattr(registry.custody.primitive, "balances", {})
    for who, amount in sorted(balances.items()):
        if amount:
            print(f"{who}  {format_sol(amount)}")
    return 0


def cmd_audit(args: argparse.Namespace) -> int:
    _, registry = _open_registry(args)
    audit = build_audit(registry, args.raffle_id)
    write_audit(audit, args.out)
    print(f"Wrote audit: {args.out}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_audit(args.audit)
    print("AUDIT VERIFIED")
    print(f"Raffle        : {result['raffle_id']}")
    print(f"Seed entropy  : {result['seed_entropy']}")
    print(f"Pool          : {format_sol(result['total_pool'])}")
    for winner, amount in zip(result["winners"], result["payouts"]):
        print(f"Winner        : {winner}  {format_sol(amount)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="solana-raffle",
        description="Raffles with verifiable winner draws and exact payouts.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--state", default=None, help="State file (else RAFFLE_STATE_FILE).")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")
    p.add_argument(
        "--seed-source",
        choices=SEED_SOURCES,
        default=None,
        help="Where finalize takes its randomness seed from (else RAFFLE_SEED_SOURCE).",
    )
    p.add_argument("--block-feed-file", default=None, help="Block feed file for --seed-source file.")
    p.add_argument("--slot", type=int, default=None, help="Slot to read from the block feed file.")
    p.add_argument(
        "--winner-policy",
        choices=[w.value for w in WinnerPolicy],
        default=WinnerPolicy.CAP.value,
        help="What to do when a raffle has fewer tickets than winners.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    c = sub.add_parser("create", help="Create a raffle.")
    c.add_argument("--creator", required=True, help="Creator address.")
    c.add_argument("--title", required=True)
    c.add_argument("--description", default="")
    c.add_argument("--category", default="")
    c.add_argument("--ticket-price", required=True, type=int, help="Lamports per ticket.")
    end = c.add_mutually_exclusive_group(required=True)
    end.add_argument("--end-time", type=int, help="Unix timestamp the raffle ends at.")
    end.add_argument("--duration", type=int, help="Seconds from now until the raffle ends.")
    c.add_argument("--winners", type=int, default=1)
    c.add_argument("--fee-bps", type=int, default=0, help="Creator fee in basis points.")
    c.add_argument("--max-tickets", type=int, default=0, help="0 = unlimited.")
    c.add_argument("--single-entry", action="store_true", help="One ticket per participant.")
    c.set_defaults(func=cmd_create)

    b = sub.add_parser("buy", help="Buy tickets.")
    b.add_argument("raffle_id", type=int)
    b.add_argument("--participant", required=True)
    b.add_argument("--count", type=int, default=1)
    b.add_argument("--payment", type=int, default=None, help="Lamports paid (default: exact price).")
    b.set_defaults(func=cmd_buy)

    f = sub.add_parser("finalize", help="Draw winners and pay out.")
    f.add_argument("raffle_id", type=int)
    f.add_argument("--caller", required=True)
    f.set_defaults(func=cmd_finalize)

    i = sub.add_parser("info", help="Show a raffle.")
    i.add_argument("raffle_id", type=int)
    i.set_defaults(func=cmd_info)

    ls = sub.add_parser("list", help="List raffles.")
    ls.add_argument("--start", type=int, default=0)
    ls.add_argument("--count", type=int, default=None)
    ls.set_defaults(func=cmd_list)

    pa = sub.add_parser("participants", help="List tickets in purchase order.")
    pa.add_argument("raffle_id", type=int)
    pa.set_defaults(func=cmd_participants)

    w = sub.add_parser("winners", help="List drawn winners.")
    w.add_argument("raffle_id", type=int)
    w.set_defaults(func=cmd_winners)

    t = sub.add_parser("tickets", help="Count a participant's tickets.")
    t.add_argument("raffle_id", type=int)
    t.add_argument("--participant", required=True)
    t.set_defaults(func=cmd_tickets)

    bal = sub.add_parser("balances", help="Show paid-out balances.")
    bal.set_defaults(func=cmd_balances)

    a = sub.add_parser("audit", help="Write an audit JSON for a finalized raffle.")
    a.add_argument("raffle_id", type=int)
    a.add_argument("--out", default="audit.json", help="Audit output JSON path.")
    a.set_defaults(func=cmd_audit)

    v = sub.add_parser("verify", help="Verify an existing audit.json deterministically.")
    v.add_argument("--audit", required=True, help="Path to audit.json.")
    v.set_defaults(func=cmd_verify)

    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        code = args.func(args)
    except RaffleError as e:
        log.error("%s: %s", type(e).__name__, e)
        code = 1
    raise SystemExit(code)
