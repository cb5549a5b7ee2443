#!/usr/bin/env python3
"""
Command-line interface for the Avalon arbiter.

Usage:
    avalon commit --players P1,P2,P3,P4,P5 --seed <hex> [--reveal] [--json]
    avalon verify --player P1 --role Merlin --alignment Good \\
                  --seed <hex> --root <hex> --proof <hex>,<hex>,<hex>
    avalon simulate --players 7 --seed <hex> [--json]
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from avalon.assignment import assign_roles, commit_assignments
from avalon.commitment import parse_hash, verify
from avalon.errors import AvalonError
from avalon.game import AvalonGame
from avalon.roles import Alignment, Role, parse_alignment, parse_role
from avalon.state import GamePhase

logger = logging.getLogger("avalon.cli")

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _parse_seed(raw: str) -> bytes:
    text = raw.strip()
    if text.startswith(("0x", "0X")):
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"seed must be hex, got {raw!r}")


def _parse_roster(raw: str) -> List[str]:
    return [p.strip() for p in raw.split(",") if p.strip()]


def _alignment_style(alignment: Alignment) -> str:
    return "bold blue" if alignment == Alignment.GOOD else "bold red"


# ---------------------------------------------------------------------------
# commit
# ---------------------------------------------------------------------------


def cmd_commit(args) -> int:
    """Deal roles for a roster and print the commitment root (and proofs)."""
    players = _parse_roster(args.players)
    assignments = assign_roles(players, args.seed)
    commitment = commit_assignments(assignments, args.seed)

    if args.json:
        payload: Dict[str, Any] = {
            "seed": args.seed.hex(),
            "root": commitment.root.hex(),
            "players": [],
        }
        for a in assignments:
            entry: Dict[str, Any] = {
                "identity": a.identity,
                "proof": [s.hex() for s in commitment.proof_for(a.identity)],
            }
            if args.reveal:
                entry.update({
                    "role": a.role.value,
                    "alignment": a.alignment.value,
                    "known_players": list(a.known_players),
                })
            payload["players"].append(entry)
        print(json.dumps(payload, indent=2))
        return 0

    console.print(f"[bold]Commitment root:[/] {commitment.root.hex()}")
    table = Table(title="Role assignment", box=box.SIMPLE_HEAVY)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Player")
    if args.reveal:
        table.add_column("Role")
        table.add_column("Alignment")
        table.add_column("Knows")
    table.add_column("Proof", overflow="fold")

    for a in assignments:
        proof = ",".join(s.hex() for s in commitment.proof_for(a.identity))
        row = [str(a.index), a.identity]
        if args.reveal:
            style = _alignment_style(a.alignment)
            row += [
                f"[{style}]{a.role.value}[/]",
                f"[{style}]{a.alignment.value}[/]",
                ", ".join(a.known_players) or "[dim]-[/]",
            ]
        row.append(proof)
        table.add_row(*row)
    console.print(table)
    return 0


# ---------------------------------------------------------------------------
# verify
# ---------------------------------------------------------------------------


def cmd_verify(args) -> int:
    """Check one reveal against a published root; exit 0 on match, 1 otherwise."""
    try:
        role = parse_role(args.role)
        alignment = parse_alignment(args.alignment)
        root = parse_hash(args.root)
        proof = [parse_hash(s) for s in _parse_roster(args.proof)] if args.proof else []
    except ValueError as e:
        console.print(f"[red]Invalid input:[/] {e}")
        return 2

    ok = verify(args.player, role, alignment, args.seed, proof, root)
    if ok:
        console.print(f"[green]VALID[/] {args.player} is {role.value} ({alignment.value})")
        return 0
    console.print(f"[red]INVALID[/] proof does not match root {root.hex()}")
    return 1


# ---------------------------------------------------------------------------
# simulate
# ---------------------------------------------------------------------------


def _pick_team(game: AvalonGame) -> List[str]:
    state = game.state
    size = state.active_quest.required_players
    roster = state.identities()
    start = state.leader_index
    return [roster[(start + i) % len(roster)] for i in range(size)]


def _pick_assassin_target(game: AvalonGame, assassin: str) -> str:
    # The Assassin guesses the first player not known to be Evil.
    known = set(game.get_private_state(assassin)["knowledge"] or ())
    for pid in game.get_players():
        if pid != assassin and pid not in known:
            return pid
    return assassin


def run_simulation(num_players: int, seed: bytes, clock=None) -> Dict[str, Any]:
    """
    Play one scripted game to completion through :class:`AvalonGame`.

    Every proposal is approved, Good players succeed and Evil players fail,
    and the Assassin names the first player they cannot see as Evil.
    """
    players = [f"P{i + 1}" for i in range(num_players)]
    assignments = assign_roles(players, seed)
    commitment = commit_assignments(assignments, seed)
    by_id = {a.identity: a for a in assignments}

    game = AvalonGame("simulation", players[0], clock=clock)
    for pid in players:
        game.step({"action_type": "JOIN", "actor": pid})
    game.step({
        "action_type": "START",
        "actor": players[0],
        "seed": seed,
        "roles_commitment": commitment.root,
    })
    for pid in players:
        a = by_id[pid]
        game.step({
            "action_type": "REVEAL_ROLE",
            "actor": pid,
            "role": a.role.value,
            "alignment": a.alignment.value,
            "proof": commitment.proof_for(pid),
        })

    quests: List[Dict[str, Any]] = []
    over = False
    while not over:
        state = game.state
        if state.phase == GamePhase.ASSASSINATION:
            assassin = next(a.identity for a in assignments if a.role == Role.ASSASSIN)
            target = _pick_assassin_target(game, assassin)
            result, over = game.step({"action_type": "ASSASSINATE", "actor": assassin, "target": target})
            continue

        leader = state.leader
        team = _pick_team(game)
        game.step({"action_type": "PROPOSE_TEAM", "actor": leader, "team": team})
        for pid in players:
            game.step({"action_type": "VOTE_TEAM", "actor": pid, "approve": True})
        for pid in team:
            success = by_id[pid].alignment == Alignment.GOOD
            result, over = game.step({"action_type": "VOTE_QUEST", "actor": pid, "success": success})
        quests.append({
            "quest": result["quest_number"],
            "leader": leader,
            "team": team,
            "fails": result["fail_count"],
            "fails_required": result["fail_required"],
            "passed": result["passed"],
        })

    return {
        "seed": seed.hex(),
        "root": commitment.root.hex(),
        "roles": {a.identity: a.role.value for a in assignments},
        "quests": quests,
        "scores": game.get_scores(),
        "winner": game.get_winner(),
    }


def cmd_simulate(args) -> int:
    summary = run_simulation(args.players, args.seed)
    if args.json:
        print(json.dumps(summary, indent=2))
        return 0

    table = Table(title=f"Avalon simulation ({args.players} players)", box=box.ROUNDED)
    table.add_column("Quest", justify="right")
    table.add_column("Leader")
    table.add_column("Team")
    table.add_column("Fails", justify="right")
    table.add_column("Result")
    for q in summary["quests"]:
        outcome = "[green]passed[/]" if q["passed"] else "[red]failed[/]"
        table.add_row(
            str(q["quest"]),
            q["leader"],
            ", ".join(q["team"]),
            f"{q['fails']}/{q['fails_required']}",
            outcome,
        )
    console.print(table)

    winner = summary["winner"]
    style = "bold blue" if winner == Alignment.GOOD.value else "bold red"
    console.print(f"Winner: [{style}]{winner}[/]  (quests {summary['scores']['good']}-{summary['scores']['evil']})")
    return 0


# ---------------------------------------------------------------------------
# entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Avalon arbiter: role commitments and game simulation"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    commit_parser = subparsers.add_parser("commit", help="Deal roles and print the commitment")
    commit_parser.add_argument("--players", "-p", required=True, help="Comma-separated roster, e.g. 'P1,P2,P3,P4,P5'")
    commit_parser.add_argument("--seed", "-s", required=True, type=_parse_seed, help="Seed as hex")
    commit_parser.add_argument("--reveal", action="store_true", help="Also print roles (arbiter only)")
    commit_parser.add_argument("--json", action="store_true", help="Output JSON")

    verify_parser = subparsers.add_parser("verify", help="Check a role reveal against a root")
    verify_parser.add_argument("--player", required=True)
    verify_parser.add_argument("--role", required=True)
    verify_parser.add_argument("--alignment", required=True)
    verify_parser.add_argument("--seed", required=True, type=_parse_seed)
    verify_parser.add_argument("--root", required=True, help="Commitment root as hex")
    verify_parser.add_argument("--proof", default="", help="Comma-separated sibling hashes")

    sim_parser = subparsers.add_parser("simulate", help="Play a scripted game end to end")
    sim_parser.add_argument("--players", "-n", type=int, default=5, help="Player count (5-10)")
    sim_parser.add_argument("--seed", "-s", required=True, type=_parse_seed, help="Seed as hex")
    sim_parser.add_argument("--json", action="store_true", help="Output JSON")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    commands = {
        "commit": cmd_commit,
        "verify": cmd_verify,
        "simulate": cmd_simulate,
    }
    if args.command not in commands:
        parser.print_help()
        return 1

    try:
        return commands[args.command](args)
    except AvalonError as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]{e.code.value}:[/] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
