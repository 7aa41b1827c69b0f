from __future__ import annotations
import argparse, asyncio, json, sys
from listview import config as CFG
from listview.cache import QueryCache
from listview.engine import ListView, customer_list
from listview.mutations import MutationFailed
import frontend as svc

def _notify(kind: str, message: str) -> None:
    print(f"[{kind}] {message}")

def _print_rows(view: ListView, as_json: bool) -> None:
    rows = view.rows()
    if as_json:
        print(json.dumps({
            "query": view.debounced_query,
            "total": len(view.result_set),
            "total_size": view.window.total_size,
            "items": [{"index": vi.index, "start": vi.start, "customer": svc.customer_json(c)} for vi, c in rows],
        }, ensure_ascii=False, indent=2))
        return
    if view.is_empty:
        print(f'(no customers matching "{view.debounced_query}")'); return
    print(f"{len(view.result_set)} match(es), showing {len(rows)}")
    print("#     Offset  Code     Name                      Email")
    for vi, c in rows:
        print(f"{vi.index:<5} {vi.start:<7} {c.code:<8} {c.name[:25]:<25} {c.email}")

def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Customer list CLI (search + virtualized window)")
    p.add_argument("--db", default=None, help='Store DSN: "memory://" (default) or "sqlite:///path"')
    p.add_argument("--seed", nargs="+", default=[], help="JSON/CSV seed files or folders (used when the store is empty)")
    p.add_argument("--q", default=None, help="Single query to run once")
    p.add_argument("--height", type=float, default=600, help="Viewport height in px")
    p.add_argument("--scroll", type=float, default=0, help="Scroll offset in px")
    p.add_argument("--overscan", type=int, default=CFG.OVERSCAN)
    p.add_argument("--json", action="store_true", help="Emit JSON rows")
    p.add_argument("--repl", action="store_true", help="Interactive loop after init")
    p.add_argument("--serve", action="store_true", help="Run the Flask UI instead")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--verbose", action="store_true")
    args = p.parse_args(argv)

    if args.serve:
        from .web import main as serve
        fwd = ["--host", args.host, "--port", str(args.port)]
        if args.db: fwd += ["--db", args.db]
        if args.seed: fwd += ["--seed", *args.seed]
        if args.verbose: fwd.append("--verbose")
        return serve(fwd)

    store = svc.initialize(args.db, seed=args.seed, verbose=args.verbose)
    # CLI input is already "settled" per line: no debounce
    view = customer_list(QueryCache(), store, debounce_ms=0, overscan=args.overscan, notify=_notify)
    try:
        asyncio.run(view.refresh())
        view.set_viewport(args.height)
        view.scroll_to(args.scroll)

        if args.q is not None:
            view.set_query(args.q)
            _print_rows(view, args.json)

        if args.repl:
            print("Type a query (empty line to exit).  Commands: :scroll N, :next, :prev, :add NAME EMAIL, :del ID")
            while True:
                try:
                    line = input("> ")
                except (EOFError, KeyboardInterrupt):
                    print(); break
                if not line.strip():
                    break
                cmd, _, rest = line.strip().partition(" ")
                try:
                    if cmd == ":scroll":
                        view.scroll_to(float(rest))
                    elif cmd == ":next":
                        view.scroll_to(view.scroll_offset + args.height)
                    elif cmd == ":prev":
                        view.scroll_to(max(0, view.scroll_offset - args.height))
                    elif cmd == ":add":
                        name, _, email = rest.rpartition(" ")
                        asyncio.run(view.create({"name": name or email, "email": email if name else ""}))
                    elif cmd == ":del":
                        asyncio.run(view.delete(int(rest)))
                    else:
                        view.set_query(line)
                except MutationFailed:
                    pass  # already reported through _notify
                except (ValueError, KeyError) as exc:
                    print(f"error: {exc}")
                _print_rows(view, args.json)
        return 0
    finally:
        view.close()
        svc.shutdown()

if __name__ == "__main__":
    sys.exit(main())
