from __future__ import annotations
import argparse
import asyncio
from flask import Flask, request, jsonify, Response

import frontend as svc
from listview import config as CFG
from listview.DB.api import ConflictError, NotFoundError, ValidationError

app = Flask(__name__)


# ---------- errors ----------
@app.errorhandler(NotFoundError)
def _not_found(exc: NotFoundError):
    return jsonify({"error": str(exc)}), 404

@app.errorhandler(ConflictError)
def _conflict(exc: ConflictError):
    return jsonify({"error": str(exc)}), 409

@app.errorhandler(ValidationError)
def _invalid(exc: ValidationError):
    return jsonify({"error": str(exc)}), 400


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("expected a JSON object body")
    return body


# ---------- API ----------
@app.get("/health")
def health():
    return jsonify({"ok": True, "customers": svc.get_store().count()})

@app.get("/api/customers")
def api_customers():
    q = request.args.get("q", "", type=str)
    scroll = request.args.get("scroll", 0, type=float)
    height = request.args.get("height", 600, type=float)
    overscan = request.args.get("overscan", CFG.OVERSCAN, type=int)
    return jsonify(svc.list_window(q, scroll=scroll, height=height, overscan=overscan))

@app.get("/api/customers/<int:cid>")
def api_customer(cid: int):
    return jsonify(svc.customer_json(svc.get_store().read(cid)))

@app.post("/api/customers")
def api_create():
    row = asyncio.run(svc.get_store().create(_json_body()))
    return jsonify(svc.customer_json(row)), 201

@app.patch("/api/customers/<int:cid>")
def api_update(cid: int):
    row = asyncio.run(svc.get_store().update(cid, _json_body()))
    return jsonify(svc.customer_json(row))

@app.delete("/api/customers/<int:cid>")
def api_delete(cid: int):
    row = asyncio.run(svc.get_store().delete(cid))
    return jsonify(svc.customer_json(row))


# ---------- UI ----------
@app.get("/")
def home():
    # A tiny page: fixed-height rows absolutely positioned over a spacer.
    html = r"""
<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width,initial-scale=1" />
<title>Customers</title>
<style>
:root{
  --bg:#0b0f14; --panel:#0f141b; --ink:#cfd8e3; --muted:#8a94a6;
  --accent:#6ee7ff; --border:#1c2530;
}
*{box-sizing:border-box}
html,body{height:100%}
body{margin:0; background:var(--bg); color:var(--ink);
  font:16px/1.45 system-ui,-apple-system,Segoe UI,Roboto,Ubuntu,"Helvetica Neue",Arial;}
.container{max-width:820px; margin:24px auto; padding:0 16px}
.card{background:var(--panel); border:1px solid var(--border); border-radius:16px; padding:18px}
h1{font-size:20px; margin:0 0 8px 0}
input{width:100%; padding:12px 14px; border-radius:12px; border:1px solid var(--border);
  background:#0b1117; color:var(--ink); outline:none; font-size:16px}
input:focus{border-color:var(--accent)}
.meta{color:var(--muted); font-size:13px; margin:6px 0}
#scroller{height:60vh; overflow-y:auto; position:relative; border:1px solid var(--border); border-radius:12px}
#spacer{position:relative; width:100%}
.row{position:absolute; left:0; right:0; display:flex; align-items:center; gap:12px;
  padding:0 14px; border-bottom:1px solid var(--border)}
.row .main{flex:1; min-width:0}
.row .name{font-weight:600; white-space:nowrap; overflow:hidden; text-overflow:ellipsis}
.row .email,.row .side{color:var(--muted); font-size:13px}
.empty{padding:24px; text-align:center; color:var(--muted)}
</style>
</head>
<body>
  <div class="container">
    <div class="card">
      <h1>Customers</h1>
      <input id="q" type="text" placeholder="Search name, email or code…" autocomplete="off" autofocus />
      <div class="meta" id="stats">Loading…</div>
      <div id="scroller"><div id="spacer"></div></div>
    </div>
  </div>
<script>
const $ = (s) => document.querySelector(s);
const q = $("#q"), scroller = $("#scroller"), spacer = $("#spacer"), stats = $("#stats");
let timer, generation = 0;

async function load(){
  const gen = ++generation;
  const params = new URLSearchParams({q: q.value, scroll: scroller.scrollTop, height: scroller.clientHeight});
  const resp = await fetch(`/api/customers?${params}`);
  if(!resp.ok){ stats.textContent = `Error: HTTP ${resp.status}`; return; }
  const data = await resp.json();
  if(gen !== generation) return;  // a newer request is in flight
  stats.textContent = `${data.total} customers`;
  spacer.style.height = `${data.total_size}px`;
  spacer.replaceChildren();
  if(data.total === 0){
    spacer.append(el("div", "empty", `No customers found matching "${q.value}".`));
    return;
  }
  for(const it of data.items){
    const row = el("div", "row");
    row.dataset.index = it.index;
    row.style.height = `${it.size}px`;
    row.style.transform = `translateY(${it.start}px)`;
    const main = el("div", "main");
    main.append(el("div", "name", it.customer.name), el("div", "email", it.customer.email));
    row.append(main, el("div", "side", it.customer.code));
    spacer.append(row);
  }
}

// customer fields are user data: set as text, never as markup
function el(tag, cls, text){
  const node = document.createElement(tag);
  node.className = cls;
  if(text !== undefined) node.textContent = text;
  return node;
}

q.addEventListener("input", () => { clearTimeout(timer); timer = setTimeout(load, __DEBOUNCE__); });
scroller.addEventListener("scroll", load, {passive: true});
window.addEventListener("resize", load);
load();
</script>
</body>
</html>
""".replace("__DEBOUNCE__", str(CFG.DEBOUNCE_MS))
    return Response(html, mimetype="text/html")


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Run Flask UI on top of the customer store")
    ap.add_argument("--db", dest="db", default=None)  # DSN: "sqlite:///path" or "memory://"
    ap.add_argument("--seed", nargs="+", default=[])
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)

    svc.initialize(args.db, seed=args.seed, verbose=args.verbose)
    try:
        app.run(host=args.host, port=args.port, debug=args.verbose)
    finally:
        svc.shutdown()
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
