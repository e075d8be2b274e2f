import json
import logging
import math
import random
import re
import secrets
import uuid

import click
from flask import Flask, abort, jsonify, redirect, render_template, request, session, url_for

from frames import CODE_LINES, InvalidInput, StepKind, generate_steps, random_array, trace_stats
from player import MAX_SPEED, MIN_SPEED, Player, speed_to_interval

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.from_mapping(
    SECRET_KEY=secrets.token_hex(32),
    ARRAY_SIZE=12,
    MIN_SIZE=1,
    MAX_SIZE=40,
    VALUE_MIN=10,
    VALUE_MAX=94,
    INITIAL_SPEED=800,
)
# FLASK_ARRAY_SIZE=20, FLASK_VALUE_MAX=99, ...
app.config.from_prefixed_env()

# In-memory store (OK for local demo)
RUNS = {}


# ---------------- Utilities ----------------
def parse_values(text, max_size=None):
    """Parse "5, 3 8,1" into [5, 3, 8, 1]; blank text means random."""
    tokens = [t for t in re.split(r"[\s,]+", text or "") if t]
    if not tokens:
        return None
    if max_size is not None and len(tokens) > max_size:
        raise InvalidInput(f"at most {max_size} values allowed, got {len(tokens)}")
    try:
        return [int(t) for t in tokens]
    except ValueError as e:
        raise InvalidInput(f"values must be integers: {text!r}") from e


def clamp_int(raw, default, low, high):
    try:
        value = int(raw)
    except (TypeError, ValueError):
        value = default
    return max(low, min(value, high))


def value_range():
    return app.config["VALUE_MIN"], app.config["VALUE_MAX"]


def current_run():
    run_id = session.get("run_id")
    if not run_id or run_id not in RUNS:
        return None
    return RUNS[run_id]


def bar_roles(step):
    """Role of each bar in ``step``, used as a CSS class by the view."""
    roles = ["idle"] * len(step.array)
    low, high = step.search_range or (None, None)
    for idx in range(len(step.array)):
        if low is not None and low <= idx <= high:
            roles[idx] = "range"
            if step.kind is StepKind.SEARCH and idx in step.working_indices:
                roles[idx] = "probe"
            if step.narration == "probe" and step.working_indices[1] == idx:
                roles[idx] = "mid"
        if step.target_index == idx:
            roles[idx] = "target"
        if step.kind is StepKind.SHIFT and idx in step.working_indices:
            roles[idx] = "shift"
        if step.kind is StepKind.INSERT and step.working_indices[0] == idx:
            roles[idx] = "insert"
        if step.kind is StepKind.COMPLETE:
            roles[idx] = "sorted"
    return roles


def render_index(error=None, status=200):
    return render_template(
        "index.html",
        error=error,
        size=app.config["ARRAY_SIZE"],
        min_size=app.config["MIN_SIZE"],
        max_size=app.config["MAX_SIZE"],
        speed=app.config["INITIAL_SPEED"],
        min_speed=MIN_SPEED,
        max_speed=MAX_SPEED,
    ), status


# ---------------- Routes ----------------
@app.route("/", methods=["GET"])
def index():
    return render_index()


@app.route("/start", methods=["POST"])
def start():
    size = clamp_int(request.form.get("size"), app.config["ARRAY_SIZE"],
                     app.config["MIN_SIZE"], app.config["MAX_SIZE"])
    speed = clamp_int(request.form.get("speed"), app.config["INITIAL_SPEED"], MIN_SPEED, MAX_SPEED)
    autoplay = request.form.get("autoplay") == "on"

    player = Player(interval_ms=speed_to_interval(speed))
    try:
        values = parse_values(request.form.get("values"), max_size=app.config["MAX_SIZE"])
        player.reset(values, size=size, value_range=value_range())
    except InvalidInput as e:
        logger.warning("rejected start request: %s", e)
        return render_index(error=str(e), status=400)
    if autoplay:
        player.play()

    run_id = str(uuid.uuid4())
    RUNS[run_id] = {"player": player, "size": len(player.current.array)}
    session["run_id"] = run_id
    logger.info("run %s started with %d steps", run_id, len(player.steps))
    return redirect(url_for("view"))


@app.route("/view", methods=["GET"])
def view():
    run = current_run()
    if run is None:
        return redirect(url_for("index"))

    player = run["player"]
    step = player.current
    return render_template(
        "view.html",
        step=step,
        roles=bar_roles(step),
        peak=max((abs(v) for v in step.array), default=1) or 1,
        idx=player.cursor,
        total=len(player.steps),
        playing=player.playing,
        state=player.state.value,
        tick=player.tick_token,
        interval_ms=player.interval_ms,
        # meta refresh only honours whole seconds
        refresh_s=max(1, math.ceil(player.interval_ms / 1000.0)),
        speed=player.speed,
        min_speed=MIN_SPEED,
        max_speed=MAX_SPEED,
        code_lines=CODE_LINES,
        stats=trace_stats(player.steps),
        size=run["size"],
    )


@app.route("/advance", methods=["POST", "GET"])
def advance():
    # GET is used by meta refresh; POST by buttons (Prev/Next)
    run = current_run()
    if run is None:
        return redirect(url_for("index"))
    player = run["player"]
    direction = request.values.get("dir", "next")
    if direction == "next":
        player.step_forward()
    elif direction == "prev":
        player.step_backward()
    elif direction == "first":
        player.first()
    elif direction == "last":
        player.last()
    elif direction == "toggle_auto":
        player.toggle_play()
    elif direction == "tick":
        player.tick(request.values.get("tick", type=int))
    else:
        logger.debug("ignoring unknown direction %r", direction)
    return redirect(url_for("view"))


@app.route("/speed", methods=["POST"])
def speed():
    run = current_run()
    if run is None:
        return redirect(url_for("index"))
    player = run["player"]
    player.set_speed(clamp_int(request.form.get("speed"), player.speed, MIN_SPEED, MAX_SPEED))
    return redirect(url_for("view"))


@app.route("/reset", methods=["POST"])
def reset():
    run = current_run()
    if run is None:
        return redirect(url_for("index"))
    run["player"].reset(size=run["size"], value_range=value_range())
    return redirect(url_for("view"))


@app.route("/clear", methods=["POST"])
def clear():
    run_id = session.pop("run_id", None)
    if run_id in RUNS:
        del RUNS[run_id]
    return redirect(url_for("index"))


@app.route("/api/state", methods=["GET"])
def api_state():
    run = current_run()
    if run is None:
        return jsonify(Player().snapshot())
    return jsonify(run["player"].snapshot())


@app.route("/api/steps/<int:index>", methods=["GET"])
def api_step(index):
    run = current_run()
    if run is None or not 0 <= index < len(run["player"].steps):
        abort(404)
    return jsonify(run["player"].steps[index].to_dict())


# ---------------- CLI ----------------
@app.cli.command("trace", context_settings={"ignore_unknown_options": True})
@click.argument("values", nargs=-1, type=int)
@click.option("--seed", type=int, help="Seed for the random array used when no VALUES are given.")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the trace to this JSON file.")
def trace_command(values, seed, output):
    """Print the binary insertion sort trace of VALUES as JSON.

    Without VALUES a random array is traced, sized and ranged by the app config.
    Negative values are accepted as they are (`trace 5 -3 2`); `--` also ends
    option parsing.
    """
    if not values:
        values = random_array(app.config["ARRAY_SIZE"], *value_range(), rng=random.Random(seed))
    steps = generate_steps(values)
    payload = {
        "code": list(CODE_LINES),
        "stats": trace_stats(steps),
        "steps": [step.to_dict() for step in steps],
    }
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        logger.info("wrote %d steps to %s", len(steps), output)
        click.echo(f"Saved {len(steps)} steps to {output}")
    else:
        click.echo(text)


if __name__ == "__main__":
    # Host locally; debug=True for development
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True)
