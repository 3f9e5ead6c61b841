"""
Mock Quiz Funnel Server for Integration Testing.

This Flask application simulates a short mobile quiz funnel so the
runner can be exercised end to end without touching real funnel sites.

Funnel Flow:
1. /quiz         Question: radio options + Continue (with a cookie banner)
2. /quiz/height  Input: numeric height field + Continue
3. /quiz/info    Info: social proof text + single Continue button
4. /quiz/email   Email: email field + consent checkbox + Continue
5. /quiz/plan    Paywall: two prices + "Get my plan"

/dead-end is a text-only page with nothing to click.

Start it by hand with ``python -m tests.mock_server`` (port 5555).
"""
from __future__ import annotations

import threading
from typing import Optional

from flask import Flask, redirect, render_template_string, request, session, url_for
from werkzeug.serving import BaseWSGIServer, make_server


__all__ = [
    "create_app",
    "run_server_in_thread",
    "stop_server",
]


# =============================================================================
# HTML TEMPLATES
# =============================================================================

BASE_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }}</title>
    <style>
        body {
            font-family: Arial, sans-serif;
            max-width: 420px;
            margin: 20px auto;
            padding: 16px;
            background: #fafafa;
        }
        h1 { color: #222; font-size: 22px; }
        .option {
            display: block;
            padding: 14px;
            margin: 10px 0;
            border: 1px solid #ddd;
            border-radius: 8px;
            background: white;
            cursor: pointer;
        }
        input[type="number"], input[type="email"] {
            width: 100%;
            padding: 12px;
            font-size: 16px;
            border: 1px solid #ccc;
            border-radius: 6px;
        }
        .btn {
            width: 100%;
            background: #ff5a36;
            color: white;
            padding: 14px;
            border: none;
            border-radius: 24px;
            font-size: 16px;
            margin-top: 20px;
            cursor: pointer;
        }
        .cookie-banner {
            position: fixed;
            bottom: 0;
            left: 0;
            right: 0;
            padding: 12px;
            background: #333;
            color: white;
        }
        .price { font-size: 20px; font-weight: bold; }
    </style>
</head>
<body>
    {{ content | safe }}
</body>
</html>
"""

GOAL_CONTENT = """
<h1>What is your main goal?</h1>
<form method="POST" action="/quiz/goal">
    <label class="option"><input type="radio" name="goal" value="lose"> Lose weight</label>
    <label class="option"><input type="radio" name="goal" value="muscle"> Gain muscle</label>
    <label class="option"><input type="radio" name="goal" value="fit"> Get fit</label>
    <button type="submit" class="btn">Continue</button>
</form>
<div class="cookie-banner" id="cookies">
    We use cookies to improve your experience.
    <button type="button" onclick="document.getElementById('cookies').remove()">Accept all</button>
</div>
"""

HEIGHT_CONTENT = """
<h1>What is your height?</h1>
<form method="POST" action="/quiz/height">
    <input type="number" name="height" placeholder="Height (cm)">
    <button type="submit" class="btn">Continue</button>
</form>
"""

INFO_CONTENT = """
<h1>You are in good company</h1>
<p>More than 120,000 people with a goal like yours already started with us and
saw first results within four weeks.</p>
<button type="button" class="btn" onclick="window.location.href='/quiz/email'">Continue</button>
"""

EMAIL_CONTENT = """
<h1>Where should we send your results?</h1>
<form method="POST" action="/quiz/email">
    <input type="email" name="email" placeholder="Your email">
    <label><input type="checkbox" name="consent" value="yes"> I agree to receive emails</label>
    <button type="submit" class="btn">Continue</button>
</form>
"""

PLAN_CONTENT = """
<h1>Choose your plan</h1>
<p>Your personalized plan is ready.</p>
<div class="option"><span class="price">$29.99</span> per month</div>
<div class="option"><span class="price">$9.99</span> per week</div>
<button type="button" class="btn">Get my plan</button>
"""

DEAD_END_CONTENT = """
<h1>Almost there</h1>
<p>We are preparing something for you. Nothing to do here yet, please wait a bit longer.</p>
"""


# =============================================================================
# FLASK APPLICATION
# =============================================================================

def _page(title: str, content: str) -> str:
    return render_template_string(BASE_TEMPLATE, title=title, content=content)


def create_app(debug: bool = False) -> Flask:
    """Build the funnel app; answers are kept in the Flask session."""
    app = Flask(__name__)
    app.secret_key = "funnel-mock-session"
    app.config["DEBUG"] = debug

    @app.route("/")
    def index():
        """Redirect to funnel start."""
        return redirect(url_for("quiz_start"))

    @app.route("/quiz")
    def quiz_start():
        session.clear()
        return _page("Quiz - Goal", GOAL_CONTENT)

    @app.route("/quiz/goal", methods=["POST"])
    def quiz_goal_submit():
        session["goal"] = request.form.get("goal")
        return redirect(url_for("quiz_height"))

    @app.route("/quiz/height", methods=["GET", "POST"])
    def quiz_height():
        if request.method == "POST":
            session["height"] = request.form.get("height")
            return redirect(url_for("quiz_info"))
        return _page("Quiz - Height", HEIGHT_CONTENT)

    @app.route("/quiz/info")
    def quiz_info():
        return _page("Quiz - Info", INFO_CONTENT)

    @app.route("/quiz/email", methods=["GET", "POST"])
    def quiz_email():
        if request.method == "POST":
            session["email"] = request.form.get("email")
            session["consent"] = request.form.get("consent")
            return redirect(url_for("quiz_plan"))
        return _page("Quiz - Email", EMAIL_CONTENT)

    @app.route("/quiz/plan")
    def quiz_plan():
        return _page("Quiz - Plan", PLAN_CONTENT)

    @app.route("/dead-end")
    def dead_end():
        return _page("Please wait", DEAD_END_CONTENT)

    @app.route("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.route("/api/answers")
    def get_answers():
        """Answers recorded in the current session (for testing)."""
        return {
            "goal": session.get("goal"),
            "height": session.get("height"),
            "email": session.get("email"),
            "consent": session.get("consent"),
        }

    return app


# =============================================================================
# SERVER MANAGEMENT
# =============================================================================

_server: Optional[BaseWSGIServer] = None


def run_server_in_thread(host: str = "127.0.0.1", port: int = 5555) -> str:
    """Serve the funnel from a daemon thread and return its base URL."""
    global _server

    if _server is None:
        _server = make_server(host, port, create_app(), threaded=True)
        threading.Thread(target=_server.serve_forever, daemon=True).start()

    return f"http://{host}:{port}"


def stop_server() -> None:
    """Shut the background server down, if one is running."""
    global _server

    if _server is not None:
        _server.shutdown()
        _server = None


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    create_app(debug=True).run(host="127.0.0.1", port=5555)
