import logging
from typing import Optional

from flask import Flask, jsonify, render_template_string, request

from artifacts import DEFAULT_CONFIG, MIME_TYPES, QRConfig, encode
from downloads import download_filename, send_artifact
from errors import EncodingError
from session_gate import (
    HttpIdentityService,
    IdentityService,
    SessionGate,
    User,
    anti_entry_gate,
    login_required,
)
from settings import Settings, configure_logging

logger = logging.getLogger(__name__)

DEFAULT_API_SIZE = 200

LOGIN_TEMPLATE = """
<!doctype html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <title>Sign in</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 2rem; }
        .card { border: 1px solid #ccc; padding: 1.5rem; max-width: 30rem; }
    </style>
</head>
<body>
    <div class="card">
        <h1>Sign in</h1>
        <p>Sign in with your account to reach the dashboard.</p>
        <p><a href="{{ identity_url }}">Continue to sign in</a></p>
    </div>
</body>
</html>
"""

DASHBOARD_TEMPLATE = """
<!doctype html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <title>Dashboard</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 2rem; }
    </style>
</head>
<body>
    <h1>Dashboard</h1>
    <p>Signed in as <strong>{{ user.email or user.id }}</strong></p>
    <p><a href="{{ url_for('qr_page') }}">Generate a QR code</a></p>
</body>
</html>
"""

QR_TEMPLATE = """
<!doctype html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <title>QR Code</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 2rem; }
        form { margin-bottom: 2rem; }
        label { display: block; margin-bottom: 0.5rem; }
        input { padding: 0.5rem; width: 24rem; max-width: 100%; margin-bottom: 1rem; }
        button { padding: 0.5rem 1rem; cursor: pointer; }
        .result { border: 1px solid #ccc; padding: 1.5rem; max-width: 30rem; }
        .qr { margin-top: 1rem; }
        .error { color: #b00020; }
    </style>
</head>
<body>
    <h1>Generate a QR Code</h1>
    <form method="post">
        <label>
            Content:
            <input type="text" name="data" value="{{ data|default('') }}" required />
        </label>
        <label>
            File name:
            <input type="text" name="filename" value="{{ filename|default('') }}" />
        </label>
        <button type="submit">Generate</button>
    </form>

    {% if error %}
        <p class="error">{{ error }}</p>
    {% endif %}

    {% if artifact %}
    <div class="result">
        <div class="qr">
            <img src="{{ artifact.data }}" alt="QR Code" width="256" height="256" />
        </div>
        <p>
            <button type="button" id="download-qr"
                    data-href="{{ artifact.data }}" data-filename="{{ filename }}">
                Download QR Code
            </button>
        </p>
        <p><a href="{{ url_for('download_qr', data=data, filename=filename) }}">Direct download</a></p>
    </div>
    <script>
        document.getElementById("download-qr").addEventListener("click", function (event) {
            var button = event.currentTarget;
            var link = document.createElement("a");
            link.href = button.dataset.href;
            link.download = button.dataset.filename;
            document.body.appendChild(link);
            try {
                link.click();
            } finally {
                document.body.removeChild(link);
            }
        });
    </script>
    {% endif %}
</body>
</html>
"""


def _parse_size(raw: Optional[str], max_width: int) -> int:
    if raw is None or raw == "":
        return DEFAULT_API_SIZE
    try:
        size = int(raw)
    except ValueError:
        raise ValueError("size must be an integer") from None
    if size <= 0 or size > max_width:
        raise ValueError(f"size must be between 1 and {max_width}")
    return size


def create_app(settings: Optional[Settings] = None,
               identity: Optional[IdentityService] = None) -> Flask:
    settings = settings or Settings.from_env()
    if identity is None:
        identity = HttpIdentityService(
            settings.identity_url,
            api_key=settings.identity_api_key,
            timeout=settings.identity_timeout,
        )

    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.secret_key
    app.config["SESSION_COOKIE"] = settings.session_cookie
    app.extensions["identity"] = identity
    app.extensions["session_gate"] = SessionGate(
        identity,
        redirect_to=settings.gate_redirect,
        fail_mode=settings.gate_fail_mode,
    )

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "ok"}), 200

    @app.route("/login", methods=["GET"])
    @anti_entry_gate
    def login():
        return render_template_string(LOGIN_TEMPLATE, identity_url=settings.identity_url)

    @app.route("/dashboard", methods=["GET"])
    @login_required
    def dashboard(user: User):
        return render_template_string(DASHBOARD_TEMPLATE, user=user)

    @app.route("/api/qrcode", methods=["GET"])
    def api_qrcode():
        text = request.args.get("text", "")
        if not text.strip():
            return jsonify({"error": "text is required"}), 400

        try:
            size = _parse_size(request.args.get("size"), settings.qr_max_width)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400

        image_format = request.args.get("format", "png").lower()
        if image_format not in MIME_TYPES:
            return jsonify({"error": f"format must be one of {sorted(MIME_TYPES)}"}), 400

        config = QRConfig(width=size, image_format=image_format)
        try:
            artifact = encode(text, config)
        except EncodingError as exc:
            logger.info("Rejected QR request: %s", exc)
            return jsonify({"error": str(exc)}), 400

        return jsonify({"qr_code": artifact.data, "text": text})

    @app.route("/qr", methods=["GET", "POST"])
    def qr_page():
        source = request.form if request.method == "POST" else request.args
        data = source.get("data", "")
        context = {"data": data, "filename": "", "artifact": None, "error": None}

        if data.strip():
            try:
                artifact = encode(data, DEFAULT_CONFIG)
                context["artifact"] = artifact
                context["filename"] = download_filename(source.get("filename", "") or data, artifact)
            except EncodingError as exc:
                context["error"] = str(exc)
        elif request.method == "POST":
            context["error"] = "content is required"

        return render_template_string(QR_TEMPLATE, **context)

    @app.route("/qr/download", methods=["GET"])
    def download_qr():
        data = request.args.get("data", "")
        if not data.strip():
            return jsonify({"error": "data is required"}), 400
        try:
            artifact = encode(data, DEFAULT_CONFIG)
        except EncodingError as exc:
            return jsonify({"error": str(exc)}), 400
        return send_artifact(artifact, request.args.get("filename", "") or data)

    @app.route("/api/cleanup", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
    def cleanup():
        if request.method != "GET":
            return jsonify({"error": "Method not allowed"}), 405
        return jsonify({"message": "Cleanup endpoint - No functionality needed"}), 200

    return app


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    logger.info("Starting on port %d, gate fail mode %s", settings.port, settings.gate_fail_mode)
    create_app(settings).run(host="0.0.0.0", port=settings.port)
