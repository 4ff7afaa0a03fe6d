from flask import (
    Blueprint,
    render_template,
    redirect,
    url_for,
    flash,
    request,
    jsonify,
    current_app,
    abort,
)
from flask_login import login_user, logout_user, login_required, current_user

from imagehost import db, bcrypt, limiter
from imagehost.exceptions import (
    ImageHostError,
    NotFoundError,
    StorageIOError,
    UploadError,
    ValidationError,
)
from imagehost.identity import IdentityStore
from imagehost.ledger import UploadLedger
from imagehost.models import User
from imagehost.uploads import UploadOrchestrator

main = Blueprint("main", __name__)


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  HELPERS                                                           ║
# ╚══════════════════════════════════════════════════════════════════════╝

def _allowed_file(filename: str) -> bool:
    """Check if the file extension is in the whitelist."""
    return (
        "." in filename
        and filename.rsplit(".", 1)[1].lower()
        in current_app.config["ALLOWED_EXTENSIONS"]
    )


def _client_ip() -> str:
    """First address in X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr


def _safe_next(target):
    # Only same-site relative paths
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None


def _object_store():
    return current_app.extensions["object_store"]


def _identity():
    return IdentityStore(db.session, bcrypt)


def _ledger():
    return UploadLedger(db.session)


def _history_entry(upload):
    return {
        "key": upload.object_key,
        "url": _object_store().public_url(upload.object_key),
        "shortId": upload.short_id,
        "shortUrl": (
            url_for("main.short_link", short_id=upload.short_id, _external=True)
            if upload.short_id
            else None
        ),
        "date": upload.uploaded_at.strftime("%Y-%m-%d %H:%M:%S"),
    }


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  HOME                                                              ║
# ╚══════════════════════════════════════════════════════════════════════╝

@main.route("/")
@login_required
def index():
    try:
        uploads = _ledger().list_by_user(
            current_user.id, limit=current_app.config["HISTORY_LIMIT"]
        )
    except StorageIOError:
        current_app.logger.exception("Could not load upload history")
        uploads = []

    return render_template(
        "index.html",
        username=current_user.username,
        uploads=[_history_entry(u) for u in uploads],
    )


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  AUTHENTICATION                                                    ║
# ╚══════════════════════════════════════════════════════════════════════╝

@main.route("/register", methods=["GET", "POST"])
def register():
    if current_user.is_authenticated:
        return redirect(url_for("main.index"))

    if request.method == "POST":
        username = request.form.get("username", "").strip()
        email = request.form.get("email", "").strip()
        password = request.form.get("password", "")
        confirm = request.form.get("password2", "")

        # ── Validation ───────────────────────────────────────────────
        errors = []
        if not username or not email or not password or not confirm:
            errors.append("Please fill in all fields")
        if password != confirm:
            errors.append("Passwords do not match")
        if len(password) < 6:
            errors.append("Password must be at least 6 characters")

        if errors:
            flash(", ".join(errors), "error")
            return redirect(url_for("main.register"))

        # ── Create user ──────────────────────────────────────────────
        try:
            _identity().register(username, email, password, _client_ip())
        except StorageIOError:
            current_app.logger.exception("Registration failed")
            flash("Registration failed. Please try again.", "error")
            return redirect(url_for("main.register"))
        except ImageHostError as e:
            flash(e.message, "error")
            return redirect(url_for("main.register"))

        flash("Account created! Please log in.", "success")
        return redirect(url_for("main.login"))

    return render_template("register.html")


@main.route("/login", methods=["GET", "POST"])
@limiter.limit("10 per minute", methods=["POST"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("main.index"))

    if request.method == "POST":
        username = request.form.get("username", "").strip()
        password = request.form.get("password", "")

        if not username or not password:
            flash("Please fill in all fields", "error")
            return redirect(url_for("main.login"))

        try:
            account = _identity().login(username, password, _client_ip())
        except StorageIOError:
            current_app.logger.exception("Login failed")
            flash("Login failed. Please try again.", "error")
            return redirect(url_for("main.login"))
        except ImageHostError as e:
            flash(e.message, "error")
            return redirect(url_for("main.login"))

        login_user(db.session.get(User, account["id"]))
        flash("Logged in successfully.", "success")
        next_page = _safe_next(request.args.get("next"))
        return redirect(next_page or url_for("main.index"))

    return render_template("login.html")


@main.route("/logout")
def logout():
    logout_user()
    return redirect(url_for("main.login"))


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  UPLOAD                                                            ║
# ╚══════════════════════════════════════════════════════════════════════╝

@main.route("/upload", methods=["POST"])
@login_required
@limiter.limit("30 per minute")
def upload():
    file = request.files.get("image")

    if not file or file.filename == "":
        return jsonify({"success": False, "message": ValidationError.message}), 400

    if not _allowed_file(file.filename):
        return (
            jsonify({"success": False, "message": "Only image files are allowed!"}),
            400,
        )

    orchestrator = UploadOrchestrator(
        _object_store(),
        _ledger(),
        extension=current_app.config["CONTENT_KEY_EXTENSION"],
    )
    try:
        result = orchestrator.handle_upload(current_user.id, file.read(), _client_ip())
    except ValidationError as e:
        return jsonify({"success": False, "message": e.message}), 400
    except (UploadError, StorageIOError) as e:
        current_app.logger.exception(f"Upload failed for user {current_user.id}")
        return jsonify({"success": False, "message": e.message}), 500
    except Exception:
        current_app.logger.exception(f"Upload failed for user {current_user.id}")
        return jsonify({"success": False, "message": UploadError.message}), 500

    body = {
        "success": True,
        "imageUrl": result.image_url,
        "key": result.key,
        "shortId": result.short_id,
        "shortUrl": url_for("main.short_link", short_id=result.short_id, _external=True),
    }
    if result.duplicate:
        body["message"] = "File already exists and has been linked to your account"
    return jsonify(body)


# ╔══════════════════════════════════════════════════════════════════════╗
# ║  HISTORY / SHORT LINKS                                             ║
# ╚══════════════════════════════════════════════════════════════════════╝

@main.route("/history")
@login_required
def history():
    try:
        uploads = _ledger().list_by_user(
            current_user.id, limit=current_app.config["HISTORY_LIMIT"]
        )
    except StorageIOError as e:
        current_app.logger.exception("Could not load upload history")
        return jsonify({"success": False, "message": e.message}), 500
    return jsonify({"success": True, "uploads": [_history_entry(u) for u in uploads]})


@main.route("/i/<short_id>")
def short_link(short_id):
    try:
        upload = _ledger().find_by_short_id(short_id)
    except NotFoundError:
        abort(404)
    return redirect(_object_store().public_url(upload.object_key))
