from __future__ import annotations
"""Flask routes exposing the file service facade over HTTP."""
from functools import wraps
import hmac
import logging

from flask import Blueprint, Flask, Response, current_app, jsonify, request

from .controller import FileManagerController, status_for_error
from .exceptions import FileManagerError, NotFoundError, UnauthorizedError
from .models import FileListing, FilePayload, UploadItem
from .session import BrowserSession
from .settings import AppSettings
from .utils import compose_key, content_disposition, load_package_info

LOGGER = logging.getLogger(__name__)

CONTROLLER_KEY = "S3FILES_CONTROLLER"
TOKEN_KEY = "S3FILES_TOKEN"
ROOT_LABEL_KEY = "S3FILES_ROOT_LABEL"
BEARER_PREFIX = "Bearer "

files_bp = Blueprint("files", __name__)
share_bp = Blueprint("share", __name__)


def _controller() -> FileManagerController:
    return current_app.config[CONTROLLER_KEY]


def _check_token(header: str | None, expected: str) -> bool:
    if not expected or not header:
        return False
    provided = header[len(BEARER_PREFIX):] if header.startswith(BEARER_PREFIX) else header
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_token(view):
    """Reject requests whose ``Authorization`` header differs from the token."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if not _check_token(request.headers.get("Authorization"), current_app.config[TOKEN_KEY]):
            LOGGER.warning("Rejected %s %s: bad or missing token", request.method, request.path)
            raise UnauthorizedError()
        return view(*args, **kwargs)

    return wrapper


def _requested_key() -> str:
    return request.args.get("key") or request.args.get("prefix") or ""


def _payload_response(payload: FilePayload, disposition: str = "attachment") -> Response:
    response = Response(payload.body, status=200, content_type=payload.content_type)
    response.headers["Content-Disposition"] = content_disposition(payload.key, disposition)
    response.headers["Content-Length"] = str(payload.content_length)
    return response


@files_bp.get("/files")
@require_token
def get_files():
    result = _controller().handle_get(
        request.args.get("key"),
        request.args.get("mode"),
        prefix=request.args.get("prefix"),
    )
    if isinstance(result, FileListing):
        session = BrowserSession(
            result,
            sort_by=request.args.get("sort") or "date",
            root_label=current_app.config[ROOT_LABEL_KEY],
        )
        return jsonify(session.to_dict())
    return _payload_response(result)


@files_bp.post("/files")
@require_token
def post_files():
    key = _requested_key()
    target, stored_key = _controller().handle_post(
        key,
        request.args.get("mode"),
        body=request.get_data(cache=False),
        content_type=request.mimetype or None,
    )
    if target == "folder":
        message = f"Folder '{stored_key}' created successfully."
    else:
        message = f"File '{stored_key}' uploaded successfully."
    return jsonify({"message": message, "key": stored_key}), 201


@files_bp.post("/files/batch")
@require_token
def post_files_batch():
    prefix = request.args.get("prefix", "")
    items = []
    for storage in request.files.getlist("files"):
        items.append(
            UploadItem(
                key=compose_key(prefix, storage.filename or ""),
                body=storage.read(),
                content_type=storage.mimetype or None,
            )
        )
    uploaded = _controller().upload_many(items)
    return jsonify({"message": f"Uploaded {len(uploaded)} file(s).", "keys": uploaded}), 201


@files_bp.delete("/files")
@require_token
def delete_files():
    key = _requested_key()
    target, count = _controller().handle_delete(key, request.args.get("mode"))
    if target == "folder":
        message = f"Folder '{key}' and its contents deleted successfully."
    else:
        message = f"File '{key}' deleted successfully."
    return jsonify({"message": message, "deleted": count})


@files_bp.get("/share")
@require_token
def get_share_url():
    key = request.args.get("key", "")
    return jsonify({"key": key, "url": _controller().share_url(key)})


@files_bp.get("/health")
def health():
    info = load_package_info()
    return jsonify({"name": info.name, "version": info.version, "status": "ok"})


def _cors_headers(response: Response) -> Response:
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin") or "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    return response


@share_bp.route("/share/<path:key>", methods=["GET", "OPTIONS"])
def public_object(key: str):
    """Serve an object without the token, as a public bucket would."""

    if request.method == "OPTIONS":
        return _cors_headers(Response(status=204))
    try:
        payload = _controller().download(key)
    except NotFoundError as exc:
        return _cors_headers(jsonify({"error": str(exc)})), 404
    return _cors_headers(_payload_response(payload, disposition="inline"))


def handle_file_manager_error(exc: FileManagerError):
    status = status_for_error(exc)
    if status >= 500:
        LOGGER.error("Request %s %s failed: %s", request.method, request.path, exc)
    return jsonify({"error": str(exc)}), status


def create_app(controller: FileManagerController, settings: AppSettings | None = None) -> Flask:
    """Build the Flask application around ``controller``."""

    settings = settings or AppSettings()
    app = Flask(__name__)
    app.config[CONTROLLER_KEY] = controller
    app.config[TOKEN_KEY] = settings.auth_token
    app.config[ROOT_LABEL_KEY] = settings.root_label
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_bytes
    if not settings.auth_token:
        LOGGER.warning("No auth token configured; protected routes will reject every request")
    app.register_blueprint(files_bp, url_prefix="/api")
    app.register_blueprint(share_bp)
    app.register_error_handler(FileManagerError, handle_file_manager_error)
    return app
