from flask import Blueprint, request, jsonify, g

from ...integrations.storage.client import StorageError, delete_image, upload_image

bp = Blueprint("upload", __name__, url_prefix="/upload")


@bp.post("/image")
def upload():
    """Multipart upload: file=<image>, directory=<optional folder>. Returns { url }."""
    if getattr(g, "principal", None) is None:
        return jsonify({"error": "Authentication required"}), 401

    f = request.files.get("file")
    if not f or not f.filename:
        return jsonify({"error": "No file provided"}), 400

    directory = (request.form.get("directory") or "images").strip()
    try:
        url = upload_image(
            f.read(),
            filename=f.filename,
            content_type=f.mimetype,
            directory=directory,
        )
    except StorageError as e:
        return jsonify({"error": str(e), "code": "storage_error"}), 500
    return jsonify({"url": url})


@bp.delete("/image")
def remove():
    """Query: key=<object key> (a local /uploads/... URL is accepted too). Admin only."""
    principal = getattr(g, "principal", None)
    if principal is None:
        return jsonify({"error": "Authentication required"}), 401
    if not principal.is_admin:
        return jsonify({"error": "Forbidden"}), 403

    key = (request.args.get("key") or "").strip()
    if key.startswith("/uploads/"):
        key = key[len("/uploads/"):]
    try:
        delete_image(key)
    except StorageError as e:
        return jsonify({"error": str(e), "code": "storage_error"}), 500
    return jsonify({"ok": True})
