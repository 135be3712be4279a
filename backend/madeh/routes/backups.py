# Overview: Flask API routes for data backup and restore.

"""
Backup routes.

- GET  /api/backups/export            download a backup document
- POST /api/backups/restore           restore from an uploaded document
- GET  /api/backups                   saved backups of the signed-in admin
- POST /api/backups                   save a new backup to local storage
- POST /api/backups/<name>/restore    restore a saved backup
"""

import json

from flask import Blueprint, request, jsonify, current_app, g, Response

from ..services import backup_service
from ..services.backup_storage import LocalBackupStorage
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_permission
from madeh.time_utils import utcnow


backups_bp = Blueprint("backups", __name__, url_prefix="/api/backups")


def _storage() -> LocalBackupStorage:
    return LocalBackupStorage(current_app.config["BACKUP_STORAGE_PATH"])


def _uploaded_document():
    upload = request.files.get("file")
    if upload:
        try:
            return json.loads(upload.read().decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise ValidationError(backup_service.INVALID_FORMAT_MESSAGE)
    document = request.get_json(silent=True)
    if document is None:
        raise ValidationError(backup_service.INVALID_FORMAT_MESSAGE)
    return document


def _restore(document):
    try:
        counts = backup_service.restore_backup(document)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Backup restore failed")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Admin %s restored a backup: %s", g.current_admin.id, counts)
    return jsonify({"restored": counts, "message": "Data restored successfully!"}), 200


@backups_bp.get("/export")
@require_auth
@require_permission("MANAGE_BACKUPS")
def export_backup():
    document = backup_service.build_backup()
    filename = f"madeh-hardware-backup-{utcnow().date().isoformat()}.json"
    return Response(
        json.dumps(document, indent=2),
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@backups_bp.post("/restore")
@require_auth
@require_permission("MANAGE_BACKUPS")
def restore_uploaded_backup():
    try:
        document = _uploaded_document()
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return _restore(document)


@backups_bp.get("")
@require_auth
@require_permission("MANAGE_BACKUPS")
def list_saved_backups():
    items = _storage().list(g.current_admin.id)
    return jsonify({"items": items, "count": len(items)}), 200


@backups_bp.post("")
@require_auth
@require_permission("MANAGE_BACKUPS")
def save_backup():
    try:
        entry = _storage().save(g.current_admin.id, backup_service.build_backup())
    except OSError:
        current_app.logger.exception("Failed to save backup")
        return jsonify({"error": "Failed to save backup"}), 500

    return jsonify({"backup": entry, "message": "Backup saved"}), 201


@backups_bp.post("/<name>/restore")
@require_auth
@require_permission("MANAGE_BACKUPS")
def restore_saved_backup(name: str):
    try:
        document = _storage().load(g.current_admin.id, name)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return _restore(document)
