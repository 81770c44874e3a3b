import logging

from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required

from config import allowed_file, get_upload_rules
from storage.bunny_storage_service import get_bunny_storage
from storage.exceptions import StorageError
from storage.local_storage import get_local_storage
from storage.upload_chain import upload_with_fallback, generate_upload_filename

logger = logging.getLogger(__name__)

uploads_bp = Blueprint('uploads', __name__)

# Form field names accepted for each single-file upload kind
UPLOAD_FIELDS = {
    'video': ('video',),
    'audio': ('audio',),
    'document': ('document',),
    'thumbnail': ('thumbnail', 'file'),
}


def _error(message, status_code):
    return jsonify({
        "success": False,
        "status": "error",
        "message": message
    }), status_code


def _read_upload(file_storage, kind):
    """Validate type and size, returning the file content"""
    rules = get_upload_rules(kind)
    if not allowed_file(file_storage.filename, kind):
        allowed = ', '.join(sorted(rules['extensions']))
        raise ValueError(f"Invalid file type for {kind}. Allowed: {allowed}")

    data = file_storage.read()
    if len(data) > rules['max_size']:
        raise ValueError(f"File too large. Maximum size for {kind} is {rules['max_size'] // (1024 * 1024)}MB")
    return data


def _store(file_storage, kind):
    rules = get_upload_rules(kind)
    data = _read_upload(file_storage, kind)
    file_name = generate_upload_filename(kind, file_storage.filename, rules['default_extension'])

    return upload_with_fallback(
        data,
        file_name,
        rules['folder'],
        file_storage.mimetype,
        cdn=get_bunny_storage(current_app),
        local=get_local_storage(current_app),
        timeout=current_app.config.get('CDN_UPLOAD_TIMEOUT'),
    )


@uploads_bp.route('/uploads/<kind>', methods=['POST'])
@jwt_required()
def upload_file(kind):
    """Upload a single video, audio track, document or thumbnail"""
    if kind not in UPLOAD_FIELDS:
        return _error(f"Unknown upload type '{kind}'", 404)

    file_storage = None
    for field in UPLOAD_FIELDS[kind]:
        candidate = request.files.get(field)
        if candidate and candidate.filename:
            file_storage = candidate
            break

    if file_storage is None:
        return _error(f"No {kind} file provided", 400)

    try:
        result = _store(file_storage, kind)
    except ValueError as e:
        return _error(str(e), 400)
    except StorageError as e:
        logger.error(f"{kind.capitalize()} upload failed: {str(e)}")
        return _error(f"{kind.capitalize()} upload failed. Please try again.", 500)

    logger.info(f"{kind.capitalize()} {file_storage.filename} stored as {result.key} via {result.provider}")
    return jsonify(result.dict()), 201


@uploads_bp.route('/uploads/multitracks', methods=['POST'])
@jwt_required()
def upload_multitracks():
    """Upload up to 20 audio stems in one request"""
    files = [f for f in request.files.getlist('multitracks') if f and f.filename]
    if not files:
        return _error("No multitrack files provided", 400)
    if len(files) > 20:
        return _error("Too many files. At most 20 multitracks per upload.", 400)

    tracks = []
    try:
        for file_storage in files:
            result = _store(file_storage, 'multitrack')
            tracks.append({"name": file_storage.filename, **result.dict()})
    except ValueError as e:
        return _error(str(e), 400)
    except StorageError as e:
        logger.error(f"Multitrack upload failed: {str(e)}")
        return _error("Multitrack upload failed. Please try again.", 500)

    return jsonify({
        "success": True,
        "tracks": tracks
    }), 201
