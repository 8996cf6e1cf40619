#!/usr/bin/env python3
"""
BadRobot Worker API Server
Regeneration-only worker: one POST /process call rebuilds the masked regions
of a source image from linked regions of a reference image.
"""

import os
import time
import logging
from typing import Dict
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from badrobot.exceptions import BadRobotError
from badrobot.models.upload import UploadedFile
from badrobot.pipeline.patch_regenerator import regenerate
from badrobot.pipeline.upload_validator import build_regeneration_request
from badrobot.repositories.image_repository import ImageRepository
from badrobot.services.generation_service import GenerationService

app = Flask(__name__)
CORS(app)  # Enable CORS for the mask-painting frontend

# Configuration
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "1000")) * 1024 * 1024
PORT = int(os.getenv("PORT", "8080"))

app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services
image_repository = ImageRepository()
generation_service = GenerationService(image_repository=image_repository)

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


def collect_uploads() -> Dict[str, UploadedFile]:
    """First file of every multipart field, read into memory."""
    uploads = {}
    for field_name, storage in request.files.items():
        uploads[field_name] = UploadedFile(
            field_name=field_name,
            data=storage.read(),
            mime_type=storage.mimetype,
        )
    return uploads


@app.route('/', methods=['GET'])
def home():
    return Response("BadRobot worker is running. POST /process to use.", mimetype='text/plain')


@app.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({'ok': True, 'uptime': round(time.monotonic() - STARTED_AT, 3)})


@app.route('/process', methods=['POST'])
def process():
    """Regenerate every linked mask region and return the corrected image."""
    regen_request = build_regeneration_request(collect_uploads(), request.form, image_repository=image_repository)

    # a misconfigured generator fails here, before any pixel work
    generate = generation_service.resolve(regen_request.mode)

    logger.info(
        f"[worker] request summary: pairs={len(regen_request.pairs)} mode={regen_request.mode} "
        f"return_format={regen_request.return_format} quality={regen_request.quality}"
    )

    canvas = regenerate(
        regen_request.base,
        regen_request.reference,
        regen_request.pairs,
        generate,
    )

    body = image_repository.encode(canvas, regen_request.return_format, regen_request.quality)
    return Response(body, mimetype=image_repository.content_type(regen_request.return_format))


@app.errorhandler(BadRobotError)
def handle_worker_error(e: BadRobotError):
    """Turn worker errors into readable JSON."""
    if e.status >= 500:
        logger.error(f"[worker:error] {e.status} {e}", exc_info=e.__cause__ is not None)
    else:
        logger.warning(f"[worker:error] {e.status} {e}")
    return jsonify({'error': e.label, 'detail': str(e)}), e.status


@app.errorhandler(RequestEntityTooLarge)
def too_large(e):
    """Handle upload too large error."""
    return jsonify({
        'error': 'Payload Too Large',
        'detail': f'Upload exceeds {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'
    }), 413


@app.errorhandler(Exception)
def internal_error(e):
    """Anything unexpected becomes a 500 with the same JSON shape."""
    if isinstance(e, HTTPException):
        return jsonify({'error': e.name, 'detail': e.description}), e.code
    logger.exception(f"[worker:error] 500 {e}")
    return jsonify({'error': 'Processing failed', 'detail': str(e) or 'Unknown worker error'}), 500


def main():
    logger.info(f"[worker] listening on {PORT}")
    app.run(host="0.0.0.0", port=PORT, threaded=True)


if __name__ == '__main__':
    main()
