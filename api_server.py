#!/usr/bin/env python3
"""
Frame Enhancer API Server
Upload an image (or a video and capture a frame from it), move the sliders,
get the re-rendered frame back, download the result.
"""

import os
import logging
import uuid
from pathlib import Path
from io import BytesIO
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

# Import services and models
from models.enhancement_settings import SETTING_RANGES
from models.errors import InputValidationError
from services.image_service import ImageService
from services.image_enhancement_service import ImageEnhancementService
from services.session_service import EnhancementSession, SessionService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "data/temp_uploads")
ALLOWED_EXTENSIONS = set(
    os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg,gif,bmp,webp,mp4,mov,avi,mkv,webm").split(",")
)
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "100")) * 1024 * 1024

app.config['UPLOAD_FOLDER'] = UPLOAD_FOLDER
app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services
image_service = ImageService()
enhancement_service = ImageEnhancementService()
session_service = SessionService(enhancement_service, image_service)

logger = logging.getLogger(__name__)


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def lookup_session(session_id: str):
    """Return the session or None when the id is missing / unknown."""
    if not session_id:
        return None
    try:
        return session_service.get(session_id)
    except KeyError:
        return None


def render_response(session: EnhancementSession, message: str):
    """JSON body shared by every endpoint that re-renders."""
    body = {
        'success': True,
        'session_id': session.session_id,
        'media_type': session.media_type,
        'settings': session.settings.as_dict(),
        'message': message,
    }
    if session.source is not None:
        body['width'] = session.source.width
        body['height'] = session.source.height
        body['original_image'] = image_service.to_base64(session.source)
    if session.enhanced is not None:
        body['enhanced_image'] = image_service.to_base64(session.enhanced)
        body['download_name'] = image_service.export_name(session.media_name)
    return jsonify(body)


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Frame Enhancer API is running',
        'active_sessions': len(session_service)
    })


@app.route('/api/settings/schema', methods=['GET'])
def settings_schema():
    """Slider ranges, steps and defaults."""
    return jsonify({
        name: {
            'min': rng.minimum,
            'max': rng.maximum,
            'step': rng.step,
            'default': rng.default,
        }
        for name, rng in SETTING_RANGES.items()
    })


@app.route('/api/upload', methods=['POST'])
def upload():
    """Load an image, or store a video and capture its first frame."""
    try:
        if 'file' not in request.files:
            return jsonify({'success': False, 'message': 'No file provided'}), 400

        file = request.files['file']
        if file.filename == '':
            return jsonify({'success': False, 'message': 'No file selected'}), 400
        if not allowed_file(file.filename):
            return jsonify({'success': False, 'message': f'File type not allowed: {file.filename}'}), 400

        session = session_service.get_or_create(request.form.get('session_id'))
        filename = secure_filename(file.filename)

        # Decode before clearing so a rejected file keeps the current result on display
        if image_service.is_video(filename):
            video_path = Path(UPLOAD_FOLDER) / f"video_{session.session_id}_{uuid.uuid4().hex}_{filename}"
            video_path.parent.mkdir(parents=True, exist_ok=True)
            file.save(str(video_path))
            try:
                frame = image_service.capture_frame(video_path, name=filename)
            except Exception:
                video_path.unlink(missing_ok=True)
                raise
            session.clear_media()
            session.set_source(frame, media_name=filename, media_type='video', media_path=video_path)
            message = f'Captured first frame of {filename}'
        else:
            img = image_service.load_bytes(file.read(), name=filename)
            session.clear_media()
            session.set_source(img, media_name=filename, media_type='image')
            message = f'Loaded {filename}'

        logger.info(f"Upload complete for session {session.session_id}: {filename}")
        return render_response(session, message)

    except InputValidationError as e:
        logger.warning(f"Rejected upload: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except FileNotFoundError as e:
        logger.warning(f"Unreadable upload: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Upload error: {e}")
        return jsonify({'success': False, 'message': f'Error loading file: {str(e)}'}), 500


@app.route('/api/capture-frame', methods=['POST'])
def capture_frame():
    """Capture another frame of the session's video."""
    try:
        payload = request.get_json(silent=True) or {}
        session = lookup_session(payload.get('session_id'))
        if session is None:
            return jsonify({'success': False, 'message': 'Invalid session'}), 400
        if session.media_type != 'video' or session.media_path is None:
            return jsonify({'success': False, 'message': 'Session has no video to capture from'}), 400

        frame_index = payload.get('frame_index')
        timestamp_ms = payload.get('timestamp_ms')
        session.capture_frame(
            frame_index=int(frame_index) if frame_index is not None else None,
            timestamp_ms=float(timestamp_ms) if timestamp_ms is not None else None,
        )
        return render_response(session, 'Frame captured')

    except InputValidationError as e:
        logger.warning(f"Rejected frame capture: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except FileNotFoundError as e:
        logger.warning(f"Frame capture without video: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except (TypeError, ValueError) as e:
        return jsonify({'success': False, 'message': f'Invalid frame position: {e}'}), 400
    except Exception as e:
        logger.error(f"Frame capture error: {e}")
        return jsonify({'success': False, 'message': f'Error capturing frame: {str(e)}'}), 500


@app.route('/api/settings', methods=['POST'])
def update_settings():
    """Change any subset of the seven sliders and re-render."""
    try:
        payload = dict(request.get_json(silent=True) or {})
        session = lookup_session(payload.pop('session_id', None))
        if session is None:
            return jsonify({'success': False, 'message': 'Invalid session'}), 400

        session.update_settings(**payload)
        return render_response(session, 'Settings applied')

    except InputValidationError as e:
        logger.warning(f"Rejected settings: {e}")
        return jsonify({'success': False, 'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Render error: {e}")
        return jsonify({'success': False, 'message': f'Error rendering: {str(e)}'}), 500


@app.route('/api/reset-settings', methods=['POST'])
def reset_settings():
    """Back to defaults and re-render."""
    try:
        payload = request.get_json(silent=True) or {}
        session = lookup_session(payload.get('session_id'))
        if session is None:
            return jsonify({'success': False, 'message': 'Invalid session'}), 400

        session.reset_settings()
        return render_response(session, 'Settings reset')

    except Exception as e:
        logger.error(f"Reset error: {e}")
        return jsonify({'success': False, 'message': f'Error resetting: {str(e)}'}), 500


@app.route('/api/download/<session_id>', methods=['GET'])
def download(session_id):
    """Enhanced frame as a JPEG attachment."""
    session = lookup_session(session_id)
    if session is None:
        return jsonify({'error': 'Invalid session'}), 400
    if session.enhanced is None:
        return jsonify({'error': 'Nothing enhanced yet'}), 404

    try:
        data = image_service.encode_jpeg(session.enhanced)
        return send_file(
            BytesIO(data),
            mimetype='image/jpeg',
            as_attachment=True,
            download_name=image_service.export_name(session.media_name),
        )
    except Exception as e:
        logger.error(f"Download error for session {session_id}: {e}")
        return jsonify({'error': 'Error encoding image'}), 500


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """Clear a session and free memory."""
    payload = request.get_json(silent=True) or {}
    if session_service.remove(payload.get('session_id')):
        return jsonify({'success': True, 'message': 'Session cleared'})
    return jsonify({'success': False, 'message': 'Session not found'})


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'error': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'error': 'Internal server error'}), 500


def main():
    host = os.getenv("API_HOST", "127.0.0.1")
    port = int(os.getenv("API_PORT", "5000"))
    debug = os.getenv("FLASK_DEBUG", "false").lower() in ("1", "true", "yes")

    Path(UPLOAD_FOLDER).mkdir(parents=True, exist_ok=True)

    logger.info("Starting Frame Enhancer API Server...")
    logger.info(f"Upload directory: {UPLOAD_FOLDER}")
    logger.info(f"Max upload size: {MAX_CONTENT_LENGTH // (1024 * 1024)}MB")
    logger.info(f"Gray reference for saturation: {enhancement_service.gray_reference}")

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == '__main__':
    main()
