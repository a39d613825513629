"""
IELTS Writing Co-pilot - Flask Application
Form page, JSON API and submission gating for AI examiner feedback.
"""
import os
from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify, render_template, request
from flask_cors import CORS

from app.ielts_copilot.config import config
from app.ielts_copilot.services.errors import (
    CompletionFailure,
    ConfigurationError,
    CopilotError,
    SubmissionInProgress,
    ValidationError,
)
from app.ielts_copilot.services.gemini_client import create_gemini_client
from app.ielts_copilot.services.ielts_prompts import WritingTaskType
from app.ielts_copilot.services.image_encoder import encode_image, to_data_uri
from app.ielts_copilot.services.response_renderer import (
    contract_satisfied,
    render_response,
    render_response_dicts,
)
from app.ielts_copilot.services.submission_state import SubmissionRegistry
from app.ielts_copilot.services.writing_analyzer import get_writing_analyzer
from app.ielts_copilot.utils import (
    IMAGE_TOO_LARGE_MESSAGE,
    get_browser_session_id,
    validate_image_upload,
    word_count_status,
)

ESSAY_MODES = ('text', 'image')


def create_app(config_name: Optional[str] = None, **overrides) -> Flask:
    """Build the app; refuses to start without a Gemini API key."""
    app = Flask(__name__)
    app.config.from_object(config[config_name or os.getenv('FLASK_ENV', 'default')])
    app.config.update(overrides)

    # Fail fast before any route is served
    app.extensions['gemini_client'] = create_gemini_client(app.config)
    app.extensions['submission_registry'] = SubmissionRegistry()

    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ALLOWED_ORIGINS']}})
    register_routes(app)
    app.logger.info(f"IELTS Writing Co-pilot ready (model={app.config['GEMINI_MODEL']})")
    return app


def _registry() -> SubmissionRegistry:
    return current_app.extensions['submission_registry']


def _collect_submission() -> Dict[str, Any]:
    """Validate the posted form and return the pieces of an analysis request."""
    cfg = current_app.config
    task_type = WritingTaskType.parse(request.form.get('task_type', WritingTaskType.TASK_2.value))

    topic = request.form.get('topic', '').strip()
    if not topic:
        raise ValidationError('Please provide a topic for your writing task.')

    essay_mode = request.form.get('essay_mode', 'text')
    if essay_mode not in ESSAY_MODES:
        raise ValidationError(f"Unknown essay input mode: {essay_mode!r}")

    reference_upload = validate_image_upload(
        request.files.get('question_image'),
        cfg['MAX_IMAGE_BYTES'],
        cfg['ALLOWED_IMAGE_EXTENSIONS'],
    )
    if task_type is not WritingTaskType.TASK_1:
        # Chart references only apply to Task 1
        reference_upload = None

    essay_upload = None
    essay_text = ''
    if essay_mode == 'image':
        essay_upload = validate_image_upload(
            request.files.get('essay_image'),
            cfg['MAX_IMAGE_BYTES'],
            cfg['ALLOWED_IMAGE_EXTENSIONS'],
        )
    else:
        essay_text = request.form.get('essay_text', '')

    return {
        'task_type': task_type,
        'topic': topic,
        'essay_mode': essay_mode,
        'essay_text': essay_text,
        'reference_upload': reference_upload,
        'essay_upload': essay_upload,
    }


def _run_submission(form: Dict[str, Any]) -> Dict[str, Any]:
    """Encode images, run the analysis under the session's tracker and shape the result."""
    session_id = get_browser_session_id()
    tracker = _registry().begin(session_id)
    try:
        reference = encode_image(form['reference_upload']) if form['reference_upload'] else None
        essay_image = encode_image(form['essay_upload']) if form['essay_upload'] else None
        text = get_writing_analyzer().analyze(
            form['task_type'],
            form['topic'],
            form['essay_text'],
            reference_image=reference,
            essay_image=essay_image,
        )
    except Exception as exc:
        tracker.fail(str(exc))
        raise
    else:
        tracker.succeed()
    finally:
        # Only in-flight submissions need a tracker
        _registry().release(session_id)

    essay_provided = essay_image is not None or bool(form['essay_text'].strip())
    return {
        'text': text,
        'essay_provided': essay_provided,
        'contract_satisfied': contract_satisfied(text, essay_provided),
        'reference_preview': to_data_uri(reference) if reference else None,
        'essay_preview': to_data_uri(essay_image) if essay_image else None,
    }


def _status_for(exc: CopilotError) -> int:
    if isinstance(exc, SubmissionInProgress):
        return 409
    if isinstance(exc, CompletionFailure):
        return 502
    return 400


def register_routes(app: Flask) -> None:

    @app.route('/', methods=['GET', 'POST'])
    def index():
        """Writing form; on POST also shows either the error or the rendered result."""
        context = {
            'task_types': [t.value for t in WritingTaskType],
            'form': request.form,
            'result': None,
            'sections': None,
            'error': None,
        }
        if request.method == 'GET':
            return render_template('index.html', **context)

        try:
            submission = _collect_submission()
            result = _run_submission(submission)
        except CopilotError as exc:
            current_app.logger.warning(f"Submission rejected: {exc.message}")
            context['error'] = f"An error occurred: {exc.message}"
            return render_template('index.html', **context), _status_for(exc)

        context['result'] = result
        context['sections'] = render_response(result['text'])
        return render_template('index.html', **context)

    @app.route('/api/analyze', methods=['POST'])
    def api_analyze():
        """Multipart form in, markdown text plus render tokens out."""
        try:
            submission = _collect_submission()
            result = _run_submission(submission)
        except CopilotError as exc:
            current_app.logger.warning(f"API submission failed: {exc.message}")
            return jsonify({'success': False, 'error': exc.message}), _status_for(exc)

        return jsonify({
            'success': True,
            'result': result['text'],
            'sections': render_response_dicts(result['text']),
            'contract_satisfied': result['contract_satisfied'],
        })

    @app.route('/api/word-count', methods=['POST'])
    def api_word_count():
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        try:
            if not isinstance(data, dict):
                raise ValidationError("Expected a JSON object.")
            count, status = word_count_status(data.get('text', ''), data.get('task_type', 'Task 2'))
        except ValidationError as exc:
            return jsonify({'error': exc.message}), 400
        return jsonify({'count': count, 'status': status})

    @app.route('/healthz')
    def healthz():
        client = current_app.extensions['gemini_client']
        return jsonify({'status': 'ok', 'gemini_configured': client.is_configured, 'model': client.model})

    @app.errorhandler(413)
    def request_too_large(error):
        """Uploads over MAX_CONTENT_LENGTH."""
        current_app.logger.warning("Rejected upload larger than MAX_CONTENT_LENGTH")
        if request.path.startswith('/api/'):
            return jsonify({'success': False, 'error': IMAGE_TOO_LARGE_MESSAGE}), 413
        return render_template(
            'index.html',
            task_types=[t.value for t in WritingTaskType],
            form={},
            result=None,
            sections=None,
            error=f"An error occurred: {IMAGE_TOO_LARGE_MESSAGE}",
        ), 413


# ============================================================================
# INITIALIZATION
# ============================================================================

if __name__ == '__main__':
    try:
        application = create_app()
    except ConfigurationError as exc:
        raise SystemExit(f"Configuration error: {exc}")
    application.run(host='0.0.0.0', port=int(os.getenv('PORT', 1111)), debug=application.config.get('DEBUG', False))
