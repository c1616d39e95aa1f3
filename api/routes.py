from flask import Flask, request, Response, jsonify, render_template, redirect, url_for, session, flash, abort
import logging
import sys
from datetime import datetime, timezone
from supabase import create_client, Client

from lib.config import get_settings
from lib.error_handler import AppError, ErrorHandler, ValidationError
from lib.openai_client import OpenAIClient
from lib.twilio_client import TwilioClient

from .services.chat import ChatService
from .services.client_store import ClientStore
from .services.enhancement import EnhancementService
from .services.storage import StorageService
from .services.todos import TodoService
from .services.users import UserService
from .services.whatsapp import WhatsAppService
from .services.workflow import WorkflowService

# Configure detailed logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout,
    force=True  # Ensure our config takes precedence
)

# Create logger for this file
logger = logging.getLogger(__name__)

settings = get_settings()

# Initialize Flask
app = Flask(__name__)
app.secret_key = settings.secret_key

# Initialize clients
logger.info("Initializing Supabase client...")
try:
    supabase: Client = create_client(settings.supabase_url, settings.supabase_key)
    logger.info("Supabase client initialized successfully")
except Exception as e:
    logger.error(f"Error initializing Supabase client: {str(e)}")
    raise

logger.info("Initializing OpenAI client...")
openai_client = OpenAIClient(settings)

twilio_client = None
if settings.twilio_enabled:
    logger.info("Initializing Twilio client...")
    try:
        twilio_client = TwilioClient(settings)
        logger.info("Twilio client initialized successfully")
    except AppError as e:
        logger.warning(f"WhatsApp replies will only be logged: {e.message}")
else:
    logger.warning("Twilio not configured, WhatsApp replies will only be logged")

# Initialize services
logger.info("Initializing services...")
storage_service = StorageService(supabase_client=supabase)
workflow_service = WorkflowService(settings.workflow_webhook_url)
todo_service = TodoService(storage_service=storage_service, workflow_service=workflow_service)
user_service = UserService(storage_service=storage_service)
enhancement_service = EnhancementService(openai_client=openai_client)
chat_service = ChatService(enhancement_service=enhancement_service, todo_service=todo_service)
whatsapp_service = WhatsAppService(
    todo_service=todo_service,
    user_service=user_service,
    verify_token=settings.whatsapp_verify_token,
    twilio_client=twilio_client
)
logger.info("All services initialized successfully")

def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()

def client_store() -> ClientStore:
    return ClientStore(session)

def logged_in_user():
    return user_service.get_current_user(client_store())

@app.errorhandler(AppError)
def handle_app_error(error: AppError):
    logger.error(f"Request failed: {error.message}")
    return jsonify({'success': False, 'error': error.user_message}), error.status_code

# JSON endpoints

@app.route('/health', methods=['GET'])
def health():
    """Basic health check"""
    return jsonify({
        'status': 'healthy',
        'ai_available': enhancement_service.is_available(),
        'workflow_enabled': workflow_service.is_enabled(),
        'timestamp': utc_timestamp()
    })

@app.route('/api/ai-description', methods=['GET'])
def ai_description_health():
    return jsonify({
        'success': True,
        'message': "AI Description API is running",
        'timestamp': utc_timestamp()
    })

@app.route('/api/ai-description', methods=['POST'])
def update_ai_description():
    """Store a generated description on a todo (called by the workflow)"""
    try:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            body = {}
        todo_id = body.get('todoId')
        description = body.get('description')

        if not todo_id or not description:
            return jsonify({
                'success': False,
                'error': "Missing required fields: todoId and description are required"
            }), 400

        try:
            todo_id = int(todo_id)
        except (TypeError, ValueError):
            return jsonify({'success': False, 'error': "todoId must be a number"}), 400

        if settings.ai_description_api_key and body.get('apiKey') != settings.ai_description_api_key:
            return jsonify({'success': False, 'error': "Invalid API key"}), 401

        try:
            todo = todo_service.update_description(todo_id, str(description))
        except AppError as e:
            logger.error(f"Error updating todo with AI description: {e.message}")
            return jsonify({
                'success': False,
                'error': "Failed to update todo in database",
                'details': e.message
            }), 500

        if todo is None:
            return jsonify({'success': False, 'error': "Todo not found"}), 404

        return jsonify({
            'success': True,
            'message': "Todo description updated successfully",
            'todo': todo.model_dump(mode='json'),
            'timestamp': utc_timestamp()
        })

    except Exception as e:
        logger.error(f"AI description API error: {str(e)}", exc_info=True)
        return jsonify({
            'success': False,
            'error': "Internal server error",
            'details': str(e)
        }), 500

@app.route('/api/whatsapp', methods=['GET'])
def whatsapp_verify():
    """WhatsApp webhook verification handshake"""
    challenge = whatsapp_service.verify(
        request.args.get('hub.mode'),
        request.args.get('hub.verify_token'),
        request.args.get('hub.challenge')
    )
    if challenge is None:
        return Response('Forbidden', status=403, mimetype='text/plain')
    return Response(challenge, status=200, mimetype='text/plain')

@app.route('/api/whatsapp', methods=['POST'])
async def whatsapp_webhook():
    try:
        logger.info("WhatsApp webhook received")
        body = request.get_json(silent=True) or {}
        logger.info(f"Webhook data: {body}")

        result = await whatsapp_service.handle_webhook(body)
        return jsonify(result)

    except Exception as e:
        logger.error(f"WhatsApp webhook error: {str(e)}", exc_info=True)
        return jsonify({'error': "Internal server error"}), 500

# Pages

@app.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'GET':
        return render_template('login.html', username='')

    username = request.form.get('username', '')
    try:
        user = user_service.login_user(username)
    except ValidationError as e:
        flash(e.user_message, 'error')
        return render_template('login.html', username=username), 400
    except AppError as e:
        flash(ErrorHandler.handle_login_error(e), 'error')
        return render_template('login.html', username=username), 500

    user_service.set_current_user(client_store(), user)
    logger.info(f"User {user.username} logged in")
    return redirect(url_for('index'))

@app.route('/logout', methods=['POST'])
def logout():
    user_service.logout_user(client_store())
    return redirect(url_for('login'))

@app.route('/', methods=['GET'])
def index():
    user = logged_in_user()
    if user is None:
        return redirect(url_for('login'))

    todos = []
    try:
        todos = todo_service.list_todos(user.id)
    except AppError as e:
        flash(ErrorHandler.handle_load_error(e), 'error')

    return render_template(
        'todos.html',
        user=user,
        active_todos=[todo for todo in todos if not todo.completed],
        completed_todos=[todo for todo in todos if todo.completed],
        draft=chat_service.take_draft(client_store()),
        ai_available=enhancement_service.is_available()
    )

@app.route('/todos', methods=['POST'])
def create_todo():
    user = logged_in_user()
    if user is None:
        return redirect(url_for('login'))

    try:
        todo_service.create_todo(
            user.id,
            request.form.get('text', ''),
            description=request.form.get('description'),
            priority=request.form.get('priority') == 'on'
        )
    except ValidationError as e:
        flash(e.user_message, 'error')
    except AppError as e:
        flash(ErrorHandler.handle_create_error(e), 'error')
    return redirect(url_for('index'))

@app.route('/todos/<int:todo_id>/edit', methods=['GET', 'POST'])
def edit_todo(todo_id: int):
    user = logged_in_user()
    if user is None:
        return redirect(url_for('login'))

    if request.method == 'GET':
        todo = todo_service.get_todo(todo_id)
        if todo is None:
            abort(404)
        return render_template('edit.html', user=user, todo=todo)

    try:
        todo_service.edit_todo(
            todo_id,
            request.form.get('text', ''),
            description=request.form.get('description'),
            priority=request.form.get('priority') == 'on'
        )
    except ValidationError as e:
        flash(e.user_message, 'error')
        return redirect(url_for('edit_todo', todo_id=todo_id))
    except AppError as e:
        flash(ErrorHandler.handle_update_error(e), 'error')
    return redirect(url_for('index'))

@app.route('/todos/<int:todo_id>/toggle', methods=['POST'])
def toggle_todo(todo_id: int):
    if not user_service.is_logged_in(client_store()):
        return redirect(url_for('login'))

    # The page posts the target state so a repeated submit does not flip it back
    completed = request.form.get('completed')
    try:
        if completed is None:
            todo_service.toggle_todo(todo_id)
        else:
            todo_service.set_completed(todo_id, completed == 'true')
    except AppError as e:
        flash(ErrorHandler.handle_update_error(e), 'error')
    return redirect(url_for('index'))

@app.route('/todos/<int:todo_id>/delete', methods=['POST'])
def delete_todo(todo_id: int):
    if not user_service.is_logged_in(client_store()):
        return redirect(url_for('login'))

    try:
        todo_service.delete_todo(todo_id)
    except AppError as e:
        flash(ErrorHandler.handle_delete_error(e), 'error')
    return redirect(url_for('index'))

@app.route('/chat', methods=['GET'])
def chat():
    user = logged_in_user()
    if user is None:
        return redirect(url_for('login'))

    store = client_store()
    return render_template(
        'chat.html',
        user=user,
        messages=chat_service.load_transcript(store),
        state=chat_service.get_state(store).value
    )

@app.route('/chat/messages', methods=['POST'])
async def chat_message():
    if not user_service.is_logged_in(client_store()):
        return redirect(url_for('login'))

    await chat_service.send_message(client_store(), request.form.get('message', ''))
    return redirect(url_for('chat'))

@app.route('/chat/replies', methods=['POST'])
async def chat_reply():
    store = client_store()
    user_id = user_service.get_current_user_id(store)
    if user_id is None:
        return redirect(url_for('login'))

    outcome = await chat_service.handle_reply(store, request.form.get('reply', ''), user_id)
    if outcome.created:
        flash(f"Created {len(outcome.created)} todo(s) from the assistant's suggestion.", 'success')
    if outcome.close:
        return redirect(url_for('index'))
    return redirect(url_for('chat'))

@app.route('/chat/clear', methods=['POST'])
def chat_clear():
    if not user_service.is_logged_in(client_store()):
        return redirect(url_for('login'))

    chat_service.clear(client_store())
    return redirect(url_for('chat'))
