from flask import Blueprint, jsonify
from flask_login import login_required, current_user
import time

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the QuizBlast game server!'})

@main.route('/health')
def health():
    return jsonify({'status': 'ok', 'timestamp': time.time()})

@main.route('/me', methods=['GET', 'OPTIONS'])
@login_required
def me():
    return jsonify({'success': True, 'admin': current_user.to_dict()})
