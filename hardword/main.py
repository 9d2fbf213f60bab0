from flask import Blueprint, request, jsonify, current_app
from flask_login import UserMixin, login_user, logout_user, login_required, current_user
from hardword import bcrypt

main = Blueprint('main', __name__)


class HostUser(UserMixin):
    """The single host account; its session cookie is the shared secret."""
    id = 'host'

    def to_dict(self):
        return {'id': self.id, 'username': current_app.config.get('ADMIN_USERNAME')}


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the hardword quiz server!'})

@main.route('/api/admin/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    password = data.get('password') or ''
    if username == current_app.config.get('ADMIN_USERNAME') and bcrypt.check_password_hash(
        current_app.config['ADMIN_PASSWORD_HASH'], password
    ):
        login_user(HostUser(), remember=True)
        current_app.logger.info("[host-login] ok")
        return jsonify({"success": True, "user": HostUser().to_dict()})
    current_app.logger.info("[host-login] rejected")
    return jsonify({"success": False, "error": "Invalid credentials"}), 401

@main.route('/api/admin/check_login', methods=['GET', 'OPTIONS'])
def check_login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200

    @login_required
    def protected_check():
        return jsonify({"success": True, "user": current_user.to_dict()})

    return protected_check()

@main.route('/api/admin/login', methods=['DELETE'])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})
