from flask import Blueprint, request, jsonify
from .models import db, User, Club
from flask_login import login_user, logout_user, login_required, current_user

main = Blueprint('main', __name__)

def _body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}

def _text(value):
    return value.strip() if isinstance(value, str) else ''

@main.route('/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = _body()
    user = User.query.filter_by(username=_text(data.get('username'))).first()
    password = data.get('password')
    if user and isinstance(password, str) and user.check_password(password):
        login_user(user)
        return jsonify({"success": True, "user": user.to_dict()})
    return jsonify({"success": False, "message": "Invalid credentials"}), 401

@main.route('/register', methods=['POST', 'OPTIONS'])
def register():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = _body()
    username = _text(data.get('username'))[:64]
    password = data.get('password') if isinstance(data.get('password'), str) else ''
    if not username or not password:
        return jsonify({"success": False, "message": "Username and password are required"}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"success": False, "message": "Username already exists"}), 400

    new_user = User(username=username, nickname=_text(data.get('nickname'))[:64] or None)
    new_user.set_password(password)
    db.session.add(new_user)
    db.session.commit()
    login_user(new_user)
    return jsonify({"success": True, "user": new_user.to_dict()}), 201

@main.route('/check_login', methods=['GET', 'OPTIONS'])
def check_login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200

    @login_required
    def protected_check():
        return jsonify({"success": True, "user": current_user.to_dict()})

    return protected_check()

@main.route('/logout', methods=['POST', 'OPTIONS'])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})

@main.route('/clubs/mine')
@login_required
def get_my_clubs():
    clubs = Club.query.filter_by(host_owner_id=current_user.id).order_by(Club.created_at.desc()).all()
    return jsonify([club.to_dict() for club in clubs])
