from flask import Blueprint, jsonify
from flask_login import current_user, login_required

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the PeerRank game server!'})

@main.route('/me')
@login_required
def whoami():
    return jsonify(current_user.to_dict())
