"""
WebSocket Manager for real-time bet events.
Settled, refunded and newly placed bets are pushed to everyone in the dice room.
"""

from flask_socketio import emit, join_room, leave_room, disconnect
from flask_jwt_extended import decode_token
from flask import request
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

DICE_ROOM = 'dice'

class WebSocketManager:
    def __init__(self, app=None, socketio=None):
        self.socketio = socketio
        self.connected_users = {}  # user_id -> {socket_id, rooms}
        self.dice_room = set()

        if app and socketio:
            self.init_app(app)

    def init_app(self, app):
        """Initialize WebSocket handlers"""
        self.socketio.on_event('connect', self.handle_connect)
        self.socketio.on_event('disconnect', self.handle_disconnect)
        self.socketio.on_event('join_dice', self.handle_join_dice)
        self.socketio.on_event('leave_dice', self.handle_leave_dice)

    def authenticate_user(self, auth_token=None):
        """Authenticate user from JWT token or the access token cookie"""
        try:
            if auth_token:
                if auth_token.startswith('Bearer '):
                    auth_token = auth_token[7:]
                user_id = decode_token(auth_token).get('sub')
                if user_id:
                    return int(user_id)

            access_token_cookie = request.cookies.get('access_token_cookie')
            if access_token_cookie:
                user_id = decode_token(access_token_cookie).get('sub')
                if user_id:
                    return int(user_id)

            return None
        except Exception as e:
            logger.warning(f"WebSocket authentication failed: {str(e)}")
            return None

    def handle_connect(self, auth=None, namespace=None):
        auth_token = request.args.get('token') or (auth.get('token') if auth else None)
        user_id = self.authenticate_user(auth_token)

        if not user_id:
            logger.warning("WebSocket connection refused - invalid authentication")
            disconnect()
            return False

        self.connected_users[user_id] = {
            'socket_id': request.sid,
            'rooms': set(),
            'connected_at': datetime.now(timezone.utc)
        }

        logger.info(f"User {user_id} connected via WebSocket (socket: {request.sid})")
        emit('connection_status', {'status': 'connected', 'user_id': user_id})
        return True

    def handle_disconnect(self, namespace=None):
        user_id = self._get_authenticated_user()
        if user_id:
            self.dice_room.discard(user_id)
            del self.connected_users[user_id]
            logger.info(f"User {user_id} disconnected from WebSocket")

    def handle_join_dice(self, data=None):
        user_id = self._get_authenticated_user()
        if not user_id:
            emit('error', {'message': 'Authentication required'})
            return

        join_room(DICE_ROOM)
        self.dice_room.add(user_id)
        self.connected_users[user_id]['rooms'].add(DICE_ROOM)
        emit('room_joined', {'room': DICE_ROOM, 'success': True})

    def handle_leave_dice(self, data=None):
        user_id = self._get_authenticated_user()
        if not user_id:
            return

        leave_room(DICE_ROOM)
        self.dice_room.discard(user_id)
        self.connected_users[user_id]['rooms'].discard(DICE_ROOM)
        emit('room_left', {'room': DICE_ROOM})

    def _get_authenticated_user(self):
        socket_id = request.sid
        for user_id, data in self.connected_users.items():
            if data['socket_id'] == socket_id:
                return user_id
        return None

    # Event Broadcasting Methods
    def broadcast_bet_event(self, event_type, bet_data):
        """Broadcast a bet lifecycle event (commit, payment, failed_payment, jackpot_payment)"""
        if not self.socketio:
            return

        self.socketio.emit(
            'bet_event',
            {
                'type': event_type,
                'bet': bet_data,
                'timestamp': datetime.now(timezone.utc).isoformat()
            },
            room=DICE_ROOM
        )
        logger.debug(f"Broadcasted {event_type} for bet {bet_data.get('commit')} to {len(self.dice_room)} users")

# Global instance
websocket_manager = WebSocketManager()
