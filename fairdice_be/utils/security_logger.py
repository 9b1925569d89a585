"""
Audit logging for bets, house funds and privileged actions.

Every event is a single log line of the form ``<KIND>_EVENT: {json}`` so the
JSON log pipeline can index the payload.
"""

import logging
from datetime import datetime, timezone
from flask import current_app, g, request, has_request_context
import json


def _request_info():
    if not has_request_context():
        return 'N/A', None
    return g.get('request_id', 'N/A'), request.remote_addr


class SecurityLogger:
    """Centralized audit event logging"""

    @staticmethod
    def log_authentication_event(event_type: str, user_id: int = None, username: str = None,
                                 success: bool = True, details: dict = None):
        request_id, ip_address = _request_info()
        event_data = {
            'event_type': 'authentication',
            'sub_type': event_type,
            'user_id': user_id,
            'username': username,
            'success': success,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': request_id,
            'ip_address': ip_address,
            'details': details or {}
        }

        level = logging.INFO if success else logging.WARNING
        current_app.logger.log(level, f"AUTH_EVENT: {json.dumps(event_data)}")

    @staticmethod
    def log_financial_event(event_type: str, user_id: int = None, amount: int = None,
                            balance_before: int = None, balance_after: int = None,
                            bet_commit: str = None, details: dict = None):
        """Movements of value between players and the house."""
        request_id, ip_address = _request_info()
        event_data = {
            'event_type': 'financial',
            'sub_type': event_type,
            'user_id': user_id,
            'amount_sats': amount,
            'balance_before_sats': balance_before,
            'balance_after_sats': balance_after,
            'bet_commit': bet_commit,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': request_id,
            'ip_address': ip_address,
            'details': details or {}
        }

        current_app.logger.info(f"FINANCIAL_EVENT: {json.dumps(event_data)}")

    @staticmethod
    def log_game_event(event_type: str, user_id: int = None, bet_commit: str = None,
                       bet_amount: int = None, win_amount: int = None, details: dict = None):
        """Bet lifecycle: commit, payment, failed_payment, jackpot_payment, refund."""
        request_id, ip_address = _request_info()
        event_data = {
            'event_type': 'game',
            'sub_type': event_type,
            'game_type': 'dice',
            'user_id': user_id,
            'bet_commit': bet_commit,
            'bet_amount_sats': bet_amount,
            'win_amount_sats': win_amount,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': request_id,
            'ip_address': ip_address,
            'details': details or {}
        }

        level = logging.WARNING if event_type == 'failed_payment' else logging.INFO
        current_app.logger.log(level, f"GAME_EVENT: {json.dumps(event_data)}")

    @staticmethod
    def log_security_event(event_type: str, severity: str = 'medium', user_id: int = None,
                           details: dict = None):
        request_id, ip_address = _request_info()
        event_data = {
            'event_type': 'security',
            'sub_type': event_type,
            'severity': severity,
            'user_id': user_id,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': request_id,
            'ip_address': ip_address,
            'details': details or {}
        }

        level_map = {
            'low': logging.INFO,
            'medium': logging.WARNING,
            'high': logging.ERROR,
            'critical': logging.CRITICAL
        }

        current_app.logger.log(level_map.get(severity, logging.WARNING), f"SECURITY_EVENT: {json.dumps(event_data)}")

    @staticmethod
    def log_admin_event(event_type: str, admin_user_id: int = None, action: str = None,
                        details: dict = None):
        """House configuration and fund management"""
        request_id, ip_address = _request_info()
        event_data = {
            'event_type': 'admin',
            'sub_type': event_type,
            'admin_user_id': admin_user_id,
            'action': action,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'request_id': request_id,
            'ip_address': ip_address,
            'details': details or {}
        }

        current_app.logger.warning(f"ADMIN_EVENT: {json.dumps(event_data)}")
