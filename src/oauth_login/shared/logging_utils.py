"""
Colored logging utilities for the OAuth login flow.

This module provides colored console logging with component identification,
timestamps and message formatting so that each hop of the login flow
(browser, client, provider, session store) is easy to follow.
"""

import logging
from datetime import datetime
from typing import Dict, Any, Optional, Union
from enum import Enum

from colorama import Fore, Style, init

init(autoreset=True)


class ComponentType(str, Enum):
    """Participants in the login flow."""
    CLIENT = "CLIENT"
    PROVIDER = "PROVIDER"
    SESSION_STORE = "SESSION-STORE"
    USER_BROWSER = "USER-BROWSER"


def _label(part: Union[ComponentType, str]) -> str:
    return part.value if isinstance(part, ComponentType) else str(part)


class OAuthLogger:
    """
    Colored logger for OAuth message flows.

    Secrets are redacted and tokens truncated before anything is printed.
    """

    SENSITIVE_KEYS = ('password', 'secret', 'key')
    TRUNCATED_KEYS = ('token', 'code', 'challenge', 'verifier', 'state', 'session')

    def __init__(self, component_name: Union[ComponentType, str]):
        """
        Initialize OAuth logger for a specific component.

        Args:
            component_name: Name of the component (CLIENT, PROVIDER, etc.)
        """
        self.component_name = _label(component_name).upper()
        self.colors = self._get_component_colors()

        self.logger = logging.getLogger(f"oauth_login.{self.component_name.lower()}")
        self.logger.setLevel(logging.INFO)

        # Remove existing handlers to avoid duplicates
        self.logger.handlers.clear()

        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(message)s"))
        self.logger.addHandler(handler)
        self.logger.propagate = False

    def _get_component_colors(self) -> Dict[str, str]:
        """Get color scheme for different components and message types."""
        return {
            ComponentType.CLIENT.value: Fore.BLUE + Style.BRIGHT,
            ComponentType.PROVIDER.value: Fore.GREEN + Style.BRIGHT,
            ComponentType.SESSION_STORE.value: Fore.YELLOW + Style.BRIGHT,
            ComponentType.USER_BROWSER.value: Fore.CYAN + Style.BRIGHT,
            'ERROR': Fore.RED + Style.BRIGHT,
            'SUCCESS': Fore.GREEN + Style.BRIGHT,
            'INFO': Fore.CYAN,
            'HEADER': Fore.WHITE + Style.BRIGHT,
            'SEPARATOR': Fore.WHITE + Style.DIM,
            'RESET': Style.RESET_ALL
        }

    def _format_timestamp(self) -> str:
        """Format current timestamp for log messages."""
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

    def _sanitize_data(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Sanitize sensitive data for logging.

        Redacts secrets and truncates long tokens.
        """
        sanitized = {}
        for key, value in data.items():
            key_lower = key.lower()

            if any(sensitive in key_lower for sensitive in self.SENSITIVE_KEYS):
                sanitized[key] = '[REDACTED]'
            elif any(token in key_lower for token in self.TRUNCATED_KEYS):
                if isinstance(value, str) and len(value) > 10:
                    sanitized[key] = f"{value[:10]}..."
                else:
                    sanitized[key] = value
            else:
                sanitized[key] = value

        return sanitized

    def _emit(self, level: int, line: str):
        self.logger.log(level, line)

    def log_oauth_message(self,
                          source: Union[ComponentType, str],
                          destination: Union[ComponentType, str],
                          message_type: str,
                          data: Dict[str, Any],
                          success: bool = True):
        """
        Log OAuth message with color coding and formatting.

        Args:
            source: Source component name
            destination: Destination component name
            message_type: Type of message (REQUEST, RESPONSE, etc.)
            data: Message data dictionary
            success: Whether the operation was successful
        """
        source, destination = _label(source), _label(destination)
        level = logging.INFO if success else logging.WARNING
        timestamp = self._format_timestamp()
        source_color = self.colors.get(source.upper(), self.colors['INFO'])
        dest_color = self.colors.get(destination.upper(), self.colors['INFO'])

        if not success:
            msg_color = self.colors['ERROR']
        elif message_type in ['RESPONSE', 'SUCCESS']:
            msg_color = self.colors['SUCCESS']
        else:
            msg_color = self.colors['INFO']

        reset = self.colors['RESET']
        self._emit(level, f"{self.colors['HEADER']}[{timestamp}] {source_color}{source}{reset} → {dest_color}{destination}{reset}")
        self._emit(level, f"{msg_color}{message_type}:{reset}")

        for key, value in self._sanitize_data(data).items():
            self._emit(level, f"  {self.colors['INFO']}{key}:{reset} {value}")

        self._emit(level, f"{self.colors['SEPARATOR']}{'-' * 60}{reset}")

    def log_pkce_operation(self,
                           operation: str,
                           details: Dict[str, Any],
                           success: bool = True):
        """
        Log PKCE-specific operations.

        Args:
            operation: PKCE operation (generation, verification, etc.)
            details: Operation details
            success: Whether operation was successful
        """
        self.log_oauth_message(
            source=self.component_name,
            destination=self.component_name,
            message_type=f"PKCE-{operation.upper()}",
            data=details,
            success=success
        )

    def log_session_operation(self,
                              operation: str,
                              session_id: str,
                              details: Optional[Dict[str, Any]] = None):
        """
        Log a session store lifecycle event.

        Args:
            operation: Lifecycle step (created, authenticated, removed, ...)
            session_id: Affected session identifier (truncated in output)
            details: Additional context
        """
        data = {"session_id": session_id}
        if details:
            data.update(details)

        self.log_oauth_message(
            source=self.component_name,
            destination=ComponentType.SESSION_STORE,
            message_type=f"SESSION-{operation.upper()}",
            data=data
        )

    def log_error(self,
                  error_type: str,
                  message: str,
                  details: Optional[Dict[str, Any]] = None):
        """
        Log error messages with context.

        Args:
            error_type: Type of error
            message: Error message
            details: Additional error context
        """
        error_data = {
            "error_type": error_type,
            "message": message
        }

        if details:
            error_data.update(details)

        self.log_oauth_message(
            source=self.component_name,
            destination="ERROR-HANDLER",
            message_type="ERROR",
            data=error_data,
            success=False
        )

    def log_info(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Log informational messages.

        Args:
            message: Info message
            details: Additional context
        """
        self._emit(logging.INFO, f"{self.colors['INFO']}[{self._format_timestamp()}] {self.component_name}: {message}{self.colors['RESET']}")
        if details:
            for key, value in self._sanitize_data(details).items():
                self._emit(logging.INFO, f"  {key}: {value}")

    def log_startup(self, port: int, additional_info: Optional[Dict[str, Any]] = None):
        """
        Log component startup information.

        Args:
            port: Port number the component is running on
            additional_info: Additional startup information
        """
        self._emit(logging.INFO, f"{self.colors['SUCCESS']}🚀 {self.component_name} started on port {port}{self.colors['RESET']}")
        if additional_info:
            for key, value in self._sanitize_data(additional_info).items():
                self._emit(logging.INFO, f"   {key}: {value}")
        self._emit(logging.INFO, f"{self.colors['SEPARATOR']}{'-' * 60}{self.colors['RESET']}")
