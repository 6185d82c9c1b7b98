import logging

import requests


class ApiResponse:
    def __init__(self, success, data=None, status_code=None, error=None, code=None):
        self.success = success
        self.data = data
        self.status_code = status_code
        self.error = error
        self.code = code


class ApiClient:
    """Thin synchronous wrapper around the CrewLink HTTP API."""

    def __init__(self, base_url, access_token=None, timeout=10.0):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.session = requests.Session()

        # Configure logging
        self.logger = logging.getLogger("ApiClient")
        self.logger.setLevel(logging.INFO)
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s:%(name)s: %(message)s"
        )
        handler.setFormatter(formatter)
        if not self.logger.handlers:
            self.logger.addHandler(handler)

    def set_access_token(self, access_token):
        self.access_token = access_token

    def is_authenticated(self):
        return bool(self.access_token)

    def _handle_response(self, response):
        """
        Handles HTTP responses and returns an ApiResponse object.

        Error bodies carry a human-readable ``detail`` (and a ``code`` for
        domain errors); the detail is surfaced as-is.
        """
        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = None

        if 200 <= response.status_code < 300:
            return ApiResponse(
                True, data=data if data is not None else {}, status_code=response.status_code
            )

        error = response.text
        code = None
        if isinstance(data, dict):
            detail = data.get("detail")
            if isinstance(detail, str):
                error = detail
            elif isinstance(detail, list) and detail:
                # Validation errors come as a list of field problems.
                error = "; ".join(str(item.get("msg", item)) for item in detail)
            code = data.get("code")
        return ApiResponse(
            False, status_code=response.status_code, error=error, code=code
        )

    def _request(self, method, endpoint, auth_required=True, **kwargs):
        """
        Makes an HTTP request to the specified endpoint with optional authentication.
        """
        url = f"{self.base_url}{endpoint}"
        headers = kwargs.pop("headers", {})

        if auth_required:
            if not self.access_token:
                return ApiResponse(False, error="Not signed in. Please sign in again.")
            headers["Authorization"] = f"Bearer {self.access_token}"

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            self.logger.error(f"HTTP request exception: {str(e)}")
            return ApiResponse(False, error=f"Could not reach CrewLink: {str(e)}")

        api_response = self._handle_response(response)
        if not api_response.success:
            self.logger.warning(
                f"{method} {endpoint} failed ({api_response.status_code}): {api_response.error}"
            )
        return api_response

    def close(self):
        self.session.close()

    # Users
    def get_current_user(self):
        return self._request("GET", "/users/me")

    def update_profile(self, profile):
        response = self._request("PUT", "/users/me/profile", json=profile)
        if response.success:
            self.logger.info("Profile updated successfully.")
        return response

    def get_user(self, user_id):
        return self._request("GET", f"/users/{user_id}")

    # Connections
    def send_connection_request(self, receiver_id, message=None):
        body = {"receiver_id": receiver_id}
        if message:
            body["message"] = message
        response = self._request("POST", "/connections/request", json=body)
        if response.success:
            self.logger.info(f"Connection request sent to '{receiver_id}'.")
        return response

    def respond_to_request(self, request_id, action):
        """
        Accepts or declines a pending request; ``action`` is "accept" or "decline".
        """
        response = self._request(
            "PUT", f"/connections/request/{request_id}", json={"action": action}
        )
        if response.success:
            self.logger.info(f"Connection request '{request_id}' answered: {action}.")
        return response

    def get_connection_status(self, user_id):
        return self._request("GET", f"/connections/status/{user_id}")

    def get_pending_requests(self):
        return self._request("GET", "/connections/pending")

    def get_sent_requests(self):
        return self._request("GET", "/connections/sent")

    def block_user(self, user_id):
        return self._request("POST", f"/connections/block/{user_id}")

    def unblock_user(self, user_id):
        return self._request("DELETE", f"/connections/block/{user_id}")

    # Chat
    def get_rooms(self):
        return self._request("GET", "/chat/rooms")

    def get_room_messages(self, room_id):
        return self._request("GET", f"/chat/rooms/{room_id}/messages")

    def get_conversation(self, other_user_id):
        return self._request("GET", f"/chat/messages/{other_user_id}")

    def send_message(self, receiver_id, content):
        response = self._request(
            "POST", "/chat/send", json={"receiver_id": receiver_id, "content": content}
        )
        if response.success:
            self.logger.info(f"Message sent to '{receiver_id}'.")
        return response

    def update_message_status(self, message_id, status):
        return self._request(
            "PUT",
            "/chat/message-status",
            json={"message_id": message_id, "status": status},
        )

    def mark_room_read(self, room_id):
        return self._request("PUT", f"/chat/rooms/{room_id}/read")

    def get_unread_count(self):
        return self._request("GET", "/chat/unread-count")

    def set_online_status(self, is_online):
        return self._request(
            "PUT", "/chat/online-status", json={"is_online": is_online}
        )

    def get_user_status(self, user_id):
        return self._request("GET", f"/chat/user-status/{user_id}")

    # Notifications
    def get_notifications(self, page=1, limit=20, unread_only=False):
        params = {"page": page, "limit": limit}
        if unread_only:
            params["unread_only"] = "true"
        return self._request("GET", "/notifications", params=params)

    def get_notification_unread_count(self):
        return self._request("GET", "/notifications/unread-count")

    def mark_notification_read(self, notification_id):
        return self._request("PUT", f"/notifications/{notification_id}/read")

    def mark_all_notifications_read(self):
        return self._request("PUT", "/notifications/read-all")

    def delete_notification(self, notification_id):
        return self._request("DELETE", f"/notifications/{notification_id}")

    def get_notification_preferences(self):
        return self._request("GET", "/notifications/preferences")

    def update_notification_preferences(self, preferences):
        return self._request(
            "PUT", "/notifications/preferences", json={"preferences": preferences}
        )
