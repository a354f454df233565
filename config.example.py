# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKLIST_APP_NAME": "App display name (default: tasklist).",
    "TASKLIST_LOG_LEVEL": "Console logging level (default: INFO).",
    "TASKLIST_DATA_DIR": "Local data directory for logs (default: .local/tasklist).",
    # Backend
    "TASKLIST_BACKEND": (
        "memory | firebase (default: firebase when API key and database URL are set, else memory)."
    ),
    "TASKLIST_FIREBASE_API_KEY": "Web API key of the Firebase project (identity service).",
    "TASKLIST_FIREBASE_DATABASE_URL": "Realtime Database URL, e.g. https://<project>.firebaseio.com.",
    "TASKLIST_OFFLINE_AUTO_VERIFY": (
        "memory backend only: confirm the account when the verification email is sent (default: true)."
    ),
    # Timeouts
    "TASKLIST_REQUEST_TIMEOUT_SECONDS": "HTTP request timeout (default: 15).",
    "TASKLIST_SUBSCRIBE_TIMEOUT_SECONDS": "Wait for the first task snapshot (default: 15).",
    "TASKLIST_VERIFICATION_SEND_TIMEOUT_SECONDS": "Verification email send timeout (default: 20).",
    "TASKLIST_SESSION_RELOAD_TIMEOUT_SECONDS": "Session reload timeout (default: 20).",
    # Verification
    "TASKLIST_RESEND_COOLDOWN_SECONDS": "Cooldown before the verification email can be resent (default: 60).",
}
