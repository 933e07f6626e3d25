# ===============================================================
# logging_setup.py
# ===============================================================
import logging
import os
import sys
import re
import sentry_sdk

# ------------------------------------------------
# Environment & log level
# ------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, LOG_LEVEL, logging.INFO)
SENTRY_DSN = os.getenv("SENTRY_DSN")  # optional, leave empty if not using
ENVIRONMENT = os.getenv("ENVIRONMENT", "production")


# ------------------------------------------------
# 🔒 Secret Filter to hide gateway keys / signatures
# ------------------------------------------------
class SecretFilter(logging.Filter):
    RAZORPAY_KEY_PATTERN = re.compile(r"\brzp_(?:live|test)_[A-Za-z0-9]{6,}\b")
    KEY_PATTERN = re.compile(
        r"((?:secret|token|signature|password|authorization)[^\s=:'\"]*['\"]?\s*[:=]\s*['\"]?)([\w.-]+)",
        re.IGNORECASE
    )

    def _scrub(self, value: str) -> str:
        value = self.RAZORPAY_KEY_PATTERN.sub("[SECRET]", value)
        return self.KEY_PATTERN.sub(r"\1[REDACTED]", value)

    def _scrub_arg(self, value):
        # Non-string args keep their type so %d / %f placeholders still format
        return self._scrub(value) if isinstance(value, str) else value

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._scrub(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._scrub_arg(v) for k, v in record.args.items()}
            else:
                record.args = tuple(self._scrub_arg(a) for a in record.args)
        return True


# ------------------------------------------------
# Configure root logger
# ------------------------------------------------
formatter = logging.Formatter(
    "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    "%Y-%m-%d %H:%M:%S",
)
handler = logging.StreamHandler(sys.stdout)
handler.setFormatter(formatter)
handler.addFilter(SecretFilter())

root = logging.getLogger()
root.setLevel(numeric_level)
if not any(getattr(h, "_dailyquiz", False) for h in root.handlers):
    handler._dailyquiz = True
    root.addHandler(handler)

logger = logging.getLogger("DailyQuiz")

# ------------------------------------------------
# Ensure uvicorn/gunicorn logs flow through this formatter
# ------------------------------------------------
for noisy in ("uvicorn", "uvicorn.error", "uvicorn.access",
              "gunicorn", "gunicorn.error", "gunicorn.access"):
    logging.getLogger(noisy).handlers = []
    logging.getLogger(noisy).propagate = True

# ------------------------------------------------
# Optional: Initialize Sentry
# ------------------------------------------------
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.2")),
        environment=ENVIRONMENT,
    )

logger.info("✅ Secure logger initialized (keys and signatures masked from output).")


def capture_exception(exc: BaseException) -> None:
    """Forward an unexpected exception to Sentry when configured."""
    if SENTRY_DSN:
        sentry_sdk.capture_exception(exc)
