# ==================================================
# handlers/__init__.py
# ==================================================
"""
HTTP route handlers.

- deps.py:        identity + session dependencies shared by all routers
- quiz.py:        today's quiz, player status, paid questions, submission
- payments.py:    Razorpay order issuance, verification, failed checkout
- leaderboard.py: time-gated ranked results
"""
