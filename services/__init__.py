# ========================================================
# services/__init__.py
# ========================================================
"""
Business Logic Services.

Contains reusable service modules decoupled from handlers:

- identity.py:    who is acting (registered user or device-bound guest)
- quizzes.py:     quiz lookup, paid question access, player status
- razorpay.py:    Razorpay Orders API client
- payments.py:    order issuance, signature verification, sweeper query
- attempts.py:    server-side scoring and the one-attempt record
- leaderboard.py: results publication gate and ranking
"""
